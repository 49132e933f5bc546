import duckdb
from fastapi import APIRouter, Depends, HTTPException

from contest_engine.api.deps import current_user
from contest_engine.db import create_user, get_db
from contest_engine.models.contest import UserCreate

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", status_code=201)
def register_user(req: UserCreate):
    try:
        user = create_user(req.username, get_db())
    except duckdb.ConstraintException:
        raise HTTPException(409, f"Username '{req.username}' is already taken")
    return {"user": user}


@router.get("/me")
def get_me(user: dict = Depends(current_user)):
    return {"user": user}
