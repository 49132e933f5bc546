from fastapi import APIRouter, Depends, Header, HTTPException, Query

from contest_engine.api.deps import get_clock
from contest_engine.db import fetch_dict, fetch_dicts, get_db
from contest_engine.timeutils import Clock, current_instant, week_start

router = APIRouter(prefix="/leaderboard", tags=["leaderboard"])

LEADERBOARD_TYPES = ("all-time", "weekly", "monthly")


@router.get("")
def get_leaderboard(
    type: str = Query("all-time"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    x_user_id: int | None = Header(None, alias="X-User-Id"),
    clock: Clock = Depends(get_clock),
):
    """All-time ranks come from the running totals, weekly/monthly from scores."""
    if type not in LEADERBOARD_TYPES:
        raise HTTPException(400, "Invalid type. Use: all-time, weekly, or monthly")

    db = get_db()
    user_rank = None

    if type == "all-time":
        rankings = fetch_dicts(
            db,
            """SELECT id, username, total_points FROM users
            ORDER BY total_points DESC, id ASC LIMIT ? OFFSET ?""",
            [limit, offset],
        )
        if x_user_id is not None:
            me = fetch_dict(db, "SELECT total_points FROM users WHERE id = ?", [x_user_id])
            if me is not None:
                higher = db.execute(
                    "SELECT COUNT(*) FROM users WHERE total_points > ?", [me["total_points"]],
                ).fetchone()[0]
                user_rank = higher + 1
    else:
        now = current_instant(clock)
        if type == "weekly":
            start = week_start(now).date()
        else:
            start = now.date().replace(day=1)

        rankings = fetch_dicts(
            db,
            """SELECT sc.user_id AS id, u.username, SUM(sc.total_score) AS total_points
            FROM scores sc LEFT JOIN users u ON u.id = sc.user_id
            WHERE sc.score_date >= ?
            GROUP BY sc.user_id, u.username
            ORDER BY total_points DESC, id ASC LIMIT ? OFFSET ?""",
            [start, limit, offset],
        )
        if x_user_id is not None:
            mine = db.execute(
                "SELECT SUM(total_score) FROM scores WHERE user_id = ? AND score_date >= ?",
                [x_user_id, start],
            ).fetchone()[0]
            if mine is not None:
                higher = db.execute(
                    """SELECT COUNT(*) FROM (
                        SELECT user_id FROM scores WHERE score_date >= ?
                        GROUP BY user_id HAVING SUM(total_score) > ?
                    )""",
                    [start, mine],
                ).fetchone()[0]
                user_rank = higher + 1

    total_users = db.execute("SELECT COUNT(*) FROM users WHERE total_points > 0").fetchone()[0]

    return {
        "type": type,
        "rankings": [
            {"rank": offset + i + 1, **r, "total_points": int(r["total_points"] or 0)}
            for i, r in enumerate(rankings)
        ],
        "user_rank": {"rank": user_rank, "user_id": x_user_id} if x_user_id is not None else None,
        "pagination": {
            "total": total_users,
            "limit": limit,
            "offset": offset,
            "has_more": offset + len(rankings) < total_users,
        },
    }


@router.get("/stats")
def get_stats():
    db = get_db()
    counts = fetch_dict(
        db,
        """SELECT
            (SELECT COUNT(*) FROM users) AS total_users,
            (SELECT COUNT(*) FROM forecasts) AS total_forecasts,
            (SELECT COALESCE(SUM(total_score), 0) FROM scores) AS total_points,
            (SELECT COALESCE(AVG(total_score), 0) FROM scores) AS average_score,
            (SELECT COUNT(*) FROM scores WHERE perfect_bonus > 0) AS perfect_forecasts""",
    )
    top = fetch_dict(
        db, "SELECT username, total_points FROM users ORDER BY total_points DESC, id ASC LIMIT 1",
    )
    return {
        "stats": {
            "total_users": counts["total_users"],
            "total_forecasts": counts["total_forecasts"],
            "total_points": int(counts["total_points"]),
            "average_score": round(float(counts["average_score"]), 1),
            "perfect_forecasts": counts["perfect_forecasts"],
            "top_scorer": top,
        }
    }
