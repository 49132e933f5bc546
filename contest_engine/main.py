import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from contest_engine.api.error_handlers import register_error_handlers
from contest_engine.api.routes_admin import router as admin_router
from contest_engine.api.routes_forecasts import router as forecasts_router
from contest_engine.api.routes_health import router as health_router
from contest_engine.api.routes_leaderboard import router as leaderboard_router
from contest_engine.api.routes_scores import router as scores_router
from contest_engine.api.routes_stations import router as stations_router
from contest_engine.api.routes_users import router as users_router
from contest_engine.config import settings
from contest_engine.db import close_db, get_db
from contest_engine.logging_config import setup_logging
from contest_engine.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    logger.info("Starting Forecast Contest on port %d", settings.engine_port)
    get_db()  # Initialize DB
    start_scheduler()

    yield

    # Shutdown
    stop_scheduler()
    close_db()
    logger.info("Forecast Contest stopped")


app = FastAPI(
    title="Forecast Contest",
    description="Daily station forecasting contest: submissions, scoring and leaderboards",
    version="0.1.0",
    lifespan=lifespan,
)

register_error_handlers(app)

app.include_router(health_router)
app.include_router(users_router)
app.include_router(stations_router)
app.include_router(forecasts_router)
app.include_router(scores_router)
app.include_router(leaderboard_router)
app.include_router(admin_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.engine_host, port=settings.engine_port)
