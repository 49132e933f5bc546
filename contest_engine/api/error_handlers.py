"""Global exception handlers for FastAPI."""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from contest_engine.errors import (
    DuplicateForecast, InvalidReading, NoStationScheduled, SubmissionClosed,
)

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(NoStationScheduled)
    async def no_station_handler(request: Request, exc: NoStationScheduled):
        logger.info("No station scheduled for %s (%s)", exc.target_date, request.url.path)
        return JSONResponse(
            status_code=400,
            content={
                "error": "Forecasting not available for this date",
                "date": exc.target_date.isoformat(),
            },
        )

    @app.exception_handler(DuplicateForecast)
    async def duplicate_handler(request: Request, exc: DuplicateForecast):
        return JSONResponse(
            status_code=409,
            content={
                "error": "You have already submitted a forecast for this date. Only one forecast per day is allowed.",
                "existing_forecast_id": exc.existing_id,
            },
        )

    @app.exception_handler(SubmissionClosed)
    async def closed_handler(request: Request, exc: SubmissionClosed):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(InvalidReading)
    async def invalid_reading_handler(request: Request, exc: InvalidReading):
        logger.warning("InvalidReading on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        logger.warning("ValueError on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception on %s: %s\n%s",
                     request.url.path, exc, traceback.format_exc())
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": str(exc)},
        )
