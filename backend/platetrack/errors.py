from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import OperationalError


class PlateTrackError(Exception):
    """Base class for errors the API reports as structured failures."""

    status_code = 500
    error = "Internal server error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(PlateTrackError):
    status_code = 400
    error = "Validation failed"


class NotFoundError(PlateTrackError):
    status_code = 404
    error = "Not found"


class TransientInfraError(PlateTrackError):
    status_code = 503
    error = "Database unavailable"


async def _plate_track_error_handler(request: Request, exc: PlateTrackError):
    if exc.status_code >= 500:
        logger.error("{} {} failed: {}", request.method, request.url.path, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "detail": exc.detail},
    )


async def _operational_error_handler(request: Request, exc: OperationalError):
    logger.error("{} {} lost the database: {}", request.method, request.url.path, exc.orig)
    return JSONResponse(
        status_code=TransientInfraError.status_code,
        content={"error": TransientInfraError.error, "detail": "The database is unreachable, try again later"},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PlateTrackError, _plate_track_error_handler)
    app.add_exception_handler(OperationalError, _operational_error_handler)
