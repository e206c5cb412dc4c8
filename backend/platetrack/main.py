import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from loguru import logger

from .db import database
from .errors import TransientInfraError, register_error_handlers
from .live import Broadcaster, LiveBroadcaster
from .routers import history
from .routers import ingest
from .routers import known_plates
from .routers import live
from .routers import metrics
from .routers import notifications
from .routers import plates
from .routers import reads
from .routers import settings as settings_router
from .routers import tags
from .services.notify import LoggingNotifier, Notifier
from .settings import Settings, initialize_settings_file


def configure_logging(settings: Settings) -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    if settings.log_file:
        logger.add(settings.log_file, rotation="500 MB", level=settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = initialize_settings_file()
    configure_logging(settings)
    database.reconfigure(settings)
    try:
        database.create_all()
    except TransientInfraError as e:
        # keep serving; requests get 503 until the database is back
        logger.error("Could not create tables at startup: {}", e.detail)
    yield
    database.reset()


def create_app(notifier: Optional[Notifier] = None, broadcaster: Optional[Broadcaster] = None) -> FastAPI:
    app = FastAPI(title="PlateTrack API", version="0.3.0", lifespan=lifespan)
    app.state.notifier = notifier or LoggingNotifier()
    app.state.broadcaster = broadcaster or LiveBroadcaster()
    register_error_handlers(app)

    @app.get("/health")
    def health():
        return {"status": "ok", "service": "platetrack-api"}

    app.include_router(ingest.router)
    app.include_router(live.router)
    app.include_router(history.router)
    app.include_router(plates.router)
    app.include_router(reads.router)
    app.include_router(known_plates.router)
    app.include_router(tags.router)
    app.include_router(notifications.router)
    app.include_router(metrics.router)
    app.include_router(settings_router.router)
    return app


app = create_app()
