import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from .live import Broadcaster
from .services.notify import Notifier
from .settings import Settings, get_settings


def current_settings() -> Settings:
    return get_settings()


def require_api_key(
    x_api_key: Optional[str] = Header(default=None),
    settings: Settings = Depends(current_settings),
) -> None:
    """Pre-shared key check for ingestion and known-plate lookups."""
    if not x_api_key:
        raise HTTPException(status_code=401, detail="API key is required")
    if not settings.api_key or not secrets.compare_digest(x_api_key, settings.api_key):
        raise HTTPException(status_code=401, detail="Invalid API key")


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster
