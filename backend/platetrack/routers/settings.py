from fastapi import APIRouter, Depends

from ..db import database
from ..deps import current_settings
from ..settings import Settings, rotate_api_key, save_settings, settings_as_dict
from .. import schemas

router = APIRouter(prefix="/api/v1/settings", tags=["settings"])


@router.get("", response_model=schemas.SettingsOut)
def get_settings_view(settings: Settings = Depends(current_settings)):
    return settings_as_dict(settings)


@router.put("", response_model=schemas.SettingsOut)
def update_settings(body: schemas.SettingsUpdate):
    """Merge into the settings file. A new database URL swaps the pool on the next request."""
    settings = save_settings(body.model_dump(exclude_none=True))
    database.reconfigure(settings)
    return settings_as_dict(settings)


@router.post("/api-key", response_model=schemas.ApiKeyOut)
def rotate_key():
    """Issue a new ingestion key. Cameras must be updated with the returned value."""
    return {"api_key": rotate_api_key()}
