import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import current_settings
from ..services import corrections, reports, tags
from ..services.extract import normalize_plate_number
from ..settings import Settings
from .. import schemas

router = APIRouter(prefix="/api/v1/plates", tags=["plates"])


@router.get("", response_model=schemas.PlatePage)
def list_plates(
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=500),
    sort_field: str = reports.DEFAULT_SORT_FIELD,
    sort_order: str = "DESC",
    search: Optional[str] = None,
    tag: Optional[str] = None,
    date_from: Optional[dt.date] = None,
    date_to: Optional[dt.date] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(current_settings),
):
    """One row per canonical plate; misread sightings are counted under their parent."""
    result = reports.plates_with_known_info(
        db,
        page=page,
        page_size=page_size,
        sort_field=sort_field,
        sort_order=sort_order,
        filters=reports.PlateFilters(search=search, tag=tag, date_from=date_from, date_to=date_to),
        stale_days_default=settings.stale_days_default,
        relative_time_cap_days=settings.relative_time_cap_days,
    )
    return result.as_dict()


@router.get("/flagged", response_model=List[schemas.FlaggedPlateOut])
def get_flagged(db: Session = Depends(get_db)):
    return tags.flagged_plates(db)


@router.patch("/{plate}/flag", response_model=schemas.PlateOut)
def flag_plate(plate: str, body: schemas.FlagIn, db: Session = Depends(get_db)):
    return tags.set_flag(db, normalize_plate_number(plate), body.flagged)


@router.post("/{plate}/tags", status_code=204)
def add_tag(plate: str, body: schemas.PlateTagIn, db: Session = Depends(get_db)):
    tags.tag_plate(db, normalize_plate_number(plate), body.tag)


@router.delete("/{plate}/tags/{tag}", status_code=204)
def remove_tag(plate: str, tag: str, db: Session = Depends(get_db)):
    tags.untag_plate(db, normalize_plate_number(plate), tag)


@router.delete("/{plate}")
def delete_plate(plate: str, db: Session = Depends(get_db)):
    """Purge every read of the plate and its misreads. Irreversible."""
    deleted = corrections.remove_plate(db, plate)
    return {"plate_number": normalize_plate_number(plate), "deleted_reads": deleted}
