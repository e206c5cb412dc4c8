from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..services import notify
from ..services.extract import normalize_plate_number
from .. import schemas

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@router.get("", response_model=List[schemas.WatchOut])
def list_watches(db: Session = Depends(get_db)):
    return notify.list_watches(db)


@router.post("", response_model=schemas.WatchOut, status_code=201)
def add_watch(body: schemas.WatchIn, db: Session = Depends(get_db)):
    """Watch a plate; an existing watch is re-enabled."""
    return notify.add_watch(db, normalize_plate_number(body.plate_number))


@router.patch("/{plate}/enabled", response_model=schemas.WatchOut)
def toggle_watch(plate: str, body: schemas.WatchToggleIn, db: Session = Depends(get_db)):
    return notify.toggle_watch(db, normalize_plate_number(plate), body.enabled)


@router.patch("/{plate}/priority", response_model=schemas.WatchOut)
def set_priority(plate: str, body: schemas.WatchPriorityIn, db: Session = Depends(get_db)):
    return notify.set_priority(db, normalize_plate_number(plate), body.priority)


@router.delete("/{plate}", status_code=204)
def delete_watch(plate: str, db: Session = Depends(get_db)):
    notify.delete_watch(db, normalize_plate_number(plate))
