from typing import List

from fastapi import APIRouter, Query, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..services import reports
from ..services.extract import normalize_plate_number
from .. import schemas

router = APIRouter(prefix="/api/v1/plates", tags=["history"])


@router.get("/{plate}/history", response_model=List[schemas.ReadOut])
def get_history_for_plate(plate: str, db: Session = Depends(get_db)):
    """
    Every read stored under this exact plate string, newest first. Reads of
    its misreads are not included; see /insights for the rolled-up view.
    """
    return reports.plate_history(db, normalize_plate_number(plate))


@router.get("/{plate}/insights", response_model=schemas.PlateInsights)
def get_insights(
    plate: str,
    recent: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return reports.plate_insights(db, plate, recent_limit=recent)
