import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..services import corrections, reports
from ..services.occurrences import delete_read
from .. import schemas

router = APIRouter(prefix="/api/v1/reads", tags=["reads"])


@router.get("", response_model=schemas.ReadPage)
def list_reads(
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=500),
    search: Optional[str] = None,
    fuzzy: bool = False,
    tag: Optional[str] = None,
    camera: Optional[str] = None,
    date_from: Optional[dt.date] = None,
    date_to: Optional[dt.date] = None,
    db: Session = Depends(get_db),
):
    filters = reports.ReadFilters(
        plate_number=search,
        fuzzy=fuzzy,
        tag=tag,
        camera_name=camera,
        date_from=date_from,
        date_to=date_to,
    )
    return reports.list_reads(db, page=page, page_size=page_size, filters=filters).as_dict()


@router.get("/cameras", response_model=List[str])
def get_cameras(db: Session = Depends(get_db)):
    return reports.camera_names(db)


@router.delete("/{read_id}", status_code=204)
def remove_read(read_id: int, db: Session = Depends(get_db)):
    delete_read(db, read_id)


@router.post("/{read_id}/correct", response_model=schemas.CorrectionOut)
def correct(read_id: int, body: schemas.CorrectionIn, db: Session = Depends(get_db)):
    return corrections.correct_read(
        db,
        read_id,
        body.new_plate_number,
        old_plate_number=body.old_plate_number,
        correct_all_reads=body.correct_all,
        remove_previous=body.remove_previous,
    )
