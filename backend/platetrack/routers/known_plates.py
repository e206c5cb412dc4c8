from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import require_api_key
from ..services import corrections
from ..services.extract import normalize_plate_number
from ..services.resolver import find_known_plate
from .. import schemas

router = APIRouter(prefix="/api/v1/known-plates", tags=["known-plates"])


@router.get("", response_model=schemas.KnownPlateMatch, dependencies=[Depends(require_api_key)])
def get_known_plate(
    plate: str = Query(..., min_length=1),
    fuzzy: bool = False,
    db: Session = Depends(get_db),
):
    match = find_known_plate(db, plate, fuzzy=fuzzy)
    if match is None:
        raise HTTPException(status_code=404, detail=f"No known plate matches '{plate}'")
    return match


@router.put("", response_model=schemas.KnownPlateOut, dependencies=[Depends(require_api_key)])
def put_known_plate(body: schemas.KnownPlateIn, db: Session = Depends(get_db)):
    return corrections.upsert_known_plate(db, body.plate_number, name=body.name, notes=body.notes)


@router.delete("", status_code=204, dependencies=[Depends(require_api_key)])
def delete_known_plate(plate: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    """Drop known status for a plate and its misreads. Reads are kept."""
    corrections.remove_known_plate(db, plate)


@router.get("/list", response_model=List[schemas.KnownPlateListItem])
def list_known(db: Session = Depends(get_db)):
    return corrections.list_known_plates(db)


@router.post("/{plate}/misreads", response_model=schemas.MisreadsOut)
def set_misreads(plate: str, body: schemas.MisreadsIn, db: Session = Depends(get_db)):
    return corrections.set_misreads(db, plate, name=body.name, notes=body.notes, misreads=body.misreads)


@router.delete("/misreads/{plate}", status_code=204)
def detach_misread(plate: str, db: Session = Depends(get_db)):
    corrections.remove_misread(db, plate)


@router.delete("/misreads/{plate}/reads")
def delete_misread_reads(plate: str, db: Session = Depends(get_db)):
    return {"plate_number": normalize_plate_number(plate), "deleted": corrections.delete_misread_reads(db, plate)}
