from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..services import tags
from .. import schemas

router = APIRouter(prefix="/api/v1/tags", tags=["tags"])


@router.get("", response_model=List[schemas.TagRow])
def list_tags(db: Session = Depends(get_db)):
    return tags.list_tags(db)


@router.post("", response_model=schemas.TagRow, status_code=201)
def create_tag(body: schemas.TagIn, db: Session = Depends(get_db)):
    return tags.create_tag(db, body.name, body.color)


@router.patch("/{name}", response_model=schemas.TagRow)
def update_color(name: str, body: schemas.TagColorIn, db: Session = Depends(get_db)):
    return tags.update_tag_color(db, name, body.color)


@router.delete("/{name}", status_code=204)
def delete_tag(name: str, db: Session = Depends(get_db)):
    tags.delete_tag(db, name)
