from typing import Dict, Iterable, List, Optional

from loguru import logger
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..errors import NotFoundError, ValidationError
from .occurrences import ensure_plate

DEFAULT_TAG_COLOR = "#808080"


def list_tags(db: Session) -> List[models.Tag]:
    return db.query(models.Tag).order_by(models.Tag.name).all()


def create_tag(db: Session, name: str, color: Optional[str] = None) -> models.Tag:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Tag name is required")
    tag = models.Tag(name=name, color=color or DEFAULT_TAG_COLOR)
    db.add(tag)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError(f'Tag "{name}" already exists')
    db.refresh(tag)
    return tag


def _get_tag(db: Session, name: str) -> models.Tag:
    tag = db.query(models.Tag).filter(models.Tag.name == name).first()
    if tag is None:
        raise NotFoundError(f'Tag "{name}" not found')
    return tag


def update_tag_color(db: Session, name: str, color: str) -> models.Tag:
    tag = _get_tag(db, name)
    tag.color = color
    db.commit()
    db.refresh(tag)
    return tag


def delete_tag(db: Session, name: str) -> None:
    tag = _get_tag(db, name)
    try:
        db.execute(delete(models.PlateTag).where(models.PlateTag.tag_id == tag.id))
        db.delete(tag)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Deleted tag {}", name)


def tags_for_plates(db: Session, plate_numbers: Optional[Iterable[str]] = None) -> Dict[str, List[Dict[str, str]]]:
    """plate_number -> [{name, color}], sorted by tag name. None means all plates."""
    q = (
        db.query(models.PlateTag.plate_number, models.Tag.name, models.Tag.color)
        .join(models.Tag, models.Tag.id == models.PlateTag.tag_id)
    )
    if plate_numbers is not None:
        plate_numbers = list(plate_numbers)
        if not plate_numbers:
            return {}
        q = q.filter(models.PlateTag.plate_number.in_(plate_numbers))

    out: Dict[str, List[Dict[str, str]]] = {}
    for plate_number, name, color in q.order_by(models.Tag.name).all():
        out.setdefault(plate_number, []).append({"name": name, "color": color})
    return out


def tags_for_plate(db: Session, plate_number: str) -> List[Dict[str, str]]:
    return tags_for_plates(db, [plate_number]).get(plate_number, [])


def tag_plate(db: Session, plate_number: str, tag_name: str) -> None:
    tag = _get_tag(db, tag_name)
    existing = db.get(models.PlateTag, (plate_number, tag.id))
    if existing is not None:
        raise ValidationError(f'Tag "{tag_name}" is already added to this plate')
    try:
        ensure_plate(db, plate_number)
        db.add(models.PlateTag(plate_number=plate_number, tag_id=tag.id))
        db.commit()
    except Exception:
        db.rollback()
        raise


def untag_plate(db: Session, plate_number: str, tag_name: str) -> None:
    tag = _get_tag(db, tag_name)
    db.execute(
        delete(models.PlateTag)
        .where(models.PlateTag.plate_number == plate_number)
        .where(models.PlateTag.tag_id == tag.id)
    )
    db.commit()


def set_flag(db: Session, plate_number: str, flagged: bool) -> models.Plate:
    plate = db.get(models.Plate, plate_number)
    if plate is None:
        raise NotFoundError(f"Plate '{plate_number}' not found")
    plate.flagged = flagged
    db.commit()
    db.refresh(plate)
    return plate


def flagged_plates(db: Session) -> List[Dict]:
    rows = (
        db.query(models.Plate.plate_number)
        .filter(models.Plate.flagged.is_(True))
        .order_by(models.Plate.plate_number)
        .all()
    )
    numbers = [r[0] for r in rows]
    tags = tags_for_plates(db, numbers)
    return [{"plate_number": n, "tags": tags.get(n, [])} for n in numbers]
