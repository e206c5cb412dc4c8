"""
Manual corrections: retargeting reads and managing the misread graph.

A misread is a known_plates row whose parent_plate_number points at another
known plate. Chains are not allowed: a parent is never itself a misread, and
a misread never has misreads of its own. Every multi-statement operation
here runs in one transaction.
"""

from typing import Dict, List, Optional

from loguru import logger
from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from .. import models
from ..db import atomic, insert_for
from ..errors import NotFoundError, ValidationError
from .extract import normalize_plate_number
from .occurrences import ensure_plate
from .resolver import family_plate_numbers, misread_numbers
from .tags import tags_for_plates


def _require_plate_number(value: Optional[str], field: str = "plate number") -> str:
    plate = normalize_plate_number(value)
    if not plate:
        raise ValidationError(f"A {field} is required")
    return plate


# ----------------------------- read corrections -----------------------------
def correct_one(db: Session, read_id: int, new_plate_number: str) -> models.PlateRead:
    """Retarget a single read; other reads of the old string are untouched."""
    new_plate = _require_plate_number(new_plate_number, "new plate number")
    read = db.get(models.PlateRead, read_id)
    if read is None:
        raise NotFoundError(f"Read {read_id} not found")
    if read.plate_number == new_plate:
        return read

    clash = (
        db.query(models.PlateRead.id)
        .filter(models.PlateRead.plate_number == new_plate)
        .filter(models.PlateRead.timestamp == read.timestamp)
        .first()
    )
    if clash is not None:
        raise ValidationError(
            f"{new_plate} already has a read at {read.timestamp.isoformat()} (read {clash[0]})"
        )

    old_plate = read.plate_number
    with atomic(db):
        # the old plates row stays; it may be a real plate of its own
        ensure_plate(db, new_plate, seen_at=read.timestamp)
        read.plate_number = new_plate
    db.refresh(read)
    logger.info("Corrected read {}: {} -> {}", read_id, old_plate, new_plate)
    return read


def correct_all(db: Session, old_plate_number: str, new_plate_number: str) -> int:
    """
    Retarget every read of `old` to `new`. Reads of `old` at a timestamp
    `new` already has are the same sighting and are dropped. Returns the
    number of reads moved.
    """
    old_plate = _require_plate_number(old_plate_number, "plate number to correct")
    new_plate = _require_plate_number(new_plate_number, "new plate number")
    read = models.PlateRead

    first_seen = db.query(func.min(read.timestamp)).filter(read.plate_number == old_plate).scalar()
    if first_seen is None and db.get(models.Plate, old_plate) is None:
        raise NotFoundError(f"Plate '{old_plate}' not found")
    if old_plate == new_plate:
        return 0

    with atomic(db):
        ensure_plate(db, new_plate, seen_at=first_seen)
        taken = select(read.timestamp).where(read.plate_number == new_plate)
        dropped = db.execute(
            delete(read)
            .where(read.plate_number == old_plate)
            .where(read.timestamp.in_(taken))
            .execution_options(synchronize_session=False)
        ).rowcount
        moved = db.execute(
            update(read)
            .where(read.plate_number == old_plate)
            .values(plate_number=new_plate)
            .execution_options(synchronize_session=False)
        ).rowcount

    logger.info(
        "Corrected all reads {} -> {}: {} moved, {} dropped as duplicates",
        old_plate, new_plate, moved, dropped,
    )
    return moved


def correct_read(
    db: Session,
    read_id: Optional[int],
    new_plate_number: str,
    old_plate_number: Optional[str] = None,
    correct_all_reads: bool = False,
    remove_previous: bool = False,
) -> Dict:
    """The user-facing correction: one read or all of them, then optionally purge the old plate."""
    if old_plate_number is None:
        if read_id is None:
            raise ValidationError("Either a read id or the old plate number is required")
        read = db.get(models.PlateRead, read_id)
        if read is None:
            raise NotFoundError(f"Read {read_id} not found")
        old_plate_number = read.plate_number
    old_plate = _require_plate_number(old_plate_number, "old plate number")
    new_plate = _require_plate_number(new_plate_number, "new plate number")
    if new_plate == old_plate:
        # nothing moves, so nothing may be purged either
        return _correction_result(old_plate, new_plate, 0, False)

    if correct_all_reads:
        moved = correct_all(db, old_plate, new_plate)
    else:
        if read_id is None:
            raise ValidationError("A read id is required to correct a single read")
        before = db.get(models.PlateRead, read_id)
        if before is not None and before.plate_number == new_plate:
            return _correction_result(old_plate, new_plate, 0, False)
        correct_one(db, read_id, new_plate)
        moved = 1

    if remove_previous:
        remove_plate(db, old_plate)

    return _correction_result(old_plate, new_plate, moved, remove_previous)


def _correction_result(old_plate: str, new_plate: str, moved: int, removed_previous: bool) -> Dict:
    return {"old_plate_number": old_plate, "new_plate_number": new_plate,
            "moved": moved, "removed_previous": removed_previous}


# ----------------------------- known plates -----------------------------
def _upsert_known(db: Session, plate_number: str, **values) -> None:
    table = models.KnownPlate
    stmt = insert_for(db, table).values(plate_number=plate_number, **values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.plate_number],
        set_={key: getattr(stmt.excluded, key) for key in values},
    )
    db.execute(stmt)


def upsert_known_plate(db: Session, plate_number: str, name: Optional[str] = None,
                       notes: Optional[str] = None) -> models.KnownPlate:
    plate = _require_plate_number(plate_number)
    with atomic(db):
        ensure_plate(db, plate)
        _upsert_known(db, plate, name=name, notes=notes)
    return db.get(models.KnownPlate, plate)


def list_known_plates(db: Session) -> List[Dict]:
    known = (
        db.query(models.KnownPlate, models.Plate.flagged)
        .outerjoin(models.Plate, models.Plate.plate_number == models.KnownPlate.plate_number)
        .order_by(models.KnownPlate.created_at.desc(), models.KnownPlate.plate_number)
        .all()
    )
    tags = tags_for_plates(db, [kp.plate_number for kp, _ in known])
    return [
        {
            "plate_number": kp.plate_number,
            "name": kp.name,
            "notes": kp.notes,
            "parent_plate_number": kp.parent_plate_number,
            "created_at": kp.created_at,
            "flagged": bool(flagged),
            "tags": [t["name"] for t in tags.get(kp.plate_number, [])],
        }
        for kp, flagged in known
    ]


def _validate_misreads(db: Session, parent: str, misreads: List[str]) -> None:
    seen = set()
    for misread in misreads:
        if misread in seen:
            raise ValidationError(f"Misread {misread} is listed more than once")
        seen.add(misread)
        if misread == parent:
            raise ValidationError(f"{parent} cannot be a misread of itself")

    parent_row = db.get(models.KnownPlate, parent)
    if parent_row is not None and parent_row.parent_plate_number:
        raise ValidationError(
            f"{parent} is itself a misread of {parent_row.parent_plate_number}; misreads cannot be nested"
        )

    if not misreads:
        return

    # the parent's current misreads are the only known rows we may overwrite
    current = set(misread_numbers(db, parent))
    conflicts = []
    rows = db.query(models.KnownPlate).filter(models.KnownPlate.plate_number.in_(misreads)).all()
    for row in rows:
        if row.plate_number in current:
            continue
        if row.parent_plate_number:
            conflicts.append(f"{row.plate_number} is already a misread of {row.parent_plate_number}")
        else:
            conflicts.append(f"{row.plate_number} is already a known plate")

    has_children = (
        db.query(models.KnownPlate.parent_plate_number)
        .filter(models.KnownPlate.parent_plate_number.in_(misreads))
        .distinct()
        .all()
    )
    for (child_parent,) in has_children:
        conflicts.append(f"{child_parent} has misreads of its own")

    if conflicts:
        raise ValidationError("; ".join(sorted(set(conflicts))))


def set_misreads(db: Session, parent_plate_number: str, name: Optional[str] = None,
                 notes: Optional[str] = None, misreads: Optional[List[str]] = None) -> Dict:
    """
    Register `parent` with its full misread list. Misreads missing from the
    new list are detached and revert to independent plate numbers. Nothing
    is written if any entry fails validation.
    """
    parent = _require_plate_number(parent_plate_number)
    wanted = [normalize_plate_number(m) for m in (misreads or [])]
    wanted = [m for m in wanted if m]
    _validate_misreads(db, parent, wanted)

    known = models.KnownPlate
    with atomic(db):
        ensure_plate(db, parent)
        _upsert_known(db, parent, name=name, notes=notes, parent_plate_number=None)
        for misread in wanted:
            _upsert_known(db, misread, parent_plate_number=parent)
        detach = delete(known).where(known.parent_plate_number == parent)
        if wanted:
            detach = detach.where(known.plate_number.notin_(wanted))
        detached = db.execute(detach.execution_options(synchronize_session=False)).rowcount

    logger.info("Set {} misreads for {} ({} detached)", len(wanted), parent, detached)
    return {"plate_number": parent, "name": name, "notes": notes, "misreads": misread_numbers(db, parent)}


def remove_misread(db: Session, plate_number: str) -> None:
    """Detach one misread; its reads become its own again."""
    row = db.get(models.KnownPlate, normalize_plate_number(plate_number))
    if row is None or not row.parent_plate_number:
        raise NotFoundError(f"{plate_number} is not a known misread")
    db.delete(row)
    db.commit()


def delete_misread_reads(db: Session, plate_number: str) -> int:
    """Delete the reads logged under a misread string, only if it is one."""
    plate = normalize_plate_number(plate_number)
    row = db.get(models.KnownPlate, plate)
    if row is None or not row.parent_plate_number:
        raise NotFoundError(f"{plate} is not a known misread")
    with atomic(db):
        deleted = db.execute(
            delete(models.PlateRead)
            .where(models.PlateRead.plate_number == plate)
            .execution_options(synchronize_session=False)
        ).rowcount
    return deleted


def remove_known_plate(db: Session, parent_plate_number: str) -> None:
    """
    Drop known status for a plate and its misreads: tag links, misread rows,
    then the plate's own row. Reads are not touched.
    """
    parent = normalize_plate_number(parent_plate_number)
    if db.get(models.KnownPlate, parent) is None:
        raise NotFoundError(f"Known plate '{parent}' not found")

    known = models.KnownPlate
    with atomic(db):
        family = family_plate_numbers(db, parent)
        db.execute(
            delete(models.PlateTag)
            .where(models.PlateTag.plate_number.in_(family))
            .execution_options(synchronize_session=False)
        )
        db.execute(
            delete(known).where(known.parent_plate_number == parent).execution_options(synchronize_session=False)
        )
        db.execute(delete(known).where(known.plate_number == parent).execution_options(synchronize_session=False))
    logger.info("Removed known plate {} and {} misreads", parent, len(family) - 1)


def remove_plate(db: Session, parent_plate_number: str) -> int:
    """
    Purge a plate: every read of it and of its current misreads, then its
    plates row. Irreversible. Known-plate rows are left as they are.
    Returns the number of reads deleted.
    """
    parent = normalize_plate_number(parent_plate_number)
    read = models.PlateRead
    has_reads = db.query(read.id).filter(read.plate_number == parent).first() is not None
    if not has_reads and db.get(models.Plate, parent) is None:
        raise NotFoundError(f"Plate '{parent}' not found")

    with atomic(db):
        family = family_plate_numbers(db, parent)
        deleted = db.execute(
            delete(read).where(read.plate_number.in_(family)).execution_options(synchronize_session=False)
        ).rowcount
        db.execute(
            delete(models.Plate)
            .where(models.Plate.plate_number == parent)
            .execution_options(synchronize_session=False)
        )
    logger.info("Removed plate {} with {} reads (misreads: {})", parent, deleted, family[1:])
    return deleted
