import datetime as dt
from dataclasses import dataclass
from typing import Optional

from loguru import logger
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..db import insert_for
from ..errors import NotFoundError
from .timefmt import utcnow, to_naive_utc

PROCESSED = "processed"
DUPLICATE = "duplicate"


@dataclass(frozen=True)
class RecordResult:
    plate_number: str
    status: str
    read_id: Optional[int] = None

    @property
    def processed(self) -> bool:
        return self.status == PROCESSED


def ensure_plate(db: Session, plate_number: str, seen_at: Optional[dt.datetime] = None) -> None:
    """
    Create the plates row if missing. Idempotent under concurrent callers.
    With `seen_at`, an existing row's first_seen_at is pulled back when an
    older sighting arrives late.
    """
    table = models.Plate
    stmt = insert_for(db, table).values(
        plate_number=plate_number,
        first_seen_at=seen_at or utcnow(),
    )
    if seen_at is None:
        stmt = stmt.on_conflict_do_nothing(index_elements=[table.plate_number])
    else:
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.plate_number],
            set_={"first_seen_at": stmt.excluded.first_seen_at},
            where=or_(
                table.first_seen_at.is_(None),
                table.first_seen_at > stmt.excluded.first_seen_at,
            ),
        )
    db.execute(stmt)


def record_occurrence(
    db: Session,
    plate_number: str,
    timestamp: dt.datetime,
    camera_name: Optional[str] = None,
    image_data: Optional[str] = None,
) -> RecordResult:
    """
    Append one read. A read with the same (plate, timestamp) already stored
    is reported as a duplicate, not an error; the unique constraint decides,
    so concurrent identical submissions store exactly one row.
    """
    timestamp = to_naive_utc(timestamp)
    table = models.PlateRead
    try:
        ensure_plate(db, plate_number, seen_at=timestamp)
        stmt = (
            insert_for(db, table)
            .values(
                plate_number=plate_number,
                timestamp=timestamp,
                camera_name=camera_name,
                image_data=image_data,
            )
            .on_conflict_do_nothing(index_elements=[table.plate_number, table.timestamp])
            .returning(table.id)
        )
        read_id = db.execute(stmt).scalar_one_or_none()
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    if read_id is None:
        logger.info("Duplicate read {} at {}", plate_number, timestamp.isoformat())
        return RecordResult(plate_number, DUPLICATE)
    logger.info("Recorded read {} for {} at {}", read_id, plate_number, timestamp.isoformat())
    return RecordResult(plate_number, PROCESSED, read_id)


def delete_read(db: Session, read_id: int) -> None:
    read = db.get(models.PlateRead, read_id)
    if read is None:
        raise NotFoundError(f"Read {read_id} not found")
    db.delete(read)
    db.commit()
