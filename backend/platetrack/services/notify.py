"""
Watched-plate notifications.

The matcher only decides *whether* to notify. Delivery goes through a
`Notifier` port; its failures are logged and dropped.
"""

from typing import Dict, List, Optional, Protocol

from loguru import logger
from sqlalchemy.orm import Session

from .. import models
from ..db import insert_for
from ..errors import NotFoundError, ValidationError
from .tags import tags_for_plates
from .timefmt import utcnow

MIN_PRIORITY = -2
MAX_PRIORITY = 2
DEFAULT_PRIORITY = 1


class Notifier(Protocol):
    def send(self, plate_number: str, priority: int, image_data: Optional[str] = None) -> None:
        ...


class LoggingNotifier:
    """Default delivery: write the alert to the log."""

    def send(self, plate_number: str, priority: int, image_data: Optional[str] = None) -> None:
        logger.info(
            "Watched plate {} seen (priority {}, image attached: {})",
            plate_number, priority, bool(image_data),
        )


def notify_safely(notifier: Notifier, plate_number: str, priority: int, image_data: Optional[str] = None) -> bool:
    try:
        notifier.send(plate_number, priority, image_data)
        return True
    except Exception:
        logger.exception("Notification delivery failed for {}", plate_number)
        return False


def check_plate_for_notification(db: Session, plate_number: str) -> Optional[models.PlateNotification]:
    return (
        db.query(models.PlateNotification)
        .filter(models.PlateNotification.plate_number == plate_number)
        .filter(models.PlateNotification.enabled.is_(True))
        .first()
    )


# ----------------------------- watch management -----------------------------
def _get_watch(db: Session, plate_number: str) -> models.PlateNotification:
    watch = (
        db.query(models.PlateNotification)
        .filter(models.PlateNotification.plate_number == plate_number)
        .first()
    )
    if watch is None:
        raise NotFoundError(f"No notification configured for {plate_number}")
    return watch


def add_watch(db: Session, plate_number: str) -> models.PlateNotification:
    """Create a watch, or re-enable an existing one."""
    table = models.PlateNotification
    stmt = insert_for(db, table).values(
        plate_number=plate_number, enabled=True, priority=DEFAULT_PRIORITY, updated_at=utcnow()
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[table.plate_number],
        set_={"enabled": True, "updated_at": stmt.excluded.updated_at},
    )
    try:
        db.execute(stmt)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return _get_watch(db, plate_number)


def toggle_watch(db: Session, plate_number: str, enabled: bool) -> models.PlateNotification:
    watch = _get_watch(db, plate_number)
    watch.enabled = enabled
    watch.updated_at = utcnow()
    db.commit()
    db.refresh(watch)
    return watch


def set_priority(db: Session, plate_number: str, priority: int) -> models.PlateNotification:
    if not isinstance(priority, int) or not MIN_PRIORITY <= priority <= MAX_PRIORITY:
        raise ValidationError(f"Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}")
    watch = _get_watch(db, plate_number)
    watch.priority = priority
    watch.updated_at = utcnow()
    db.commit()
    db.refresh(watch)
    return watch


def delete_watch(db: Session, plate_number: str) -> None:
    watch = _get_watch(db, plate_number)
    db.delete(watch)
    db.commit()


def list_watches(db: Session) -> List[Dict]:
    watches = (
        db.query(models.PlateNotification)
        .order_by(models.PlateNotification.created_at.desc(), models.PlateNotification.id.desc())
        .all()
    )
    tags = tags_for_plates(db, [w.plate_number for w in watches])
    return [
        {
            "id": w.id,
            "plate_number": w.plate_number,
            "enabled": w.enabled,
            "priority": w.priority,
            "created_at": w.created_at,
            "updated_at": w.updated_at,
            "tags": tags.get(w.plate_number, []),
        }
        for w in watches
    ]
