"""
The ingestion core: one detection event in, one outcome out.

Each candidate plate runs on its own (resolve, watch check, insert,
broadcast); a database failure on one candidate is logged and reported
without touching its siblings. Notification delivery and live broadcasts
are handed to `schedule` so they run after the response is built.
"""

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..live import Broadcaster, broadcast_safely
from .extract import extract_candidates
from .notify import Notifier, check_plate_for_notification, notify_safely
from .occurrences import record_occurrence
from .reports import read_context
from .resolver import resolve_identity
from .retention import safe_prune
from .timefmt import utcnow

LIVE_EVENT = "plate_read"

Schedule = Callable[..., Any]


def run_now(func: Callable[..., Any], *args, **kwargs) -> None:
    """Scheduler for callers without a background queue."""
    func(*args, **kwargs)


@dataclass
class IngestOutcome:
    processed: List[Dict[str, Any]] = field(default_factory=list)
    duplicates: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def status_code(self) -> int:
        if self.processed:
            return 201
        if self.failed and not self.duplicates:
            return 500
        return 409

    @property
    def message(self) -> str:
        if self.processed:
            return f"Processed {len(self.processed)} plate(s)"
        if self.failed and not self.duplicates:
            return "Failed to store any plate read"
        return "No new plate reads; all candidates were already recorded"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "duplicates": self.duplicates,
            "failed": self.failed,
            "message": self.message,
        }


def ingest_event(
    db: Session,
    max_records: int,
    notifier: Notifier,
    broadcaster: Broadcaster,
    memo: Optional[str] = None,
    plate_number: Optional[str] = None,
    timestamp: Optional[dt.datetime] = None,
    camera_name: Optional[str] = None,
    image_data: Optional[str] = None,
    schedule: Schedule = run_now,
) -> IngestOutcome:
    safe_prune(db, max_records)

    candidates = extract_candidates(memo=memo, plate_number=plate_number)
    if not candidates:
        raise ValidationError("No valid plate numbers found in the request")

    timestamp = timestamp or utcnow()
    logger.info(
        "Received detection event from {} with {} candidate(s): {}",
        camera_name or "unknown camera", len(candidates), ", ".join(candidates),
    )

    outcome = IngestOutcome()
    for plate in candidates:
        try:
            _ingest_candidate(db, outcome, plate, timestamp, camera_name, image_data,
                              notifier, broadcaster, schedule)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to store read for {}", plate)
            outcome.failed.append(plate)

    logger.info(
        "Detection event done: {} processed, {} duplicate, {} failed",
        len(outcome.processed), len(outcome.duplicates), len(outcome.failed),
    )
    return outcome


def _ingest_candidate(db, outcome, plate, timestamp, camera_name, image_data,
                      notifier, broadcaster, schedule) -> None:
    resolution = resolve_identity(db, plate)

    # watches are keyed by the canonical plate; alert even for a re-sent event
    watch = check_plate_for_notification(db, resolution.canonical)
    if watch is not None:
        schedule(notify_safely, notifier, resolution.canonical, watch.priority, image_data)

    result = record_occurrence(db, plate, timestamp, camera_name=camera_name, image_data=image_data)
    if not result.processed:
        outcome.duplicates.append(plate)
        return

    outcome.processed.append({"plate": plate, "id": result.read_id})
    # the read is committed; a failed enrichment only costs the live update
    try:
        payload = read_context(db, result.read_id)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not build live update for read {} ({})", result.read_id, plate)
        return
    schedule(broadcast_safely, broadcaster, LIVE_EVENT, payload)
