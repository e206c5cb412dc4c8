from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models

# prune only once the log is 10% over the limit
HYSTERESIS = 1.1


def prune_if_needed(db: Session, max_records: int) -> int:
    """Trim plate_reads to the newest `max_records` rows. Returns rows deleted."""
    read = models.PlateRead
    total = db.query(func.count(read.id)).scalar() or 0
    if total <= max_records * HYSTERESIS:
        return 0

    ranked = select(
        read.id,
        func.row_number().over(order_by=(read.timestamp.desc(), read.id.desc())).label("rn"),
    ).subquery()
    oldest = select(ranked.c.id).where(ranked.c.rn > max_records)

    try:
        result = db.execute(
            delete(read).where(read.id.in_(oldest)).execution_options(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("Pruned {} plate reads ({} over limit of {})", result.rowcount, total - max_records, max_records)
    return result.rowcount


def safe_prune(db: Session, max_records: int) -> int:
    """Housekeeping before ingestion; a failure here never blocks the event."""
    try:
        return prune_if_needed(db, max_records)
    except Exception:
        db.rollback()
        logger.exception("Retention pruning failed; continuing with ingestion")
        return 0
