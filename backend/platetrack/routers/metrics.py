import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..services import reports
from ..services.timefmt import to_naive_utc, utcnow
from .. import schemas

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])


@router.get("", response_model=schemas.DashboardMetrics)
def get_metrics(
    start: Optional[dt.datetime] = None,
    end: Optional[dt.datetime] = None,
    db: Session = Depends(get_db),
):
    """Dashboard counts. Defaults to the seven days ending now."""
    end = to_naive_utc(end) if end else utcnow()
    start = to_naive_utc(start) if start else end - dt.timedelta(days=7)
    if start >= end:
        raise HTTPException(status_code=400, detail="start must be before end")
    return reports.dashboard_metrics(db, start, end)
