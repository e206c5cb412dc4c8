import datetime as dt
from typing import Optional

DEFAULT_CAP_DAYS = 15


def utcnow() -> dt.datetime:
    """Naive UTC now; every timestamp in the database is naive UTC."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(dt.timezone.utc).replace(tzinfo=None)


def relative_time(
    value: Optional[dt.datetime],
    now: Optional[dt.datetime] = None,
    cap_days: int = DEFAULT_CAP_DAYS,
) -> str:
    """
    Human-readable age of a timestamp ("5 minutes ago", "Yesterday", ...).

    Returns '' for a missing or future timestamp. Ages of `cap_days` or more
    collapse to "<cap>+ days ago".
    """
    if value is None:
        return ""
    now = now or utcnow()
    diff = to_naive_utc(now) - to_naive_utc(value)
    if diff < dt.timedelta(0):
        return ""

    seconds = diff.total_seconds()
    if seconds < 3600:
        minutes = int(seconds // 60)
        if minutes == 0:
            return "Just now"
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    if seconds < 86400:
        hours = int(seconds // 3600)
        return f"{hours} hour{'s' if hours != 1 else ''} ago"

    days = diff.days
    if days == 1:
        return "Yesterday"
    if days >= cap_days:
        return f"{cap_days}+ days ago"
    return f"{days} days ago"


def days_since(value: Optional[dt.datetime], now: Optional[dt.datetime] = None, default: int = DEFAULT_CAP_DAYS) -> int:
    if value is None:
        return default
    now = now or utcnow()
    return max((to_naive_utc(now) - to_naive_utc(value)).days, 0)
