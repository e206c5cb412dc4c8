"""
Read models over plates, reads and known-plate metadata.

Misread reads roll up into their parent: counts are summed and first/last
seen are merged across the parent and every attached misread. The queries
are split into small steps (own stats, misread links, roll-up) that are
combined in Python; filtering and sorting happen on the rolled-up values.

The plates view loads stats for every plate and pages in Python, so its
cost grows with the plates table rather than with the page size. Retention
keeps the reads bounded, but plates rows outlive their reads; if the table
gets large, the roll-up has to move into SQL.
"""

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import distinct, func, or_, select
from sqlalchemy.orm import Session

from .. import models
from ..errors import NotFoundError
from .extract import normalize_plate_number
from .resolver import family_plate_numbers, fuzzy_matches, resolve_identity
from .tags import tags_for_plate, tags_for_plates
from .timefmt import DEFAULT_CAP_DAYS, days_since, relative_time, utcnow

SORT_FIELDS = ("plate_number", "occurrence_count", "first_seen_at", "last_seen_at")
DEFAULT_SORT_FIELD = "first_seen_at"
DEFAULT_STALE_DAYS = 15
SUSPICIOUS_TAG = "Suspicious"


@dataclass
class ReadStats:
    count: int = 0
    first_seen_at: Optional[dt.datetime] = None
    last_seen_at: Optional[dt.datetime] = None

    def merge(self, other: "ReadStats") -> "ReadStats":
        firsts = [t for t in (self.first_seen_at, other.first_seen_at) if t is not None]
        lasts = [t for t in (self.last_seen_at, other.last_seen_at) if t is not None]
        return ReadStats(
            count=self.count + other.count,
            first_seen_at=min(firsts) if firsts else None,
            last_seen_at=max(lasts) if lasts else None,
        )


@dataclass
class PlateFilters:
    search: Optional[str] = None
    tag: Optional[str] = None
    date_from: Optional[dt.date] = None
    date_to: Optional[dt.date] = None


@dataclass
class ReadFilters:
    plate_number: Optional[str] = None
    fuzzy: bool = False
    tag: Optional[str] = None
    camera_name: Optional[str] = None
    date_from: Optional[dt.date] = None
    date_to: Optional[dt.date] = None


@dataclass
class Page:
    data: List[Dict[str, Any]] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 25

    @property
    def page_count(self) -> int:
        return -(-self.total // self.page_size) if self.page_size else 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "data": self.data,
            "pagination": {
                "total": self.total,
                "page": self.page,
                "page_size": self.page_size,
                "page_count": self.page_count,
            },
        }


# ----------------------------- query steps -----------------------------
def own_read_stats(db: Session, plate_numbers: Optional[Iterable[str]] = None) -> Dict[str, ReadStats]:
    """Per plate string: read count and first/last timestamp of its own reads."""
    read = models.PlateRead
    q = db.query(
        read.plate_number, func.count(read.id), func.min(read.timestamp), func.max(read.timestamp)
    )
    if plate_numbers is not None:
        q = q.filter(read.plate_number.in_(list(plate_numbers)))
    return {
        plate: ReadStats(count, first, last)
        for plate, count, first, last in q.group_by(read.plate_number).all()
    }


def misread_links(db: Session) -> Dict[str, List[models.KnownPlate]]:
    """parent plate number -> its misread known_plates rows."""
    rows = (
        db.query(models.KnownPlate)
        .filter(models.KnownPlate.parent_plate_number.isnot(None))
        .order_by(models.KnownPlate.plate_number)
        .all()
    )
    links: Dict[str, List[models.KnownPlate]] = {}
    for row in rows:
        links.setdefault(row.parent_plate_number, []).append(row)
    return links


def canonical_plate_numbers(db: Session, links: Dict[str, List[models.KnownPlate]],
                            own: Dict[str, ReadStats]) -> Set[str]:
    """
    Plates that get their own row: every plates row that is not a misread,
    plus parents referenced by misreads that have reads of their own or
    through their misreads.
    """
    misread_set = {m.plate_number for children in links.values() for m in children}
    numbers = {r[0] for r in db.query(models.Plate.plate_number).all()} - misread_set
    for parent, children in links.items():
        if parent in own or any(m.plate_number in own for m in children):
            numbers.add(parent)
    return numbers


def rolled_up_stats(plate_number: str, own: Dict[str, ReadStats],
                    links: Dict[str, List[models.KnownPlate]]) -> ReadStats:
    stats = own.get(plate_number, ReadStats())
    for misread in links.get(plate_number, []):
        stats = stats.merge(own.get(misread.plate_number, ReadStats()))
    return stats


def rolled_up_count(db: Session, plate_number: str) -> int:
    """Reads of a canonical plate plus all of its misreads."""
    family = family_plate_numbers(db, plate_number)
    return (
        db.query(func.count(models.PlateRead.id))
        .filter(models.PlateRead.plate_number.in_(family))
        .scalar()
        or 0
    )


# ----------------------------- plates view -----------------------------
def _matches_filters(row: Dict[str, Any], filters: PlateFilters) -> bool:
    if filters.tag and filters.tag != "all":
        if filters.tag not in {t["name"] for t in row["tags"]}:
            return False

    if filters.search:
        needle = filters.search.strip().lower()
        haystack = [row["plate_number"], row["name"], row["notes"]]
        haystack += [m["plate_number"] for m in row["misreads"]]
        if not any(needle in (value or "").lower() for value in haystack):
            return False

    first_seen = row["first_seen_at"]
    if filters.date_from or filters.date_to:
        if first_seen is None:
            return False
        if filters.date_from and first_seen.date() < filters.date_from:
            return False
        if filters.date_to and first_seen.date() > filters.date_to:
            return False
    return True


def _sort_rows(rows: List[Dict[str, Any]], sort_field: str, sort_order: str) -> List[Dict[str, Any]]:
    descending = sort_order == "DESC"
    present = [r for r in rows if r[sort_field] is not None]
    missing = [r for r in rows if r[sort_field] is None]
    present.sort(key=lambda r: r["plate_number"])
    present.sort(key=lambda r: r[sort_field], reverse=descending)
    missing.sort(key=lambda r: r["plate_number"])
    # nulls last when descending, first when ascending
    return present + missing if descending else missing + present


def plates_with_known_info(
    db: Session,
    page: int = 1,
    page_size: int = 25,
    sort_field: str = DEFAULT_SORT_FIELD,
    sort_order: str = "DESC",
    filters: Optional[PlateFilters] = None,
    now: Optional[dt.datetime] = None,
    stale_days_default: int = DEFAULT_STALE_DAYS,
    relative_time_cap_days: int = DEFAULT_CAP_DAYS,
) -> Page:
    """One row per canonical plate, with misreads rolled up."""
    filters = filters or PlateFilters()
    sort_field = sort_field if sort_field in SORT_FIELDS else DEFAULT_SORT_FIELD
    sort_order = "ASC" if str(sort_order).upper() == "ASC" else "DESC"
    page = max(page, 1)
    now = now or utcnow()

    own = own_read_stats(db)
    links = misread_links(db)
    numbers = canonical_plate_numbers(db, links, own)

    plates = {p.plate_number: p for p in db.query(models.Plate).filter(models.Plate.plate_number.in_(list(numbers)))}
    known = {k.plate_number: k for k in db.query(models.KnownPlate).filter(models.KnownPlate.plate_number.in_(list(numbers)))}
    tags = tags_for_plates(db, numbers)

    rows = []
    for number in numbers:
        stats = rolled_up_stats(number, own, links)
        plate = plates.get(number)
        info = known.get(number)
        rows.append({
            "plate_number": number,
            "first_seen_at": stats.first_seen_at or (plate.first_seen_at if plate else None),
            "created_at": plate.created_at if plate else None,
            "flagged": bool(plate.flagged) if plate else False,
            "name": info.name if info else None,
            "notes": info.notes if info else None,
            "occurrence_count": stats.count,
            "last_seen_at": stats.last_seen_at,
            "last_seen": relative_time(stats.last_seen_at, now, relative_time_cap_days),
            "days_since_last_seen": days_since(stats.last_seen_at, now, stale_days_default),
            "tags": tags.get(number, []),
            "misreads": [
                _misread_row(m, own.get(m.plate_number, ReadStats()), now, relative_time_cap_days)
                for m in links.get(number, [])
            ],
        })

    rows = [r for r in rows if _matches_filters(r, filters)]
    rows = _sort_rows(rows, sort_field, sort_order)
    offset = (page - 1) * page_size
    return Page(data=rows[offset:offset + page_size], total=len(rows), page=page, page_size=page_size)


def _misread_row(misread: models.KnownPlate, stats: ReadStats, now: dt.datetime, cap_days: int) -> Dict[str, Any]:
    return {
        "plate_number": misread.plate_number,
        "name": misread.name,
        "notes": misread.notes,
        "occurrence_count": stats.count,
        "first_seen_at": stats.first_seen_at,
        "last_seen_at": stats.last_seen_at,
        "last_seen": relative_time(stats.last_seen_at, now, cap_days),
    }


# ----------------------------- read log -----------------------------
def _known_context(db: Session, plate_numbers: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """plate string -> known plate / name / notes, falling back to the parent for misreads."""
    plate_numbers = set(plate_numbers)
    rows = {k.plate_number: k for k in db.query(models.KnownPlate).filter(models.KnownPlate.plate_number.in_(list(plate_numbers)))}
    parents = {k.parent_plate_number for k in rows.values() if k.parent_plate_number}
    parent_rows = {k.plate_number: k for k in db.query(models.KnownPlate).filter(models.KnownPlate.plate_number.in_(list(parents)))}

    context = {}
    for number in plate_numbers:
        row = rows.get(number)
        if row is None:
            context[number] = {"known_plate": None, "known_name": None, "known_notes": None, "canonical": number}
            continue
        if row.parent_plate_number:
            parent = parent_rows.get(row.parent_plate_number)
            context[number] = {
                "known_plate": row.parent_plate_number,
                "known_name": parent.name if parent else None,
                "known_notes": parent.notes if parent else None,
                "canonical": row.parent_plate_number,
            }
        else:
            context[number] = {"known_plate": row.plate_number, "known_name": row.name,
                               "known_notes": row.notes, "canonical": number}
    return context


def _read_dict(read: models.PlateRead, flagged: Optional[bool], context: Dict[str, Any],
               tags: List[Dict[str, str]]) -> Dict[str, Any]:
    return {
        "id": read.id,
        "plate_number": read.plate_number,
        "timestamp": read.timestamp,
        "camera_name": read.camera_name,
        "image_data": read.image_data,
        "flagged": bool(flagged),
        "known_plate": context["known_plate"],
        "known_name": context["known_name"],
        "known_notes": context["known_notes"],
        "tags": tags,
    }


def list_reads(db: Session, page: int = 1, page_size: int = 25, filters: Optional[ReadFilters] = None) -> Page:
    """Paginated read log, newest first."""
    filters = filters or ReadFilters()
    page = max(page, 1)
    read = models.PlateRead
    q = db.query(read, models.Plate.flagged).outerjoin(models.Plate, models.Plate.plate_number == read.plate_number)

    if filters.plate_number:
        if filters.fuzzy:
            candidates = [r[0] for r in db.query(distinct(read.plate_number)).all()]
            matches = fuzzy_matches(filters.plate_number, candidates)
            q = q.filter(read.plate_number.in_(list(matches)))
        else:
            q = q.filter(read.plate_number.ilike(f"%{filters.plate_number.strip()}%"))

    if filters.tag and filters.tag != "all":
        tagged = (
            select(models.PlateTag.plate_number)
            .join(models.Tag, models.Tag.id == models.PlateTag.tag_id)
            .where(models.Tag.name == filters.tag)
        )
        # misread reads carry their parent's tags
        tagged_misreads = select(models.KnownPlate.plate_number).where(
            models.KnownPlate.parent_plate_number.in_(tagged)
        )
        q = q.filter(or_(read.plate_number.in_(tagged), read.plate_number.in_(tagged_misreads)))

    if filters.camera_name:
        q = q.filter(read.camera_name.ilike(f"%{filters.camera_name.strip()}%"))

    if filters.date_from:
        q = q.filter(read.timestamp >= dt.datetime.combine(filters.date_from, dt.time.min))
    if filters.date_to:
        q = q.filter(read.timestamp < dt.datetime.combine(filters.date_to + dt.timedelta(days=1), dt.time.min))

    total = q.count()
    rows = (
        q.order_by(read.timestamp.desc(), read.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )

    context = _known_context(db, {r.plate_number for r, _ in rows})
    tags = tags_for_plates(db, {c["canonical"] for c in context.values()})
    data = [
        _read_dict(r, flagged, context[r.plate_number], tags.get(context[r.plate_number]["canonical"], []))
        for r, flagged in rows
    ]
    return Page(data=data, total=total, page=page, page_size=page_size)


def read_context(db: Session, read_id: int) -> Dict[str, Any]:
    """Live-update payload for a freshly stored read."""
    read = db.get(models.PlateRead, read_id)
    if read is None:
        raise NotFoundError(f"Read {read_id} not found")
    resolution = resolve_identity(db, read.plate_number)
    known = db.get(models.KnownPlate, resolution.canonical)
    return {
        "id": read.id,
        "plate_number": read.plate_number,
        "canonical_plate_number": resolution.canonical,
        "timestamp": read.timestamp.isoformat(),
        "camera_name": read.camera_name,
        "image_data": read.image_data,
        "occurrence_count": rolled_up_count(db, resolution.canonical),
        "tags": tags_for_plate(db, resolution.canonical),
        "known_name": known.name if known else None,
    }


def camera_names(db: Session) -> List[str]:
    rows = (
        db.query(distinct(models.PlateRead.camera_name))
        .filter(models.PlateRead.camera_name.isnot(None))
        .order_by(models.PlateRead.camera_name)
        .all()
    )
    return [r[0] for r in rows]


def plate_history(db: Session, plate_number: str) -> List[Dict[str, Any]]:
    """Every read stored under one plate string, newest first."""
    read = models.PlateRead
    rows = (
        db.query(read, models.Plate.flagged)
        .outerjoin(models.Plate, models.Plate.plate_number == read.plate_number)
        .filter(read.plate_number == plate_number)
        .order_by(read.timestamp.desc(), read.id.desc())
        .all()
    )
    context = _known_context(db, [plate_number])[plate_number]
    tags = tags_for_plate(db, context["canonical"])
    return [_read_dict(r, flagged, context, tags) for r, flagged in rows]


# ----------------------------- insights & metrics -----------------------------
def plate_insights(db: Session, plate_number: str, recent_limit: int = 10) -> Dict[str, Any]:
    """Summary of a plate's sightings; a misread reports its parent's roll-up."""
    canonical = resolve_identity(db, normalize_plate_number(plate_number)).canonical
    family = family_plate_numbers(db, canonical)
    read = models.PlateRead
    reads = (
        db.query(read)
        .filter(read.plate_number.in_(family))
        .order_by(read.timestamp.desc(), read.id.desc())
        .all()
    )
    known = db.get(models.KnownPlate, canonical)

    def _entry(r: models.PlateRead) -> Dict[str, Any]:
        return {"plate_number": r.plate_number, "timestamp": r.timestamp,
                "camera_name": r.camera_name, "image_data": r.image_data}

    return {
        "plate_number": canonical,
        "known_name": known.name if known else None,
        "notes": known.notes if known else None,
        "first_seen_at": reads[-1].timestamp if reads else None,
        "last_seen_at": reads[0].timestamp if reads else None,
        "total_occurrences": len(reads),
        "tags": tags_for_plate(db, canonical),
        "time_data": [{**_entry(r), "frequency": 1} for r in reads],
        "recent_reads": [_entry(r) for r in reads[:recent_limit]],
    }


def dashboard_metrics(db: Session, start: dt.datetime, end: dt.datetime) -> Dict[str, Any]:
    """
    Counts for the dashboard: the 24 hours before `end`, the `start`..`end`
    window, and all-time totals.
    """
    read = models.PlateRead
    day_start = end - dt.timedelta(hours=24)

    unique_plates, total_reads = (
        db.query(func.count(distinct(read.plate_number)), func.count(read.id))
        .filter(read.timestamp > day_start, read.timestamp <= end)
        .one()
    )
    weekly_unique = (
        db.query(func.count(distinct(read.plate_number)))
        .filter(read.timestamp > start, read.timestamp <= end)
        .scalar()
    )
    suspicious = (
        db.query(func.count(distinct(read.plate_number)))
        .join(models.PlateTag, models.PlateTag.plate_number == read.plate_number)
        .join(models.Tag, models.Tag.id == models.PlateTag.tag_id)
        .filter(models.Tag.name == SUSPICIOUS_TAG)
        .scalar()
    )
    total_plates = db.query(func.count(models.Plate.plate_number)).scalar()

    hourly = [0] * 24
    for (timestamp,) in db.query(read.timestamp).filter(read.timestamp > start, read.timestamp <= end):
        hourly[timestamp.hour] += 1

    top = (
        db.query(read.plate_number, func.count(read.id).label("occurrence_count"))
        .filter(read.timestamp > day_start, read.timestamp <= end)
        .group_by(read.plate_number)
        .order_by(func.count(read.id).desc(), read.plate_number)
        .limit(5)
        .all()
    )

    return {
        "unique_plates": unique_plates or 0,
        "total_reads": total_reads or 0,
        "weekly_unique": weekly_unique or 0,
        "suspicious_count": suspicious or 0,
        "total_plates_count": total_plates or 0,
        "time_data": [{"hour": hour, "frequency": count} for hour, count in enumerate(hourly)],
        "top_plates": [{"plate": plate, "count": count} for plate, count in top],
    }
