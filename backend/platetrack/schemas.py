from pydantic import BaseModel, Field
from typing import Optional, List, Any, Dict
from datetime import datetime


# ---------- ingestion ----------
class IngestRequest(BaseModel):
    memo: Optional[str] = None
    plate_number: Optional[str] = None
    timestamp: Optional[datetime] = None
    image: Optional[str] = Field(default=None, alias="Image")
    camera_name: Optional[str] = None
    class Config:
        populate_by_name = True


class ProcessedPlate(BaseModel):
    plate: str
    id: int


class IngestResponse(BaseModel):
    processed: List[ProcessedPlate] = []
    duplicates: List[str] = []
    failed: List[str] = []
    message: str


# ---------- shared ----------
class TagOut(BaseModel):
    name: str
    color: str


class Pagination(BaseModel):
    total: int
    page: int
    page_size: int
    page_count: int


# ---------- plates ----------
class MisreadOut(BaseModel):
    plate_number: str
    name: Optional[str] = None
    notes: Optional[str] = None
    occurrence_count: int = 0
    first_seen_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None
    last_seen: str = ""


class PlateSummary(BaseModel):
    plate_number: str
    first_seen_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    flagged: bool = False
    name: Optional[str] = None
    notes: Optional[str] = None
    occurrence_count: int = 0
    last_seen_at: Optional[datetime] = None
    last_seen: str = ""
    days_since_last_seen: int
    tags: List[TagOut] = []
    misreads: List[MisreadOut] = []


class PlatePage(BaseModel):
    data: List[PlateSummary]
    pagination: Pagination


class FlagIn(BaseModel):
    flagged: bool


class FlaggedPlateOut(BaseModel):
    plate_number: str
    tags: List[TagOut] = []


class PlateOut(BaseModel):
    plate_number: str
    flagged: bool
    first_seen_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    class Config:
        from_attributes = True


class ReadEntry(BaseModel):
    plate_number: str
    timestamp: datetime
    camera_name: Optional[str] = None
    image_data: Optional[str] = None


class TimeEntry(ReadEntry):
    frequency: int = 1


class PlateInsights(BaseModel):
    plate_number: str
    known_name: Optional[str] = None
    notes: Optional[str] = None
    first_seen_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None
    total_occurrences: int = 0
    tags: List[TagOut] = []
    time_data: List[TimeEntry] = []
    recent_reads: List[ReadEntry] = []


# ---------- reads ----------
class ReadOut(BaseModel):
    id: int
    plate_number: str
    timestamp: datetime
    camera_name: Optional[str] = None
    image_data: Optional[str] = None
    flagged: bool = False
    known_plate: Optional[str] = None
    known_name: Optional[str] = None
    known_notes: Optional[str] = None
    tags: List[TagOut] = []


class ReadPage(BaseModel):
    data: List[ReadOut]
    pagination: Pagination


class CorrectionIn(BaseModel):
    new_plate_number: str = Field(..., min_length=1)
    old_plate_number: Optional[str] = None
    correct_all: bool = False
    remove_previous: bool = False


class CorrectionOut(BaseModel):
    old_plate_number: str
    new_plate_number: str
    moved: int
    removed_previous: bool


# ---------- known plates ----------
class KnownPlateIn(BaseModel):
    plate_number: str = Field(..., min_length=1)
    name: Optional[str] = None
    notes: Optional[str] = None


class KnownPlateOut(BaseModel):
    plate_number: str
    name: Optional[str] = None
    notes: Optional[str] = None
    parent_plate_number: Optional[str] = None
    created_at: Optional[datetime] = None
    class Config:
        from_attributes = True


class KnownPlateListItem(KnownPlateOut):
    flagged: bool = False
    tags: List[str] = []


class KnownPlateMatch(BaseModel):
    plate_number: str
    name: Optional[str] = None
    notes: Optional[str] = None
    parent_plate_number: Optional[str] = None
    similarity: float


class MisreadsIn(BaseModel):
    name: Optional[str] = None
    notes: Optional[str] = None
    misreads: List[str] = []


class MisreadsOut(BaseModel):
    plate_number: str
    name: Optional[str] = None
    notes: Optional[str] = None
    misreads: List[str] = []


# ---------- tags ----------
class TagIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)
    color: Optional[str] = None


class TagColorIn(BaseModel):
    color: str = Field(..., min_length=1, max_length=16)


class TagRow(BaseModel):
    id: int
    name: str
    color: str
    created_at: Optional[datetime] = None
    class Config:
        from_attributes = True


class PlateTagIn(BaseModel):
    tag: str = Field(..., min_length=1)


# ---------- notifications ----------
class WatchIn(BaseModel):
    plate_number: str = Field(..., min_length=1)


class WatchToggleIn(BaseModel):
    enabled: bool


class WatchPriorityIn(BaseModel):
    priority: int


class WatchOut(BaseModel):
    id: int
    plate_number: str
    enabled: bool
    priority: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    tags: List[TagOut] = []
    class Config:
        from_attributes = True


# ---------- metrics ----------
class HourBucket(BaseModel):
    hour: int
    frequency: int


class TopPlate(BaseModel):
    plate: str
    count: int


class DashboardMetrics(BaseModel):
    unique_plates: int
    total_reads: int
    weekly_unique: int
    suspicious_count: int
    total_plates_count: int
    time_data: List[HourBucket]
    top_plates: List[TopPlate]


# ---------- settings ----------
class GeneralSettingsIn(BaseModel):
    max_records: Optional[int] = Field(default=None, ge=1)


class DisplaySettingsIn(BaseModel):
    stale_days_default: Optional[int] = Field(default=None, ge=1)
    relative_time_cap_days: Optional[int] = Field(default=None, ge=1)


class LoggingSettingsIn(BaseModel):
    file: Optional[str] = None
    level: Optional[str] = None


class DatabaseSettingsIn(BaseModel):
    url: Optional[str] = None


class SettingsUpdate(BaseModel):
    general: Optional[GeneralSettingsIn] = None
    database: Optional[DatabaseSettingsIn] = None
    display: Optional[DisplaySettingsIn] = None
    logging: Optional[LoggingSettingsIn] = None


class SettingsOut(BaseModel):
    general: Dict[str, Any]
    database: Dict[str, Any]
    auth: Dict[str, Any]
    display: Dict[str, Any]
    logging: Dict[str, Any]



class ApiKeyOut(BaseModel):
    api_key: str
