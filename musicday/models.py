"""
Domain entities built from record store rows.

Rows come back as loosely typed dicts; every entity is validated through
pydantic here so the services work with real dates, booleans and parsed
JSON. JSON-in-text columns are parsed defensively: a malformed value is
logged and treated as empty.
"""

import json
import logging
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from .record_store import Record
from .utils.thresholds import TimelineOverrides, parse_overrides

logger = logging.getLogger(__name__)


class Tables:
    EVENTS = "Events"
    SCHOOL_BOOKINGS = "SchoolBookings"
    CLASSES = "Classes"
    GROUPS = "Groups"
    SONGS = "Songs"
    AUDIO_FILES = "AudioFiles"
    TEACHERS = "Teachers"
    REGISTRATIONS = "Registrations"
    ORDERS = "Orders"
    EMAIL_TEMPLATES = "EmailTemplates"
    EMAIL_LOGS = "EmailLogs"
    TASKS = "Tasks"
    GUESSTIMATE_ORDERS = "GuesstimateOrders"
    EVENT_ACTIVITY = "EventActivity"


def parse_json_object(raw: Any, field_name: str = "field") -> dict:
    """Parse a JSON object stored in a text field; anything else becomes {}"""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning(f"⚠️ Malformed JSON in {field_name}, treating as empty")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"⚠️ {field_name} is not a JSON object, treating as empty")
        return {}
    return data


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _optional_flag(v):
    """Template filters: blank means unset, yes/no strings map to booleans"""
    if v is None or v == "":
        return None
    if isinstance(v, str):
        lowered = v.strip().lower()
        if lowered in ("yes", "true", "1"):
            return True
        if lowered in ("no", "false", "0"):
            return False
        return None
    return bool(v)


def _first_linked(v):
    if isinstance(v, list):
        return v[0] if v else None
    return v


class RecordModel(BaseModel):
    record_id: str

    class Config:
        extra = "ignore"
        populate_by_name = True

    @classmethod
    def from_record(cls, record: Record):
        return cls.model_validate({"record_id": record.id, **record.fields})


# ============================================================================
# EVENTS
# ============================================================================


class DealType(str, Enum):
    MIMU = "mimu"
    MIMU_SCS = "mimu_scs"
    SCHUS = "schus"
    SCHUS_XL = "schus_xl"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    READY_FOR_APPROVAL = "ready_for_approval"
    APPROVED = "approved"


class Event(RecordModel):
    event_id: str
    legacy_booking_id: Optional[str] = None
    simplybook_id: Optional[str] = None
    access_code: Optional[str] = None
    school_name: str = ""
    event_date: Optional[date] = None
    event_type: Optional[str] = None
    status: Optional[str] = None
    deal_type: Optional[DealType] = None
    deal_config: dict = {}
    estimated_children: Optional[int] = None
    is_minimusikertag: bool = False
    is_plus: bool = False
    is_kita: bool = False
    is_schulsong: bool = False
    is_under_100: bool = False
    timeline_overrides: TimelineOverrides = TimelineOverrides()
    admin_approval_status: ApprovalStatus = ApprovalStatus.PENDING
    all_tracks_approved: bool = False
    schulsong_released_at: Optional[datetime] = None
    school_booking: list[str] = []
    assigned_staff: list[str] = []

    @field_validator("legacy_booking_id", "simplybook_id", "access_code", mode="before")
    @classmethod
    def stringify_ids(cls, v):
        return str(v) if v not in (None, "") else None

    @field_validator("deal_type", mode="before")
    @classmethod
    def blank_deal_type(cls, v):
        return v or None

    @field_validator("deal_config", mode="before")
    @classmethod
    def parse_deal_config(cls, v):
        return parse_json_object(v, "deal_config")

    @field_validator("timeline_overrides", mode="before")
    @classmethod
    def parse_timeline_overrides(cls, v):
        if isinstance(v, TimelineOverrides):
            return v
        return parse_overrides(v)

    @field_validator("admin_approval_status", mode="before")
    @classmethod
    def default_approval_status(cls, v):
        return v or ApprovalStatus.PENDING

    @field_validator("is_minimusikertag", "is_plus", "is_kita", "is_schulsong", "is_under_100",
                     "all_tracks_approved", mode="before")
    @classmethod
    def blank_is_false(cls, v):
        return bool(v)

    @field_validator("schulsong_released_at", mode="after")
    @classmethod
    def released_at_utc(cls, v):
        return _as_utc(v)

    @property
    def is_cancelled(self) -> bool:
        return (self.status or "").lower() in ("cancelled", "deleted")


class SchoolBooking(RecordModel):
    simplybook_id: Optional[str] = None
    access_code: Optional[str] = None
    school_name: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    events: list[str] = []

    @field_validator("simplybook_id", "access_code", mode="before")
    @classmethod
    def stringify_ids(cls, v):
        return str(v) if v not in (None, "") else None


# ============================================================================
# CLASSES, GROUPS, SONGS
# ============================================================================


class SchoolClass(RecordModel):
    class_id: str
    event_id: str
    class_name: str = ""
    teacher_name: Optional[str] = None
    num_children: Optional[int] = None


class Group(RecordModel):
    group_id: str
    event_id: str
    group_name: str = ""
    member_class_ids: list[str] = []

    @field_validator("member_class_ids", mode="before")
    @classmethod
    def parse_members(cls, v):
        if v is None or v == "":
            return []
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
            except ValueError:
                return [part.strip() for part in v.split(",") if part.strip()]
            return parsed if isinstance(parsed, list) else []
        return v


class Song(RecordModel):
    class_id: str
    event_id: str
    title: str
    artist: Optional[str] = None
    notes: Optional[str] = None
    album_order: Optional[int] = None


# ============================================================================
# AUDIO
# ============================================================================


class AudioType(str, Enum):
    RAW = "raw"
    PREVIEW = "preview"
    FINAL = "final"
    LOGIC_PROJECT_SCHULSONG = "logic-project-schulsong"
    LOGIC_PROJECT_MINIMUSIKER = "logic-project-minimusiker"


class AudioStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"


class FileApproval(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AudioFile(RecordModel):
    event_id: str
    class_id: str
    song_id: Optional[str] = None
    type: AudioType
    r2_key: str
    filename: Optional[str] = None
    format: Optional[str] = None
    status: AudioStatus = AudioStatus.PENDING
    approval_status: FileApproval = FileApproval.PENDING
    approval_comment: Optional[str] = None
    teacher_approved_at: Optional[datetime] = None
    is_schulsong: bool = False
    uploaded_by: Optional[str] = None
    file_size_bytes: Optional[int] = None
    duration_seconds: Optional[float] = None

    @field_validator("approval_status", "status", mode="before")
    @classmethod
    def blank_is_pending(cls, v):
        return v or "pending"

    @field_validator("is_schulsong", mode="before")
    @classmethod
    def blank_is_false(cls, v):
        return bool(v)

    @field_validator("teacher_approved_at", mode="after")
    @classmethod
    def approved_at_utc(cls, v):
        return _as_utc(v)


# ============================================================================
# PEOPLE & ORDERS (read-only here)
# ============================================================================


class Teacher(RecordModel):
    email: str
    name: Optional[str] = None
    events: list[str] = []


class Registration(RecordModel):
    event_id: str
    class_id: Optional[str] = None
    parent_email: str
    parent_name: Optional[str] = None
    child_name: Optional[str] = None
    email_campaigns: Optional[str] = None


class Order(RecordModel):
    event_id: str
    parent_email: str
    payment_status: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return (self.payment_status or "").lower() == "paid"


# ============================================================================
# EMAIL AUTOMATION
# ============================================================================


class EmailTemplate(RecordModel):
    name: str
    subject: str = ""
    body_html: str = ""
    audience: list[str] = []
    trigger_days: int = 0
    trigger_hour: Optional[int] = None
    trigger_type: str = "event_relative"
    is_minimusikertag: Optional[bool] = None
    is_plus: Optional[bool] = None
    is_schulsong: Optional[bool] = None
    is_kita: Optional[bool] = None
    only_under_100: bool = False
    active: bool = False

    @field_validator("audience", mode="before")
    @classmethod
    def split_audience(cls, v):
        if v is None or v == "":
            return []
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @field_validator("is_minimusikertag", "is_plus", "is_schulsong", "is_kita", mode="before")
    @classmethod
    def optional_filter(cls, v):
        return _optional_flag(v)

    @field_validator("only_under_100", "active", mode="before")
    @classmethod
    def blank_is_false(cls, v):
        return bool(v)


class EmailLogStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


class EmailLog(RecordModel):
    template_name: str
    event_id: str
    recipient_email: str
    recipient_type: Optional[str] = None
    sent_at: Optional[datetime] = None
    status: EmailLogStatus
    error_message: Optional[str] = None
    resend_message_id: Optional[str] = None


# ============================================================================
# TASKS
# ============================================================================


class TaskStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Task(RecordModel):
    task_id: str
    template_id: str
    task_type: str
    task_name: str = ""
    description: Optional[str] = None
    completion_type: str = "checkbox"
    event_id: str
    deadline: Optional[date] = None
    status: TaskStatus = TaskStatus.PENDING
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    completion_data: dict = {}
    go_id: Optional[str] = None
    parent_task_id: Optional[str] = None
    r2_file_path: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def blank_is_pending(cls, v):
        return v or TaskStatus.PENDING

    @field_validator("completion_data", mode="before")
    @classmethod
    def parse_completion_data(cls, v):
        return parse_json_object(v, "completion_data")

    @field_validator("go_id", "parent_task_id", mode="before")
    @classmethod
    def unwrap_linked(cls, v):
        return _first_linked(v) or None


class GuesstimateOrder(RecordModel):
    go_id: str
    event_id: str
    task_id: str
    amount: Optional[float] = None
    order_date: Optional[date] = None


# ============================================================================
# ACTIVITY
# ============================================================================


class ActivityEntry(RecordModel):
    event_id: str
    activity_type: str
    description: str = ""
    actor_email: Optional[str] = None
    actor_type: Optional[str] = None
    metadata: dict = {}
    created_at: Optional[datetime] = None

    @field_validator("metadata", mode="before")
    @classmethod
    def parse_metadata(cls, v):
        return parse_json_object(v, "metadata")

    @field_validator("created_at", mode="after")
    @classmethod
    def created_at_utc(cls, v):
        return _as_utc(v)
