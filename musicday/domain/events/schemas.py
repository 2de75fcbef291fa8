"""Event domain schemas - Pydantic models for validation"""

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from ...models import DealType


class EventCreate(BaseModel):
    """Manual event entry by an admin"""

    school_name: str
    event_date: date
    event_type: str = "Minimusikertag"
    deal_type: Optional[DealType] = None
    deal_config: dict[str, Any] = {}
    estimated_children: Optional[int] = None
    legacy_booking_id: Optional[str] = None
    simplybook_id: Optional[str] = None
    is_kita: bool = False

    @field_validator("school_name")
    @classmethod
    def school_name_required(cls, v):
        if not v or not v.strip():
            raise ValueError("School name is required")
        return v.strip()

    @field_validator("estimated_children")
    @classmethod
    def non_negative(cls, v):
        if v is not None and v < 0:
            raise ValueError("Estimated children cannot be negative")
        return v


class DealUpdate(BaseModel):
    deal_type: Optional[DealType] = None
    deal_config: dict[str, Any] = {}
    estimated_children: Optional[int] = None


class TimelineOverridesUpdate(BaseModel):
    overrides: dict[str, Any] = {}


class FeeItemResponse(BaseModel):
    label: str
    amount: float
    quantity: Optional[int] = None


class FeeBreakdownResponse(BaseModel):
    base: float
    items: list[FeeItemResponse]
    total: float


class EventResponse(BaseModel):
    record_id: str
    event_id: str
    school_name: str
    event_date: Optional[date] = None
    event_type: Optional[str] = None
    status: Optional[str] = None
    deal_type: Optional[str] = None
    deal_config: dict[str, Any] = {}
    estimated_children: Optional[int] = None
    is_minimusikertag: bool
    is_plus: bool
    is_kita: bool
    is_schulsong: bool
    is_under_100: bool
    admin_approval_status: str
    all_tracks_approved: bool
    timeline_overrides: dict[str, Any] = {}
    fee_breakdown: Optional[FeeBreakdownResponse] = None
