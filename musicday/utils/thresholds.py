"""
Event timeline thresholds with per-event overrides.

Each event may store a sparse JSON object of overrides in its
timeline_overrides field. A key that is present with a value (including 0
or false) always wins over the system default; only an absent or null key
falls back to the default.
"""

import json
import logging
from datetime import date, timedelta
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ValidationError, field_validator

logger = logging.getLogger(__name__)


class ThresholdKey(str, Enum):
    EARLY_BIRD_DEADLINE_DAYS = "early_bird_deadline_days"
    PERSONALIZED_CLOTHING_CUTOFF_DAYS = "personalized_clothing_cutoff_days"
    SCHULSONG_CLOTHING_CUTOFF_DAYS = "schulsong_clothing_cutoff_days"
    MERCHANDISE_DEADLINE_DAYS = "merchandise_deadline_days"
    PREVIEW_AVAILABLE_DAYS = "preview_available_days"
    FULL_RELEASE_DAYS = "full_release_days"
    CLOTHING_ORDER_DAY_OFFSET = "clothing_order_day_offset"
    CLOTHING_VISIBILITY_WINDOW_DAYS = "clothing_visibility_window_days"


# Days relative to the event date (negative = before, positive = after)
THRESHOLD_DEFAULTS: dict[ThresholdKey, int] = {
    ThresholdKey.EARLY_BIRD_DEADLINE_DAYS: 19,
    ThresholdKey.PERSONALIZED_CLOTHING_CUTOFF_DAYS: -4,
    ThresholdKey.SCHULSONG_CLOTHING_CUTOFF_DAYS: -14,
    ThresholdKey.MERCHANDISE_DEADLINE_DAYS: 14,
    ThresholdKey.PREVIEW_AVAILABLE_DAYS: 7,
    ThresholdKey.FULL_RELEASE_DAYS: 14,
    ThresholdKey.CLOTHING_ORDER_DAY_OFFSET: 18,
    ThresholdKey.CLOTHING_VISIBILITY_WINDOW_DAYS: 21,
}

EVENT_MILESTONES: dict[str, int] = {
    "BOOKING_CONFIRMED": -56,
    "POSTER_DEADLINE": -58,
    "FLYER_ONE_DEADLINE": -42,
    "FLYER_TWO_DEADLINE": -22,
    "SONG_SELECTION_DEADLINE": -21,
    "TSHIRT_ORDER_DEADLINE": -19,
    "FLYER_THREE_DEADLINE": -14,
    "FINAL_PREP": -7,
    "EVENT_DAY": 0,
    "MINICARD_ORDER": 1,
    "RECORDING_READY": 3,
    "REMINDER_EMAIL": 7,
    "PORTAL_REMINDER": 14,
    "PORTAL_CLOSES": 30,
}


class TimelineOverrides(BaseModel):
    """Parsed, typed view of an event's timeline_overrides JSON"""

    early_bird_deadline_days: Optional[int] = None
    personalized_clothing_cutoff_days: Optional[int] = None
    schulsong_clothing_cutoff_days: Optional[int] = None
    merchandise_deadline_days: Optional[int] = None
    preview_available_days: Optional[int] = None
    full_release_days: Optional[int] = None
    clothing_order_day_offset: Optional[int] = None
    clothing_visibility_window_days: Optional[int] = None

    audio_hidden: Optional[bool] = None
    hidden_products: Optional[list[str]] = None
    milestones: Optional[dict[str, int]] = None
    task_offsets: Optional[dict[str, int]] = None

    class Config:
        extra = "ignore"

    @field_validator("milestones", "task_offsets", mode="before")
    @classmethod
    def drop_non_numeric(cls, v):
        if isinstance(v, dict):
            return {k: val for k, val in v.items() if isinstance(val, (int, float)) and not isinstance(val, bool)}
        return v

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


def parse_overrides(raw: Union[str, dict, None]) -> TimelineOverrides:
    """
    Parse a stored timeline_overrides value.
    Empty, malformed JSON, non-object payloads and invalid values all
    yield empty overrides.
    """
    if raw is None or raw == "":
        return TimelineOverrides()

    data: Any = raw
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning(f"⚠️ Ignoring malformed timeline_overrides JSON: {raw[:100]!r}")
            return TimelineOverrides()

    if not isinstance(data, dict):
        logger.warning(f"⚠️ Ignoring non-object timeline_overrides: {type(data).__name__}")
        return TimelineOverrides()

    try:
        return TimelineOverrides.model_validate(data)
    except ValidationError as e:
        logger.warning(f"⚠️ Ignoring invalid timeline_overrides values: {e.error_count()} errors")
        return TimelineOverrides()


def serialize_overrides(overrides: TimelineOverrides) -> Optional[str]:
    """Serialize only the keys that are set; None when nothing is overridden"""
    data = overrides.model_dump(exclude_none=True)
    return json.dumps(data) if data else None


def get_threshold(key: ThresholdKey, overrides: Optional[TimelineOverrides] = None) -> int:
    """Effective value for a threshold: override if present (0 included), else default"""
    key = ThresholdKey(key)
    if overrides is not None:
        value = getattr(overrides, key.value)
        if value is not None:
            return value
    return THRESHOLD_DEFAULTS[key]


def get_milestone_offset(name: str, overrides: Optional[TimelineOverrides] = None) -> int:
    if name not in EVENT_MILESTONES:
        raise KeyError(f"Unknown milestone: {name}")
    if overrides is not None and overrides.milestones and name in overrides.milestones:
        return int(overrides.milestones[name])
    return EVENT_MILESTONES[name]


def days_until_event(event_date: date, today: date) -> int:
    return (event_date - today).days


def is_early_bird(event_date: date, today: date, overrides: Optional[TimelineOverrides] = None) -> bool:
    """Early bird pricing applies while the event is at least N days away"""
    return days_until_event(event_date, today) >= get_threshold(ThresholdKey.EARLY_BIRD_DEADLINE_DAYS, overrides)


def merchandise_deadline(event_date: date, overrides: Optional[TimelineOverrides] = None) -> date:
    return event_date + timedelta(days=get_threshold(ThresholdKey.MERCHANDISE_DEADLINE_DAYS, overrides))


def preview_available_date(event_date: date, overrides: Optional[TimelineOverrides] = None) -> date:
    return event_date + timedelta(days=get_threshold(ThresholdKey.PREVIEW_AVAILABLE_DAYS, overrides))


def full_release_date(event_date: date, overrides: Optional[TimelineOverrides] = None) -> date:
    return event_date + timedelta(days=get_threshold(ThresholdKey.FULL_RELEASE_DAYS, overrides))


def is_personalized_clothing_open(
    event_date: date, today: date, overrides: Optional[TimelineOverrides] = None
) -> bool:
    cutoff = event_date + timedelta(days=get_threshold(ThresholdKey.PERSONALIZED_CLOTHING_CUTOFF_DAYS, overrides))
    return today <= cutoff


def build_timeline(event_date: date, overrides: Optional[TimelineOverrides] = None) -> list[dict]:
    """All milestones with their effective offset and date, sorted by date"""
    timeline = []
    for name in EVENT_MILESTONES:
        offset = get_milestone_offset(name, overrides)
        timeline.append({
            "milestone": name,
            "offset_days": offset,
            "date": (event_date + timedelta(days=offset)).isoformat(),
        })
    timeline.sort(key=lambda m: (m["date"], m["milestone"]))
    return timeline
