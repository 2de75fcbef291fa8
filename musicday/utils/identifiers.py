"""
Identifier generation and detection for events, classes and groups.

Canonical event id:  evt_{school}_{type}_{YYYYMMDD}_{hash6}
Class id:            cls_{school}_{YYYYMMDD}_{class}_{hash6}
Group id:            group_{eventId}_{timestamp}
"""

import hashlib
import re
import time
import unicodedata
from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

from ..errors import ValidationError

RECORD_ID_PATTERN = re.compile(r"^rec[a-zA-Z0-9]{14}$")
EVENT_ID_PATTERN = re.compile(r"^evt_[a-z0-9_]+_[a-f0-9]{6}$")
CLASS_ID_PATTERN = re.compile(r"^cls_[a-z0-9_]+_[a-f0-9]{6}$")
NUMERIC_PATTERN = re.compile(r"^\d+$")

LEGACY_BOOKING_PREFIX = "booking_"
GROUP_PREFIX = "group_"
CLASS_PREFIX = "cls_"

_UMLAUTS = str.maketrans({"ä": "ae", "ö": "oe", "ü": "ue", "ß": "ss", "Ä": "ae", "Ö": "oe", "Ü": "ue"})


def slugify(value: str) -> str:
    """Lowercase ascii slug with underscores; German umlauts are transliterated"""
    value = value.translate(_UMLAUTS)
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^a-z0-9]+", "_", value.lower())
    return value.strip("_")


def _date_part(event_date: Union[date, str]) -> str:
    if isinstance(event_date, date):
        return event_date.strftime("%Y%m%d")
    return event_date.replace("-", "")[:8]


def _short_hash(*parts: str) -> str:
    return hashlib.md5("|".join(parts).encode()).hexdigest()[:6]


def generate_event_id(school_name: str, event_type: str, event_date: Union[date, str]) -> str:
    """Deterministic canonical id; the same school/type/date always yields the same id"""
    date_str = _date_part(event_date)
    school_slug = slugify(school_name)[:30] or "school"
    type_slug = slugify(event_type)[:20] or "event"
    digest = _short_hash(school_name, event_type, date_str)
    return f"evt_{school_slug}_{type_slug}_{date_str}_{digest}"


def generate_class_id(school_name: str, event_date: Union[date, str], class_name: str) -> str:
    date_str = _date_part(event_date)
    school_slug = slugify(school_name)[:30] or "school"
    class_slug = slugify(class_name)[:15] or "class"
    digest = _short_hash(school_name, date_str, class_name)
    return f"cls_{school_slug}_{date_str}_{class_slug}_{digest}"


def generate_group_id(event_id: str, timestamp_ms: Optional[int] = None) -> str:
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{GROUP_PREFIX}{event_id}_{timestamp_ms}"


def is_record_id(value: str) -> bool:
    return bool(RECORD_ID_PATTERN.match(value))


def is_event_id(value: str) -> bool:
    return bool(EVENT_ID_PATTERN.match(value))


def is_numeric_id(value: str) -> bool:
    return bool(NUMERIC_PATTERN.match(value))


def is_legacy_booking_id(value: str) -> bool:
    return value.startswith(LEGACY_BOOKING_PREFIX)


# ============================================================================
# CHOIR TARGETS
# ============================================================================


@dataclass(frozen=True)
class ClassTarget:
    id: str
    kind: str = "class"


@dataclass(frozen=True)
class GroupTarget:
    id: str
    kind: str = "group"


ChoirTarget = Union[ClassTarget, GroupTarget]


def parse_choir_target(value: str) -> ChoirTarget:
    """Decide once, at the input boundary, whether an id names a class or a group"""
    value = (value or "").strip()
    if value.startswith(GROUP_PREFIX):
        return GroupTarget(value)
    if value.startswith(CLASS_PREFIX):
        return ClassTarget(value)
    raise ValidationError(f"Unrecognised class or group id: {value!r}")
