"""
Deciding which automated templates fire for which events.

A template fires for an event when the event date is exactly
trigger_days before today (negative trigger_days = before the event), the
current local hour equals the template's trigger hour, and every tier
filter the template sets equals the event's flag. Unset filters match
anything.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterable

from ...models import EmailTemplate, Event

logger = logging.getLogger(__name__)

DEFAULT_TRIGGER_HOUR = 7
TIER_FILTERS = ("is_minimusikertag", "is_plus", "is_schulsong", "is_kita")

AUDIENCE_TEACHER = "teacher"
AUDIENCE_PARENT = "parent"
AUDIENCE_NON_BUYER = "non-buyer"

_AUDIENCE_ALIASES = {
    "teacher": AUDIENCE_TEACHER,
    "teachers": AUDIENCE_TEACHER,
    "parent": AUDIENCE_PARENT,
    "parents": AUDIENCE_PARENT,
    "non-buyer": AUDIENCE_NON_BUYER,
    "non-buyers": AUDIENCE_NON_BUYER,
    "non_buyer": AUDIENCE_NON_BUYER,
}


@dataclass
class Recipient:
    email: str
    type: str
    name: str = ""
    variables: dict[str, Any] = field(default_factory=dict)


def normalize_audience(audience: Iterable[str]) -> list[str]:
    normalized = []
    for entry in audience:
        value = _AUDIENCE_ALIASES.get(entry.strip().lower())
        if value is None:
            logger.warning(f"⚠️ Ignoring unknown email audience {entry!r}")
            continue
        if value not in normalized:
            normalized.append(value)
    return normalized


def event_matches_template(event: Event, template: EmailTemplate) -> bool:
    for flag in TIER_FILTERS:
        required = getattr(template, flag)
        if required is not None and getattr(event, flag) != required:
            return False
    if template.only_under_100 and not event.is_under_100:
        return False
    return True


def trigger_event_date(template: EmailTemplate, today: date) -> date:
    """The event date a template targets today (trigger_days -7 => event in 7 days)"""
    return today - timedelta(days=template.trigger_days)


def events_hitting_threshold(events: Iterable[Event], trigger_days: int, today: date) -> list[Event]:
    target = today - timedelta(days=trigger_days)
    return [e for e in events if e.event_date == target and not e.is_cancelled]


def should_fire_now(template: EmailTemplate, now_local: datetime) -> bool:
    hour = template.trigger_hour if template.trigger_hour is not None else DEFAULT_TRIGGER_HOUR
    return now_local.hour == hour


def dedupe_recipients(recipients: Iterable[Recipient]) -> list[Recipient]:
    seen = set()
    unique = []
    for r in recipients:
        key = r.email.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(r)
    return unique
