"""Event service - Business logic for events, deals and timelines"""

import json
import logging
from datetime import date
from typing import Any, Optional

import pydantic

from ...errors import ValidationError
from ...models import Event
from ...record_store import RecordStore
from ...services.activity_service import ActivityService
from ...utils.deal_calculator import FeeBreakdown, calculate_deal_fee, deal_type_to_flags, is_small_event
from ...utils.identifiers import generate_event_id
from ...utils.thresholds import TimelineOverrides, build_timeline, serialize_overrides
from .repository import EventRepository
from .resolver import EventResolver
from .schemas import DealUpdate, EventCreate, EventResponse

logger = logging.getLogger(__name__)


class EventService:
    """Service layer for event business logic"""

    def __init__(self, store: RecordStore, resolver: EventResolver, activity: ActivityService):
        self.store = store
        self.resolver = resolver
        self.activity = activity
        self.repo = EventRepository()

    def get_event(self, identifier: str) -> Event:
        return self.resolver.resolve_or_404(identifier)

    def list_events(self, status: Optional[str] = None) -> list[Event]:
        events = self.repo.list_events(self.store, **({"status": status} if status else {}))
        return sorted(events, key=lambda e: e.event_date or date.max)

    def create_event(self, data: EventCreate, actor_email: Optional[str] = None) -> Event:
        """Manual booking intake: canonical id, deal flags and size flag are derived here"""
        event_id = generate_event_id(data.school_name, data.event_type, data.event_date)
        if self.repo.get_by_event_id(self.store, event_id):
            raise ValidationError(f"An event for {data.school_name} on {data.event_date} already exists")

        deal_type = data.deal_type.value if data.deal_type else None
        flags = deal_type_to_flags(deal_type, data.deal_config)
        fields: dict[str, Any] = {
            "event_id": event_id,
            "school_name": data.school_name,
            "event_date": data.event_date.isoformat(),
            "event_type": data.event_type,
            "status": "Confirmed",
            "deal_type": deal_type,
            "deal_config": json.dumps(data.deal_config) if data.deal_config else None,
            "estimated_children": data.estimated_children,
            "legacy_booking_id": data.legacy_booking_id,
            "simplybook_id": data.simplybook_id,
            "is_under_100": is_small_event(data.estimated_children, data.deal_config),
            "admin_approval_status": "pending",
            **flags.model_dump(),
        }
        fields["is_kita"] = data.is_kita

        event = self.repo.create_event(self.store, {k: v for k, v in fields.items() if v is not None})
        logger.info(f"✅ Event created: {event.event_id} ({event.school_name})")
        self.activity.log(
            event.event_id, "event_created", f"Event created for {event.school_name}",
            actor_email=actor_email, actor_type="admin",
        )
        return event

    # ========================================================================
    # DEALS
    # ========================================================================

    def get_fee_breakdown(self, event: Event) -> Optional[FeeBreakdown]:
        deal_type = event.deal_type.value if event.deal_type else None
        return calculate_deal_fee(deal_type, event.deal_config, event.estimated_children)

    def update_deal(self, identifier: str, data: DealUpdate, actor_email: Optional[str] = None) -> Event:
        """Store a new deal and recompute the legacy flags from it"""
        event = self.get_event(identifier)
        deal_type = data.deal_type.value if data.deal_type else None
        children = data.estimated_children if data.estimated_children is not None else event.estimated_children

        flags = deal_type_to_flags(deal_type, data.deal_config).model_dump()
        # Kita is a booking attribute, not a deal attribute
        flags["is_kita"] = event.is_kita

        updated = self.repo.update_event(
            self.store,
            event,
            deal_type=deal_type,
            deal_config=json.dumps(data.deal_config) if data.deal_config else None,
            estimated_children=children,
            is_under_100=is_small_event(children, data.deal_config),
            **flags,
        )
        logger.info(f"✅ Deal updated for {event.event_id}: {deal_type} (plus={flags['is_plus']})")
        self.activity.log(
            event.event_id, "deal_updated", f"Deal set to {deal_type or 'none'}",
            actor_email=actor_email, actor_type="admin", metadata={"deal_config": data.deal_config},
        )
        return updated

    # ========================================================================
    # TIMELINE
    # ========================================================================

    def update_timeline_overrides(
        self, identifier: str, overrides: dict[str, Any], actor_email: Optional[str] = None
    ) -> Event:
        event = self.get_event(identifier)
        try:
            parsed = TimelineOverrides.model_validate(overrides)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid timeline overrides: {e.errors()[0]['msg']}") from e

        updated = self.repo.update_event(self.store, event, timeline_overrides=serialize_overrides(parsed))
        logger.info(f"✅ Timeline overrides updated for {event.event_id}")
        self.activity.log(
            event.event_id, "timeline_updated", "Timeline overrides changed",
            actor_email=actor_email, actor_type="admin", metadata=parsed.model_dump(exclude_none=True),
        )
        return updated

    def get_timeline(self, identifier: str) -> list[dict]:
        event = self.get_event(identifier)
        if event.event_date is None:
            raise ValidationError("Event has no date")
        return build_timeline(event.event_date, event.timeline_overrides)

    # ========================================================================
    # RESPONSES
    # ========================================================================

    def to_response(self, event: Event, include_fees: bool = False) -> EventResponse:
        breakdown = self.get_fee_breakdown(event) if include_fees else None
        return EventResponse(
            record_id=event.record_id,
            event_id=event.event_id,
            school_name=event.school_name,
            event_date=event.event_date,
            event_type=event.event_type,
            status=event.status,
            deal_type=event.deal_type.value if event.deal_type else None,
            deal_config=event.deal_config,
            estimated_children=event.estimated_children,
            is_minimusikertag=event.is_minimusikertag,
            is_plus=event.is_plus,
            is_kita=event.is_kita,
            is_schulsong=event.is_schulsong,
            is_under_100=event.is_under_100,
            admin_approval_status=event.admin_approval_status.value,
            all_tracks_approved=event.all_tracks_approved,
            timeline_overrides=event.timeline_overrides.model_dump(exclude_none=True),
            fee_breakdown=breakdown.model_dump() if breakdown else None,
        )
