"""Event router - FastAPI endpoints for events, deals and timelines"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...auth import Session, ensure_event_access, require_admin, require_teacher
from ...dependencies import get_activity_service, get_resolver
from ...record_store import RecordStore, get_record_store
from ...schemas import ok
from ...services.activity_service import ActivityService
from .resolver import EventResolver
from .schemas import DealUpdate, EventCreate, TimelineOverridesUpdate
from .service import EventService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Events"])


def get_event_service(
    store: RecordStore = Depends(get_record_store),
    resolver: EventResolver = Depends(get_resolver),
    activity: ActivityService = Depends(get_activity_service),
) -> EventService:
    """Dependency injection for EventService"""
    return EventService(store, resolver, activity)


# ============================================================================
# ADMIN
# ============================================================================


@router.get("/admin/events")
def list_events(
    status: Optional[str] = Query(None),
    session: Session = Depends(require_admin),
    service: EventService = Depends(get_event_service),
):
    """List events ordered by event date"""
    events = service.list_events(status)
    return ok([service.to_response(e) for e in events])


@router.post("/admin/events")
def create_event(
    data: EventCreate,
    session: Session = Depends(require_admin),
    service: EventService = Depends(get_event_service),
):
    """Manual event entry"""
    event = service.create_event(data, actor_email=session.email)
    return ok(service.to_response(event, include_fees=True))


@router.get("/admin/events/{identifier}")
def get_event(
    identifier: str,
    session: Session = Depends(require_admin),
    service: EventService = Depends(get_event_service),
):
    """Get an event by any of its identifiers"""
    event = service.get_event(identifier)
    return ok(service.to_response(event, include_fees=True))


@router.put("/admin/events/{identifier}/deal")
def update_deal(
    identifier: str,
    data: DealUpdate,
    session: Session = Depends(require_admin),
    service: EventService = Depends(get_event_service),
):
    """Set the deal type/config and recompute flags and fees"""
    event = service.update_deal(identifier, data, actor_email=session.email)
    return ok(service.to_response(event, include_fees=True))


@router.put("/admin/events/{identifier}/timeline-overrides")
def update_timeline_overrides(
    identifier: str,
    data: TimelineOverridesUpdate,
    session: Session = Depends(require_admin),
    service: EventService = Depends(get_event_service),
):
    event = service.update_timeline_overrides(identifier, data.overrides, actor_email=session.email)
    return ok(service.to_response(event))


@router.get("/admin/events/{identifier}/timeline")
def get_timeline(
    identifier: str,
    session: Session = Depends(require_admin),
    service: EventService = Depends(get_event_service),
):
    return ok(service.get_timeline(identifier))


@router.get("/admin/events/{identifier}/activity")
def list_activity(
    identifier: str,
    limit: int = Query(100, ge=1, le=500),
    session: Session = Depends(require_admin),
    service: EventService = Depends(get_event_service),
):
    """Recent activity for an event, newest first"""
    event = service.get_event(identifier)
    return ok(service.activity.list_activity(event.event_id, limit=limit))


# ============================================================================
# TEACHER
# ============================================================================


@router.get("/teacher/events/{identifier}")
def teacher_get_event(
    identifier: str,
    session: Session = Depends(require_teacher),
    service: EventService = Depends(get_event_service),
):
    event = service.get_event(identifier)
    ensure_event_access(session, event.event_id)
    return ok({
        "event": service.to_response(event),
        "timeline": service.get_timeline(event.event_id) if event.event_date else [],
    })
