"""Audio router - FastAPI endpoints for the recording pipeline"""

import logging

from fastapi import APIRouter, Depends

from ...auth import (
    Session,
    ensure_event_access,
    require_admin,
    require_engineer,
    require_parent,
    require_staff,
    require_teacher,
)
from ...dependencies import get_activity_service, get_resolver
from ...errors import ForbiddenError
from ...models import Event
from ...record_store import RecordStore, get_record_store
from ...schemas import ok
from ...services.activity_service import ActivityService
from ...storage import R2Storage, get_storage
from ..events.resolver import EventResolver
from .schemas import (
    ApproveSchulsongRequest,
    ApproveTracksRequest,
    RejectSchulsongRequest,
    UploadConfirmRequest,
    UploadUrlRequest,
)
from .service import ENGINEER_UPLOAD_TYPES, STAFF_UPLOAD_TYPES, AudioService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Audio"])


def get_audio_service(
    store: RecordStore = Depends(get_record_store),
    storage: R2Storage = Depends(get_storage),
    resolver: EventResolver = Depends(get_resolver),
    activity: ActivityService = Depends(get_activity_service),
) -> AudioService:
    """Dependency injection for AudioService"""
    return AudioService(store, storage, resolver, activity)


def _ensure_staff_assignment(session: Session, event: Event) -> None:
    assigned = {s.lower() for s in event.assigned_staff}
    if event.event_id not in session.event_ids and session.email.lower() not in assigned:
        logger.warning(f"⚠️ Staff {session.email} is not assigned to {event.event_id}")
        raise ForbiddenError("You are not assigned to this event")


# ============================================================================
# ADMIN
# ============================================================================


@router.get("/admin/events/{identifier}/audio-status")
def admin_audio_status(
    identifier: str,
    session: Session = Depends(require_admin),
    service: AudioService = Depends(get_audio_service),
):
    """Pipeline stage, counts and files for an event"""
    return ok(service.get_audio_status(identifier))


@router.post("/admin/events/{identifier}/approve-tracks")
def approve_tracks(
    identifier: str,
    data: ApproveTracksRequest,
    session: Session = Depends(require_admin),
    service: AudioService = Depends(get_audio_service),
):
    return ok(service.approve_tracks(identifier, data.approvals, actor_email=session.email))


@router.post("/admin/events/{identifier}/approve-schulsong")
def approve_schulsong(
    identifier: str,
    data: ApproveSchulsongRequest,
    session: Session = Depends(require_admin),
    service: AudioService = Depends(get_audio_service),
):
    return ok(service.approve_schulsong(identifier, data.mode, actor_email=session.email))


@router.post("/admin/events/{identifier}/reject-schulsong")
def reject_schulsong(
    identifier: str,
    data: RejectSchulsongRequest,
    session: Session = Depends(require_admin),
    service: AudioService = Depends(get_audio_service),
):
    return ok(service.reject_schulsong(identifier, data.comment, actor_email=session.email))


@router.delete("/admin/events/{identifier}/audio/{audio_file_id}")
def delete_audio_file(
    identifier: str,
    audio_file_id: str,
    session: Session = Depends(require_admin),
    service: AudioService = Depends(get_audio_service),
):
    return ok(service.delete_audio_file(identifier, audio_file_id, actor_email=session.email))


# ============================================================================
# TEACHER & PARENT
# ============================================================================


@router.post("/teacher/events/{identifier}/schulsong/approve")
def teacher_approve_schulsong(
    identifier: str,
    session: Session = Depends(require_teacher),
    service: AudioService = Depends(get_audio_service),
):
    event = service.resolver.resolve_or_404(identifier)
    ensure_event_access(session, event.event_id)
    return ok(service.teacher_approve_schulsong(event.event_id, actor_email=session.email))


@router.get("/teacher/events/{identifier}/classes/{class_id}/audio-status")
def teacher_class_audio_status(
    identifier: str,
    class_id: str,
    session: Session = Depends(require_teacher),
    service: AudioService = Depends(get_audio_service),
):
    event = service.resolver.resolve_or_404(identifier)
    ensure_event_access(session, event.event_id)
    return ok(service.class_audio_status(event.event_id, class_id))


@router.get("/parent/events/{identifier}/classes/{class_id}/audio-status")
def parent_class_audio_status(
    identifier: str,
    class_id: str,
    session: Session = Depends(require_parent),
    service: AudioService = Depends(get_audio_service),
):
    event = service.resolver.resolve_or_404(identifier)
    ensure_event_access(session, event.event_id)
    return ok(service.class_audio_status(event.event_id, class_id))


@router.get("/parent/events/{identifier}/schulsong-status")
def parent_schulsong_status(
    identifier: str,
    session: Session = Depends(require_parent),
    service: AudioService = Depends(get_audio_service),
):
    event = service.resolver.resolve_or_404(identifier)
    ensure_event_access(session, event.event_id)
    return ok(service.schulsong_status(event.event_id))


# ============================================================================
# STAFF (raw recordings)
# ============================================================================


@router.get("/staff/events")
def staff_events(
    session: Session = Depends(require_staff),
    service: AudioService = Depends(get_audio_service),
):
    return ok(service.list_staff_events(session.email))


@router.post("/staff/events/{identifier}/upload-raw")
def staff_request_upload(
    identifier: str,
    data: UploadUrlRequest,
    session: Session = Depends(require_staff),
    service: AudioService = Depends(get_audio_service),
):
    event = service.resolver.resolve_or_404(identifier)
    _ensure_staff_assignment(session, event)
    return ok(service.request_upload(event.event_id, data, allowed_types=STAFF_UPLOAD_TYPES))


@router.post("/staff/events/{identifier}/upload-raw/confirm")
def staff_confirm_upload(
    identifier: str,
    data: UploadConfirmRequest,
    session: Session = Depends(require_staff),
    service: AudioService = Depends(get_audio_service),
):
    event = service.resolver.resolve_or_404(identifier)
    _ensure_staff_assignment(session, event)
    audio_file = service.confirm_upload(
        event.event_id, data, uploaded_by=session.email, allowed_types=STAFF_UPLOAD_TYPES
    )
    return ok(audio_file)


# ============================================================================
# ENGINEER (mixes and masters)
# ============================================================================


@router.get("/engineer/events")
def engineer_events(
    session: Session = Depends(require_engineer),
    service: AudioService = Depends(get_audio_service),
):
    return ok(service.list_mixing_events())


@router.get("/engineer/events/{identifier}/audio-status")
def engineer_audio_status(
    identifier: str,
    session: Session = Depends(require_engineer),
    service: AudioService = Depends(get_audio_service),
):
    return ok(service.get_audio_status(identifier))


@router.post("/engineer/events/{identifier}/upload-mixed")
def engineer_request_upload(
    identifier: str,
    data: UploadUrlRequest,
    session: Session = Depends(require_engineer),
    service: AudioService = Depends(get_audio_service),
):
    return ok(service.request_upload(identifier, data, allowed_types=ENGINEER_UPLOAD_TYPES))


@router.post("/engineer/events/{identifier}/upload-mixed/confirm")
def engineer_confirm_upload(
    identifier: str,
    data: UploadConfirmRequest,
    session: Session = Depends(require_engineer),
    service: AudioService = Depends(get_audio_service),
):
    audio_file = service.confirm_upload(
        identifier, data, uploaded_by=session.email, allowed_types=ENGINEER_UPLOAD_TYPES
    )
    return ok(audio_file)
