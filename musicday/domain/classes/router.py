"""Class router - FastAPI endpoints for classes, groups and songs"""

import logging

from fastapi import APIRouter, Depends

from ...auth import Session, ensure_event_access, require_admin, require_teacher
from ...dependencies import get_activity_service, get_resolver
from ...record_store import RecordStore, get_record_store
from ...schemas import ok
from ...services.activity_service import ActivityService
from ..events.resolver import EventResolver
from .schemas import AlbumOrderUpdate, ClassCreate, ClassUpdate, GroupCreate, GroupUpdate, SongCreate, SongUpdate
from .service import ClassService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Classes"])


def get_class_service(
    store: RecordStore = Depends(get_record_store),
    resolver: EventResolver = Depends(get_resolver),
    activity: ActivityService = Depends(get_activity_service),
) -> ClassService:
    """Dependency injection for ClassService"""
    return ClassService(store, resolver, activity)


# ============================================================================
# CLASSES
# ============================================================================


@router.get("/admin/events/{identifier}/classes")
def get_structure(
    identifier: str,
    session: Session = Depends(require_admin),
    service: ClassService = Depends(get_class_service),
):
    """Classes, groups and songs of an event"""
    return ok(service.get_structure(identifier))


@router.post("/admin/events/{identifier}/classes")
def create_class(
    identifier: str,
    data: ClassCreate,
    session: Session = Depends(require_admin),
    service: ClassService = Depends(get_class_service),
):
    return ok(service.create_class(identifier, data, actor_email=session.email))


@router.patch("/admin/events/{identifier}/classes/{class_id}")
def update_class(
    identifier: str,
    class_id: str,
    data: ClassUpdate,
    session: Session = Depends(require_admin),
    service: ClassService = Depends(get_class_service),
):
    return ok(service.update_class(identifier, class_id, data))


@router.delete("/admin/events/{identifier}/classes/{class_id}")
def delete_class(
    identifier: str,
    class_id: str,
    session: Session = Depends(require_admin),
    service: ClassService = Depends(get_class_service),
):
    service.delete_class(identifier, class_id, actor_email=session.email)
    return ok({"deleted": class_id})


# ============================================================================
# GROUPS
# ============================================================================


@router.post("/admin/events/{identifier}/groups")
def create_group(
    identifier: str,
    data: GroupCreate,
    session: Session = Depends(require_admin),
    service: ClassService = Depends(get_class_service),
):
    """Create a group of at least two classes of the same event"""
    return ok(service.create_group(identifier, data, actor_email=session.email))


@router.patch("/admin/events/{identifier}/groups/{group_id}")
def update_group(
    identifier: str,
    group_id: str,
    data: GroupUpdate,
    session: Session = Depends(require_admin),
    service: ClassService = Depends(get_class_service),
):
    return ok(service.update_group(identifier, group_id, data))


@router.delete("/admin/events/{identifier}/groups/{group_id}")
def delete_group(
    identifier: str,
    group_id: str,
    session: Session = Depends(require_admin),
    service: ClassService = Depends(get_class_service),
):
    service.delete_group(identifier, group_id, actor_email=session.email)
    return ok({"deleted": group_id})


# ============================================================================
# SONGS
# ============================================================================


@router.post("/admin/events/{identifier}/songs")
def add_song(
    identifier: str,
    data: SongCreate,
    session: Session = Depends(require_admin),
    service: ClassService = Depends(get_class_service),
):
    return ok(service.add_song(identifier, data, actor_email=session.email))


@router.patch("/admin/events/{identifier}/songs/{song_id}")
def update_song(
    identifier: str,
    song_id: str,
    data: SongUpdate,
    session: Session = Depends(require_admin),
    service: ClassService = Depends(get_class_service),
):
    return ok(service.update_song(identifier, song_id, data))


@router.delete("/admin/events/{identifier}/songs/{song_id}")
def delete_song(
    identifier: str,
    song_id: str,
    session: Session = Depends(require_admin),
    service: ClassService = Depends(get_class_service),
):
    service.delete_song(identifier, song_id, actor_email=session.email)
    return ok({"deleted": song_id})


@router.put("/admin/events/{identifier}/album-order")
def reorder_album(
    identifier: str,
    data: AlbumOrderUpdate,
    session: Session = Depends(require_admin),
    service: ClassService = Depends(get_class_service),
):
    return ok(service.reorder_album(identifier, data.song_ids))


@router.post("/teacher/events/{identifier}/songs")
def teacher_add_song(
    identifier: str,
    data: SongCreate,
    session: Session = Depends(require_teacher),
    service: ClassService = Depends(get_class_service),
):
    """Teachers pick songs for the classes of their own events"""
    event = service.resolver.resolve_or_404(identifier)
    ensure_event_access(session, event.event_id)
    return ok(service.add_song(event.event_id, data, actor_email=session.email))


@router.get("/teacher/events/{identifier}/classes")
def teacher_get_structure(
    identifier: str,
    session: Session = Depends(require_teacher),
    service: ClassService = Depends(get_class_service),
):
    event = service.resolver.resolve_or_404(identifier)
    ensure_event_access(session, event.event_id)
    return ok(service.get_structure(event.event_id))
