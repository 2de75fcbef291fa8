"""Task router - admin endpoints for the order queue"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...auth import Session, require_admin
from ...dependencies import get_activity_service, get_resolver
from ...record_store import RecordStore, get_record_store
from ...schemas import ok
from ...services.activity_service import ActivityService
from ..events.resolver import EventResolver
from .schemas import TaskCancel, TaskComplete
from .service import TaskService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Tasks"])


def get_task_service(
    store: RecordStore = Depends(get_record_store),
    resolver: EventResolver = Depends(get_resolver),
    activity: ActivityService = Depends(get_activity_service),
) -> TaskService:
    """Dependency injection for TaskService"""
    return TaskService(store, resolver, activity)


@router.get("/tasks")
def list_tasks(
    status: Optional[str] = Query(None),
    event_id: Optional[str] = Query(None),
    session: Session = Depends(require_admin),
    service: TaskService = Depends(get_task_service),
):
    """Tasks ordered by urgency (overdue first)"""
    return ok(service.list_tasks(status=status, identifier=event_id))


@router.post("/events/{identifier}/tasks/generate")
def generate_tasks(
    identifier: str,
    session: Session = Depends(require_admin),
    service: TaskService = Depends(get_task_service),
):
    return ok(service.generate_tasks_for_event(identifier))


@router.post("/tasks/{task_id}/complete")
def complete_task(
    task_id: str,
    data: TaskComplete,
    session: Session = Depends(require_admin),
    service: TaskService = Depends(get_task_service),
):
    return ok(service.complete_task(task_id, data.completion_data, completed_by=session.email))


@router.post("/tasks/{task_id}/cancel")
def cancel_task(
    task_id: str,
    data: TaskCancel,
    session: Session = Depends(require_admin),
    service: TaskService = Depends(get_task_service),
):
    return ok(service.cancel_task(task_id, data.reason, cancelled_by=session.email))
