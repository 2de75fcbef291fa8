"""Task service - Order queue for print runs, GO-IDs and shipping"""

import json
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Optional

from ...errors import DomainError, NotFoundError, ValidationError
from ...models import Task, TaskStatus
from ...record_store import RecordStore
from ...services.activity_service import ActivityService
from ...storage import printable_key
from ..events.resolver import EventResolver
from .repository import TaskRepository
from .templates import PAPER_ORDER_TEMPLATES, SHIPPING_TEMPLATE, get_task_template

logger = logging.getLogger(__name__)

OVERDUE_BASE_SCORE = -1000
NO_DEADLINE_SCORE = 9999


def urgency_score(task: Task, today: date) -> int:
    """Lower is more urgent; overdue tasks always sort before upcoming ones"""
    if task.deadline is None:
        return NO_DEADLINE_SCORE
    days = (task.deadline - today).days
    if days < 0:
        return OVERDUE_BASE_SCORE + days
    return days


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskService:
    """Service layer for the task queue"""

    def __init__(
        self,
        store: RecordStore,
        resolver: EventResolver,
        activity: ActivityService,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.resolver = resolver
        self.activity = activity
        self.clock = clock
        self.repo = TaskRepository()

    def generate_tasks_for_event(self, identifier: str, cancel: Optional[Callable[[], bool]] = None) -> dict:
        """Create one pending task per order template; existing tasks are left alone"""
        event = self.resolver.resolve_or_404(identifier)
        if event.event_date is None:
            raise ValidationError("Event has no date")

        existing = {t.template_id for t in self.repo.list_tasks(self.store, event_id=event.event_id)}
        offsets = event.timeline_overrides.task_offsets or {}
        rows = []
        for template in PAPER_ORDER_TEMPLATES:
            if template.template_id in existing:
                continue
            offset = offsets.get(template.template_id, template.offset_days)
            rows.append({
                "task_id": f"task_{event.event_id}_{template.template_id}",
                "template_id": template.template_id,
                "task_type": template.task_type,
                "task_name": template.name,
                "description": template.description,
                "completion_type": template.completion_type,
                "event_id": event.event_id,
                "deadline": (event.event_date + timedelta(days=int(offset))).isoformat(),
                "status": TaskStatus.PENDING.value,
                "r2_file_path": printable_key(event.event_id, template.template_id) if template.r2_file else None,
            })

        rows = [{k: v for k, v in row.items() if v is not None} for row in rows]
        result = self.repo.create_tasks(self.store, rows, cancel=cancel)
        logger.info(
            f"✅ Generated {result.created_count}/{len(rows)} tasks for {event.event_id}"
            + (" (cancelled)" if result.cancelled else "")
        )
        return {
            "created": result.created_count,
            "skipped": len(existing & {t.template_id for t in PAPER_ORDER_TEMPLATES}),
            "cancelled": result.cancelled,
        }

    def list_tasks(self, status: Optional[str] = None, identifier: Optional[str] = None) -> list[dict]:
        filters: dict[str, Any] = {}
        if status:
            filters["status"] = status
        if identifier:
            filters["event_id"] = self.resolver.resolve_or_404(identifier).event_id

        today = self.clock().date()
        tasks = self.repo.list_tasks(self.store, **filters)
        scored = sorted(((urgency_score(t, today), t) for t in tasks), key=lambda pair: (pair[0], pair[1].task_id))
        return [
            {**task.model_dump(), "urgency_score": score, "is_overdue": score < 0}
            for score, task in scored
        ]

    def _get_pending(self, task_id: str) -> Task:
        task = self.repo.get_task(self.store, task_id)
        if not task:
            raise NotFoundError("Task not found")
        if task.status != TaskStatus.PENDING:
            raise ValidationError(f"Task is already {task.status.value}")
        return task

    def complete_task(self, task_id: str, completion_data: dict[str, Any], completed_by: Optional[str] = None) -> dict:
        task = self._get_pending(task_id)
        template = get_task_template(task.template_id)

        if task.completion_type == "monetary":
            amount = completion_data.get("amount")
            if isinstance(amount, bool) or not isinstance(amount, (int, float)) or amount < 0:
                raise ValidationError("A non-negative amount is required to complete this task")

        now = self.clock()
        go_id = f"GO-{task.task_id}" if template and template.creates_go_id else None

        # The task is completed first so a failed update never leaves an orphan order
        completed = self.repo.update_task(
            self.store, task,
            status=TaskStatus.COMPLETED.value,
            completed_at=now.isoformat(),
            completed_by=completed_by,
            completion_data=json.dumps(completion_data),
            go_id=go_id,
        )

        if go_id:
            try:
                self.repo.create_guesstimate_order(self.store, {
                    "go_id": go_id,
                    "event_id": task.event_id,
                    "task_id": task.task_id,
                    "amount": completion_data.get("amount"),
                    "order_date": now.date().isoformat(),
                })
            except DomainError:
                logger.error(f"❌ Guesstimate order {go_id} failed, reopening {task.task_id}")
                self.repo.update_task(
                    self.store, task,
                    status=TaskStatus.PENDING.value,
                    completed_at=None, completed_by=None, completion_data=None, go_id=None,
                )
                raise
            logger.info(f"🧾 Guesstimate order {go_id} created for {task.task_id}")

        shipping_task = None
        if template and template.creates_shipping:
            shipping_task = self.repo.get_child_task(self.store, task.task_id)
            if shipping_task is None:
                shipping_task = self.repo.create_task(self.store, {
                    "task_id": f"{task.task_id}_shipping",
                    "template_id": SHIPPING_TEMPLATE.template_id,
                    "task_type": SHIPPING_TEMPLATE.task_type,
                    "task_name": f"{SHIPPING_TEMPLATE.name} ({template.name})",
                    "description": SHIPPING_TEMPLATE.description,
                    "completion_type": SHIPPING_TEMPLATE.completion_type,
                    "event_id": task.event_id,
                    "deadline": (now.date() + timedelta(days=SHIPPING_TEMPLATE.offset_days)).isoformat(),
                    "status": TaskStatus.PENDING.value,
                    "parent_task_id": task.task_id,
                    "go_id": go_id,
                })
                logger.info(f"📦 Shipping task created for {task.task_id}")

        self.activity.log(
            task.event_id, "task_completed", f"Task '{task.task_name or task.template_id}' completed",
            actor_email=completed_by, actor_type="admin", metadata={"task_id": task.task_id, "go_id": go_id},
        )
        return {"task": completed, "goId": go_id, "shippingTask": shipping_task}

    def cancel_task(self, task_id: str, reason: Optional[str] = None, cancelled_by: Optional[str] = None) -> Task:
        task = self._get_pending(task_id)
        cancelled = self.repo.update_task(
            self.store, task,
            status=TaskStatus.CANCELLED.value,
            completed_at=self.clock().isoformat(),
            completed_by=cancelled_by,
            completion_data=json.dumps({"cancel_reason": reason} if reason else {}),
        )
        self.activity.log(
            task.event_id, "task_cancelled", f"Task '{task.task_name or task.template_id}' cancelled",
            actor_email=cancelled_by, actor_type="admin", metadata={"task_id": task.task_id, "reason": reason},
        )
        return cancelled
