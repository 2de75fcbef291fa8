"""Task repository - Record store operations for tasks and guesstimate orders"""

from typing import Any, Optional

from ...models import GuesstimateOrder, Task, Tables
from ...record_store import BatchResult, RecordStore


class TaskRepository:
    """Repository for task and GO-ID records"""

    @staticmethod
    def list_tasks(store: RecordStore, **filter_by: Any) -> list[Task]:
        rows = store.select(Tables.TASKS, filter_by=filter_by or None)
        return [Task.from_record(r) for r in rows]

    @staticmethod
    def get_task(store: RecordStore, task_id: str) -> Optional[Task]:
        record = store.first(Tables.TASKS, filter_by={"task_id": task_id})
        return Task.from_record(record) if record else None

    @staticmethod
    def get_child_task(store: RecordStore, parent_task_id: str) -> Optional[Task]:
        record = store.first(Tables.TASKS, filter_by={"parent_task_id": parent_task_id})
        return Task.from_record(record) if record else None

    @staticmethod
    def create_task(store: RecordStore, fields: dict[str, Any]) -> Task:
        return Task.from_record(store.create(Tables.TASKS, fields))

    @staticmethod
    def create_tasks(store: RecordStore, rows: list[dict[str, Any]], cancel=None) -> BatchResult:
        return store.batch_create(Tables.TASKS, rows, cancel=cancel)

    @staticmethod
    def update_task(store: RecordStore, task: Task, **updates: Any) -> Task:
        return Task.from_record(store.update(Tables.TASKS, task.record_id, updates))

    @staticmethod
    def create_guesstimate_order(store: RecordStore, fields: dict[str, Any]) -> GuesstimateOrder:
        return GuesstimateOrder.from_record(store.create(Tables.GUESSTIMATE_ORDERS, fields))
