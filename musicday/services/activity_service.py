"""
Event activity log
Activity entries are submitted to the ARQ queue without blocking the
request; enqueue or write failures are logged and never reach the caller.
Route handlers run in the threadpool, so submissions from a worker thread
are handed to the bound event loop.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from arq import create_pool

from ..errors import DomainError
from ..models import ActivityEntry, Tables
from ..record_store import RecordStore
from ..redis_client import get_redis_settings

logger = logging.getLogger(__name__)

MAX_PENDING_SUBMISSIONS = 100


class ActivityService:
    """Fire-and-forget activity logging backed by a bounded set of pending submissions"""

    def __init__(self, store: RecordStore, pool_factory=None, max_pending: int = MAX_PENDING_SUBMISSIONS):
        self.store = store
        self._pool_factory = pool_factory or (lambda: create_pool(get_redis_settings()))
        self._pool = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending: set[asyncio.Task] = set()
        self.max_pending = max_pending

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def log(
        self,
        event_id: str,
        activity_type: str,
        description: str,
        actor_email: Optional[str] = None,
        actor_type: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        payload = {
            "event_id": event_id,
            "activity_type": activity_type,
            "description": description,
            "actor_email": actor_email,
            "actor_type": actor_type,
            "metadata": json.dumps(metadata or {}, default=str),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            self._submit(payload)
        elif self._loop is not None and self._loop.is_running():
            self._loop.call_soon_threadsafe(self._submit, payload)
        else:
            # No event loop (worker job or script): write inline
            self._write_safely(payload)

    def _submit(self, payload: dict) -> None:
        """Runs on the event loop thread"""
        if len(self._pending) >= self.max_pending:
            logger.error(
                f"❌ Activity queue full ({self.max_pending} pending), "
                f"dropping {payload['activity_type']} for {payload['event_id']}"
            )
            return

        task = asyncio.get_running_loop().create_task(self._enqueue(payload))
        self._pending.add(task)
        task.add_done_callback(self._on_submitted)

    async def _enqueue(self, payload: dict) -> None:
        if self._pool is None:
            self._pool = await self._pool_factory()
        await self._pool.enqueue_job("log_activity_task", payload)

    def _on_submitted(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"⚠️ Failed to enqueue activity log entry: {exc}")

    def _write_safely(self, payload: dict) -> None:
        try:
            self.write_entry(payload)
        except DomainError as e:
            logger.warning(f"⚠️ Failed to write activity log entry {payload.get('activity_type')}: {e}")

    def write_entry(self, payload: dict) -> ActivityEntry:
        """Persist one activity entry (called by the worker)"""
        fields = {k: v for k, v in payload.items() if v is not None}
        record = self.store.create(Tables.EVENT_ACTIVITY, fields)
        logger.info(f"📝 Activity logged: {payload.get('activity_type')} for {payload.get('event_id')}")
        return ActivityEntry.from_record(record)

    def list_activity(self, event_id: str, limit: int = 100) -> list[ActivityEntry]:
        rows = self.store.select(Tables.EVENT_ACTIVITY, filter_by={"event_id": event_id})
        entries = [ActivityEntry.from_record(r) for r in rows]
        entries.sort(key=lambda e: e.created_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        return entries[:limit]
