"""Tests for activity logging and the cache wrappers."""

import asyncio
from datetime import datetime, timezone

import redis

from musicday.cache import Cache
from musicday.errors import TransportError
from musicday.models import Tables
from musicday.services.activity_service import ActivityService

EVENT_ID = "evt_grundschule_am_park_minimusikertag_20250615_a1b2c3"


class FakePool:
    def __init__(self):
        self.jobs = []

    async def enqueue_job(self, name, payload):
        self.jobs.append((name, payload))


class TestActivityService:
    """Tests for fire-and-forget activity logging"""

    def test_writes_inline_without_event_loop(self, store):
        service = ActivityService(store)
        service.log(EVENT_ID, "class_added", "Class 1a added", actor_email="admin@minimusiker.de",
                    metadata={"class_id": "cls_1a"})
        rows = store.rows(Tables.EVENT_ACTIVITY)
        assert len(rows) == 1
        assert rows[0]["activity_type"] == "class_added"
        assert rows[0]["metadata"] == '{"class_id": "cls_1a"}'
        assert "actor_type" not in rows[0]

    def test_write_failure_is_swallowed(self, store, monkeypatch):
        """A failing store never surfaces to the caller."""
        def broken_create(table, fields):
            raise TransportError("Record store unavailable")

        monkeypatch.setattr(store, "create", broken_create)
        ActivityService(store).log(EVENT_ID, "class_added", "Class 1a added")

    def test_enqueues_when_loop_is_running(self, store):
        pool = FakePool()

        async def factory():
            return pool

        service = ActivityService(store, pool_factory=factory)

        async def run():
            service.log(EVENT_ID, "audio_uploaded", "Final uploaded")
            while service._pending:
                await asyncio.sleep(0)

        asyncio.run(run())
        assert [name for name, _ in pool.jobs] == ["log_activity_task"]
        assert pool.jobs[0][1]["event_id"] == EVENT_ID
        assert store.rows(Tables.EVENT_ACTIVITY) == []

    def test_worker_thread_hands_entry_to_loop(self, store):
        """Entries logged from a threadpool handler are enqueued on the bound loop."""
        pool = FakePool()

        async def factory():
            return pool

        service = ActivityService(store, pool_factory=factory)

        async def run():
            service.bind_loop(asyncio.get_running_loop())
            await asyncio.to_thread(service.log, EVENT_ID, "class_added", "Class 1a added")
            for _ in range(100):
                if pool.jobs:
                    break
                await asyncio.sleep(0)

        asyncio.run(run())
        assert [name for name, _ in pool.jobs] == ["log_activity_task"]
        assert store.rows(Tables.EVENT_ACTIVITY) == []

    def test_full_queue_drops_entries(self, store):
        pool = FakePool()

        async def factory():
            return pool

        service = ActivityService(store, pool_factory=factory, max_pending=0)

        async def run():
            service.log(EVENT_ID, "audio_uploaded", "Final uploaded")
            await asyncio.sleep(0)

        asyncio.run(run())
        assert pool.jobs == []

    def test_list_activity_newest_first(self, store):
        service = ActivityService(store)
        for hour, kind in ((8, "event_created"), (10, "deal_updated"), (9, "class_added")):
            service.write_entry({
                "event_id": EVENT_ID, "activity_type": kind, "description": kind,
                "created_at": datetime(2025, 6, 1, hour, tzinfo=timezone.utc).isoformat(),
            })
        entries = service.list_activity(EVENT_ID, limit=2)
        assert [e.activity_type for e in entries] == ["deal_updated", "class_added"]


class TestCache:
    """Tests for the cache wrappers"""

    def test_redis_unavailable_fails_open(self):
        def factory():
            raise redis.ConnectionError("Connection refused")

        cache = Cache(client_factory=factory)
        assert cache.get("event:1") is None
        assert cache.set("event:1", {"id": 1}) is False
        assert cache.delete("event:1") is False
