"""Pytest configuration and shared fixtures."""

import copy
import itertools
import json
import time
from collections import defaultdict
from datetime import date, datetime, timezone

import pytest

from musicday.domain.events.resolver import EventResolver
from musicday.models import Tables
from musicday.record_store import Record, RecordStore

# Monday 2025-06-02, 07:00 in Europe/Berlin
FIXED_NOW = datetime(2025, 6, 2, 5, 0, tzinfo=timezone.utc)
TODAY = date(2025, 6, 2)


class MemoryCache:
    """Process-local stand-in for the Redis cache"""

    def __init__(self, clock=time.monotonic):
        self._entries = {}
        self._clock = clock

    def get(self, key):
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return json.loads(payload)

    def set(self, key, value, ttl=3600):
        self._entries[key] = (self._clock() + ttl, json.dumps(value, default=str))
        return True

    def delete(self, key):
        return self._entries.pop(key, None) is not None


class InMemoryRecordStore(RecordStore):
    """RecordStore over plain dicts with the same filter semantics as Airtable"""

    def __init__(self):
        self.tables: dict[str, dict[str, Record]] = defaultdict(dict)
        self._ids = itertools.count(1)

    def _new_id(self) -> str:
        return f"rec{next(self._ids):014d}"

    @staticmethod
    def _matches(record: Record, filter_by, linked) -> bool:
        for name, value in (filter_by or {}).items():
            current = record.fields.get(name)
            if value is None:
                if current not in (None, "", []):
                    return False
            elif current != value:
                return False
        for name, record_id in (linked or {}).items():
            if record_id not in (record.fields.get(name) or []):
                return False
        return True

    def select(self, table, filter_by=None, linked=None, max_records=None):
        rows = [
            copy.deepcopy(r) for r in self.tables[table].values()
            if self._matches(r, filter_by, linked)
        ]
        return rows[:max_records] if max_records else rows

    def find(self, table, record_id):
        record = self.tables[table].get(record_id)
        return copy.deepcopy(record) if record else None

    def create(self, table, fields):
        record = Record(id=self._new_id(), fields={k: v for k, v in fields.items() if v is not None})
        self.tables[table][record.id] = record
        return copy.deepcopy(record)

    def update(self, table, record_id, fields):
        record = self.tables[table][record_id]
        for name, value in fields.items():
            if value is None:
                record.fields.pop(name, None)
            else:
                record.fields[name] = value
        return copy.deepcopy(record)

    def destroy(self, table, record_id):
        self.tables[table].pop(record_id, None)

    def rows(self, table) -> list[dict]:
        return [r.fields for r in self.tables[table].values()]


class FakeStorage:
    def __init__(self):
        self.objects: set[str] = set()
        self.deleted: list[str] = []

    def generate_signed_upload_url(self, key, content_type, expires_in=3600):
        return f"https://r2.test/upload/{key}"

    def generate_signed_download_url(self, key, ttl_seconds, filename=None):
        url = f"https://r2.test/{key}?ttl={ttl_seconds}"
        return f"{url}&filename={filename}" if filename else url

    def exists(self, key):
        return key in self.objects

    def delete(self, key):
        self.objects.discard(key)
        self.deleted.append(key)


class FakeTransport:
    def __init__(self):
        self.sent: list[dict] = []
        self.failing: set[str] = set()

    def send(self, to, subject, html, headers=None):
        if to in self.failing:
            return {"error": "Mailbox unavailable"}
        self.sent.append({"to": to, "subject": subject, "html": html, "headers": headers})
        return {"id": f"msg_{len(self.sent)}"}


class FakeActivity:
    def __init__(self):
        self.entries: list[dict] = []

    def log(self, event_id, activity_type, description, actor_email=None, actor_type=None, metadata=None):
        self.entries.append({
            "event_id": event_id,
            "activity_type": activity_type,
            "description": description,
            "actor_email": actor_email,
            "metadata": metadata or {},
        })

    def list_activity(self, event_id, limit=100):
        return [e for e in self.entries if e["event_id"] == event_id][:limit]

    def types(self) -> list[str]:
        return [e["activity_type"] for e in self.entries]


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def resolver(store, cache) -> EventResolver:
    return EventResolver(store, cache=cache)


@pytest.fixture
def activity() -> FakeActivity:
    return FakeActivity()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def make_event(store):
    """Create an event row; keyword arguments override the defaults"""

    def factory(**fields):
        data = {
            "event_id": "evt_grundschule_am_park_minimusikertag_20250615_a1b2c3",
            "school_name": "Grundschule Am Park",
            "event_date": "2025-06-15",
            "event_type": "Minimusikertag",
            "status": "Confirmed",
            "is_minimusikertag": True,
        }
        data.update(fields)
        return store.create(Tables.EVENTS, data)

    return factory
