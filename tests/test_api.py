"""Tests for the HTTP surface: auth, envelopes and error mapping."""

import asyncio

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from musicday.auth import Session, create_session_token
from musicday.dependencies import get_activity_service, get_resolver
from musicday.email_service import get_transport
from musicday.main import app
from musicday.models import Tables
from musicday.record_store import get_record_store
from musicday.storage import get_storage

EVENT_ID = "evt_grundschule_am_park_minimusikertag_20250615_a1b2c3"
CLASS_ID = "cls_grundschule_am_park_20250615_3a_abcdef"


@pytest.fixture
def client(store, resolver, activity, storage, transport):
    app.dependency_overrides[get_record_store] = lambda: store
    app.dependency_overrides[get_resolver] = lambda: resolver
    app.dependency_overrides[get_activity_service] = lambda: activity
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_transport] = lambda: transport
    yield TestClient(app)
    app.dependency_overrides.clear()


def _headers(role: str, event_ids=None) -> dict:
    token = create_session_token(Session(
        user_id="1", email=f"{role}@minimusiker.de", role=role, event_ids=event_ids or [],
    ))
    return {"Authorization": f"Bearer {token}"}


class TestAuth:
    """Tests for session checks"""

    def test_missing_session(self, client):
        response = client.get("/api/admin/events")
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Admin session required"}

    def test_wrong_role(self, client):
        """A teacher token does not open admin routes."""
        response = client.get("/api/admin/events", headers=_headers("teacher"))
        assert response.status_code == 401

    def test_teacher_needs_event_access(self, client, make_event):
        make_event()
        response = client.get(f"/api/teacher/events/{EVENT_ID}", headers=_headers("teacher", ["evt_other"]))
        assert response.status_code == 403
        assert response.json()["success"] is False

    def test_teacher_cookie_session(self, client, make_event):
        make_event()
        token = _headers("teacher", [EVENT_ID])["Authorization"].split(" ", 1)[1]
        client.cookies.set("teacher_session", token)
        response = client.get(f"/api/teacher/events/{EVENT_ID}")
        assert response.status_code == 200
        assert response.json()["data"]["event"]["event_id"] == EVENT_ID


class TestEventRoutes:
    """Tests for admin event endpoints"""

    def test_get_event_by_legacy_id(self, client, make_event):
        """Events resolve by legacy booking id as well."""
        make_event(legacy_booking_id="legacy-4711")
        response = client.get("/api/admin/events/legacy-4711", headers=_headers("admin"))
        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["data"]["event_id"] == EVENT_ID

    def test_unknown_event(self, client):
        response = client.get("/api/admin/events/evt_nope", headers=_headers("admin"))
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Event not found"}

    def test_validation_error_envelope(self, client):
        """Body validation failures come back as 400 in the standard envelope."""
        response = client.post(
            "/api/admin/events", headers=_headers("admin"),
            json={"school_name": "  ", "event_date": "2025-06-15"},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"].startswith("school_name:")

    def test_create_event(self, client, store, activity):
        response = client.post(
            "/api/admin/events", headers=_headers("admin"),
            json={"school_name": "Grundschule Am Park", "event_date": "2025-09-20",
                  "deal_type": "mimu", "estimated_children": 80},
        )
        data = response.json()["data"]
        assert response.status_code == 200
        assert data["event_id"].startswith("evt_grundschule_am_park_minimusikertag_20250920_")
        assert data["is_under_100"] is True
        assert data["fee_breakdown"]["items"][0]["label"] == "Kleine Einrichtung (< 100 Kinder)"
        assert "event_created" in activity.types()

    def test_create_event_without_head_count(self, client):
        """A missing child count is billed as a small venue."""
        response = client.post(
            "/api/admin/events", headers=_headers("admin"),
            json={"school_name": "Grundschule Am Park", "event_date": "2025-09-20", "deal_type": "mimu"},
        )
        data = response.json()["data"]
        assert response.status_code == 200
        assert data["is_under_100"] is True
        assert data["fee_breakdown"]["items"][0]["label"] == "Kleine Einrichtung (< 100 Kinder)"

    def test_update_deal_recomputes_flags(self, client, make_event):
        make_event()
        response = client.put(
            f"/api/admin/events/{EVENT_ID}/deal", headers=_headers("admin"),
            json={"deal_type": "mimu", "deal_config": {"music_pricing_enabled": True}, "estimated_children": 80},
        )
        data = response.json()["data"]
        assert data["is_plus"] is True
        assert data["is_minimusikertag"] is False
        assert data["is_under_100"] is True


class TestOtherRoutes:
    """Smoke tests for the remaining routers"""

    def test_generate_and_list_tasks(self, client, make_event):
        make_event()
        generated = client.post(f"/api/admin/events/{EVENT_ID}/tasks/generate", headers=_headers("admin"))
        assert generated.json()["data"]["created"] == 5

        tasks = client.get("/api/admin/tasks", params={"event_id": EVENT_ID}, headers=_headers("admin"))
        assert len(tasks.json()["data"]) == 5

    def test_parent_schulsong_status_hidden_until_released(self, client, make_event):
        make_event()
        response = client.get(f"/api/parent/events/{EVENT_ID}/schulsong-status", headers=_headers("parent", [EVENT_ID]))
        assert response.status_code == 200
        assert response.json()["data"]["hasAudio"] is False

    def test_admin_class_list(self, client, store, make_event):
        make_event()
        store.create(Tables.CLASSES, {"class_id": CLASS_ID, "event_id": EVENT_ID, "class_name": "3a"})
        response = client.get(f"/api/admin/events/{EVENT_ID}/classes", headers=_headers("admin"))
        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_api_handlers_run_in_threadpool(self):
        """Handlers doing blocking store I/O are plain functions."""
        handlers = [r for r in app.routes if isinstance(r, APIRoute) and r.path.startswith("/api")]
        assert handlers
        assert not [r.path for r in handlers if asyncio.iscoroutinefunction(r.endpoint)]
