"""Tests for the audio service: uploads, approvals and release."""

from datetime import datetime, timezone

import pytest

from musicday.domain.audio.schemas import TrackApproval, UploadConfirmRequest, UploadUrlRequest
from musicday.domain.audio.service import STAFF_UPLOAD_TYPES, UPLOAD_NOT_FOUND_MESSAGE, AudioService
from musicday.errors import NotFoundError, PreconditionFailedError, ValidationError
from musicday.models import Tables

EVENT_ID = "evt_grundschule_am_park_minimusikertag_20250615_a1b2c3"
CLASS_ID = "cls_grundschule_am_park_20250615_3a_abcdef"


@pytest.fixture
def service(store, storage, resolver, activity, clock):
    return AudioService(store, storage, resolver, activity, clock=clock)


@pytest.fixture
def event(store, make_event):
    record = make_event()
    store.create(Tables.CLASSES, {"class_id": CLASS_ID, "event_id": EVENT_ID, "class_name": "3a"})
    store.create(Tables.SONGS, {"class_id": CLASS_ID, "event_id": EVENT_ID, "title": "Alle Vögel"})
    return record


def _confirm(service, storage, type_="final", key=None, **extra):
    key = key or f"recordings/{EVENT_ID}/{CLASS_ID}/final.mp3"
    storage.objects.add(key)
    return service.confirm_upload(EVENT_ID, UploadConfirmRequest(class_id=CLASS_ID, type=type_, r2_key=key, **extra))


class TestRequestUpload:
    """Tests for signed upload URLs"""

    def test_raw_upload_key(self, service, event):
        """Raw uploads are keyed by class, timestamp and filename."""
        result = service.request_upload(
            EVENT_ID,
            UploadUrlRequest(class_id=CLASS_ID, type="raw", filename="Aufnahme 1.wav", content_type="audio/wav"),
        )
        assert result["r2Key"].startswith(f"recordings/{EVENT_ID}/{CLASS_ID}/raw/")
        assert result["r2Key"].endswith("_Aufnahme_1.wav")
        assert result["uploadUrl"].startswith("https://r2.test/upload/")

    def test_preview_is_always_mp3(self, service, event):
        result = service.request_upload(
            EVENT_ID,
            UploadUrlRequest(class_id=CLASS_ID, type="preview", filename="mix.wav", content_type="audio/wav"),
        )
        assert result["r2Key"] == f"recordings/{EVENT_ID}/{CLASS_ID}/preview.mp3"

    def test_rejects_disallowed_type(self, service, event):
        """Staff may only upload raw recordings."""
        with pytest.raises(ValidationError):
            service.request_upload(
                EVENT_ID,
                UploadUrlRequest(class_id=CLASS_ID, type="final", filename="a.mp3", content_type="audio/mpeg"),
                allowed_types=STAFF_UPLOAD_TYPES,
            )

    def test_rejects_unsupported_content_type(self, service, event):
        with pytest.raises(ValidationError):
            service.request_upload(
                EVENT_ID,
                UploadUrlRequest(class_id=CLASS_ID, type="raw", filename="a.ogg", content_type="audio/ogg"),
            )

    def test_unknown_class(self, service, event):
        """The target class must belong to the event."""
        with pytest.raises(NotFoundError):
            service.request_upload(
                EVENT_ID,
                UploadUrlRequest(class_id="cls_other_20250615_x_abcdef", type="raw", filename="a.mp3",
                                 content_type="audio/mpeg"),
            )

    def test_schulsong_without_class(self, service, event):
        """Schulsong uploads without a class use the school-wide target."""
        result = service.request_upload(
            EVENT_ID,
            UploadUrlRequest(type="final", filename="song.mp3", content_type="audio/mpeg", is_schulsong=True),
        )
        assert result["classId"] == "schulsong"


class TestConfirmUpload:
    """Tests for upload confirmation"""

    def test_missing_object_creates_nothing(self, service, store, event):
        """Confirmation fails when the object is not in storage."""
        request = UploadConfirmRequest(class_id=CLASS_ID, type="final", r2_key=f"recordings/{EVENT_ID}/{CLASS_ID}/final.mp3")
        with pytest.raises(PreconditionFailedError) as exc:
            service.confirm_upload(EVENT_ID, request)
        assert exc.value.message == UPLOAD_NOT_FOUND_MESSAGE
        assert store.rows(Tables.AUDIO_FILES) == []

    def test_key_must_belong_to_event(self, service, storage, event):
        with pytest.raises(ValidationError):
            _confirm(service, storage, key="recordings/evt_other/cls_x/final.mp3")

    def test_creates_final_and_updates_event_state(self, service, storage, store, event, activity):
        """A confirmed final is pending review and the event cache is refreshed."""
        audio_file = _confirm(service, storage)
        assert audio_file.approval_status.value == "pending"
        assert audio_file.format == "mp3"
        assert store.find(Tables.EVENTS, event.id).fields["admin_approval_status"] == "ready_for_approval"
        assert "audio_uploaded" in activity.types()

    def test_reupload_replaces_row_and_resets_review(self, service, storage, store, event):
        """The same key updates the existing row instead of duplicating it."""
        first = _confirm(service, storage)
        service.approve_tracks(EVENT_ID, [TrackApproval(audio_file_id=first.record_id, status="approved")])

        second = _confirm(service, storage)
        assert second.record_id == first.record_id
        assert second.approval_status.value == "pending"
        assert len(store.rows(Tables.AUDIO_FILES)) == 1


class TestApprovals:
    """Tests for admin and teacher approvals"""

    def test_approve_tracks_sets_all_approved(self, service, storage, store, event):
        final = _confirm(service, storage)
        result = service.approve_tracks(
            EVENT_ID,
            [
                TrackApproval(audio_file_id=final.record_id, status="approved"),
                TrackApproval(audio_file_id="recMISSING000000", status="approved"),
            ],
        )
        assert result["allTracksApproved"] is True
        assert [r["success"] for r in result["results"]] == [True, False]
        assert store.find(Tables.EVENTS, event.id).fields["all_tracks_approved"] is True

    def test_rejection_clears_all_approved(self, service, storage, store, event):
        final = _confirm(service, storage)
        service.approve_tracks(EVENT_ID, [TrackApproval(audio_file_id=final.record_id, status="approved")])
        service.approve_tracks(
            EVENT_ID, [TrackApproval(audio_file_id=final.record_id, status="rejected", comment="Zu leise")]
        )
        fields = store.find(Tables.EVENTS, event.id).fields
        assert fields["all_tracks_approved"] is False
        assert fields["admin_approval_status"] == "ready_for_approval"

    def test_teacher_cannot_approve_before_admin(self, service, storage, event):
        """Teacher approval requires the admin approval first."""
        storage.objects.add(f"recordings/{EVENT_ID}/schulsong/final.mp3")
        service.confirm_upload(
            EVENT_ID,
            UploadConfirmRequest(type="final", r2_key=f"recordings/{EVENT_ID}/schulsong/final.mp3", is_schulsong=True),
        )
        with pytest.raises(PreconditionFailedError):
            service.teacher_approve_schulsong(EVENT_ID)

    def test_schulsong_scheduled_release(self, service, storage, store, event):
        """Scheduled approval releases at the next workday morning."""
        key = f"recordings/{EVENT_ID}/schulsong/final.mp3"
        storage.objects.add(key)
        service.confirm_upload(EVENT_ID, UploadConfirmRequest(type="final", r2_key=key, is_schulsong=True))

        result = service.approve_schulsong(EVENT_ID, mode="scheduled")
        released_at = datetime.fromisoformat(result["releasedAt"])
        assert released_at.astimezone(timezone.utc) == datetime(2025, 6, 3, 5, 0, tzinfo=timezone.utc)

        teacher = service.teacher_approve_schulsong(EVENT_ID)
        assert teacher["teacherApprovedAt"]

    def test_unknown_release_mode_rejected(self, service, storage, store, event):
        key = f"recordings/{EVENT_ID}/schulsong/final.mp3"
        storage.objects.add(key)
        service.confirm_upload(EVENT_ID, UploadConfirmRequest(type="final", r2_key=key, is_schulsong=True))
        with pytest.raises(ValidationError):
            service.approve_schulsong(EVENT_ID, mode="later")
        assert "schulsong_released_at" not in store.find(Tables.EVENTS, event.id).fields

    def test_reject_schulsong_clears_release(self, service, storage, store, event):
        key = f"recordings/{EVENT_ID}/schulsong/final.mp3"
        storage.objects.add(key)
        service.confirm_upload(EVENT_ID, UploadConfirmRequest(type="final", r2_key=key, is_schulsong=True))
        service.approve_schulsong(EVENT_ID, mode="instant")

        service.reject_schulsong(EVENT_ID, comment="Bitte neu abmischen")
        assert "schulsong_released_at" not in store.find(Tables.EVENTS, event.id).fields

    def test_delete_audio_file(self, service, storage, store, event):
        """Deleting removes the object and the row."""
        final = _confirm(service, storage)
        service.delete_audio_file(EVENT_ID, final.record_id)
        assert store.rows(Tables.AUDIO_FILES) == []
        assert storage.deleted == [final.r2_key]

    def test_deleting_one_class_final_reverts_stage(self, service, storage, store, event):
        """Once a class loses its only final the event is back to uploading."""
        other_class = "cls_grundschule_am_park_20250615_4b_fedcba"
        store.create(Tables.CLASSES, {"class_id": other_class, "event_id": EVENT_ID, "class_name": "4b"})
        store.create(Tables.SONGS, {"class_id": other_class, "event_id": EVENT_ID, "title": "Der Mond"})
        first = _confirm(service, storage)
        other_key = f"recordings/{EVENT_ID}/{other_class}/final.mp3"
        storage.objects.add(other_key)
        second = service.confirm_upload(
            EVENT_ID, UploadConfirmRequest(class_id=other_class, type="final", r2_key=other_key),
        )
        service.approve_tracks(EVENT_ID, [
            TrackApproval(audio_file_id=first.record_id, status="approved"),
            TrackApproval(audio_file_id=second.record_id, status="approved"),
        ])
        assert service.get_audio_status(EVENT_ID)["stage"] == "approved"

        summary = service.delete_audio_file(EVENT_ID, second.record_id)
        assert summary["stage"] == "staff_uploading"
        assert summary["uploadsComplete"] is False
        assert summary["targetsWithFinal"] == 1
        assert service.get_audio_status(EVENT_ID)["stage"] == "staff_uploading"


class TestParentStatus:
    """Tests for parent-facing audio status"""

    def test_class_status_before_release(self, service, storage, event):
        """Before the preview date the recording is gated."""
        final = _confirm(service, storage)
        service.approve_tracks(EVENT_ID, [TrackApproval(audio_file_id=final.record_id, status="approved")])
        status = service.class_audio_status(EVENT_ID, CLASS_ID)
        assert status == {"hasAudio": False, "notYetVisible": True, "visibleAfter": "2025-06-22"}

    def test_class_status_after_release(self, store, storage, resolver, activity, event):
        """After the preview date signed URLs are returned."""
        later = AudioService(
            store, storage, resolver, activity, clock=lambda: datetime(2025, 6, 23, 8, 0, tzinfo=timezone.utc)
        )
        final = _confirm(later, storage)
        later.approve_tracks(EVENT_ID, [TrackApproval(audio_file_id=final.record_id, status="approved")])
        status = later.class_audio_status(EVENT_ID, CLASS_ID)
        assert status["hasAudio"] is True
        assert "ttl=3600" in status["audioUrl"]
        assert "filename=Grundschule_Am_Park_" in status["downloadUrl"]
