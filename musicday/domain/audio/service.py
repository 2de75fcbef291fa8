"""
Audio service - uploads, approvals and release of recordings

Uploads are two-phase: the client gets a signed PUT URL, uploads the
binary straight to R2, then confirms. Confirmation re-checks the object in
storage before any AudioFile row is written. After every mutation the
pipeline summary is recomputed and cached on the event.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, get_args

from ...config import AUDIO_DOWNLOAD_URL_TTL, AUDIO_PLAYBACK_URL_TTL
from ...errors import NotFoundError, PreconditionFailedError, ValidationError
from ...models import AudioFile, AudioType, Event, FileApproval
from ...record_store import RecordStore
from ...services.activity_service import ActivityService
from ...storage import (
    ALLOWED_AUDIO_MIME_TYPES,
    R2Storage,
    logic_project_key,
    mixed_audio_key,
    raw_audio_key,
    song_final_key,
)
from ...utils.identifiers import parse_choir_target
from ..classes.repository import ClassRepository
from ..events.repository import EventRepository
from ..events.resolver import EventResolver
from . import pipeline
from .repository import AudioRepository
from .schemas import ReleaseMode, TrackApproval, UploadConfirmRequest, UploadUrlRequest

logger = logging.getLogger(__name__)

# Schulsong recordings belong to the whole school, not to a class
SCHULSONG_TARGET = "schulsong"
RELEASE_MODES = get_args(ReleaseMode)

UPLOAD_NOT_FOUND_MESSAGE = "File not found in storage. Upload may have failed."

STAFF_UPLOAD_TYPES = (AudioType.RAW,)
ENGINEER_UPLOAD_TYPES = (
    AudioType.PREVIEW,
    AudioType.FINAL,
    AudioType.LOGIC_PROJECT_SCHULSONG,
    AudioType.LOGIC_PROJECT_MINIMUSIKER,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _extension(filename: Optional[str], content_type: Optional[str] = None) -> str:
    if filename and filename.lower().endswith(".wav"):
        return "wav"
    if content_type and "wav" in content_type:
        return "wav"
    return "mp3"


class AudioService:
    """Service layer for the audio production pipeline"""

    def __init__(
        self,
        store: RecordStore,
        storage: R2Storage,
        resolver: EventResolver,
        activity: ActivityService,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.storage = storage
        self.resolver = resolver
        self.activity = activity
        self.clock = clock
        self.repo = AudioRepository()
        self.class_repo = ClassRepository()
        self.event_repo = EventRepository()

    # ========================================================================
    # PIPELINE STATE
    # ========================================================================

    def _summary_for(self, event: Event, audio_files: Optional[list[AudioFile]] = None) -> pipeline.PipelineSummary:
        songs = self.class_repo.list_songs(self.store, event.event_id)
        if audio_files is None:
            audio_files = self.repo.list_audio_files(self.store, event.event_id)
        return pipeline.summarize(
            songs,
            audio_files,
            event.event_date,
            event.timeline_overrides,
            pipeline.local_today(self.clock()),
        )

    def recompute_event_audio_state(self, event: Event) -> pipeline.PipelineSummary:
        """
        Re-derive the pipeline from current rows and refresh the cached
        approval fields on the event. Safe to call any number of times.
        """
        summary = self._summary_for(event)
        if (
            event.admin_approval_status != summary.admin_approval_status
            or event.all_tracks_approved != summary.all_tracks_approved
        ):
            self.event_repo.update_event(
                self.store,
                event,
                admin_approval_status=summary.admin_approval_status.value,
                all_tracks_approved=summary.all_tracks_approved,
            )
            logger.info(
                f"📊 {event.event_id}: stage={summary.stage.value}, "
                f"approval={summary.admin_approval_status.value}, all_approved={summary.all_tracks_approved}"
            )
        return summary

    def get_audio_status(self, identifier: str) -> dict:
        event = self.resolver.resolve_or_404(identifier)
        audio_files = self.repo.list_audio_files(self.store, event.event_id)
        summary = self._summary_for(event, audio_files)
        return {
            "eventId": event.event_id,
            **summary.to_dict(),
            "files": [
                f.model_dump(exclude={"record_id"}) | {"id": f.record_id}
                for f in audio_files
            ],
        }

    # ========================================================================
    # UPLOADS
    # ========================================================================

    def _target_id(self, event: Event, class_id: Optional[str], is_schulsong: bool) -> str:
        if not class_id:
            if is_schulsong:
                return SCHULSONG_TARGET
            raise ValidationError("class_id is required")

        target = parse_choir_target(class_id)
        if target.kind == "group":
            found = self.class_repo.get_group(self.store, target.id)
        else:
            found = self.class_repo.get_class(self.store, target.id)
        if not found or found.event_id != event.event_id:
            raise NotFoundError(f"{target.kind.capitalize()} not found")
        return target.id

    def _build_key(self, event: Event, target_id: str, data: UploadUrlRequest) -> str:
        now = self.clock()
        if data.type == AudioType.RAW:
            return raw_audio_key(event.event_id, target_id, data.filename, now)
        if data.type in (AudioType.LOGIC_PROJECT_SCHULSONG, AudioType.LOGIC_PROJECT_MINIMUSIKER):
            return logic_project_key(event.event_id, target_id, data.type.value, now)
        extension = _extension(data.filename, data.content_type)
        if data.type == AudioType.FINAL and data.song_id:
            return song_final_key(event.event_id, target_id, data.song_id, extension, now)
        return mixed_audio_key(event.event_id, target_id, data.type.value, extension)

    def request_upload(self, identifier: str, data: UploadUrlRequest, allowed_types: tuple = ()) -> dict:
        """Phase 1: signed PUT URL for a direct upload to storage"""
        event = self.resolver.resolve_or_404(identifier)
        if allowed_types and data.type not in allowed_types:
            raise ValidationError(f"Upload type '{data.type.value}' is not allowed here")
        if data.content_type not in ALLOWED_AUDIO_MIME_TYPES:
            raise ValidationError(f"Unsupported content type: {data.content_type}")

        target_id = self._target_id(event, data.class_id, data.is_schulsong)
        r2_key = self._build_key(event, target_id, data)
        upload_url = self.storage.generate_signed_upload_url(r2_key, data.content_type)
        logger.info(f"📤 Upload URL issued for {r2_key}")
        return {"uploadUrl": upload_url, "r2Key": r2_key, "classId": target_id}

    def confirm_upload(
        self,
        identifier: str,
        data: UploadConfirmRequest,
        uploaded_by: Optional[str] = None,
        allowed_types: tuple = (),
    ) -> AudioFile:
        """Phase 2: verify the object exists, then create or replace the AudioFile row"""
        event = self.resolver.resolve_or_404(identifier)
        if allowed_types and data.type not in allowed_types:
            raise ValidationError(f"Upload type '{data.type.value}' is not allowed here")

        target_id = self._target_id(event, data.class_id, data.is_schulsong)
        expected_prefix = f"recordings/{event.event_id}/{target_id}/"
        if not data.r2_key.startswith(expected_prefix):
            raise ValidationError("Storage key does not belong to this event and class")

        if not self.storage.exists(data.r2_key):
            logger.warning(f"⚠️ Upload confirm for missing object {data.r2_key}")
            raise PreconditionFailedError(UPLOAD_NOT_FOUND_MESSAGE)

        fields = {
            "event_id": event.event_id,
            "class_id": target_id,
            "type": data.type.value,
            "r2_key": data.r2_key,
            "status": "ready",
            "filename": data.filename,
            "format": data.r2_key.rsplit(".", 1)[-1].lower() if "." in data.r2_key else None,
            "song_id": data.song_id,
            "is_schulsong": data.is_schulsong or None,
            "uploaded_by": uploaded_by,
            "file_size_bytes": data.file_size_bytes,
            "duration_seconds": data.duration_seconds,
        }
        fields = {k: v for k, v in fields.items() if v is not None}

        existing = self.repo.find_by_key(self.store, event.event_id, data.type.value, data.r2_key)
        if existing:
            if data.type == AudioType.FINAL:
                # A replaced final needs a fresh review
                fields.update(approval_status="pending", approval_comment=None, teacher_approved_at=None)
            audio_file = self.repo.update_audio_file(self.store, existing, **fields)
            logger.info(f"✅ Replaced {data.type.value} audio {audio_file.record_id} ({data.r2_key})")
        else:
            if data.type == AudioType.FINAL:
                fields["approval_status"] = "pending"
            audio_file = self.repo.create_audio_file(self.store, fields)
            logger.info(f"✅ Created {data.type.value} audio {audio_file.record_id} ({data.r2_key})")

        self.activity.log(
            event.event_id, "audio_uploaded", f"{data.type.value} uploaded for {target_id}",
            actor_email=uploaded_by, metadata={"r2_key": data.r2_key, "type": data.type.value},
        )
        self.recompute_event_audio_state(event)
        return audio_file

    def delete_audio_file(self, identifier: str, audio_file_id: str, actor_email: Optional[str] = None) -> dict:
        event = self.resolver.resolve_or_404(identifier)
        audio_file = self._get_file(event, audio_file_id)
        self.storage.delete(audio_file.r2_key)
        self.repo.delete_audio_file(self.store, audio_file)
        self.activity.log(
            event.event_id, "audio_deleted", f"{audio_file.type.value} deleted for {audio_file.class_id}",
            actor_email=actor_email, metadata={"r2_key": audio_file.r2_key},
        )
        return self.recompute_event_audio_state(event).to_dict()

    def _get_file(self, event: Event, audio_file_id: str) -> AudioFile:
        audio_file = self.repo.get_audio_file(self.store, audio_file_id)
        if not audio_file or audio_file.event_id != event.event_id:
            raise NotFoundError("Audio file not found")
        return audio_file

    # ========================================================================
    # APPROVALS
    # ========================================================================

    def approve_tracks(self, identifier: str, approvals: list[TrackApproval], actor_email: Optional[str] = None) -> dict:
        """Apply admin decisions per final; one bad entry does not block the others"""
        event = self.resolver.resolve_or_404(identifier)
        results = []
        for approval in approvals:
            audio_file = self.repo.get_audio_file(self.store, approval.audio_file_id)
            if not audio_file or audio_file.event_id != event.event_id:
                results.append({"audioFileId": approval.audio_file_id, "success": False, "error": "Audio file not found"})
                continue
            if audio_file.type != AudioType.FINAL:
                results.append({"audioFileId": approval.audio_file_id, "success": False,
                                "error": "Only final tracks can be approved"})
                continue

            updates = {"approval_status": approval.status.value, "approval_comment": approval.comment}
            if approval.status != FileApproval.APPROVED:
                updates["teacher_approved_at"] = None
            self.repo.update_audio_file(self.store, audio_file, **updates)
            results.append({"audioFileId": approval.audio_file_id, "success": True, "status": approval.status.value})

        summary = self.recompute_event_audio_state(event)
        self.activity.log(
            event.event_id, "tracks_reviewed",
            f"{sum(1 for r in results if r['success'])} track decisions saved",
            actor_email=actor_email, actor_type="admin",
        )
        return {
            "results": results,
            "allTracksApproved": summary.all_tracks_approved,
            "adminApprovalStatus": summary.admin_approval_status.value,
            "stage": summary.stage.value,
        }

    def _schulsong_files(self, event: Event) -> list[AudioFile]:
        files = [
            f for f in self.repo.list_audio_files(self.store, event.event_id)
            if f.type == AudioType.FINAL and f.is_schulsong
        ]
        if not files:
            raise NotFoundError("No schulsong file found for this event")
        return files

    def approve_schulsong(
        self, identifier: str, mode: ReleaseMode = "scheduled", actor_email: Optional[str] = None
    ) -> dict:
        """Admin approval; release is immediate or at the next workday 07:00"""
        if mode not in RELEASE_MODES:
            raise ValidationError(f"Release mode must be one of {', '.join(RELEASE_MODES)}")
        event = self.resolver.resolve_or_404(identifier)
        for audio_file in self._schulsong_files(event):
            self.repo.update_audio_file(self.store, audio_file, approval_status="approved", approval_comment=None)

        now = self.clock()
        released_at = now if mode == "instant" else pipeline.next_release_slot(now)
        self.event_repo.update_event(self.store, event, schulsong_released_at=released_at.isoformat())
        logger.info(f"✅ Schulsong approved for {event.event_id} ({mode}, release {released_at.isoformat()})")
        self.activity.log(
            event.event_id, "schulsong_approved", f"Schulsong approved ({mode})",
            actor_email=actor_email, actor_type="admin", metadata={"released_at": released_at.isoformat()},
        )
        summary = self.recompute_event_audio_state(event)
        return {"releasedAt": released_at.isoformat(), "mode": mode, "stage": summary.stage.value}

    def reject_schulsong(self, identifier: str, comment: Optional[str] = None, actor_email: Optional[str] = None) -> dict:
        event = self.resolver.resolve_or_404(identifier)
        for audio_file in self._schulsong_files(event):
            self.repo.update_audio_file(
                self.store, audio_file,
                approval_status="rejected", approval_comment=comment, teacher_approved_at=None,
            )
        self.event_repo.update_event(self.store, event, schulsong_released_at=None)
        logger.info(f"❌ Schulsong rejected for {event.event_id}")
        self.activity.log(
            event.event_id, "schulsong_rejected", "Schulsong rejected",
            actor_email=actor_email, actor_type="admin", metadata={"comment": comment},
        )
        return {"stage": self.recompute_event_audio_state(event).stage.value}

    def teacher_approve_schulsong(self, identifier: str, actor_email: Optional[str] = None) -> dict:
        event = self.resolver.resolve_or_404(identifier)
        files = self._schulsong_files(event)
        if not all(f.approval_status == FileApproval.APPROVED for f in files):
            raise PreconditionFailedError("The schulsong has not been approved by the Minimusiker team yet")

        approved_at = self.clock().isoformat()
        for audio_file in files:
            self.repo.update_audio_file(self.store, audio_file, teacher_approved_at=approved_at)
        self.activity.log(
            event.event_id, "schulsong_teacher_approved", "Schulsong approved by teacher",
            actor_email=actor_email, actor_type="teacher",
        )
        summary = self.recompute_event_audio_state(event)
        return {"teacherApprovedAt": approved_at, "stage": summary.stage.value}

    # ========================================================================
    # VISIBILITY
    # ========================================================================

    def _with_urls(self, visibility: pipeline.AudioVisibility, download_name: str) -> dict:
        data = visibility.to_dict()
        if visibility.has_audio and visibility.audio_file is not None:
            key = visibility.audio_file.r2_key
            extension = key.rsplit(".", 1)[-1] if "." in key else "mp3"
            data["audioUrl"] = self.storage.generate_signed_download_url(key, AUDIO_PLAYBACK_URL_TTL)
            data["downloadUrl"] = self.storage.generate_signed_download_url(
                key, AUDIO_DOWNLOAD_URL_TTL, filename=f"{download_name}.{extension}"
            )
        return data

    def class_audio_status(self, identifier: str, class_id: str) -> dict:
        event = self.resolver.resolve_or_404(identifier)
        audio_files = self.repo.list_audio_files(self.store, event.event_id)
        visibility = pipeline.class_audio_visibility(
            class_id, audio_files, event.event_date, event.timeline_overrides, pipeline.local_today(self.clock())
        )
        return self._with_urls(visibility, f"{event.school_name}_{class_id}".replace(" ", "_"))

    def schulsong_status(self, identifier: str) -> dict:
        event = self.resolver.resolve_or_404(identifier)
        audio_files = self.repo.list_audio_files(self.store, event.event_id)
        visibility = pipeline.schulsong_visibility(
            audio_files, event.event_date, event.timeline_overrides, self.clock(), event.schulsong_released_at
        )
        return self._with_urls(visibility, f"{event.school_name}_Schulsong".replace(" ", "_"))

    # ========================================================================
    # PORTAL LISTS
    # ========================================================================

    def list_mixing_events(self) -> list[dict]:
        """Events with raw audio whose finals are not all approved yet"""
        raw_files = self.repo.list_by_type(self.store, AudioType.RAW.value)
        event_ids = sorted({f.event_id for f in raw_files})
        events = []
        for event_id in event_ids:
            event = self.event_repo.get_by_event_id(self.store, event_id)
            if event is None or event.is_cancelled or event.all_tracks_approved:
                continue
            events.append({
                "eventId": event.event_id,
                "schoolName": event.school_name,
                "eventDate": event.event_date.isoformat() if event.event_date else None,
                "adminApprovalStatus": event.admin_approval_status.value,
            })
        return events

    def list_staff_events(self, staff_email: str) -> list[dict]:
        events = [
            e for e in self.event_repo.list_events(self.store)
            if staff_email.lower() in (s.lower() for s in e.assigned_staff) and not e.is_cancelled
        ]
        events.sort(key=lambda e: e.event_date.isoformat() if e.event_date else "")
        return [
            {
                "eventId": e.event_id,
                "schoolName": e.school_name,
                "eventDate": e.event_date.isoformat() if e.event_date else None,
            }
            for e in events
        ]
