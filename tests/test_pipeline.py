"""Tests for the derived audio pipeline stage and parent visibility."""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from musicday.domain.audio import pipeline
from musicday.domain.audio.pipeline import PipelineStage
from musicday.models import ApprovalStatus, AudioFile, Song
from musicday.utils.thresholds import TimelineOverrides

BERLIN = ZoneInfo("Europe/Berlin")
EVENT_DATE = date(2025, 6, 15)
AFTER_RELEASE = date(2025, 6, 22)
BEFORE_RELEASE = date(2025, 6, 21)


def song(class_id, title="Lied"):
    return Song(record_id=f"rec_{class_id}_{title}", class_id=class_id, event_id="evt_1", title=title)


def audio(class_id, type_="final", approval="pending", key=None, **extra):
    return AudioFile(
        record_id=f"rec_{class_id}_{type_}_{key or 'x'}",
        event_id="evt_1",
        class_id=class_id,
        type=type_,
        r2_key=key or f"recordings/evt_1/{class_id}/{type_}.mp3",
        approval_status=approval,
        **extra,
    )


class TestUploadsComplete:
    """Tests for upload completeness"""

    def test_every_target_with_songs_needs_a_final(self):
        """One missing final keeps uploads incomplete."""
        songs = [song("cls_a"), song("group_b")]
        assert not pipeline.uploads_complete(songs, [audio("cls_a")])
        assert pipeline.uploads_complete(songs, [audio("cls_a"), audio("group_b")])

    def test_schulsong_only_event(self):
        """Without songs a schulsong final completes the uploads."""
        assert not pipeline.uploads_complete([], [])
        assert pipeline.uploads_complete([], [audio("schulsong", is_schulsong=True)])

    def test_all_tracks_approved_needs_a_final(self):
        """No finals is never 'all approved'."""
        assert not pipeline.all_tracks_approved([audio("cls_a", "raw")])


class TestComputeStage:
    """Tests for compute_stage"""

    def test_no_audio(self):
        assert pipeline.compute_stage([song("cls_a")], []) == PipelineStage.NO_RAW_AUDIO

    def test_staff_uploading(self):
        """Raw audio without complete finals."""
        stage = pipeline.compute_stage([song("cls_a")], [audio("cls_a", "raw")])
        assert stage == PipelineStage.STAFF_UPLOADING

    def test_ready_for_review(self):
        """All finals uploaded, none reviewed."""
        stage = pipeline.compute_stage([song("cls_a")], [audio("cls_a", "raw"), audio("cls_a")])
        assert stage == PipelineStage.READY_FOR_REVIEW

    def test_admin_reviewing(self):
        """Some finals decided, not all approved."""
        songs = [song("cls_a"), song("cls_b")]
        files = [audio("cls_a", approval="approved"), audio("cls_b")]
        assert pipeline.compute_stage(songs, files) == PipelineStage.ADMIN_REVIEWING

    def test_rejected_final_stays_in_review(self):
        """A rejected final blocks approval."""
        files = [audio("cls_a", approval="rejected")]
        assert pipeline.compute_stage([song("cls_a")], files) == PipelineStage.ADMIN_REVIEWING

    def test_approved_before_release_date(self):
        """Approved tracks wait for the preview period."""
        files = [audio("cls_a", approval="approved")]
        stage = pipeline.compute_stage([song("cls_a")], files, EVENT_DATE, None, BEFORE_RELEASE)
        assert stage == PipelineStage.APPROVED

    def test_released_after_release_date(self):
        """Approved tracks are released once the waiting period has passed."""
        files = [audio("cls_a", approval="approved")]
        stage = pipeline.compute_stage([song("cls_a")], files, EVENT_DATE, None, AFTER_RELEASE)
        assert stage == PipelineStage.RELEASED

    def test_hidden_audio_is_never_released(self):
        """The audio_hidden override holds the release."""
        files = [audio("cls_a", approval="approved")]
        overrides = TimelineOverrides(audio_hidden=True)
        stage = pipeline.compute_stage([song("cls_a")], files, EVENT_DATE, overrides, AFTER_RELEASE)
        assert stage == PipelineStage.APPROVED

    def test_schulsong_waits_for_teacher(self):
        """An approved schulsong still needs the teacher's approval."""
        files = [audio("schulsong", approval="approved", is_schulsong=True)]
        stage = pipeline.compute_stage([], files, EVENT_DATE, None, AFTER_RELEASE)
        assert stage == PipelineStage.TEACHER_REVIEWING

    def test_summary_counts(self):
        """The summary reports per-target progress and approval status."""
        songs = [song("cls_a"), song("cls_a", "Zweites Lied"), song("cls_b")]
        files = [audio("cls_a", "raw"), audio("cls_a", approval="approved")]
        summary = pipeline.summarize(songs, files)
        assert summary.expected_targets == 2
        assert summary.targets_with_final == 1
        assert summary.admin_approval_status == ApprovalStatus.APPROVED
        data = summary.to_dict()
        assert data["targets"][0] == {
            "classId": "cls_a", "songCount": 2, "rawCount": 1, "finalCount": 1, "approvedCount": 1, "hasFinal": True,
        }


class TestClassVisibility:
    """Tests for class recording visibility"""

    def test_no_audio(self):
        """Nothing uploaded means nothing to show."""
        visibility = pipeline.class_audio_visibility("cls_a", [], EVENT_DATE, None, AFTER_RELEASE)
        assert visibility.to_dict() == {"hasAudio": False}

    def test_gated_before_release(self):
        """An approved final is hidden until the release date."""
        files = [audio("cls_a", approval="approved")]
        visibility = pipeline.class_audio_visibility("cls_a", files, EVENT_DATE, None, BEFORE_RELEASE)
        assert visibility.to_dict() == {"hasAudio": False, "notYetVisible": True, "visibleAfter": "2025-06-22"}

    def test_gated_until_all_tracks_approved(self):
        """Another class's pending final keeps everything hidden."""
        files = [audio("cls_a", approval="approved"), audio("cls_b")]
        visibility = pipeline.class_audio_visibility("cls_a", files, EVENT_DATE, None, AFTER_RELEASE)
        assert not visibility.has_audio
        assert visibility.not_yet_visible

    def test_visible_prefers_mp3(self):
        """mp3 finals are chosen for playback."""
        files = [
            audio("cls_a", approval="approved", key="recordings/evt_1/cls_a/final.wav"),
            audio("cls_a", approval="approved", key="recordings/evt_1/cls_a/final.mp3"),
        ]
        visibility = pipeline.class_audio_visibility("cls_a", files, EVENT_DATE, None, AFTER_RELEASE)
        assert visibility.has_audio
        assert visibility.audio_file.r2_key.endswith(".mp3")

    def test_hidden_has_no_visible_after(self):
        """Hidden audio gives no release date."""
        files = [audio("cls_a", approval="approved")]
        overrides = TimelineOverrides(audio_hidden=True)
        visibility = pipeline.class_audio_visibility("cls_a", files, EVENT_DATE, overrides, AFTER_RELEASE)
        assert visibility.to_dict() == {"hasAudio": False, "notYetVisible": True, "visibleAfter": None}


class TestSchulsongVisibility:
    """Tests for schulsong visibility"""

    NOW = datetime(2025, 6, 23, 8, 0, tzinfo=timezone.utc)

    def _schulsong(self, teacher_approved=True):
        extra = {"teacher_approved_at": datetime(2025, 6, 20, tzinfo=timezone.utc)} if teacher_approved else {}
        return audio("schulsong", approval="approved", is_schulsong=True, **extra)

    def test_visible_when_every_gate_passes(self):
        visibility = pipeline.schulsong_visibility([self._schulsong()], EVENT_DATE, None, self.NOW)
        assert visibility.has_audio

    def test_requires_teacher_approval(self):
        """Admin approval alone does not release the schulsong."""
        visibility = pipeline.schulsong_visibility([self._schulsong(False)], EVENT_DATE, None, self.NOW)
        assert not visibility.has_audio
        assert visibility.not_yet_visible

    def test_waiting_period_after_event(self):
        """Both approvals are not enough before the waiting period has passed."""
        early = datetime(2025, 6, 21, 8, 0, tzinfo=timezone.utc)
        visibility = pipeline.schulsong_visibility([self._schulsong()], EVENT_DATE, None, early)
        assert not visibility.has_audio
        assert visibility.not_yet_visible
        assert visibility.visible_after == datetime(2025, 6, 22, 0, 0, tzinfo=BERLIN).isoformat()

    def test_scheduled_release_time(self):
        """A future release time is reported as visibleAfter."""
        released_at = datetime(2025, 6, 24, 5, 0, tzinfo=timezone.utc)
        visibility = pipeline.schulsong_visibility([self._schulsong()], EVENT_DATE, None, self.NOW, released_at)
        assert not visibility.has_audio
        assert visibility.visible_after == released_at.isoformat()

    def test_no_schulsong(self):
        visibility = pipeline.schulsong_visibility([audio("cls_a", approval="approved")], EVENT_DATE, None, self.NOW)
        assert visibility.to_dict() == {"hasAudio": False}


class TestNextReleaseSlot:
    """Tests for the scheduled release slot"""

    def test_next_workday_morning(self):
        """Monday releases on Tuesday at 07:00 local time."""
        slot = pipeline.next_release_slot(datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc))
        assert slot == datetime(2025, 6, 3, 7, 0, tzinfo=BERLIN)

    def test_friday_skips_weekend(self):
        """Friday releases on Monday."""
        slot = pipeline.next_release_slot(datetime(2025, 6, 6, 12, 0, tzinfo=timezone.utc))
        assert slot.astimezone(BERLIN).date() == date(2025, 6, 9)
        assert slot.astimezone(BERLIN).hour == 7
