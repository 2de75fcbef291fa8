"""
Audio production pipeline for an event.

The stage is never stored as truth. It is derived from the songs and audio
files of the event every time it is needed:

    no_raw_audio -> staff_uploading -> ready_for_review -> admin_reviewing
        -> approved -> teacher_reviewing (schulsong only) -> released

Everything in this module is pure; the service feeds it fresh rows after
every mutation and writes the summary fields back as a cache.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from ...config import LOCAL_TIMEZONE
from ...models import ApprovalStatus, AudioFile, AudioType, FileApproval, Song
from ...utils.thresholds import ThresholdKey, TimelineOverrides, get_threshold

LOCAL_TZ = ZoneInfo(LOCAL_TIMEZONE)
RELEASE_HOUR = 7


class PipelineStage(str, Enum):
    NO_RAW_AUDIO = "no_raw_audio"
    STAFF_UPLOADING = "staff_uploading"
    READY_FOR_REVIEW = "ready_for_review"
    ADMIN_REVIEWING = "admin_reviewing"
    APPROVED = "approved"
    TEACHER_REVIEWING = "teacher_reviewing"
    RELEASED = "released"


@dataclass
class TargetProgress:
    class_id: str
    song_count: int = 0
    raw_count: int = 0
    final_count: int = 0
    approved_count: int = 0

    @property
    def has_final(self) -> bool:
        return self.final_count > 0


@dataclass
class PipelineSummary:
    stage: PipelineStage
    uploads_complete: bool
    all_tracks_approved: bool
    admin_approval_status: ApprovalStatus
    expected_targets: int
    targets_with_final: int
    raw_count: int
    final_count: int
    approved_count: int
    rejected_count: int
    pending_count: int
    has_schulsong_final: bool
    schulsong_teacher_approved: bool
    release_date: Optional[date] = None
    targets: list[TargetProgress] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "stage": self.stage.value,
            "uploadsComplete": self.uploads_complete,
            "allTracksApproved": self.all_tracks_approved,
            "adminApprovalStatus": self.admin_approval_status.value,
            "expectedTargets": self.expected_targets,
            "targetsWithFinal": self.targets_with_final,
            "rawCount": self.raw_count,
            "finalCount": self.final_count,
            "approvedCount": self.approved_count,
            "rejectedCount": self.rejected_count,
            "pendingCount": self.pending_count,
            "hasSchulsongFinal": self.has_schulsong_final,
            "schulsongTeacherApproved": self.schulsong_teacher_approved,
            "releaseDate": self.release_date.isoformat() if self.release_date else None,
            "targets": [
                {
                    "classId": t.class_id,
                    "songCount": t.song_count,
                    "rawCount": t.raw_count,
                    "finalCount": t.final_count,
                    "approvedCount": t.approved_count,
                    "hasFinal": t.has_final,
                }
                for t in self.targets
            ],
        }


def final_files(audio_files: Iterable[AudioFile]) -> list[AudioFile]:
    return [f for f in audio_files if f.type == AudioType.FINAL]


def all_tracks_approved(audio_files: Iterable[AudioFile]) -> bool:
    """True only when at least one final exists and every final is approved"""
    finals = final_files(audio_files)
    return bool(finals) and all(f.approval_status == FileApproval.APPROVED for f in finals)


def uploads_complete(songs: Iterable[Song], audio_files: Iterable[AudioFile]) -> bool:
    """
    Every class or group that has a song has at least one final. An event
    without songs (schulsong only) needs a schulsong final instead.
    """
    finals = final_files(audio_files)
    targets = {s.class_id for s in songs}
    if not targets:
        return any(f.is_schulsong for f in finals)
    covered = {f.class_id for f in finals}
    return targets <= covered


def release_date(event_date: Optional[date], overrides: Optional[TimelineOverrides]) -> Optional[date]:
    if event_date is None:
        return None
    return event_date + timedelta(days=get_threshold(ThresholdKey.PREVIEW_AVAILABLE_DAYS, overrides))


def local_today(now: datetime) -> date:
    return now.astimezone(LOCAL_TZ).date()


def summarize(
    songs: list[Song],
    audio_files: list[AudioFile],
    event_date: Optional[date] = None,
    overrides: Optional[TimelineOverrides] = None,
    today: Optional[date] = None,
) -> PipelineSummary:
    finals = final_files(audio_files)
    raws = [f for f in audio_files if f.type == AudioType.RAW]
    approved = [f for f in finals if f.approval_status == FileApproval.APPROVED]
    rejected = [f for f in finals if f.approval_status == FileApproval.REJECTED]
    pending = [f for f in finals if f.approval_status == FileApproval.PENDING]
    schulsong_finals = [f for f in finals if f.is_schulsong]

    progress: dict[str, TargetProgress] = {}
    for song in songs:
        progress.setdefault(song.class_id, TargetProgress(song.class_id)).song_count += 1
    for f in audio_files:
        if f.class_id not in progress:
            continue
        if f.type == AudioType.RAW:
            progress[f.class_id].raw_count += 1
        elif f.type == AudioType.FINAL:
            progress[f.class_id].final_count += 1
            if f.approval_status == FileApproval.APPROVED:
                progress[f.class_id].approved_count += 1

    complete = uploads_complete(songs, audio_files)
    tracks_approved = all_tracks_approved(audio_files)
    schulsong_teacher_approved = bool(schulsong_finals) and all(f.teacher_approved_at for f in schulsong_finals)
    gate = release_date(event_date, overrides)
    hidden = bool(overrides and overrides.audio_hidden)

    if not raws and not finals:
        stage = PipelineStage.NO_RAW_AUDIO
    elif not complete:
        stage = PipelineStage.STAFF_UPLOADING
    elif len(pending) == len(finals):
        stage = PipelineStage.READY_FOR_REVIEW
    elif not tracks_approved:
        stage = PipelineStage.ADMIN_REVIEWING
    elif schulsong_finals and not schulsong_teacher_approved:
        stage = PipelineStage.TEACHER_REVIEWING
    elif gate is not None and today is not None and today >= gate and not hidden:
        stage = PipelineStage.RELEASED
    else:
        stage = PipelineStage.APPROVED

    if tracks_approved:
        approval_status = ApprovalStatus.APPROVED
    elif finals:
        approval_status = ApprovalStatus.READY_FOR_APPROVAL
    else:
        approval_status = ApprovalStatus.PENDING

    return PipelineSummary(
        stage=stage,
        uploads_complete=complete,
        all_tracks_approved=tracks_approved,
        admin_approval_status=approval_status,
        expected_targets=len(progress),
        targets_with_final=sum(1 for t in progress.values() if t.has_final),
        raw_count=len(raws),
        final_count=len(finals),
        approved_count=len(approved),
        rejected_count=len(rejected),
        pending_count=len(pending),
        has_schulsong_final=bool(schulsong_finals),
        schulsong_teacher_approved=schulsong_teacher_approved,
        release_date=gate,
        targets=sorted(progress.values(), key=lambda t: t.class_id),
    )


def compute_stage(
    songs: list[Song],
    audio_files: list[AudioFile],
    event_date: Optional[date] = None,
    overrides: Optional[TimelineOverrides] = None,
    today: Optional[date] = None,
) -> PipelineStage:
    return summarize(songs, audio_files, event_date, overrides, today).stage


# ============================================================================
# PARENT VISIBILITY
# ============================================================================


@dataclass
class AudioVisibility:
    """
    has_audio False with not_yet_visible None means there is nothing to show;
    not_yet_visible True means a file exists but is still gated.
    """

    has_audio: bool
    not_yet_visible: Optional[bool] = None
    visible_after: Optional[str] = None
    audio_file: Optional[AudioFile] = None

    def to_dict(self) -> dict:
        data: dict = {"hasAudio": self.has_audio}
        if self.not_yet_visible is not None:
            data["notYetVisible"] = self.not_yet_visible
            data["visibleAfter"] = self.visible_after
        return data


def _preferred(files: list[AudioFile]) -> Optional[AudioFile]:
    """mp3 first for playback; otherwise whatever exists"""
    if not files:
        return None
    for f in files:
        if (f.format or f.r2_key.rsplit(".", 1)[-1]).lower() == "mp3":
            return f
    return files[0]


def class_audio_visibility(
    class_id: str,
    audio_files: list[AudioFile],
    event_date: Optional[date],
    overrides: Optional[TimelineOverrides],
    today: date,
) -> AudioVisibility:
    """
    A class recording becomes visible once every final of the event is
    approved and the preview waiting period after the event has passed.
    """
    class_files = [f for f in audio_files if f.class_id == class_id and f.type in (AudioType.FINAL, AudioType.PREVIEW)]
    chosen = _preferred([f for f in class_files if f.type == AudioType.FINAL]) or _preferred(class_files)
    if chosen is None:
        return AudioVisibility(has_audio=False)

    gate = release_date(event_date, overrides)
    hidden = bool(overrides and overrides.audio_hidden)
    visible = (
        all_tracks_approved(audio_files)
        and gate is not None
        and today >= gate
        and not hidden
    )
    if not visible:
        return AudioVisibility(
            has_audio=False,
            not_yet_visible=True,
            visible_after=gate.isoformat() if gate and not hidden else None,
        )
    return AudioVisibility(has_audio=True, audio_file=chosen)


def schulsong_visibility(
    audio_files: list[AudioFile],
    event_date: Optional[date],
    overrides: Optional[TimelineOverrides],
    now: datetime,
    released_at: Optional[datetime] = None,
) -> AudioVisibility:
    """
    The schulsong is visible to parents only when the admin has approved all
    tracks, the teacher has approved the schulsong, and the waiting period
    after the event has passed. A scheduled release time must also be reached.
    """
    schulsong = _preferred([f for f in final_files(audio_files) if f.is_schulsong])
    if schulsong is None:
        return AudioVisibility(has_audio=False)

    gate = release_date(event_date, overrides)
    hidden = bool(overrides and overrides.audio_hidden)
    admin_approved = all_tracks_approved(audio_files)
    teacher_approved = schulsong.teacher_approved_at is not None
    waited = gate is not None and local_today(now) >= gate
    release_reached = released_at is None or now >= released_at

    if admin_approved and teacher_approved and waited and release_reached and not hidden:
        return AudioVisibility(has_audio=True, audio_file=schulsong)

    candidates = []
    if gate is not None:
        candidates.append(datetime.combine(gate, time(0, 0), tzinfo=LOCAL_TZ))
    if released_at is not None:
        candidates.append(released_at)
    visible_after = max(candidates).isoformat() if candidates and not hidden else None
    return AudioVisibility(has_audio=False, not_yet_visible=True, visible_after=visible_after)


def next_release_slot(now: datetime) -> datetime:
    """Next workday at 07:00 local time"""
    day = now.astimezone(LOCAL_TZ).date() + timedelta(days=1)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return datetime.combine(day, time(RELEASE_HOUR, 0), tzinfo=LOCAL_TZ)
