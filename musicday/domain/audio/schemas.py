"""Audio domain schemas - Pydantic models for validation"""

from typing import Literal, Optional

from pydantic import BaseModel

from ...models import AudioType, FileApproval

ReleaseMode = Literal["scheduled", "instant"]


class UploadUrlRequest(BaseModel):
    class_id: Optional[str] = None
    type: AudioType
    filename: str
    content_type: str
    song_id: Optional[str] = None
    is_schulsong: bool = False


class UploadConfirmRequest(BaseModel):
    class_id: Optional[str] = None
    type: AudioType
    r2_key: str
    filename: Optional[str] = None
    song_id: Optional[str] = None
    is_schulsong: bool = False
    file_size_bytes: Optional[int] = None
    duration_seconds: Optional[float] = None


class TrackApproval(BaseModel):
    audio_file_id: str
    status: FileApproval
    comment: Optional[str] = None


class ApproveTracksRequest(BaseModel):
    approvals: list[TrackApproval]


class ApproveSchulsongRequest(BaseModel):
    mode: ReleaseMode = "scheduled"


class RejectSchulsongRequest(BaseModel):
    comment: Optional[str] = None
