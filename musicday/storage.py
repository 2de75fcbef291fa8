"""
Audio storage on Cloudflare R2.
Signed URL generation, existence checks and key layout for recordings.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import (
    AUDIO_UPLOAD_URL_TTL,
    R2_ACCESS_KEY_ID,
    R2_ACCOUNT_ID,
    R2_BUCKET_NAME,
    R2_SECRET_ACCESS_KEY,
)
from .errors import TransportError

logger = logging.getLogger(__name__)

ALLOWED_AUDIO_MIME_TYPES = [
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "audio/x-wav",
    "audio/wave",
    "application/zip",
    "application/x-zip-compressed",
]


def get_r2_client():
    """Get configured boto3 client for Cloudflare R2"""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
        region_name="auto",
    )


def sanitize_filename(filename: str, max_length: int = 50) -> str:
    """Keep alphanumerics, dots, dashes and underscores"""
    cleaned = re.sub(r"[^a-zA-Z0-9._-]", "_", filename)
    return cleaned[:max_length]


def _timestamp(now: Optional[datetime] = None) -> int:
    return int((now or datetime.now(timezone.utc)).timestamp() * 1000)


def raw_audio_key(event_id: str, target_id: str, filename: str, now: Optional[datetime] = None) -> str:
    """
    Format: recordings/{eventId}/{classId}/raw/{timestamp}_{filename}
    """
    return f"recordings/{event_id}/{target_id}/raw/{_timestamp(now)}_{sanitize_filename(filename)}"


def mixed_audio_key(event_id: str, target_id: str, audio_type: str, extension: str = "mp3") -> str:
    """
    Format: recordings/{eventId}/{classId}/{preview|final}.{ext}
    Previews are always mp3.
    """
    if audio_type == "preview":
        extension = "mp3"
    return f"recordings/{event_id}/{target_id}/{audio_type}.{extension}"


def song_final_key(
    event_id: str, target_id: str, song_id: str, extension: str = "mp3", now: Optional[datetime] = None
) -> str:
    """
    Format: recordings/{eventId}/{classId}/{songId}/final/final_{timestamp}.{ext}
    """
    return f"recordings/{event_id}/{target_id}/{song_id}/final/final_{_timestamp(now)}.{extension}"


def logic_project_key(event_id: str, target_id: str, audio_type: str, now: Optional[datetime] = None) -> str:
    return f"recordings/{event_id}/{target_id}/logic/{audio_type}_{_timestamp(now)}.zip"


def printable_key(event_id: str, template_id: str) -> str:
    return f"events/{event_id}/printables/{template_id}.pdf"


class R2Storage:
    """Object storage accessed only through signed URLs and existence checks"""

    def __init__(self, client=None, bucket: str = R2_BUCKET_NAME):
        self._client = client
        self.bucket = bucket

    @property
    def client(self):
        if self._client is None:
            self._client = get_r2_client()
        return self._client

    def generate_signed_upload_url(
        self, key: str, content_type: str, expires_in: int = AUDIO_UPLOAD_URL_TTL
    ) -> str:
        try:
            return self.client.generate_presigned_url(
                "put_object",
                Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"❌ Failed to sign upload URL for {key}: {e}")
            raise TransportError(f"Could not create upload URL: {e}") from e

    def generate_signed_download_url(self, key: str, ttl_seconds: int, filename: Optional[str] = None) -> str:
        params = {"Bucket": self.bucket, "Key": key}
        if filename:
            params["ResponseContentDisposition"] = f'attachment; filename="{filename}"'
        try:
            return self.client.generate_presigned_url("get_object", Params=params, ExpiresIn=ttl_seconds)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"❌ Failed to sign download URL for {key}: {e}")
            raise TransportError(f"Could not create download URL: {e}") from e

    def exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            logger.error(f"❌ R2 head_object failed for {key}: {e}")
            raise TransportError(f"Storage check failed: {e}") from e
        except BotoCoreError as e:
            logger.error(f"❌ R2 head_object failed for {key}: {e}")
            raise TransportError(f"Storage check failed: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
            logger.info(f"🗑️ Deleted {key} from R2")
        except (BotoCoreError, ClientError) as e:
            logger.error(f"❌ Failed to delete {key} from R2: {e}")
            raise TransportError(f"Storage delete failed: {e}") from e


_storage: Optional[R2Storage] = None


def get_storage() -> R2Storage:
    global _storage
    if _storage is None:
        _storage = R2Storage()
    return _storage
