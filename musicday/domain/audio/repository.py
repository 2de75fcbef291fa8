"""Audio repository - Record store operations for audio files"""

from typing import Any, Optional

from ...models import AudioFile, Tables
from ...record_store import RecordStore


class AudioRepository:
    """Repository for audio file records"""

    @staticmethod
    def list_audio_files(store: RecordStore, event_id: str) -> list[AudioFile]:
        rows = store.select(Tables.AUDIO_FILES, filter_by={"event_id": event_id})
        return [AudioFile.from_record(r) for r in rows]

    @staticmethod
    def list_by_type(store: RecordStore, audio_type: str) -> list[AudioFile]:
        rows = store.select(Tables.AUDIO_FILES, filter_by={"type": audio_type})
        return [AudioFile.from_record(r) for r in rows]

    @staticmethod
    def get_audio_file(store: RecordStore, record_id: str) -> Optional[AudioFile]:
        record = store.find(Tables.AUDIO_FILES, record_id)
        return AudioFile.from_record(record) if record else None

    @staticmethod
    def find_by_key(store: RecordStore, event_id: str, audio_type: str, r2_key: str) -> Optional[AudioFile]:
        """Upsert key: the same type and storage key is the same artifact"""
        record = store.first(
            Tables.AUDIO_FILES,
            filter_by={"event_id": event_id, "type": audio_type, "r2_key": r2_key},
        )
        return AudioFile.from_record(record) if record else None

    @staticmethod
    def create_audio_file(store: RecordStore, fields: dict[str, Any]) -> AudioFile:
        return AudioFile.from_record(store.create(Tables.AUDIO_FILES, fields))

    @staticmethod
    def update_audio_file(store: RecordStore, audio_file: AudioFile, **updates: Any) -> AudioFile:
        return AudioFile.from_record(store.update(Tables.AUDIO_FILES, audio_file.record_id, updates))

    @staticmethod
    def delete_audio_file(store: RecordStore, audio_file: AudioFile) -> None:
        store.destroy(Tables.AUDIO_FILES, audio_file.record_id)
