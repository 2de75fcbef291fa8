"""Class repository - Record store operations for classes, groups and songs"""

import json
from typing import Any, Optional

from ...models import Group, SchoolClass, Song, Tables
from ...record_store import RecordStore


class ClassRepository:
    """Repository for the choir structure of an event"""

    # Classes

    @staticmethod
    def list_classes(store: RecordStore, event_id: str) -> list[SchoolClass]:
        rows = store.select(Tables.CLASSES, filter_by={"event_id": event_id})
        return [SchoolClass.from_record(r) for r in rows]

    @staticmethod
    def get_class(store: RecordStore, class_id: str) -> Optional[SchoolClass]:
        record = store.first(Tables.CLASSES, filter_by={"class_id": class_id})
        return SchoolClass.from_record(record) if record else None

    @staticmethod
    def create_class(store: RecordStore, **fields: Any) -> SchoolClass:
        return SchoolClass.from_record(store.create(Tables.CLASSES, fields))

    @staticmethod
    def update_class(store: RecordStore, school_class: SchoolClass, **updates: Any) -> SchoolClass:
        return SchoolClass.from_record(store.update(Tables.CLASSES, school_class.record_id, updates))

    @staticmethod
    def delete_class(store: RecordStore, school_class: SchoolClass) -> None:
        store.destroy(Tables.CLASSES, school_class.record_id)

    # Groups

    @staticmethod
    def list_groups(store: RecordStore, event_id: str) -> list[Group]:
        rows = store.select(Tables.GROUPS, filter_by={"event_id": event_id})
        return [Group.from_record(r) for r in rows]

    @staticmethod
    def get_group(store: RecordStore, group_id: str) -> Optional[Group]:
        record = store.first(Tables.GROUPS, filter_by={"group_id": group_id})
        return Group.from_record(record) if record else None

    @staticmethod
    def create_group(store: RecordStore, group_id: str, event_id: str, group_name: str,
                     member_class_ids: list[str]) -> Group:
        record = store.create(Tables.GROUPS, {
            "group_id": group_id,
            "event_id": event_id,
            "group_name": group_name,
            "member_class_ids": json.dumps(member_class_ids),
        })
        return Group.from_record(record)

    @staticmethod
    def update_group(store: RecordStore, group: Group, group_name: Optional[str] = None,
                     member_class_ids: Optional[list[str]] = None) -> Group:
        updates: dict[str, Any] = {}
        if group_name is not None:
            updates["group_name"] = group_name
        if member_class_ids is not None:
            updates["member_class_ids"] = json.dumps(member_class_ids)
        return Group.from_record(store.update(Tables.GROUPS, group.record_id, updates))

    @staticmethod
    def delete_group(store: RecordStore, group: Group) -> None:
        store.destroy(Tables.GROUPS, group.record_id)

    # Songs

    @staticmethod
    def list_songs(store: RecordStore, event_id: str) -> list[Song]:
        rows = store.select(Tables.SONGS, filter_by={"event_id": event_id})
        return [Song.from_record(r) for r in rows]

    @staticmethod
    def list_songs_for_target(store: RecordStore, target_id: str) -> list[Song]:
        rows = store.select(Tables.SONGS, filter_by={"class_id": target_id})
        return [Song.from_record(r) for r in rows]

    @staticmethod
    def get_song(store: RecordStore, record_id: str) -> Optional[Song]:
        record = store.find(Tables.SONGS, record_id)
        return Song.from_record(record) if record else None

    @staticmethod
    def create_song(store: RecordStore, **fields: Any) -> Song:
        return Song.from_record(store.create(Tables.SONGS, fields))

    @staticmethod
    def update_song(store: RecordStore, song: Song, **updates: Any) -> Song:
        return Song.from_record(store.update(Tables.SONGS, song.record_id, updates))

    @staticmethod
    def delete_song(store: RecordStore, song: Song) -> None:
        store.destroy(Tables.SONGS, song.record_id)

    @staticmethod
    def count_audio_files(store: RecordStore, target_id: str) -> int:
        return len(store.select(Tables.AUDIO_FILES, filter_by={"class_id": target_id}))
