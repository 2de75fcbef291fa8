"""Class service - Classes, groups, songs and album order for an event"""

import logging
from typing import Optional

from ...errors import NotFoundError, ValidationError
from ...models import Event, Group, SchoolClass, Song
from ...record_store import RecordStore
from ...services.activity_service import ActivityService
from ...utils.identifiers import (
    ChoirTarget,
    ClassTarget,
    GroupTarget,
    generate_class_id,
    generate_group_id,
    parse_choir_target,
)
from ..events.resolver import EventResolver
from .repository import ClassRepository
from .schemas import ClassCreate, ClassUpdate, GroupCreate, GroupUpdate, SongCreate, SongUpdate

logger = logging.getLogger(__name__)

MIN_GROUP_MEMBERS = 2


class ClassService:
    """Service layer for the choir structure (classes, groups, songs)"""

    def __init__(self, store: RecordStore, resolver: EventResolver, activity: ActivityService):
        self.store = store
        self.resolver = resolver
        self.activity = activity
        self.repo = ClassRepository()

    def get_structure(self, identifier: str) -> dict:
        event = self.resolver.resolve_or_404(identifier)
        songs = sorted(
            self.repo.list_songs(self.store, event.event_id),
            key=lambda s: (s.album_order is None, s.album_order or 0, s.title.lower()),
        )
        return {
            "event_id": event.event_id,
            "classes": self.repo.list_classes(self.store, event.event_id),
            "groups": self.repo.list_groups(self.store, event.event_id),
            "songs": songs,
        }

    # ========================================================================
    # CLASSES
    # ========================================================================

    def _get_class(self, event: Event, class_id: str) -> SchoolClass:
        school_class = self.repo.get_class(self.store, class_id)
        if not school_class or school_class.event_id != event.event_id:
            raise NotFoundError("Class not found")
        return school_class

    def create_class(self, identifier: str, data: ClassCreate, actor_email: Optional[str] = None) -> SchoolClass:
        event = self.resolver.resolve_or_404(identifier)
        if event.event_date is None:
            raise ValidationError("Event has no date")

        class_id = generate_class_id(event.school_name, event.event_date, data.class_name)
        if self.repo.get_class(self.store, class_id):
            raise ValidationError(f"Class '{data.class_name}' already exists for this event")

        fields = {
            "class_id": class_id,
            "event_id": event.event_id,
            "class_name": data.class_name,
            "teacher_name": data.teacher_name,
            "num_children": data.num_children,
        }
        school_class = self.repo.create_class(self.store, **{k: v for k, v in fields.items() if v is not None})
        logger.info(f"✅ Class {class_id} created for {event.event_id}")
        self.activity.log(event.event_id, "class_added", f"Class '{data.class_name}' added",
                          actor_email=actor_email, metadata={"class_id": class_id})
        return school_class

    def update_class(self, identifier: str, class_id: str, data: ClassUpdate) -> SchoolClass:
        event = self.resolver.resolve_or_404(identifier)
        school_class = self._get_class(event, class_id)
        updates = data.model_dump(exclude_none=True)
        if not updates:
            return school_class
        return self.repo.update_class(self.store, school_class, **updates)

    def delete_class(self, identifier: str, class_id: str, actor_email: Optional[str] = None) -> None:
        event = self.resolver.resolve_or_404(identifier)
        school_class = self._get_class(event, class_id)

        if self.repo.count_audio_files(self.store, class_id):
            raise ValidationError("Cannot delete a class that already has audio files")
        for group in self.repo.list_groups(self.store, event.event_id):
            if class_id in group.member_class_ids:
                raise ValidationError(f"Class is a member of group '{group.group_name}'; remove it from the group first")

        for song in self.repo.list_songs_for_target(self.store, class_id):
            self.repo.delete_song(self.store, song)
        self.repo.delete_class(self.store, school_class)
        logger.info(f"🗑️ Class {class_id} deleted from {event.event_id}")
        self.activity.log(event.event_id, "class_deleted", f"Class '{school_class.class_name}' deleted",
                          actor_email=actor_email, metadata={"class_id": class_id})

    # ========================================================================
    # GROUPS
    # ========================================================================

    def _validate_members(self, event: Event, member_class_ids: list[str]) -> list[str]:
        members = list(dict.fromkeys(member_class_ids))
        if len(members) < MIN_GROUP_MEMBERS:
            raise ValidationError("At least 2 classes must be selected for a group")

        event_class_ids = {c.class_id for c in self.repo.list_classes(self.store, event.event_id)}
        unknown = [m for m in members if m not in event_class_ids]
        if unknown:
            raise ValidationError(f"Classes do not belong to this event: {', '.join(unknown)}")
        return members

    def _get_group(self, event: Event, group_id: str) -> Group:
        group = self.repo.get_group(self.store, group_id)
        if not group or group.event_id != event.event_id:
            raise NotFoundError("Group not found")
        return group

    def create_group(self, identifier: str, data: GroupCreate, actor_email: Optional[str] = None) -> Group:
        event = self.resolver.resolve_or_404(identifier)
        name = (data.group_name or "").strip()
        if not name:
            raise ValidationError("Group name is required")
        members = self._validate_members(event, data.member_class_ids)

        group = self.repo.create_group(self.store, generate_group_id(event.event_id), event.event_id, name, members)
        logger.info(f"✅ Group {group.group_id} created with {len(members)} classes")
        self.activity.log(event.event_id, "group_created", f"Group '{name}' created",
                          actor_email=actor_email,
                          metadata={"group_id": group.group_id, "member_class_ids": members})
        return group

    def update_group(self, identifier: str, group_id: str, data: GroupUpdate) -> Group:
        event = self.resolver.resolve_or_404(identifier)
        group = self._get_group(event, group_id)

        name = None
        if data.group_name is not None:
            name = data.group_name.strip()
            if not name:
                raise ValidationError("Group name is required")
        members = None
        if data.member_class_ids is not None:
            members = self._validate_members(event, data.member_class_ids)

        return self.repo.update_group(self.store, group, group_name=name, member_class_ids=members)

    def delete_group(self, identifier: str, group_id: str, actor_email: Optional[str] = None) -> None:
        event = self.resolver.resolve_or_404(identifier)
        group = self._get_group(event, group_id)
        if self.repo.count_audio_files(self.store, group_id):
            raise ValidationError("Cannot delete a group that already has audio files")

        for song in self.repo.list_songs_for_target(self.store, group_id):
            self.repo.delete_song(self.store, song)
        self.repo.delete_group(self.store, group)
        self.activity.log(event.event_id, "group_deleted", f"Group '{group.group_name}' deleted",
                          actor_email=actor_email, metadata={"group_id": group_id})

    # ========================================================================
    # SONGS
    # ========================================================================

    def require_target(self, event: Event, target: ChoirTarget) -> None:
        """The class or group must exist within the event"""
        if isinstance(target, GroupTarget):
            self._get_group(event, target.id)
        elif isinstance(target, ClassTarget):
            self._get_class(event, target.id)

    def _get_song(self, event: Event, song_record_id: str) -> Song:
        song = self.repo.get_song(self.store, song_record_id)
        if not song or song.event_id != event.event_id:
            raise NotFoundError("Song not found")
        return song

    def add_song(self, identifier: str, data: SongCreate, actor_email: Optional[str] = None) -> Song:
        event = self.resolver.resolve_or_404(identifier)
        target = parse_choir_target(data.class_id)
        self.require_target(event, target)

        existing = self.repo.list_songs(self.store, event.event_id)
        next_order = max((s.album_order or 0 for s in existing), default=0) + 1
        fields = {
            "class_id": target.id,
            "event_id": event.event_id,
            "title": data.title,
            "artist": data.artist,
            "notes": data.notes,
            "album_order": next_order,
        }
        song = self.repo.create_song(self.store, **{k: v for k, v in fields.items() if v is not None})
        self.activity.log(event.event_id, "song_added", f"Song '{data.title}' added to {target.kind} {target.id}",
                          actor_email=actor_email, metadata={"class_id": target.id})
        return song

    def update_song(self, identifier: str, song_record_id: str, data: SongUpdate) -> Song:
        event = self.resolver.resolve_or_404(identifier)
        song = self._get_song(event, song_record_id)
        updates = data.model_dump(exclude_none=True)
        if "title" in updates and not updates["title"].strip():
            raise ValidationError("Song title is required")
        if not updates:
            return song
        return self.repo.update_song(self.store, song, **updates)

    def delete_song(self, identifier: str, song_record_id: str, actor_email: Optional[str] = None) -> None:
        event = self.resolver.resolve_or_404(identifier)
        song = self._get_song(event, song_record_id)
        self.repo.delete_song(self.store, song)
        self.activity.log(event.event_id, "song_deleted", f"Song '{song.title}' deleted", actor_email=actor_email)

    def reorder_album(self, identifier: str, song_record_ids: list[str]) -> list[Song]:
        """Assign 1-based album positions in the given order; every song of the event must be listed once"""
        event = self.resolver.resolve_or_404(identifier)
        songs = {s.record_id: s for s in self.repo.list_songs(self.store, event.event_id)}

        if len(set(song_record_ids)) != len(song_record_ids):
            raise ValidationError("Album order contains duplicate songs")
        if set(song_record_ids) != set(songs):
            raise ValidationError("Album order must list every song of the event exactly once")

        reordered = []
        for position, record_id in enumerate(song_record_ids, start=1):
            song = songs[record_id]
            if song.album_order != position:
                song = self.repo.update_song(self.store, song, album_order=position)
            reordered.append(song)
        logger.info(f"✅ Album order updated for {event.event_id} ({len(reordered)} songs)")
        return reordered
