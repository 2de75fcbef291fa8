"""Class domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel, field_validator


class ClassCreate(BaseModel):
    class_name: str
    teacher_name: Optional[str] = None
    num_children: Optional[int] = None

    @field_validator("class_name")
    @classmethod
    def name_required(cls, v):
        if not v or not v.strip():
            raise ValueError("Class name is required")
        return v.strip()


class ClassUpdate(BaseModel):
    class_name: Optional[str] = None
    teacher_name: Optional[str] = None
    num_children: Optional[int] = None


class GroupCreate(BaseModel):
    group_name: str
    member_class_ids: list[str]


class GroupUpdate(BaseModel):
    group_name: Optional[str] = None
    member_class_ids: Optional[list[str]] = None


class SongCreate(BaseModel):
    """class_id may name a class (cls_...) or a group (group_...)"""

    class_id: str
    title: str
    artist: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_required(cls, v):
        if not v or not v.strip():
            raise ValueError("Song title is required")
        return v.strip()


class SongUpdate(BaseModel):
    title: Optional[str] = None
    artist: Optional[str] = None
    notes: Optional[str] = None


class AlbumOrderUpdate(BaseModel):
    song_ids: list[str]
