"""Schemas for profiles, playlists and profile patches."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from ..constants import HISTORY_LIMIT


class Playlist(BaseModel):
    id: str
    title: str
    description: str = ""
    video_ids: list[str] = Field(default_factory=list)
    date_created: datetime


class Profile(BaseModel):
    """The signed-in user's identity plus the collections it owns."""

    id: str
    name: str
    handle: str
    email: str = ""
    avatar: str
    banner: str
    description: str
    subscriptions: list[str] = Field(default_factory=list)
    history: list[str] = Field(default_factory=list)
    playlists: list[Playlist] = Field(default_factory=list)


class ProfilePatch(BaseModel):
    """Partial profile update; ``None`` means the field was not provided."""

    name: str | None = None
    handle: str | None = None
    avatar: str | None = None
    banner: str | None = None
    description: str | None = None
    subscriptions: list[str] | None = None
    history: list[str] | None = None
    playlists: list[Playlist] | None = None

    @field_validator("history")
    def clean_history(cls, v):
        if v is None:
            return None
        return list(dict.fromkeys(v))[:HISTORY_LIMIT]

    def to_row(self) -> dict[str, object]:
        """Return the provided fields using the ``profiles`` column names."""

        row: dict[str, object] = {}
        if self.name is not None:
            row["name"] = self.name
        if self.handle is not None:
            row["handle"] = self.handle
        if self.avatar is not None:
            row["avatar_url"] = self.avatar
        if self.banner is not None:
            row["banner_url"] = self.banner
        if self.description is not None:
            row["description"] = self.description
        if self.subscriptions is not None:
            row["subscriptions"] = list(self.subscriptions)
        if self.history is not None:
            row["history"] = list(self.history)
        if self.playlists is not None:
            row["playlists"] = [playlist.model_dump(mode="json") for playlist in self.playlists]
        return row

    def apply_to(self, profile: Profile) -> Profile:
        """Merge the provided fields into ``profile`` and return the result."""

        merged = profile.model_copy(deep=True)
        if self.name is not None:
            merged.name = self.name
        if self.handle is not None:
            merged.handle = self.handle
        if self.avatar is not None:
            merged.avatar = self.avatar
        if self.banner is not None:
            merged.banner = self.banner
        if self.description is not None:
            merged.description = self.description
        if self.subscriptions is not None:
            merged.subscriptions = list(self.subscriptions)
        if self.history is not None:
            merged.history = list(self.history)
        if self.playlists is not None:
            merged.playlists = [playlist.model_copy(deep=True) for playlist in self.playlists]
        return merged

    def is_empty(self) -> bool:
        return not self.to_row()


class ProfileDetailsUpdate(BaseModel):
    """Editable identity fields; the collections have routes of their own."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    handle: str | None = Field(default=None, min_length=1, max_length=100)
    avatar: str | None = None
    banner: str | None = None
    description: str | None = Field(default=None, max_length=5000)

    def to_patch(self) -> ProfilePatch:
        return ProfilePatch(**self.model_dump(exclude_none=True))


class PlaylistCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=150)
    description: str = Field(default="", max_length=5000)


__all__ = ["Playlist", "Profile", "ProfileDetailsUpdate", "ProfilePatch", "PlaylistCreate"]
