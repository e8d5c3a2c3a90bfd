"""Pure transformations of the collections a profile owns.

Each function returns a new collection and leaves its input untouched; the
profile store writes the result back as a single-field patch.
"""
from __future__ import annotations

import secrets
import string
from datetime import datetime, timezone

from ..constants import HISTORY_LIMIT, PLAYLIST_ID_LENGTH
from ..schemas import Playlist

_ID_ALPHABET = string.ascii_lowercase + string.digits


def toggle_subscription(subscriptions: list[str], channel: str) -> list[str]:
    if channel in subscriptions:
        return [name for name in subscriptions if name != channel]
    return [*subscriptions, channel]


def add_to_history(history: list[str], video_id: str, *, limit: int = HISTORY_LIMIT) -> list[str]:
    """Move ``video_id`` to the front, drop its older occurrences and cap the length."""

    filtered = [existing for existing in history if existing != video_id]
    return [video_id, *filtered][: max(1, limit)]


def generate_playlist_id() -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(PLAYLIST_ID_LENGTH))


def new_playlist(title: str, description: str, *, now: datetime | None = None) -> Playlist:
    return Playlist(
        id=generate_playlist_id(),
        title=title,
        description=description,
        video_ids=[],
        date_created=now or datetime.now(timezone.utc),
    )


def remove_playlist(playlists: list[Playlist], playlist_id: str) -> list[Playlist]:
    return [playlist.model_copy(deep=True) for playlist in playlists if playlist.id != playlist_id]


def add_video_to_playlist(playlists: list[Playlist], playlist_id: str, video_id: str) -> list[Playlist]:
    updated: list[Playlist] = []
    for playlist in playlists:
        if playlist.id == playlist_id and video_id not in playlist.video_ids:
            updated.append(playlist.model_copy(update={"video_ids": [*playlist.video_ids, video_id]}, deep=True))
        else:
            updated.append(playlist.model_copy(deep=True))
    return updated


def remove_video_from_playlist(playlists: list[Playlist], playlist_id: str, video_id: str) -> list[Playlist]:
    updated: list[Playlist] = []
    for playlist in playlists:
        if playlist.id == playlist_id:
            remaining = [existing for existing in playlist.video_ids if existing != video_id]
            updated.append(playlist.model_copy(update={"video_ids": remaining}, deep=True))
        else:
            updated.append(playlist.model_copy(deep=True))
    return updated


__all__ = [
    "add_to_history",
    "add_video_to_playlist",
    "generate_playlist_id",
    "new_playlist",
    "remove_playlist",
    "remove_video_from_playlist",
    "toggle_subscription",
]
