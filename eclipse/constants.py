"""Project-wide constant values."""
from __future__ import annotations

HISTORY_LIMIT = 50

PLAYLIST_ID_LENGTH = 9

DEFAULT_PROFILE_DESCRIPTION = "No description yet."
DEFAULT_CHANNEL_DESCRIPTION = "Welcome to my official channel!"
DEFAULT_DURATION = "0:00"

REPOST_TEMPLATE = "Reposted from @{author}: {content}"

UPLOAD_TIMEOUT_MESSAGE = "Upload timeout - file may be too large or connection is slow"

__all__ = [
    "DEFAULT_CHANNEL_DESCRIPTION",
    "DEFAULT_DURATION",
    "DEFAULT_PROFILE_DESCRIPTION",
    "HISTORY_LIMIT",
    "PLAYLIST_ID_LENGTH",
    "REPOST_TEMPLATE",
    "UPLOAD_TIMEOUT_MESSAGE",
]
