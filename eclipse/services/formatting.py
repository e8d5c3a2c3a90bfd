"""Text and display helpers shared by the stores and routers."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

PLACEHOLDER_IMAGE_URL = "https://picsum.photos/seed/{seed}/{width}/{height}"

_LINK_PATTERN = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")


@dataclass(frozen=True)
class LinkPart:
    label: str
    url: str


def placeholder_image(seed: str, width: int, height: int) -> str:
    """Deterministic placeholder image for ``seed``."""

    return PLACEHOLDER_IMAGE_URL.format(seed=seed, width=width, height=height)


def parse_markdown_links(content: str) -> list[str | LinkPart]:
    """Split ``content`` into plain text and ``[label](url)`` links, in order."""

    parts: list[str | LinkPart] = []
    last_index = 0
    for match in _LINK_PATTERN.finditer(content or ""):
        if match.start() > last_index:
            parts.append(content[last_index:match.start()])
        parts.append(LinkPart(label=match.group(1), url=match.group(2)))
        last_index = match.end()
    if last_index < len(content or ""):
        parts.append(content[last_index:])
    return parts


def format_seconds(seconds: float) -> str:
    """Format a duration as ``m:ss`` or ``h:mm:ss``."""

    total = max(0, int(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_subscriber_count(count: int) -> str:
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M"
    if count >= 1_000:
        return f"{count / 1_000:.1f}K"
    return str(count)


def ensure_string_src(value: Any, fallback: str) -> str:
    if isinstance(value, str) and value:
        return value
    return fallback


def normalize_handle(handle: str) -> str:
    handle = (handle or "").strip()
    return handle if handle.startswith("@") else f"@{handle}"


__all__ = [
    "LinkPart",
    "PLACEHOLDER_IMAGE_URL",
    "ensure_string_src",
    "format_seconds",
    "format_subscriber_count",
    "normalize_handle",
    "parse_markdown_links",
    "placeholder_image",
]
