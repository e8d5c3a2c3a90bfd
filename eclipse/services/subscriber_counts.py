"""Per-device subscriber counts persisted to a JSON file.

These numbers are cosmetic. They are never reconciled with other devices or
with the backend, so treat them as a local tally and not as a real count.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class SubscriberCountCache:
    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._counts: dict[str, int] = self._load()

    def _load(self) -> dict[str, int]:
        if self._path is None:
            return {}
        try:
            with open(self._path, "r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError):
            logger.exception("Failed to read subscriber counts from %s", self._path)
            return {}
        if not isinstance(raw, dict):
            return {}
        counts: dict[str, int] = {}
        for name, value in raw.items():
            try:
                counts[str(name)] = max(0, int(value))
            except (TypeError, ValueError):
                continue
        return counts

    def _save(self) -> None:
        if self._path is None:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as fh:
                json.dump(self._counts, fh, indent=4, ensure_ascii=False)
        except OSError:
            logger.exception("Failed to persist subscriber counts to %s", self._path)

    def get(self, channel: str) -> int:
        return self._counts.get(channel, 0)

    def update(self, channel: str, delta: int) -> int:
        """Adjust ``channel`` by ``delta`` (never below zero) and persist."""

        value = max(0, self._counts.get(channel, 0) + delta)
        self._counts[channel] = value
        self._save()
        return value

    def snapshot(self) -> dict[str, int]:
        return dict(self._counts)


__all__ = ["SubscriberCountCache"]
