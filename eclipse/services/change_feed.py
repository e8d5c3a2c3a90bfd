"""In-process change notifications for record-store tables.

Every write to the record store publishes a :class:`ChangeEvent`. Stores that
keep a live collection subscribe per table and react with a debounced full
refetch, the WebSocket layer forwards the same events to connected clients.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

ALL_TABLES = "*"

ChangeListener = Callable[["ChangeEvent"], Any]


@dataclass(frozen=True)
class ChangeEvent:
    """A single insert/update/delete notification."""

    table: str
    kind: str
    record_id: str | None = None

    def as_message(self) -> dict[str, Any]:
        return {"type": "record_changed", "table": self.table, "event": self.kind, "record_id": self.record_id}


class Subscription:
    """Handle returned by :meth:`ChangeFeed.subscribe`."""

    def __init__(self, feed: "ChangeFeed", table: str, listener: ChangeListener) -> None:
        self._feed = feed
        self.table = table
        self._listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._feed._remove(self.table, self._listener)


class ChangeFeed:
    """Tracks per-table listeners and fans change events out to them."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[ChangeListener]] = {}

    def subscribe(self, table: str, listener: ChangeListener) -> Subscription:
        """Register ``listener`` for ``table`` (or ``"*"`` for every table)."""

        self._listeners.setdefault(table, []).append(listener)
        logger.debug("Subscribed listener to %s changes", table)
        return Subscription(self, table, listener)

    def _remove(self, table: str, listener: ChangeListener) -> None:
        group = self._listeners.get(table)
        if not group:
            return
        try:
            group.remove(listener)
        except ValueError:
            return
        if not group:
            self._listeners.pop(table, None)

    def listener_count(self, table: str | None = None) -> int:
        if table is None:
            return sum(len(group) for group in self._listeners.values())
        return len(self._listeners.get(table, ()))

    async def publish(self, event: ChangeEvent) -> None:
        """Deliver ``event`` to table listeners and wildcard listeners."""

        targets = list(self._listeners.get(event.table, ())) + list(self._listeners.get(ALL_TABLES, ()))
        for listener in targets:
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Change listener failed for %s %s", event.table, event.kind)


class DebouncedRefetch:
    """Coalesce bursts of change events into a single trailing refetch.

    Each :meth:`trigger` pushes the deadline forward by ``delay`` seconds. A
    trigger that arrives while a refetch is running schedules one more pass
    once it completes.
    """

    def __init__(self, refetch: Callable[[], Awaitable[None]], delay: float) -> None:
        self._refetch = refetch
        self._delay = max(0.0, delay)
        self._deadline: float | None = None
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger(self, _event: ChangeEvent | None = None) -> None:
        if self._closed:
            return
        loop = asyncio.get_running_loop()
        self._deadline = loop.time() + self._delay
        if self._task is None or self._task.done():
            self._task = loop.create_task(self._run())

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while self._deadline is not None and not self._closed:
            remaining = self._deadline - loop.time()
            if remaining > 0:
                await asyncio.sleep(remaining)
                continue
            self._deadline = None
            try:
                await self._refetch()
            except Exception:
                logger.exception("Debounced refetch failed")

    async def wait(self) -> None:
        """Wait for a scheduled refetch to finish."""

        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    async def aclose(self) -> None:
        self._closed = True
        self._deadline = None
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


__all__ = ["ALL_TABLES", "ChangeEvent", "ChangeFeed", "ChangeListener", "DebouncedRefetch", "Subscription"]
