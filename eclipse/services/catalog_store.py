"""Video catalog: the live video list plus per-video comment threads."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from ..config import get_settings
from ..constants import DEFAULT_DURATION
from ..schemas import Video, VideoDraft
from .blob_store import VIDEO_NAMESPACE, BlobStoreError, LocalBlobStore
from .change_feed import DebouncedRefetch, Subscription
from .comment_tree import FlatCommentThread
from .formatting import ensure_string_src, placeholder_image
from .record_store import RecordStore, RecordStoreError, Row
from .subscriber_counts import SubscriberCountCache

logger = logging.getLogger(__name__)


class CatalogError(RuntimeError):
    """Raised when a video cannot be added to the catalog."""


def video_from_row(row: Row) -> Video:
    author = row.get("author_name") or ""
    return Video(
        id=str(row["id"]),
        title=row.get("title") or "",
        description=row.get("description") or "",
        author=author,
        author_avatar=ensure_string_src(row.get("author_avatar"), placeholder_image(author, 200, 200)),
        thumbnail=row.get("thumbnail_url"),
        video_url=row.get("video_url"),
        likes=int(row.get("likes") or 0),
        views=int(row.get("views") or 0),
        upload_date=row.get("upload_date") or datetime.now(timezone.utc),
        duration=row.get("duration") or DEFAULT_DURATION,
    )


def channel_assets(name: str) -> dict[str, str]:
    """Deterministic placeholder avatar and banner for a channel."""

    return {
        "avatar": placeholder_image(name, 200, 200),
        "banner": placeholder_image(f"{name}banner", 1500, 250),
    }


class CatalogStore:
    """Keeps ``videos`` in sync with the backend and exposes video mutations.

    The list is replaced wholesale by :meth:`refresh`; after :meth:`start` any
    change to the ``videos`` table schedules a debounced refresh.
    """

    def __init__(
        self,
        records: RecordStore,
        *,
        subscriber_counts: SubscriberCountCache | None = None,
        blobs: LocalBlobStore | None = None,
        debounce_seconds: float | None = None,
    ) -> None:
        settings = get_settings()
        self._records = records
        self.subscriber_counts = subscriber_counts or SubscriberCountCache()
        self._blobs = blobs
        delay = debounce_seconds if debounce_seconds is not None else settings.refetch_debounce_seconds
        self._refetch = DebouncedRefetch(self.refresh, delay)
        self._subscription: Subscription | None = None
        self._closed = False
        self.videos: list[Video] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> None:
        await self.refresh()
        feed = self._records.change_feed
        if feed is not None and self._subscription is None:
            self._subscription = feed.subscribe("videos", self._refetch.trigger)
            logger.info("Catalog subscribed to video changes")

    async def close(self) -> None:
        self._closed = True
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        await self._refetch.aclose()

    async def wait_for_refresh(self) -> None:
        await self._refetch.wait()

    async def refresh(self) -> None:
        """Replace ``videos`` with a fresh read; keep the old list on failure."""

        try:
            rows = await self._records.select("videos", order_by="upload_date", descending=True)
        except RecordStoreError:
            logger.error("Error fetching videos")
            return
        if self._closed:
            return
        self.videos = [video_from_row(row) for row in rows]

    # ------------------------------------------------------------------
    # Videos
    # ------------------------------------------------------------------
    def thread(self, video_id: str) -> FlatCommentThread:
        return FlatCommentThread(self._records, video_id)

    async def get_video(self, video_id: str) -> Video | None:
        """Fetch one video and its comment tree; never served from the local list."""

        try:
            row = await self._records.select_one("videos", id=video_id)
        except RecordStoreError:
            logger.error("Error fetching video %s", video_id)
            return None
        if row is None:
            logger.info("No video found with id %s", video_id)
            return None
        video = video_from_row(row)
        video.comments = await self.thread(video_id).comments()
        return video

    async def add_video(self, draft: VideoDraft) -> str:
        values = {
            "title": draft.title,
            "description": draft.description,
            "thumbnail_url": draft.thumbnail,
            "video_url": draft.video_url,
            "author_name": draft.author,
            "author_avatar": draft.author_avatar,
            "duration": draft.duration,
        }
        try:
            row = await self._records.insert("videos", values)
        except RecordStoreError as exc:
            logger.error("Error adding video %r", draft.title)
            raise CatalogError(f"Unable to add video: {exc}") from exc
        logger.info("Video %s added by %s", row["id"], draft.author)
        return str(row["id"])

    async def delete_video(self, video_id: str) -> bool:
        try:
            deleted = await self._records.delete("videos", id=video_id)
        except RecordStoreError:
            logger.error("Error deleting video %s", video_id)
            return False
        self.videos = [video for video in self.videos if video.id != video_id]
        if self._blobs is not None:
            try:
                await self._blobs.delete(VIDEO_NAMESPACE, video_id)
            except BlobStoreError:
                logger.warning("Unable to discard local copy of video %s", video_id)
        return bool(deleted)

    async def increment_like(self, video_id: str) -> int | None:
        try:
            return await self._records.increment("videos", "likes", video_id)
        except RecordStoreError:
            logger.error("Error liking video %s", video_id)
            return None

    async def increment_view(self, video_id: str) -> int | None:
        try:
            return await self._records.increment("videos", "views", video_id)
        except RecordStoreError:
            logger.error("Error counting view for video %s", video_id)
            return None

    def videos_by_author(self, name: str) -> list[Video]:
        return [video for video in self.videos if video.author == name]

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------
    async def add_comment(self, video_id: str, author: str, author_avatar: str | None, content: str) -> None:
        await self.thread(video_id).add(author, author_avatar, content)

    async def add_reply(
        self, video_id: str, parent_id: str, author: str, author_avatar: str | None, content: str
    ) -> None:
        await self.thread(video_id).reply(parent_id, author, author_avatar, content)

    async def like_comment(self, video_id: str, comment_id: str) -> None:
        await self.thread(video_id).like(comment_id)

    async def pin_comment(self, video_id: str, comment_id: str) -> None:
        await self.thread(video_id).pin(comment_id)

    async def unpin_comment(self, video_id: str, comment_id: str) -> None:
        await self.thread(video_id).unpin(comment_id)

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------
    def get_subscriber_count(self, channel: str) -> int:
        return self.subscriber_counts.get(channel)

    def update_subscriber_count(self, channel: str, delta: int) -> int:
        return self.subscriber_counts.update(channel, delta)

    @staticmethod
    def channel_assets(name: str) -> dict[str, str]:
        return channel_assets(name)


__all__ = ["CatalogError", "CatalogStore", "channel_assets", "video_from_row"]
