"""Community feed: the live post list and nested post comments."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from ..config import get_settings
from ..constants import REPOST_TEMPLATE
from ..schemas import ActingUser, ContentPart, Post, PostComment, PostDraft
from .blob_store import POST_NAMESPACE, BlobStoreError, LocalBlobStore
from .change_feed import DebouncedRefetch, Subscription
from .comment_tree import NestedCommentThread, post_comments_from_json, post_comments_to_json, sort_for_display
from .formatting import ensure_string_src, parse_markdown_links, placeholder_image
from .record_store import RecordStore, RecordStoreError, Row
from .spaces_service import (
    POST_IMAGES_BUCKET,
    MediaFile,
    ObjectStorage,
    StorageConfigurationError,
    StorageDeletionError,
    StorageUploadError,
    build_object_key,
    object_key_from_url,
)

logger = logging.getLogger(__name__)


def content_parts(content: str) -> list[ContentPart]:
    """Split post text into plain segments and ``[label](url)`` links."""

    parts: list[ContentPart] = []
    for part in parse_markdown_links(content):
        if isinstance(part, str):
            parts.append(ContentPart(text=part))
        else:
            parts.append(ContentPart(text=part.label, url=part.url))
    return parts


def post_from_row(row: Row) -> Post:
    author = row.get("author_name") or ""
    image_url = row.get("image_url")
    content = row.get("content") or ""
    return Post(
        id=str(row["id"]),
        author=author,
        author_avatar=ensure_string_src(row.get("author_avatar"), placeholder_image(author, 100, 100)),
        content=content,
        content_parts=content_parts(content),
        has_image=bool(image_url),
        image_url=image_url,
        date=row.get("created_at") or datetime.now(timezone.utc),
        likes=int(row.get("likes") or 0),
        reposts=int(row.get("reposts") or 0),
        comments=post_comments_from_json(row.get("comments")),
    )


def post_for_display(post: Post) -> Post:
    """Copy of ``post`` with its pinned comment listed first."""

    return post.model_copy(update={"comments": sort_for_display(post.comments)})


class FeedStore:
    """Keeps ``posts`` in sync with the backend and exposes post mutations.

    Post comments are edited in memory and the whole thread is written back
    with each change, so concurrent editors overwrite each other.
    """

    def __init__(
        self,
        records: RecordStore,
        *,
        storage: ObjectStorage | None = None,
        blobs: LocalBlobStore | None = None,
        debounce_seconds: float | None = None,
    ) -> None:
        settings = get_settings()
        self._records = records
        self._storage = storage
        self._blobs = blobs
        delay = debounce_seconds if debounce_seconds is not None else settings.refetch_debounce_seconds
        self._refetch = DebouncedRefetch(self.refresh, delay)
        self._subscription: Subscription | None = None
        self._closed = False
        self.posts: list[Post] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> None:
        await self.refresh()
        feed = self._records.change_feed
        if feed is not None and self._subscription is None:
            self._subscription = feed.subscribe("community_posts", self._refetch.trigger)
            logger.info("Feed subscribed to community post changes")

    async def close(self) -> None:
        self._closed = True
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        await self._refetch.aclose()

    async def wait_for_refresh(self) -> None:
        await self._refetch.wait()

    async def refresh(self) -> None:
        try:
            rows = await self._records.select("community_posts", order_by="created_at", descending=True)
        except RecordStoreError:
            logger.error("Error fetching posts")
            return
        if self._closed:
            return
        self.posts = [post_from_row(row) for row in rows]

    def get_post(self, post_id: str) -> Post | None:
        for post in self.posts:
            if post.id == post_id:
                return post
        return None

    def posts_by_author(self, name: str) -> list[Post]:
        return [post for post in self.posts if post.author == name]

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------
    async def _upload_image(self, image: MediaFile) -> str | None:
        if self._storage is None:
            logger.warning("No object storage configured; posting without image")
            return None
        key = build_object_key(image.filename)
        try:
            await self._storage.upload(POST_IMAGES_BUCKET, key, image.content, image.content_type)
            return self._storage.public_url(POST_IMAGES_BUCKET, key)
        except (StorageConfigurationError, StorageUploadError):
            logger.warning("Post image upload failed; posting without image")
            return None

    async def add_post(self, draft: PostDraft, image: MediaFile | None = None) -> str | None:
        """Create a post, uploading ``image`` first; an upload failure drops the image."""

        image_url = await self._upload_image(image) if image is not None else None
        values = {
            "author_name": draft.author,
            "author_avatar": draft.author_avatar,
            "content": draft.content,
            "image_url": image_url,
            "comments": [],
        }
        try:
            row = await self._records.insert("community_posts", values)
        except RecordStoreError:
            logger.error("Error adding post for %s", draft.author)
            return None
        post = post_from_row(row)
        if not self._closed and self.get_post(post.id) is None:
            self.posts.insert(0, post)
        if image is not None and self._blobs is not None:
            try:
                await self._blobs.put(POST_NAMESPACE, post.id, image.content)
            except BlobStoreError:
                logger.warning("Unable to keep a local copy of the image for post %s", post.id)
        return post.id

    async def _remove_image(self, post: Post) -> None:
        key = object_key_from_url(POST_IMAGES_BUCKET, post.image_url)
        if self._storage is None or key is None:
            return
        try:
            await self._storage.remove(POST_IMAGES_BUCKET, key)
        except (StorageConfigurationError, StorageDeletionError):
            logger.warning("Unable to remove stored image for post %s", post.id)

    async def read_post_image(self, post_id: str) -> bytes | None:
        """Local copy of the image attached when ``post_id`` was created."""

        if self._blobs is None:
            return None
        try:
            return await self._blobs.get(POST_NAMESPACE, post_id)
        except BlobStoreError:
            logger.warning("Unable to read local image for post %s", post_id)
            return None

    async def delete_post(self, post_id: str) -> bool:
        existing = await self._find_post(post_id)
        try:
            deleted = await self._records.delete("community_posts", id=post_id)
        except RecordStoreError:
            logger.error("Error deleting post %s", post_id)
            return False
        self.posts = [post for post in self.posts if post.id != post_id]
        if deleted and existing is not None:
            await self._remove_image(existing)
        if self._blobs is not None:
            try:
                await self._blobs.delete(POST_NAMESPACE, post_id)
            except BlobStoreError:
                logger.warning("Unable to discard local image for post %s", post_id)
        return bool(deleted)

    async def toggle_post_like(self, post_id: str) -> int | None:
        try:
            return await self._records.increment("community_posts", "likes", post_id)
        except RecordStoreError:
            logger.error("Error liking post %s", post_id)
            return None

    async def _find_post(self, post_id: str) -> Post | None:
        post = self.get_post(post_id)
        if post is not None:
            return post
        try:
            row = await self._records.select_one("community_posts", id=post_id)
        except RecordStoreError:
            logger.error("Error fetching post %s", post_id)
            return None
        return post_from_row(row) if row is not None else None

    async def repost_post(self, post_id: str, acting_user: ActingUser) -> str | None:
        """Quote ``post_id`` as a new post by ``acting_user`` and bump its repost count.

        The new post and the counter are two independent writes.
        """

        original = await self._find_post(post_id)
        if original is None:
            return None
        new_id = await self.add_post(
            PostDraft(
                author=acting_user.name,
                author_avatar=acting_user.avatar,
                content=REPOST_TEMPLATE.format(author=original.author, content=original.content),
            )
        )
        try:
            await self._records.increment("community_posts", "reposts", post_id)
        except RecordStoreError:
            logger.error("Error counting repost of %s", post_id)
        return new_id

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------
    def thread(self, post_id: str) -> NestedCommentThread | None:
        post = self.get_post(post_id)
        if post is None:
            return None

        async def persist(comments: list[PostComment]) -> bool:
            try:
                await self._records.update(
                    "community_posts", {"comments": post_comments_to_json(comments)}, id=post_id
                )
            except RecordStoreError:
                logger.error("Error saving comments for post %s", post_id)
                return False
            return True

        return NestedCommentThread(post.comments, persist)

    async def add_post_comment(self, post_id: str, author: str, author_avatar: str | None, content: str) -> None:
        thread = self.thread(post_id)
        if thread is None:
            logger.warning("Post %s not found", post_id)
            return
        await thread.add(author, author_avatar, content)

    async def add_post_comment_reply(
        self, post_id: str, parent_id: str, author: str, author_avatar: str | None, content: str
    ) -> None:
        thread = self.thread(post_id)
        if thread is None:
            logger.warning("Post %s not found", post_id)
            return
        await thread.reply(parent_id, author, author_avatar, content)

    async def like_post_comment(self, post_id: str, comment_id: str) -> None:
        thread = self.thread(post_id)
        if thread is None:
            logger.warning("Post %s not found", post_id)
            return
        await thread.like(comment_id)

    async def pin_post_comment(self, post_id: str, comment_id: str) -> None:
        thread = self.thread(post_id)
        if thread is None:
            logger.warning("Post %s not found", post_id)
            return
        await thread.pin(comment_id)


__all__ = ["FeedStore", "content_parts", "post_for_display", "post_from_row"]
