"""Threaded comments shared by videos and community posts.

Two storage shapes exist. Video comments are flat rows that point at their
parent and are materialized into a tree whenever they are read; every
mutation goes to the record store and the caller re-reads. Post comments are
stored already nested inside their post and are mutated in place.

Both shapes are exposed through :class:`CommentThread`. In either shape at most
one top-level comment is pinned: pinning clears every other pin first.
"""
from __future__ import annotations

import copy
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterator, Protocol, Sequence, TypeVar

from ..schemas import Comment, PostComment
from .formatting import ensure_string_src, placeholder_image
from .record_store import RecordStore, RecordStoreError, Row

logger = logging.getLogger(__name__)


class _ThreadNode(Protocol):
    id: str
    is_pinned: bool
    replies: list[Any]


NodeT = TypeVar("NodeT", bound=_ThreadNode)


# ----------------------------------------------------------------------
# Pure tree helpers
# ----------------------------------------------------------------------
def materialize_flat(comments: Sequence[Comment]) -> list[Comment]:
    """Group flat comments under their parents, keeping the input order.

    Comments whose parent is missing (or whose parent chain loops back on
    itself) are kept at the top level rather than dropped.
    """

    nodes: dict[str, Comment] = {}
    for comment in comments:
        nodes[comment.id] = comment.model_copy(update={"replies": []})

    def _has_cycle(start: Comment) -> bool:
        seen = {start.id}
        parent_id = start.parent_id
        while parent_id is not None and parent_id in nodes:
            if parent_id in seen:
                return True
            seen.add(parent_id)
            parent_id = nodes[parent_id].parent_id
        return False

    roots: list[Comment] = []
    for comment in comments:
        node = nodes[comment.id]
        parent = nodes.get(node.parent_id) if node.parent_id else None
        if parent is None or _has_cycle(node):
            roots.append(node)
        else:
            parent.replies.append(node)
    return roots


def sort_for_display(comments: Sequence[NodeT]) -> list[NodeT]:
    """Pinned comments first; the relative order is otherwise preserved."""

    return sorted(comments, key=lambda comment: not comment.is_pinned)


def iter_comments(comments: Sequence[NodeT]) -> Iterator[NodeT]:
    """Depth-first walk over a nested thread."""

    for comment in comments:
        yield comment
        yield from iter_comments(comment.replies)


def find_comment(comments: Sequence[NodeT], comment_id: str) -> NodeT | None:
    for comment in iter_comments(comments):
        if comment.id == comment_id:
            return comment
    return None


def count_comments(comments: Sequence[_ThreadNode]) -> int:
    return sum(1 for _ in iter_comments(comments))


def insert_reply(comments: list[NodeT], parent_id: str, reply: NodeT) -> bool:
    """Append ``reply`` under ``parent_id`` at any depth; ``False`` if no such parent."""

    parent = find_comment(comments, parent_id)
    if parent is None:
        return False
    parent.replies.append(reply)
    return True


def like_nested_comment(comments: list[PostComment], comment_id: str) -> PostComment | None:
    target = find_comment(comments, comment_id)
    if target is None:
        return None
    target.likes += 1
    target.user_likes += 1
    return target


def set_single_pin(comments: list[NodeT], comment_id: str) -> bool:
    """Clear every pin in the thread, then pin ``comment_id`` if it is top-level.

    Returns whether the target was pinned. The pins are cleared even when the
    target does not exist.
    """

    for comment in iter_comments(comments):
        comment.is_pinned = False
    for comment in comments:
        if comment.id == comment_id:
            comment.is_pinned = True
            return True
    return False


def toggle_pin(comments: list[NodeT], comment_id: str) -> bool:
    """Unpin ``comment_id`` when it is pinned, otherwise make it the only pin.

    Returns the target's resulting pin state.
    """

    for comment in comments:
        if comment.id == comment_id and comment.is_pinned:
            comment.is_pinned = False
            return False
    return set_single_pin(comments, comment_id)


def comment_from_row(row: Row) -> Comment:
    author = row.get("author") or "unknown"
    return Comment(
        id=str(row["id"]),
        author=author,
        author_avatar=ensure_string_src(row.get("author_avatar"), placeholder_image(author, 100, 100)),
        content=row.get("content") or "",
        date=row.get("date") or datetime.now(timezone.utc),
        likes=int(row.get("likes") or 0),
        is_pinned=bool(row.get("is_pinned")),
        parent_id=row.get("parent_id"),
    )


def post_comments_from_json(raw: Any) -> list[PostComment]:
    comments: list[PostComment] = []
    if not isinstance(raw, list):
        return comments
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            comments.append(PostComment.model_validate(item))
        except ValueError:
            logger.warning("Skipping malformed post comment %s", item.get("id"))
    return comments


def post_comments_to_json(comments: Sequence[PostComment]) -> list[dict[str, Any]]:
    return [comment.model_dump(mode="json") for comment in comments]


def new_post_comment(author: str, author_avatar: str | None, content: str) -> PostComment:
    return PostComment(
        id=str(uuid.uuid4()),
        author=author,
        author_avatar=author_avatar or placeholder_image(author, 100, 100),
        content=content,
        date=datetime.now(timezone.utc),
    )


# ----------------------------------------------------------------------
# Thread adapters
# ----------------------------------------------------------------------
class CommentThread(ABC):
    """Read and mutate one discussion thread."""

    @abstractmethod
    async def comments(self) -> list[Any]:
        """Return the thread as a tree in display order."""

    @abstractmethod
    async def add(self, author: str, author_avatar: str | None, content: str) -> None: ...

    @abstractmethod
    async def reply(self, parent_id: str, author: str, author_avatar: str | None, content: str) -> None: ...

    @abstractmethod
    async def like(self, comment_id: str) -> None: ...

    @abstractmethod
    async def pin(self, comment_id: str) -> None: ...


class FlatCommentThread(CommentThread):
    """Video comments stored as rows in the ``comments`` table.

    Mutations write through to the record store and return nothing; read the
    thread again to observe them. Errors are logged and swallowed.
    """

    def __init__(self, records: RecordStore, video_id: str) -> None:
        self._records = records
        self.video_id = video_id

    async def comments(self) -> list[Comment]:
        try:
            rows = await self._records.select("comments", order_by="date", descending=True, video_id=self.video_id)
        except RecordStoreError:
            logger.warning("Error fetching comments for video %s (non-fatal)", self.video_id)
            return []
        return sort_for_display(materialize_flat([comment_from_row(row) for row in rows]))

    async def _insert(self, values: dict[str, Any]) -> None:
        try:
            await self._records.insert("comments", values)
        except RecordStoreError:
            logger.error("Error adding comment to video %s", self.video_id)

    async def add(self, author: str, author_avatar: str | None, content: str) -> None:
        await self._insert(
            {"video_id": self.video_id, "author": author, "author_avatar": author_avatar, "content": content}
        )

    async def reply(self, parent_id: str, author: str, author_avatar: str | None, content: str) -> None:
        await self._insert(
            {
                "video_id": self.video_id,
                "parent_id": parent_id,
                "author": author,
                "author_avatar": author_avatar,
                "content": content,
            }
        )

    async def like(self, comment_id: str) -> None:
        try:
            await self._records.increment("comments", "likes", comment_id)
        except RecordStoreError:
            logger.error("Error liking comment %s", comment_id)

    async def pin(self, comment_id: str) -> None:
        # Two separate writes: between them no comment on the video is pinned,
        # and concurrent pins resolve to whichever second write lands last.
        try:
            await self._records.update("comments", {"is_pinned": False}, video_id=self.video_id)
            await self._records.update("comments", {"is_pinned": True}, id=comment_id, video_id=self.video_id)
        except RecordStoreError:
            logger.error("Error pinning comment %s on video %s", comment_id, self.video_id)

    async def unpin(self, comment_id: str) -> None:
        try:
            await self._records.update("comments", {"is_pinned": False}, id=comment_id, video_id=self.video_id)
        except RecordStoreError:
            logger.error("Error unpinning comment %s on video %s", comment_id, self.video_id)


PersistComments = Callable[[list[PostComment]], Awaitable[bool]]


class NestedCommentThread(CommentThread):
    """Post comments held as a nested list owned by the post.

    Every mutation works on a copy, persists the whole list through
    ``persist`` and only then swaps the copy into the live list, so a failed
    write leaves the in-memory thread as it was.
    """

    def __init__(self, comments: list[PostComment], persist: PersistComments) -> None:
        self._comments = comments
        self._persist = persist

    async def comments(self) -> list[PostComment]:
        return sort_for_display(self._comments)

    async def _commit(self, working: list[PostComment]) -> bool:
        if not await self._persist(working):
            return False
        self._comments[:] = working
        return True

    def _working_copy(self) -> list[PostComment]:
        return copy.deepcopy(self._comments)

    async def add(self, author: str, author_avatar: str | None, content: str) -> None:
        working = self._working_copy()
        working.append(new_post_comment(author, author_avatar, content))
        await self._commit(working)

    async def reply(self, parent_id: str, author: str, author_avatar: str | None, content: str) -> None:
        working = self._working_copy()
        if not insert_reply(working, parent_id, new_post_comment(author, author_avatar, content)):
            logger.warning("Reply target %s not found", parent_id)
            return
        await self._commit(working)

    async def like(self, comment_id: str) -> None:
        working = self._working_copy()
        if like_nested_comment(working, comment_id) is None:
            logger.warning("Comment %s not found", comment_id)
            return
        await self._commit(working)

    async def pin(self, comment_id: str) -> None:
        working = self._working_copy()
        toggle_pin(working, comment_id)
        await self._commit(working)


__all__ = [
    "CommentThread",
    "FlatCommentThread",
    "NestedCommentThread",
    "comment_from_row",
    "count_comments",
    "find_comment",
    "insert_reply",
    "iter_comments",
    "like_nested_comment",
    "materialize_flat",
    "new_post_comment",
    "post_comments_from_json",
    "post_comments_to_json",
    "set_single_pin",
    "sort_for_display",
    "toggle_pin",
]
