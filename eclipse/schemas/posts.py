"""Pydantic schemas for community posts and their nested comments."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class PostComment(BaseModel):
    id: str
    author: str
    author_avatar: str
    content: str
    date: datetime
    likes: int = 0
    # Local like count, not verified per user by the backend.
    user_likes: int = 0
    is_pinned: bool = False
    replies: list["PostComment"] = Field(default_factory=list)


class ContentPart(BaseModel):
    """Plain text, or a link when ``url`` is set."""

    text: str
    url: str | None = None


class Post(BaseModel):
    id: str
    author: str
    author_avatar: str
    content: str
    content_parts: list[ContentPart] = Field(default_factory=list)
    has_image: bool = False
    image_url: str | None = None
    date: datetime
    likes: int = 0
    reposts: int = 0
    comments: list[PostComment] = Field(default_factory=list)


class PostDraft(BaseModel):
    author: str
    author_avatar: str | None = None
    content: str = Field(default="", max_length=10000)


class ActingUser(BaseModel):
    """Minimal identity needed to author content on someone's behalf."""

    name: str
    avatar: str


class PostFeedResponse(BaseModel):
    items: list[Post]


PostComment.model_rebuild()


__all__ = ["ContentPart", "PostComment", "Post", "PostDraft", "ActingUser", "PostFeedResponse"]
