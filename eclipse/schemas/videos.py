"""Pydantic schemas for videos and their comment threads."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class Comment(BaseModel):
    id: str
    author: str
    author_avatar: str
    content: str
    date: datetime
    likes: int = 0
    is_pinned: bool = False
    parent_id: str | None = None
    replies: list["Comment"] = Field(default_factory=list)


class Video(BaseModel):
    id: str
    title: str
    description: str = ""
    author: str
    author_avatar: str
    thumbnail: str | None = None
    video_url: str | None = None
    likes: int = 0
    views: int = 0
    upload_date: datetime
    duration: str = "0:00"
    # Empty until the video is fetched individually.
    comments: list[Comment] = Field(default_factory=list)


class VideoDraft(BaseModel):
    """Metadata for a new video; the media itself already lives in object storage."""

    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    author: str
    author_avatar: str | None = None
    thumbnail: str | None = None
    video_url: str
    duration: str = "0:00"


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class VideoListResponse(BaseModel):
    items: list[Video]


Comment.model_rebuild()


__all__ = ["Comment", "Video", "VideoDraft", "CommentCreate", "VideoListResponse"]
