"""SQLAlchemy ORM models for videos and their flat comment rows."""
from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import expression, func

from eclipse.database import Base
from .base import new_record_id, utcnow


class Video(Base):
    __tablename__ = "videos"

    id = Column(String(36), primary_key=True, default=new_record_id)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    # Channel name, denormalised; not a foreign key to profiles.
    author_name = Column(String(150), nullable=False, index=True)
    author_avatar = Column(String(1024), nullable=True)
    thumbnail_url = Column(String(2048), nullable=True)
    video_url = Column(String(2048), nullable=True)
    likes = Column(Integer, nullable=False, default=0, server_default="0")
    views = Column(Integer, nullable=False, default=0, server_default="0")
    duration = Column(String(32), nullable=True)
    upload_date = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class VideoComment(Base):
    __tablename__ = "comments"

    id = Column(String(36), primary_key=True, default=new_record_id)
    video_id = Column(String(36), ForeignKey("videos.id", ondelete="CASCADE"), nullable=False, index=True)
    parent_id = Column(String(36), ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True)
    author = Column(String(150), nullable=False)
    author_avatar = Column(String(1024), nullable=True)
    content = Column(Text, nullable=False)
    likes = Column(Integer, nullable=False, default=0, server_default="0")
    is_pinned = Column(Boolean, nullable=False, default=False, server_default=expression.false())
    date = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


__all__ = ["Video", "VideoComment"]
