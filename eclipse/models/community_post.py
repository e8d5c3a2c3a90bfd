"""SQLAlchemy ORM model for community posts."""
from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from eclipse.database import Base
from .base import new_record_id, utcnow


class CommunityPost(Base):
    __tablename__ = "community_posts"

    id = Column(String(36), primary_key=True, default=new_record_id)
    author_name = Column(String(150), nullable=False, index=True)
    author_avatar = Column(String(1024), nullable=True)
    content = Column(Text, nullable=False, default="")
    image_url = Column(String(2048), nullable=True)
    likes = Column(Integer, nullable=False, default=0, server_default="0")
    reposts = Column(Integer, nullable=False, default=0, server_default="0")
    # Comment threads are stored nested: each node carries its own "replies" list.
    comments = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


__all__ = ["CommunityPost"]
