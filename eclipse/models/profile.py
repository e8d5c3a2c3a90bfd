"""SQLAlchemy ORM model for user profiles and their owned collections."""
from __future__ import annotations

from sqlalchemy import JSON, Column, String, Text

from eclipse.database import Base
from .base import TimestampMixin


class Profile(TimestampMixin, Base):
    __tablename__ = "profiles"

    # Shares its id with the owning account.
    id = Column(String(36), primary_key=True)
    name = Column(String(150), nullable=False, index=True)
    handle = Column(String(150), nullable=True)
    avatar_url = Column(String(1024), nullable=True)
    banner_url = Column(String(1024), nullable=True)
    description = Column(Text, nullable=True)
    subscriptions = Column(JSON, nullable=False, default=list)
    history = Column(JSON, nullable=False, default=list)
    playlists = Column(JSON, nullable=False, default=list)


__all__ = ["Profile"]
