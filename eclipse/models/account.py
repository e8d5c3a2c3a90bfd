"""SQLAlchemy ORM model for authentication accounts."""
from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, String

from eclipse.database import Base
from .base import TimestampMixin, new_record_id


class Account(TimestampMixin, Base):
    """Credentials owned by the auth backend, separate from the public profile."""

    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=new_record_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    user_metadata = Column(JSON, nullable=False, default=dict)
    last_sign_in_at = Column(DateTime(timezone=True), nullable=True)


__all__ = ["Account"]
