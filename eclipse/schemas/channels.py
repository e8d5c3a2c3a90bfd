"""Schemas for the derived channel view."""
from __future__ import annotations

from pydantic import BaseModel


class ChannelView(BaseModel):
    name: str
    handle: str
    avatar: str
    banner: str
    description: str
    video_count: int = 0
    post_count: int = 0
    subscriber_count: int = 0
    subscriber_count_label: str = "0"
    is_owner: bool = False


class SubscriptionResponse(BaseModel):
    channel: str
    subscribed: bool
    subscriber_count: int


__all__ = ["ChannelView", "SubscriptionResponse"]
