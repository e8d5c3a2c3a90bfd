"""Read-side channel view assembled from the profile, the catalog and the feed.

Channels have no record of their own. A channel is a name: the signed-in
user's own name resolves to their profile, any other name gets a synthesized
view with placeholder art.
"""
from __future__ import annotations

import logging
import re

from ..constants import DEFAULT_CHANNEL_DESCRIPTION
from ..schemas import ChannelView, Post, Profile, SubscriptionResponse, Video
from .catalog_store import CatalogStore
from .feed_store import FeedStore
from .formatting import format_subscriber_count
from .profile_store import ProfileStore

logger = logging.getLogger(__name__)


class ChannelError(Exception):
    """Raised when a subscription change is not allowed."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def channel_handle(name: str) -> str:
    return "@" + re.sub(r"\s+", "", name.lower())


class ChannelProjection:
    def __init__(self, catalog: CatalogStore, feed: FeedStore | None = None) -> None:
        self._catalog = catalog
        self._feed = feed

    def channel_videos(self, name: str) -> list[Video]:
        return self._catalog.videos_by_author(name)

    def channel_posts(self, name: str) -> list[Post]:
        if self._feed is None:
            return []
        return self._feed.posts_by_author(name)

    def get_channel(self, name: str, viewer: Profile | None = None) -> ChannelView:
        video_count = len(self.channel_videos(name))
        post_count = len(self.channel_posts(name))
        subscriber_count = self._catalog.get_subscriber_count(name)
        subscriber_label = format_subscriber_count(subscriber_count)
        if viewer is not None and viewer.name == name:
            return ChannelView(
                name=viewer.name,
                handle=viewer.handle,
                avatar=viewer.avatar,
                banner=viewer.banner,
                description=viewer.description,
                video_count=video_count,
                post_count=post_count,
                subscriber_count=subscriber_count,
                subscriber_count_label=subscriber_label,
                is_owner=True,
            )
        assets = self._catalog.channel_assets(name)
        return ChannelView(
            name=name,
            handle=channel_handle(name),
            avatar=assets["avatar"],
            banner=assets["banner"],
            description=DEFAULT_CHANNEL_DESCRIPTION,
            video_count=video_count,
            post_count=post_count,
            subscriber_count=subscriber_count,
            subscriber_count_label=subscriber_label,
        )


async def toggle_channel_subscription(
    profile: ProfileStore, catalog: CatalogStore, channel: str
) -> SubscriptionResponse:
    """Subscribe to or unsubscribe from ``channel`` and adjust its local count."""

    user = profile.user
    if user is None:
        raise ChannelError("Please login to subscribe")
    if user.name == channel:
        raise ChannelError("You cannot subscribe to yourself")
    was_subscribed = channel in user.subscriptions
    await profile.toggle_subscription(channel)
    subscribed = profile.user is not None and channel in profile.user.subscriptions
    if subscribed == was_subscribed:
        logger.warning("Subscription of %s to %s was not changed", user.id, channel)
        return SubscriptionResponse(
            channel=channel, subscribed=subscribed, subscriber_count=catalog.get_subscriber_count(channel)
        )
    count = catalog.update_subscriber_count(channel, 1 if subscribed else -1)
    logger.info("%s %s %s", user.id, "subscribed to" if subscribed else "unsubscribed from", channel)
    return SubscriptionResponse(channel=channel, subscribed=subscribed, subscriber_count=count)


__all__ = ["ChannelError", "ChannelProjection", "channel_handle", "toggle_channel_subscription"]
