"""Channel pages and channel subscriptions."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ..schemas import ChannelView, PostFeedResponse, SubscriptionResponse
from ..services import ChannelError, ProfileStore, ServiceContainer, toggle_channel_subscription
from ..services.feed_store import post_for_display
from .deps import get_optional_profile_store, get_profile_store, get_services

router = APIRouter(prefix="/channels", tags=["channels"])


@router.get("/{name}", response_model=ChannelView)
async def get_channel_endpoint(
    name: str,
    store: ProfileStore | None = Depends(get_optional_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> ChannelView:
    viewer = store.user if store is not None else None
    return services.channels.get_channel(name, viewer)


@router.get("/{name}/posts", response_model=PostFeedResponse)
async def channel_posts_endpoint(name: str, services: ServiceContainer = Depends(get_services)) -> PostFeedResponse:
    return PostFeedResponse(items=[post_for_display(post) for post in services.channels.channel_posts(name)])


@router.post("/{name}/subscribe", response_model=SubscriptionResponse)
async def subscribe_endpoint(
    name: str,
    store: ProfileStore = Depends(get_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> SubscriptionResponse:
    try:
        return await toggle_channel_subscription(store, services.catalog, name)
    except ChannelError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc


__all__ = ["router"]
