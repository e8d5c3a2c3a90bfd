"""Community feed routes and nested post comments."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status
from fastapi.responses import RedirectResponse

from ..schemas import ActingUser, CommentCreate, Post, PostDraft, PostFeedResponse
from ..services import FeedStore, ProfileStore, ServiceContainer
from ..services.feed_store import post_for_display
from .deps import get_profile_store, get_services, read_media_file, require_user

router = APIRouter(prefix="/posts", tags=["posts"])

logger = logging.getLogger(__name__)


async def _require_post(feed: FeedStore, post_id: str) -> Post:
    post = feed.get_post(post_id)
    if post is None:
        # The live list may lag behind a write made elsewhere.
        await feed.refresh()
        post = feed.get_post(post_id)
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post_for_display(post)


@router.get("", response_model=PostFeedResponse)
async def list_posts(
    author: str | None = None,
    services: ServiceContainer = Depends(get_services),
) -> PostFeedResponse:
    feed = services.feed
    items = feed.posts_by_author(author) if author else list(feed.posts)
    return PostFeedResponse(items=[post_for_display(post) for post in items])


@router.post("", response_model=Post, status_code=status.HTTP_201_CREATED)
async def create_post_endpoint(
    content: str = Form(""),
    image: UploadFile | None = File(None),
    store: ProfileStore = Depends(get_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> Post:
    user = require_user(store)
    media = await read_media_file(image) if image is not None and image.filename else None
    if not content.strip() and media is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Post cannot be empty")
    post_id = await services.feed.add_post(PostDraft(author=user.name, author_avatar=user.avatar, content=content), media)
    if post_id is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Unable to create post")
    logger.info("Post %s created by %s", post_id, user.id)
    return await _require_post(services.feed, post_id)


@router.get("/{post_id}/image")
async def post_image_endpoint(post_id: str, services: ServiceContainer = Depends(get_services)) -> Response:
    post = await _require_post(services.feed, post_id)
    if post.image_url:
        return RedirectResponse(post.image_url)
    content = await services.feed.read_post_image(post_id)
    if content is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post has no image")
    return Response(content=content, media_type="application/octet-stream")


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post_endpoint(
    post_id: str,
    store: ProfileStore = Depends(get_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> Response:
    require_user(store)
    if not await services.feed.delete_post(post_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{post_id}/like", response_model=Post)
async def like_post_endpoint(
    post_id: str,
    store: ProfileStore = Depends(get_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> Post:
    require_user(store)
    likes = await services.feed.toggle_post_like(post_id)
    if likes is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    post = await _require_post(services.feed, post_id)
    return post.model_copy(update={"likes": likes})


@router.post("/{post_id}/repost", response_model=Post, status_code=status.HTTP_201_CREATED)
async def repost_endpoint(
    post_id: str,
    store: ProfileStore = Depends(get_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> Post:
    user = require_user(store)
    new_id = await services.feed.repost_post(post_id, ActingUser(name=user.name, avatar=user.avatar))
    if new_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return await _require_post(services.feed, new_id)


@router.post("/{post_id}/comments", response_model=Post, status_code=status.HTTP_201_CREATED)
async def add_post_comment_endpoint(
    post_id: str,
    payload: CommentCreate,
    store: ProfileStore = Depends(get_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> Post:
    user = require_user(store)
    await _require_post(services.feed, post_id)
    await services.feed.add_post_comment(post_id, user.name, user.avatar, payload.content)
    return await _require_post(services.feed, post_id)


@router.post("/{post_id}/comments/{comment_id}/replies", response_model=Post, status_code=status.HTTP_201_CREATED)
async def add_post_comment_reply_endpoint(
    post_id: str,
    comment_id: str,
    payload: CommentCreate,
    store: ProfileStore = Depends(get_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> Post:
    user = require_user(store)
    await _require_post(services.feed, post_id)
    await services.feed.add_post_comment_reply(post_id, comment_id, user.name, user.avatar, payload.content)
    return await _require_post(services.feed, post_id)


@router.post("/{post_id}/comments/{comment_id}/like", response_model=Post)
async def like_post_comment_endpoint(
    post_id: str,
    comment_id: str,
    store: ProfileStore = Depends(get_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> Post:
    require_user(store)
    await _require_post(services.feed, post_id)
    await services.feed.like_post_comment(post_id, comment_id)
    return await _require_post(services.feed, post_id)


@router.post("/{post_id}/comments/{comment_id}/pin", response_model=Post)
async def pin_post_comment_endpoint(
    post_id: str,
    comment_id: str,
    store: ProfileStore = Depends(get_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> Post:
    require_user(store)
    await _require_post(services.feed, post_id)
    await services.feed.pin_post_comment(post_id, comment_id)
    return await _require_post(services.feed, post_id)


__all__ = ["router"]
