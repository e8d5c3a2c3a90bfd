"""Video catalog routes, publishing and video comment threads."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status

from ..constants import DEFAULT_DURATION
from ..schemas import CommentCreate, Video, VideoListResponse
from ..services import CatalogError, ProfileStore, ServiceContainer, UploadError, publish_video
from ..services.formatting import format_seconds
from .deps import get_optional_profile_store, get_profile_store, get_services, read_media_file, require_user

router = APIRouter(prefix="/videos", tags=["videos"])

logger = logging.getLogger(__name__)


async def _load_video(services: ServiceContainer, video_id: str) -> Video:
    video = await services.catalog.get_video(video_id)
    if video is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found")
    return video


@router.get("", response_model=VideoListResponse)
async def list_videos(
    author: str | None = None,
    services: ServiceContainer = Depends(get_services),
) -> VideoListResponse:
    catalog = services.catalog
    items = catalog.videos_by_author(author) if author else list(catalog.videos)
    return VideoListResponse(items=items)


@router.get("/{video_id}", response_model=Video)
async def get_video_endpoint(video_id: str, services: ServiceContainer = Depends(get_services)) -> Video:
    return await _load_video(services, video_id)


@router.post("", response_model=Video, status_code=status.HTTP_201_CREATED)
async def publish_video_endpoint(
    title: str = Form(...),
    description: str = Form(""),
    duration: str = Form(DEFAULT_DURATION),
    duration_seconds: float | None = Form(None),
    file: UploadFile = File(...),
    thumbnail: UploadFile | None = File(None),
    store: ProfileStore = Depends(get_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> Video:
    author = require_user(store)
    if not title.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title is required")
    video_file = await read_media_file(file)
    thumbnail_file = await read_media_file(thumbnail) if thumbnail is not None and thumbnail.filename else None
    try:
        video_id = await publish_video(
            services.storage,
            services.catalog,
            author,
            title.strip(),
            video_file,
            description=description,
            duration=format_seconds(duration_seconds) if duration_seconds is not None else duration,
            thumbnail=thumbnail_file,
        )
    except UploadError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.message) from exc
    except CatalogError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    logger.info("Published video %s for %s", video_id, author.id)
    return await _load_video(services, video_id)


@router.delete("/{video_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_video_endpoint(
    video_id: str,
    store: ProfileStore = Depends(get_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> Response:
    require_user(store)
    if not await services.catalog.delete_video(video_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{video_id}/like", response_model=Video)
async def like_video_endpoint(
    video_id: str,
    store: ProfileStore = Depends(get_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> Video:
    require_user(store)
    await services.catalog.increment_like(video_id)
    return await _load_video(services, video_id)


@router.post("/{video_id}/view", response_model=Video)
async def view_video_endpoint(
    video_id: str,
    store: ProfileStore | None = Depends(get_optional_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> Video:
    """Count a view and, for signed-in viewers, record it in their history."""

    if await services.catalog.increment_view(video_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found")
    if store is not None and store.user is not None:
        await store.add_to_history(video_id)
    return await _load_video(services, video_id)


@router.post("/{video_id}/comments", response_model=Video, status_code=status.HTTP_201_CREATED)
async def add_comment_endpoint(
    video_id: str,
    payload: CommentCreate,
    store: ProfileStore = Depends(get_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> Video:
    user = require_user(store)
    await _load_video(services, video_id)
    await services.catalog.add_comment(video_id, user.name, user.avatar, payload.content)
    return await _load_video(services, video_id)


@router.post("/{video_id}/comments/{comment_id}/replies", response_model=Video, status_code=status.HTTP_201_CREATED)
async def add_reply_endpoint(
    video_id: str,
    comment_id: str,
    payload: CommentCreate,
    store: ProfileStore = Depends(get_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> Video:
    user = require_user(store)
    await _load_video(services, video_id)
    await services.catalog.add_reply(video_id, comment_id, user.name, user.avatar, payload.content)
    return await _load_video(services, video_id)


@router.post("/{video_id}/comments/{comment_id}/like", response_model=Video)
async def like_comment_endpoint(
    video_id: str,
    comment_id: str,
    store: ProfileStore = Depends(get_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> Video:
    require_user(store)
    await services.catalog.like_comment(video_id, comment_id)
    return await _load_video(services, video_id)


@router.post("/{video_id}/comments/{comment_id}/pin", response_model=Video)
async def pin_comment_endpoint(
    video_id: str,
    comment_id: str,
    store: ProfileStore = Depends(get_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> Video:
    require_user(store)
    await services.catalog.pin_comment(video_id, comment_id)
    return await _load_video(services, video_id)


@router.delete("/{video_id}/comments/{comment_id}/pin", response_model=Video)
async def unpin_comment_endpoint(
    video_id: str,
    comment_id: str,
    store: ProfileStore = Depends(get_profile_store),
    services: ServiceContainer = Depends(get_services),
) -> Video:
    require_user(store)
    await services.catalog.unpin_comment(video_id, comment_id)
    return await _load_video(services, video_id)


__all__ = ["router"]
