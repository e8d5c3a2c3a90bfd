"""Profile routes for the signed-in user and the collections they own."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ..schemas import Playlist, PlaylistCreate, Profile, ProfileDetailsUpdate
from ..services import ProfileStore
from .deps import get_profile_store, require_user

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/me", response_model=Profile)
async def get_me(store: ProfileStore = Depends(get_profile_store)) -> Profile:
    return require_user(store)


@router.patch("/me", response_model=Profile)
async def update_me(payload: ProfileDetailsUpdate, store: ProfileStore = Depends(get_profile_store)) -> Profile:
    await store.update_profile(payload.to_patch())
    return require_user(store)


@router.post("/me/subscriptions/{channel}", response_model=Profile)
async def toggle_subscription_endpoint(channel: str, store: ProfileStore = Depends(get_profile_store)) -> Profile:
    await store.toggle_subscription(channel)
    return require_user(store)


@router.post("/me/history/{video_id}", response_model=Profile)
async def add_history_endpoint(video_id: str, store: ProfileStore = Depends(get_profile_store)) -> Profile:
    await store.add_to_history(video_id)
    return require_user(store)


@router.delete("/me/history", response_model=Profile)
async def clear_history_endpoint(store: ProfileStore = Depends(get_profile_store)) -> Profile:
    await store.clear_history()
    return require_user(store)


@router.post("/me/playlists", response_model=Playlist, status_code=status.HTTP_201_CREATED)
async def create_playlist_endpoint(
    payload: PlaylistCreate,
    store: ProfileStore = Depends(get_profile_store),
) -> Playlist:
    playlist_id = await store.create_playlist(payload.title, payload.description)
    user = require_user(store)
    for playlist in user.playlists:
        if playlist.id == playlist_id:
            return playlist
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Unable to create playlist")


@router.delete("/me/playlists/{playlist_id}", response_model=Profile)
async def delete_playlist_endpoint(playlist_id: str, store: ProfileStore = Depends(get_profile_store)) -> Profile:
    await store.delete_playlist(playlist_id)
    return require_user(store)


@router.put("/me/playlists/{playlist_id}/videos/{video_id}", response_model=Profile)
async def add_to_playlist_endpoint(
    playlist_id: str,
    video_id: str,
    store: ProfileStore = Depends(get_profile_store),
) -> Profile:
    await store.add_to_playlist(playlist_id, video_id)
    return require_user(store)


@router.delete("/me/playlists/{playlist_id}/videos/{video_id}", response_model=Profile)
async def remove_from_playlist_endpoint(
    playlist_id: str,
    video_id: str,
    store: ProfileStore = Depends(get_profile_store),
) -> Profile:
    await store.remove_from_playlist(playlist_id, video_id)
    return require_user(store)


__all__ = ["router"]
