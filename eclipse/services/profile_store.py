"""The signed-in user's profile and the collections it owns.

:class:`ProfileStore` binds one authentication client to one profile row.
Every collection mutator computes the next value with a pure function from
:mod:`eclipse.services.profile_ops` and writes it back as a single-field
:class:`~eclipse.schemas.ProfilePatch`.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..config import get_settings
from ..constants import DEFAULT_PROFILE_DESCRIPTION
from ..schemas import AuthResult, Profile, ProfilePatch
from . import profile_ops
from .auth_service import AuthClient, AuthError, AuthEvent, AuthSession, AuthSubscription, AuthUser
from .formatting import normalize_handle, placeholder_image
from .record_store import RecordStore, RecordStoreError, Row

logger = logging.getLogger(__name__)


def profile_from_row(row: Row, email: str = "") -> Profile:
    """Map a ``profiles`` row, filling empty columns with deterministic defaults."""

    profile_id = str(row["id"])
    return Profile(
        id=profile_id,
        name=row.get("name") or "",
        handle=row.get("handle") or f"@{profile_id[:8]}",
        email=email,
        avatar=row.get("avatar_url") or placeholder_image(profile_id, 200, 200),
        banner=row.get("banner_url") or placeholder_image(f"{profile_id}banner", 1200, 400),
        description=row.get("description") or DEFAULT_PROFILE_DESCRIPTION,
        subscriptions=list(row.get("subscriptions") or []),
        history=list(row.get("history") or []),
        playlists=list(row.get("playlists") or []),
    )


def default_profile_row(user: AuthUser) -> dict[str, Any]:
    """Values for a profile created on first sign-in."""

    metadata = user.user_metadata or {}
    short_id = user.id[:8]
    return {
        "id": user.id,
        "name": metadata.get("display_name") or f"User {short_id}",
        "handle": metadata.get("handle") or f"@user{short_id}",
        "avatar_url": placeholder_image(user.id, 200, 200),
        "banner_url": placeholder_image(f"{user.id}banner", 1500, 250),
        "description": DEFAULT_PROFILE_DESCRIPTION,
        "subscriptions": [],
        "history": [],
        "playlists": [],
    }


class ProfileStore:
    """Session bootstrap, authentication and profile mutations for one user."""

    def __init__(
        self,
        records: RecordStore,
        auth: AuthClient,
        *,
        history_limit: int | None = None,
        signin_retry_seconds: float | None = None,
    ) -> None:
        settings = get_settings()
        self._records = records
        self._auth = auth
        self._history_limit = history_limit if history_limit is not None else settings.history_limit
        self._signin_retry_seconds = (
            signin_retry_seconds if signin_retry_seconds is not None else settings.signin_profile_retry_seconds
        )
        self._user: Profile | None = None
        self._loaded = False
        self._closed = False
        self._subscription: AuthSubscription | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def user(self) -> Profile | None:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def auth(self) -> AuthClient:
        return self._auth

    @property
    def access_token(self) -> str | None:
        session = self._auth.get_session()
        return session.access_token if session is not None else None

    def _expose(self, profile: Profile | None) -> None:
        if self._closed:
            return
        self._user = profile

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self, session: AuthSession | None = None) -> Profile | None:
        """Resolve the current session and load (or create) its profile."""

        if self._subscription is None:
            self._subscription = self._auth.on_auth_state_change(self._handle_auth_event)
        session = session or self._auth.get_session()
        if session is not None:
            profile = await self.fetch_profile(session.user.id, email=session.user.email)
            if profile is None:
                profile = await self._create_profile_record(session.user)
            self._expose(profile)
        self._loaded = True
        return self._user

    async def close(self) -> None:
        self._closed = True
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def _handle_auth_event(self, event: AuthEvent, session: AuthSession | None) -> None:
        if self._closed:
            return
        if event is AuthEvent.SIGNED_IN and session is not None:
            user = session.user
            profile = await self.fetch_profile(user.id, email=user.email)
            if profile is None:
                # Another writer may still be creating the row.
                await asyncio.sleep(self._signin_retry_seconds)
                profile = await self.fetch_profile(user.id, email=user.email)
                if profile is None:
                    profile = await self._create_profile_record(user)
            if profile is not None:
                self._expose(profile)
        elif event is AuthEvent.SIGNED_OUT:
            self._expose(None)

    # ------------------------------------------------------------------
    # Backend reads and writes
    # ------------------------------------------------------------------
    async def fetch_profile(self, user_id: str, *, email: str = "") -> Profile | None:
        try:
            row = await self._records.select_one("profiles", id=user_id)
        except RecordStoreError:
            logger.error("Error fetching profile %s", user_id)
            return None
        if row is None:
            return None
        return profile_from_row(row, email=email)

    async def _create_profile_record(self, user: AuthUser) -> Profile | None:
        try:
            await self._records.insert("profiles", default_profile_row(user))
        except RecordStoreError:
            logger.error("Error creating profile record for %s", user.id)
            return None
        logger.info("Created profile for %s", user.id)
        return await self.fetch_profile(user.id, email=user.email)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    async def login(self, email: str, password: str | None = None) -> AuthResult:
        if not password:
            return AuthResult(success=False, error="Password required.")
        try:
            await self._auth.sign_in_with_password(email, password)
        except AuthError as exc:
            return AuthResult(success=False, error=exc.message)
        return AuthResult(success=True)

    async def register(self, email: str, name: str, handle: str, password: str | None = None) -> AuthResult:
        if not password:
            return AuthResult(success=False, error="Password required.")
        metadata = {"display_name": name, "handle": normalize_handle(handle)}
        try:
            await self._auth.sign_up(email, password, metadata)
        except AuthError as exc:
            return AuthResult(success=False, error=exc.message)
        return AuthResult(success=True)

    async def logout(self) -> None:
        await self._auth.sign_out()
        self._expose(None)

    # ------------------------------------------------------------------
    # Profile mutations
    # ------------------------------------------------------------------
    async def update_profile(self, patch: ProfilePatch) -> None:
        """Write the provided fields, then merge them into the local profile.

        On a backend error the local profile is left as it was.
        """

        current = self._user
        if current is None or patch.is_empty():
            return
        try:
            await self._records.update("profiles", patch.to_row(), id=current.id)
        except RecordStoreError:
            logger.error("Error updating profile %s", current.id)
            return
        latest = self._user
        if latest is not None and latest.id == current.id:
            self._expose(patch.apply_to(latest))

    async def toggle_subscription(self, channel: str) -> None:
        if self._user is None:
            return
        subscriptions = profile_ops.toggle_subscription(self._user.subscriptions, channel)
        await self.update_profile(ProfilePatch(subscriptions=subscriptions))

    async def add_to_history(self, video_id: str) -> None:
        if self._user is None:
            return
        history = profile_ops.add_to_history(self._user.history, video_id, limit=self._history_limit)
        await self.update_profile(ProfilePatch(history=history))

    async def clear_history(self) -> None:
        if self._user is None:
            return
        await self.update_profile(ProfilePatch(history=[]))

    async def create_playlist(self, title: str, description: str = "") -> str | None:
        """Append a new empty playlist and return its id."""

        if self._user is None:
            return None
        playlist = profile_ops.new_playlist(title, description)
        playlists = [*(item.model_copy(deep=True) for item in self._user.playlists), playlist]
        await self.update_profile(ProfilePatch(playlists=playlists))
        return playlist.id

    async def delete_playlist(self, playlist_id: str) -> None:
        if self._user is None:
            return
        playlists = profile_ops.remove_playlist(self._user.playlists, playlist_id)
        await self.update_profile(ProfilePatch(playlists=playlists))

    async def add_to_playlist(self, playlist_id: str, video_id: str) -> None:
        if self._user is None:
            return
        playlists = profile_ops.add_video_to_playlist(self._user.playlists, playlist_id, video_id)
        await self.update_profile(ProfilePatch(playlists=playlists))

    async def remove_from_playlist(self, playlist_id: str, video_id: str) -> None:
        if self._user is None:
            return
        playlists = profile_ops.remove_video_from_playlist(self._user.playlists, playlist_id, video_id)
        await self.update_profile(ProfilePatch(playlists=playlists))


__all__ = ["ProfileStore", "default_profile_row", "profile_from_row"]
