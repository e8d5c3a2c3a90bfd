"""Construction, start-up and teardown of the application services."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Callable

from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..database import SessionLocal
from .auth_service import AuthClient
from .blob_store import LocalBlobStore
from .catalog_store import CatalogStore
from .change_feed import ChangeFeed
from .channel_service import ChannelProjection
from .feed_store import FeedStore
from .profile_store import ProfileStore
from .record_store import RecordStore
from .spaces_service import ObjectStorage
from .subscriber_counts import SubscriberCountCache

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Owns the backend adapter and the stores built on top of it.

    Services start in the order profile, feed, catalog and close in reverse.
    ``profile`` is the process-level store; request handlers acting for a
    specific user open their own store through :meth:`open_profile_session`.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        session_factory: Callable[[], Session] = SessionLocal,
        storage: ObjectStorage | None = None,
        auth: AuthClient | None = None,
        blob_root: Path | str | None = None,
        subscriber_counts_path: Path | str | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.change_feed = ChangeFeed()
        self.records = RecordStore(session_factory, change_feed=self.change_feed)
        self.auth = auth or AuthClient(session_factory)
        self.storage = storage or ObjectStorage(settings=self.settings)
        self.blobs = LocalBlobStore(blob_root or self.settings.blob_root)
        self.subscriber_counts = SubscriberCountCache(subscriber_counts_path or self.settings.subscriber_counts_path)

        self.profile = self._build_profile_store(self.auth)
        self.feed = FeedStore(
            self.records,
            storage=self.storage,
            blobs=self.blobs,
            debounce_seconds=self.settings.refetch_debounce_seconds,
        )
        self.catalog = CatalogStore(
            self.records,
            subscriber_counts=self.subscriber_counts,
            blobs=self.blobs,
            debounce_seconds=self.settings.refetch_debounce_seconds,
        )
        self.channels = ChannelProjection(self.catalog, self.feed)
        self._started = False

    def _build_profile_store(self, auth: AuthClient) -> ProfileStore:
        return ProfileStore(
            self.records,
            auth,
            history_limit=self.settings.history_limit,
            signin_retry_seconds=self.settings.signin_profile_retry_seconds,
        )

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            return
        await self.profile.start()
        await self.feed.start()
        await self.catalog.start()
        self._started = True
        logger.info("Services started")

    async def close(self) -> None:
        if not self._started:
            return
        await self.catalog.close()
        await self.feed.close()
        await self.profile.close()
        self._started = False
        logger.info("Services stopped")

    def new_profile_store(self) -> ProfileStore:
        """Unstarted profile store with its own auth session."""

        return self._build_profile_store(self.auth.fork())

    @asynccontextmanager
    async def open_profile_session(self, access_token: str) -> AsyncIterator[ProfileStore]:
        """Yield a started profile store bound to ``access_token``.

        Raises :class:`~eclipse.services.auth_service.AuthError` when the
        token does not resolve to an account.
        """

        store = self.new_profile_store()
        session = await store.auth.set_session(access_token)
        try:
            await store.start(session)
            yield store
        finally:
            await store.close()


__all__ = ["ServiceContainer"]
