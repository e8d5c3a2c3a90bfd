"""Tests for the channel projection and channel subscriptions."""
from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Iterator

import pytest
from sqlalchemy import delete

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_eclipse.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SIGNIN_PROFILE_RETRY_SECONDS", "0")
os.environ.setdefault("REFETCH_DEBOUNCE_SECONDS", "0")

from eclipse.database import Base, SessionLocal, engine  # noqa: E402
from eclipse.models import Account, CommunityPost, Profile, Video  # noqa: E402
from eclipse.schemas import PostDraft, VideoDraft  # noqa: E402
from eclipse.services import (  # noqa: E402
    AuthClient,
    CatalogStore,
    ChannelError,
    ChannelProjection,
    FeedStore,
    ProfileStore,
    RecordStore,
    toggle_channel_subscription,
)
from eclipse.services.channel_service import channel_handle  # noqa: E402
from eclipse.services.record_store import RecordStoreError  # noqa: E402
from eclipse.services.subscriber_counts import SubscriberCountCache  # noqa: E402


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    with SessionLocal() as session:
        session.execute(delete(CommunityPost))
        session.execute(delete(Video))
        session.execute(delete(Profile))
        session.execute(delete(Account))
        session.commit()
    yield


def _stores(tmp_path: Path) -> tuple[ProfileStore, CatalogStore, FeedStore]:
    records = RecordStore(SessionLocal)
    profile = ProfileStore(records, AuthClient(SessionLocal, secret="test-secret-key"), signin_retry_seconds=0)
    catalog = CatalogStore(records, subscriber_counts=SubscriberCountCache(tmp_path / "counts.json"), debounce_seconds=0)
    feed = FeedStore(records, debounce_seconds=0)
    return profile, catalog, feed


async def _seed(catalog: CatalogStore, feed: FeedStore) -> None:
    for title, author in [("a", "Ann"), ("b", "Ann"), ("c", "My Channel")]:
        await catalog.add_video(VideoDraft(title=title, author=author, video_url=f"https://cdn.test/{title}.mp4"))
    await feed.add_post(PostDraft(author="Ann", content="hi"))
    await catalog.refresh()


def test_channel_handle_strips_whitespace_and_lowercases() -> None:
    assert channel_handle("My  Cool Channel") == "@mycoolchannel"


def test_synthesized_channel_view_for_other_names(tmp_path: Path) -> None:
    async def scenario() -> None:
        _, catalog, feed = _stores(tmp_path)
        await _seed(catalog, feed)
        catalog.update_subscriber_count("My Channel", 3)

        view = ChannelProjection(catalog, feed).get_channel("My Channel")

        assert view.name == "My Channel"
        assert view.handle == "@mychannel"
        assert view.description == "Welcome to my official channel!"
        assert view.avatar == "https://picsum.photos/seed/My Channel/200/200"
        assert view.banner == "https://picsum.photos/seed/My Channelbanner/1500/250"
        assert view.video_count == 1
        assert view.subscriber_count == 3
        assert view.subscriber_count_label == "3"
        assert view.post_count == 0
        assert view.is_owner is False

    asyncio.run(scenario())


def test_owner_channel_view_uses_live_profile(tmp_path: Path) -> None:
    async def scenario() -> None:
        profile, catalog, feed = _stores(tmp_path)
        await profile.start()
        assert (await profile.register("a@b.com", "Ann", "@ann", "secret-pass")).success
        await _seed(catalog, feed)
        projection = ChannelProjection(catalog, feed)

        view = projection.get_channel("Ann", profile.user)

        assert profile.user is not None
        assert view.is_owner is True
        assert view.handle == "@ann"
        assert view.avatar == profile.user.avatar
        assert view.video_count == 2
        assert view.post_count == 1
        assert view.subscriber_count == 0
        assert [post.content for post in projection.channel_posts("Ann")] == ["hi"]
        assert len(projection.channel_videos("Ann")) == 2
        await profile.close()

    asyncio.run(scenario())


def test_channel_projection_does_not_write(tmp_path: Path) -> None:
    async def scenario() -> None:
        profile, catalog, feed = _stores(tmp_path)
        await profile.start()
        await profile.register("a@b.com", "Ann", "@ann", "secret-pass")
        before = profile.user

        ChannelProjection(catalog).get_channel("Bob", profile.user)

        assert profile.user == before
        assert catalog.subscriber_counts.snapshot() == {}
        await profile.close()

    asyncio.run(scenario())


def test_toggle_channel_subscription_adjusts_local_count(tmp_path: Path) -> None:
    async def scenario() -> None:
        profile, catalog, _ = _stores(tmp_path)
        await profile.start()
        await profile.register("a@b.com", "Ann", "@ann", "secret-pass")

        subscribed = await toggle_channel_subscription(profile, catalog, "Bob")
        assert subscribed.subscribed is True
        assert subscribed.subscriber_count == 1
        assert profile.user is not None
        assert profile.user.subscriptions == ["Bob"]

        unsubscribed = await toggle_channel_subscription(profile, catalog, "Bob")
        assert unsubscribed.subscribed is False
        assert unsubscribed.subscriber_count == 0
        assert profile.user.subscriptions == []
        await profile.close()

    asyncio.run(scenario())


def test_toggle_channel_subscription_refuses_self_and_anonymous(tmp_path: Path) -> None:
    async def scenario() -> None:
        profile, catalog, _ = _stores(tmp_path)
        await profile.start()
        with pytest.raises(ChannelError):
            await toggle_channel_subscription(profile, catalog, "Bob")

        await profile.register("a@b.com", "Ann", "@ann", "secret-pass")
        with pytest.raises(ChannelError) as excinfo:
            await toggle_channel_subscription(profile, catalog, "Ann")
        assert excinfo.value.message == "You cannot subscribe to yourself"
        assert catalog.get_subscriber_count("Ann") == 0
        await profile.close()

    asyncio.run(scenario())


def test_failed_subscription_write_leaves_count_alone(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    async def scenario() -> None:
        profile, catalog, _ = _stores(tmp_path)
        await profile.start()
        await profile.register("a@b.com", "Ann", "@ann", "secret-pass")

        async def _fail(*args, **kwargs):
            raise RecordStoreError("update failed")

        monkeypatch.setattr(profile._records, "update", _fail)
        for _ in range(3):
            response = await toggle_channel_subscription(profile, catalog, "Bob")
            assert response.subscribed is False
            assert response.subscriber_count == 0

        assert profile.user is not None
        assert profile.user.subscriptions == []
        assert catalog.get_subscriber_count("Bob") == 0
        await profile.close()

    asyncio.run(scenario())


def test_subscriber_count_label_is_abbreviated(tmp_path: Path) -> None:
    _, catalog, feed = _stores(tmp_path)
    catalog.update_subscriber_count("Big", 1500)

    view = ChannelProjection(catalog, feed).get_channel("Big")

    assert view.subscriber_count == 1500
    assert view.subscriber_count_label == "1.5K"
