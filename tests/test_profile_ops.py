"""Tests for the pure profile collection transformations."""
from __future__ import annotations

import os
import random
import string
from datetime import datetime, timezone

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_eclipse.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SIGNIN_PROFILE_RETRY_SECONDS", "0")
os.environ.setdefault("REFETCH_DEBOUNCE_SECONDS", "0")

from eclipse.constants import HISTORY_LIMIT  # noqa: E402
from eclipse.schemas import Playlist, ProfilePatch  # noqa: E402
from eclipse.services import profile_ops  # noqa: E402


def _playlist(playlist_id: str = "abc123xyz", video_ids: list[str] | None = None) -> Playlist:
    return Playlist(
        id=playlist_id,
        title="Favorites",
        description="",
        video_ids=list(video_ids or []),
        date_created=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def test_add_to_history_moves_existing_entry_to_front() -> None:
    assert profile_ops.add_to_history(["v1", "v2"], "v2") == ["v2", "v1"]


def test_add_to_history_properties_hold_for_random_histories() -> None:
    rng = random.Random(1234)
    for _ in range(200):
        history = list(dict.fromkeys(f"v{rng.randint(0, 80)}" for _ in range(rng.randint(0, 60))))[:50]
        video_id = f"v{rng.randint(0, 80)}"

        result = profile_ops.add_to_history(history, video_id)

        assert result[0] == video_id
        assert result.count(video_id) == 1
        assert len(result) <= 50
        assert len(set(result)) == len(result)


def test_add_to_history_caps_length_and_drops_oldest() -> None:
    history = [f"v{i}" for i in range(50)]

    result = profile_ops.add_to_history(history, "new")

    assert len(result) == 50
    assert result[0] == "new"
    assert "v49" not in result


def test_add_to_history_does_not_mutate_input() -> None:
    history = ["a", "b"]
    profile_ops.add_to_history(history, "b")
    assert history == ["a", "b"]


def test_toggle_subscription_is_an_involution() -> None:
    rng = random.Random(42)
    for _ in range(100):
        subscriptions = sorted({rng.choice(string.ascii_lowercase) for _ in range(rng.randint(0, 10))})
        channel = rng.choice(string.ascii_lowercase)

        twice = profile_ops.toggle_subscription(profile_ops.toggle_subscription(subscriptions, channel), channel)

        assert sorted(twice) == subscriptions


def test_toggle_subscription_adds_then_removes() -> None:
    assert profile_ops.toggle_subscription([], "Ann") == ["Ann"]
    assert profile_ops.toggle_subscription(["Ann", "Bob"], "Ann") == ["Bob"]


def test_generate_playlist_id_is_nine_base36_characters() -> None:
    allowed = set(string.ascii_lowercase + string.digits)
    for _ in range(50):
        playlist_id = profile_ops.generate_playlist_id()
        assert len(playlist_id) == 9
        assert set(playlist_id) <= allowed


def test_new_playlist_starts_empty() -> None:
    playlist = profile_ops.new_playlist("Favorites", "mine")

    assert playlist.title == "Favorites"
    assert playlist.description == "mine"
    assert playlist.video_ids == []
    assert playlist.date_created.tzinfo is not None


def test_add_video_to_playlist_is_idempotent() -> None:
    playlists = [_playlist()]

    once = profile_ops.add_video_to_playlist(playlists, "abc123xyz", "vid1")
    twice = profile_ops.add_video_to_playlist(once, "abc123xyz", "vid1")

    assert once[0].video_ids == ["vid1"]
    assert twice[0].video_ids == ["vid1"]


def test_add_then_remove_restores_video_list() -> None:
    playlists = [_playlist(video_ids=["a", "b"])]

    added = profile_ops.add_video_to_playlist(playlists, "abc123xyz", "c")
    restored = profile_ops.remove_video_from_playlist(added, "abc123xyz", "c")

    assert restored[0].video_ids == ["a", "b"]
    assert playlists[0].video_ids == ["a", "b"]


def test_playlist_operations_ignore_other_playlists() -> None:
    playlists = [_playlist("one", ["x"]), _playlist("two", ["y"])]

    updated = profile_ops.add_video_to_playlist(playlists, "two", "z")

    assert updated[0].video_ids == ["x"]
    assert updated[1].video_ids == ["y", "z"]


def test_remove_playlist_filters_by_id() -> None:
    playlists = [_playlist("one"), _playlist("two")]

    remaining = profile_ops.remove_playlist(playlists, "one")

    assert [playlist.id for playlist in remaining] == ["two"]


def test_profile_patch_history_is_deduplicated_and_capped() -> None:
    patch = ProfilePatch(history=["v1", "v1", "v2", *(f"extra-{index}" for index in range(60))])

    assert patch.history[:3] == ["v1", "v2", "extra-0"]
    assert len(patch.history) == HISTORY_LIMIT
    assert len(set(patch.history)) == HISTORY_LIMIT
    assert ProfilePatch(history=[]).history == []
    assert ProfilePatch(name="Ann").history is None
