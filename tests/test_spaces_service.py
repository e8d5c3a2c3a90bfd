"""Tests for the object storage adapter."""
from __future__ import annotations

import asyncio
import os
import re
from typing import Any

import pytest
from botocore.exceptions import ClientError

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_eclipse.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SIGNIN_PROFILE_RETRY_SECONDS", "0")
os.environ.setdefault("REFETCH_DEBOUNCE_SECONDS", "0")

from eclipse.config import Settings  # noqa: E402
from eclipse.services.spaces_service import (  # noqa: E402
    ObjectStorage,
    StorageConfigurationError,
    StorageDeletionError,
    StorageUploadError,
    build_object_key,
    load_storage_config,
    object_key_from_url,
)


class FakeS3Client:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.uploads: list[tuple[str, str, bytes, dict[str, Any]]] = []
        self.deleted: list[tuple[str, str]] = []

    def _error(self, operation: str) -> ClientError:
        return ClientError({"Error": {"Code": "500", "Message": "boom"}}, operation)

    def upload_fileobj(self, fileobj, bucket: str, key: str, ExtraArgs: dict[str, Any]) -> None:
        if self.fail:
            raise self._error("PutObject")
        self.uploads.append((bucket, key, fileobj.read(), ExtraArgs))

    def delete_object(self, Bucket: str, Key: str) -> None:
        if self.fail:
            raise self._error("DeleteObject")
        self.deleted.append((Bucket, Key))


def _settings(**overrides: Any) -> Settings:
    values = {
        "DATABASE_URL": "sqlite+pysqlite:///./test_eclipse.db",
        "STORAGE_KEY": "real-key",
        "STORAGE_SECRET": "real-secret",
        "STORAGE_REGION": "nyc3",
        "STORAGE_ENDPOINT": "nyc3.digitaloceanspaces.com/",
    }
    values.update(overrides)
    return Settings(**values)


def test_config_normalises_endpoint_and_defaults_public_url() -> None:
    config = load_storage_config(_settings())

    assert config.api_endpoint == "https://nyc3.digitaloceanspaces.com"
    assert config.public_base_url == "https://nyc3.digitaloceanspaces.com"

    custom = load_storage_config(_settings(STORAGE_PUBLIC_BASE_URL="https://cdn.example.com/"))
    assert custom.public_base_url == "https://cdn.example.com"


def test_config_rejects_missing_and_placeholder_values() -> None:
    with pytest.raises(StorageConfigurationError) as excinfo:
        load_storage_config(_settings(STORAGE_KEY=None, STORAGE_SECRET=""))
    assert "STORAGE_KEY" in str(excinfo.value)
    assert "STORAGE_SECRET" in str(excinfo.value)

    with pytest.raises(StorageConfigurationError):
        load_storage_config(_settings(STORAGE_SECRET="changeme"))


def test_build_object_key_keeps_extension_and_prefix() -> None:
    key = build_object_key("My Clip.MOV", prefix="user-1", timestamped=True)
    assert re.fullmatch(r"user-1/[0-9a-f]{12}-\d{13}\.mov", key)

    assert re.fullmatch(r"[0-9a-f]{12}", build_object_key("no-extension"))
    assert re.fullmatch(r"[0-9a-f]{12}", build_object_key("evil.p$p"))
    assert build_object_key("x.png", prefix="../a/./b").startswith("a/b/")


def test_upload_and_remove_use_the_client() -> None:
    client = FakeS3Client()
    storage = ObjectStorage(load_storage_config(_settings()), client=client)

    key = asyncio.run(storage.upload("videos", "/u1/clip.mp4", b"data", "video/mp4"))
    asyncio.run(storage.remove("videos", key))
    asyncio.run(storage.remove("videos", ""))

    assert key == "u1/clip.mp4"
    assert client.uploads == [
        ("videos", "u1/clip.mp4", b"data", {"ACL": "public-read", "ContentType": "video/mp4"})
    ]
    assert client.deleted == [("videos", "u1/clip.mp4")]
    assert storage.public_url("videos", key) == "https://nyc3.digitaloceanspaces.com/videos/u1/clip.mp4"


def test_upload_errors_are_wrapped() -> None:
    storage = ObjectStorage(load_storage_config(_settings()), client=FakeS3Client(fail=True))

    with pytest.raises(StorageUploadError):
        asyncio.run(storage.upload("thumbnails", "a.png", b"png"))
    with pytest.raises(StorageUploadError):
        asyncio.run(storage.upload("avatars", "a.png", b"png"))
    with pytest.raises(StorageDeletionError):
        asyncio.run(storage.remove("thumbnails", "a.png"))


def test_unconfigured_storage_fails_on_first_use() -> None:
    storage = ObjectStorage(settings=_settings(STORAGE_ENDPOINT=None))

    with pytest.raises(StorageConfigurationError):
        asyncio.run(storage.upload("videos", "a.mp4", b"x"))


def test_object_key_from_url_reverses_public_url() -> None:
    storage = ObjectStorage(load_storage_config(_settings()), client=FakeS3Client())
    url = storage.public_url("posts_images", "abc/photo.png")

    assert object_key_from_url("posts_images", url) == "abc/photo.png"
    assert object_key_from_url("thumbnails", url) is None
    assert object_key_from_url("posts_images", "https://picsum.photos/seed/x/640/360") is None
    assert object_key_from_url("posts_images", None) is None
