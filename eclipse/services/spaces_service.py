"""S3-compatible object storage (DigitalOcean Spaces) for media buckets."""
from __future__ import annotations

import asyncio
import io
import logging
import re
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable
from urllib.parse import urlparse

from boto3.session import Session
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from ..config import Settings, get_settings
from ..security.secrets import MissingSecretError, is_placeholder, require_secret

logger = logging.getLogger(__name__)

VIDEOS_BUCKET = "videos"
THUMBNAILS_BUCKET = "thumbnails"
POST_IMAGES_BUCKET = "posts_images"
BUCKETS: tuple[str, ...] = (VIDEOS_BUCKET, THUMBNAILS_BUCKET, POST_IMAGES_BUCKET)


@dataclass(frozen=True)
class StorageConfig:
    """Runtime configuration extracted from settings."""

    key: str
    secret: str
    region: str
    api_endpoint: str
    public_base_url: str


@dataclass(frozen=True)
class MediaFile:
    """An in-memory file selected for upload."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


class StorageConfigurationError(RuntimeError):
    """Raised when required object storage settings are missing or invalid."""


class StorageUploadError(RuntimeError):
    """Raised when an upload to object storage fails."""


class StorageDeletionError(RuntimeError):
    """Raised when deleting an object from storage fails."""


def load_storage_config(settings: Settings | None = None) -> StorageConfig:
    """Read and validate object storage configuration."""

    settings = settings or get_settings()
    required: dict[str, str | None] = {
        "STORAGE_KEY": settings.storage_key,
        "STORAGE_SECRET": settings.storage_secret,
        "STORAGE_REGION": settings.storage_region,
        "STORAGE_ENDPOINT": settings.storage_endpoint,
    }
    missing = [name for name, value in required.items() if not value or not value.strip()]
    if missing:
        raise StorageConfigurationError("Missing required object storage configuration: " + ", ".join(sorted(missing)))

    try:
        key = require_secret("STORAGE_KEY", settings.storage_key)
        secret = require_secret("STORAGE_SECRET", settings.storage_secret)
    except MissingSecretError as exc:
        raise StorageConfigurationError(str(exc)) from exc

    region = (settings.storage_region or "").strip()
    endpoint_raw = (settings.storage_endpoint or "").strip()
    if is_placeholder(region):
        raise StorageConfigurationError("STORAGE_REGION must be set to a valid region identifier")
    if is_placeholder(endpoint_raw):
        raise StorageConfigurationError("STORAGE_ENDPOINT must point to your storage endpoint")

    api_endpoint = endpoint_raw.rstrip("/")
    parsed = urlparse(api_endpoint)
    if not parsed.scheme:
        api_endpoint = f"https://{api_endpoint.lstrip(':/')}"
        parsed = urlparse(api_endpoint)
    if not (parsed.netloc or parsed.path):
        raise StorageConfigurationError("STORAGE_ENDPOINT must include a hostname.")

    public_base_url = (settings.storage_public_base_url or "").strip().rstrip("/") or api_endpoint
    return StorageConfig(
        key=key,
        secret=secret,
        region=region,
        api_endpoint=parsed.geturl().rstrip("/"),
        public_base_url=public_base_url,
    )


def _sanitize_segments(parts: Iterable[str]) -> list[str]:
    """Sanitize path segments to be safe for object keys."""

    sanitized: list[str] = []
    for part in parts:
        if part in {"", ".", ".."}:
            continue
        cleaned = re.sub(r"[^A-Za-z0-9._-]", "-", part.strip())
        cleaned = re.sub(r"-+", "-", cleaned).strip("-._")
        if cleaned:
            sanitized.append(cleaned)
    return sanitized


def build_object_key(filename: str | None, *, prefix: str | None = None, timestamped: bool = False) -> str:
    """Generate a random object key that keeps the original file extension.

    ``prefix`` namespaces the key (uploads are grouped per user id) and
    ``timestamped`` appends the upload time in milliseconds to the name.
    """

    extension = Path(filename or "").suffix.lower()
    if extension and not re.fullmatch(r"\.[A-Za-z0-9]{1,10}", extension):
        extension = ""

    name = uuid.uuid4().hex[:12]
    if timestamped:
        name = f"{name}-{int(time.time() * 1000)}"

    folder = "/".join(_sanitize_segments((prefix or "").replace("\\", "/").split("/")))
    key = f"{folder}/{name}{extension}" if folder else f"{name}{extension}"
    return key.lstrip("/")


def object_key_from_url(bucket: str, url: str | None) -> str | None:
    """Recover the object key from a public URL built for ``bucket``."""

    if not url:
        return None
    path = urlparse(url).path
    marker = f"/{bucket}/"
    index = path.find(marker)
    if index < 0:
        return None
    return path[index + len(marker):] or None


class ObjectStorage:
    """Upload, address and remove objects in named buckets.

    Configuration is validated on first use so an unconfigured deployment can
    still serve every feature that does not touch storage.
    """

    def __init__(
        self,
        config: StorageConfig | None = None,
        *,
        client: BaseClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._settings = settings

    @property
    def config(self) -> StorageConfig:
        if self._config is None:
            self._config = load_storage_config(self._settings)
        return self._config

    @property
    def client(self) -> BaseClient:
        if self._client is None:
            config = self.config
            session = Session()
            self._client = session.client(
                "s3",
                region_name=config.region,
                endpoint_url=config.api_endpoint,
                aws_access_key_id=config.key,
                aws_secret_access_key=config.secret,
            )
        return self._client

    @staticmethod
    def _check_bucket(bucket: str) -> None:
        if bucket not in BUCKETS:
            raise StorageUploadError(f"Unknown bucket: {bucket}")

    async def upload(
        self,
        bucket: str,
        key: str,
        content: bytes,
        content_type: str | None = None,
    ) -> str:
        """Upload ``content`` under ``bucket/key`` and return the key."""

        self._check_bucket(bucket)
        normalized_key = key.lstrip("/")
        if not normalized_key:
            raise StorageUploadError("Invalid object key generated for upload")
        resolved_type = (content_type or "application/octet-stream").strip() or "application/octet-stream"
        s3_client = self.client

        def _upload() -> None:
            try:
                s3_client.upload_fileobj(
                    io.BytesIO(content),
                    bucket,
                    normalized_key,
                    ExtraArgs={"ACL": "public-read", "ContentType": resolved_type},
                )
            except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network errors hard to reproduce
                logger.exception("Upload to %s failed: %s", bucket, exc)
                raise StorageUploadError(f"Upload to {bucket} failed") from exc

        await asyncio.to_thread(_upload)
        return normalized_key

    def public_url(self, bucket: str, key: str) -> str:
        """Build the publicly fetchable URL of an uploaded object."""

        normalized_key = key.lstrip("/")
        return f"{self.config.public_base_url}/{bucket}/{normalized_key}"

    async def remove(self, bucket: str, key: str) -> None:
        if not key:
            return
        normalized_key = key.lstrip("/")
        s3_client = self.client

        def _delete() -> None:
            try:
                s3_client.delete_object(Bucket=bucket, Key=normalized_key)
            except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network bound
                logger.exception("Failed to delete object %s/%s", bucket, normalized_key)
                raise StorageDeletionError("Unable to delete media from storage") from exc

        await asyncio.to_thread(_delete)


__all__ = [
    "BUCKETS",
    "MediaFile",
    "ObjectStorage",
    "POST_IMAGES_BUCKET",
    "StorageConfig",
    "StorageConfigurationError",
    "StorageDeletionError",
    "StorageUploadError",
    "THUMBNAILS_BUCKET",
    "VIDEOS_BUCKET",
    "build_object_key",
    "load_storage_config",
    "object_key_from_url",
]
