"""Publishing flow for new videos: media upload, thumbnail, catalog entry."""
from __future__ import annotations

import asyncio
import logging
import uuid

from ..config import get_settings
from ..constants import DEFAULT_DURATION, UPLOAD_TIMEOUT_MESSAGE
from ..schemas import Profile, VideoDraft
from .catalog_store import CatalogError, CatalogStore
from .formatting import placeholder_image
from .spaces_service import (
    THUMBNAILS_BUCKET,
    VIDEOS_BUCKET,
    MediaFile,
    ObjectStorage,
    StorageConfigurationError,
    StorageDeletionError,
    StorageUploadError,
    build_object_key,
    object_key_from_url,
)

logger = logging.getLogger(__name__)


class UploadError(RuntimeError):
    """Raised when the video itself cannot be uploaded."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


async def _upload_thumbnail(storage: ObjectStorage, author: Profile, thumbnail: MediaFile | None) -> str:
    fallback = placeholder_image(uuid.uuid4().hex, 640, 360)
    if thumbnail is None:
        return fallback
    key = build_object_key(thumbnail.filename, prefix=author.id, timestamped=True)
    try:
        await storage.upload(THUMBNAILS_BUCKET, key, thumbnail.content, thumbnail.content_type)
    except (StorageConfigurationError, StorageUploadError):
        logger.warning("Thumbnail upload failed, using placeholder")
        return fallback
    return storage.public_url(THUMBNAILS_BUCKET, key)


async def _discard(storage: ObjectStorage, bucket: str, key: str | None) -> None:
    if not key:
        return
    try:
        await storage.remove(bucket, key)
    except (StorageConfigurationError, StorageDeletionError):
        logger.warning("Unable to remove orphaned %s object %s", bucket, key)


async def publish_video(
    storage: ObjectStorage,
    catalog: CatalogStore,
    author: Profile,
    title: str,
    video_file: MediaFile,
    *,
    description: str = "",
    duration: str = DEFAULT_DURATION,
    thumbnail: MediaFile | None = None,
    timeout: float | None = None,
) -> str:
    """Upload ``video_file``, then its thumbnail, then register the video.

    The video upload is raced against ``timeout`` seconds. Any failure of that
    step raises :class:`UploadError`; a failed thumbnail falls back to a
    placeholder. Catalog errors propagate unchanged after the uploaded
    objects are removed again.
    """

    timeout = timeout if timeout is not None else get_settings().upload_timeout_seconds
    size_mb = video_file.size / (1024 * 1024)
    logger.info("Uploading video %r for %s (%.2fMB)", video_file.filename, author.id, size_mb)

    video_key = build_object_key(video_file.filename, prefix=author.id, timestamped=True)
    try:
        await asyncio.wait_for(
            storage.upload(VIDEOS_BUCKET, video_key, video_file.content, video_file.content_type),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        logger.error("Video upload for %s timed out after %ss", author.id, timeout)
        raise UploadError(UPLOAD_TIMEOUT_MESSAGE) from exc
    except (StorageConfigurationError, StorageUploadError) as exc:
        logger.error("Video upload for %s failed: %s", author.id, exc)
        raise UploadError(str(exc)) from exc
    video_url = storage.public_url(VIDEOS_BUCKET, video_key)

    thumbnail_url = await _upload_thumbnail(storage, author, thumbnail)

    draft = VideoDraft(
        title=title,
        description=description,
        author=author.name,
        author_avatar=author.avatar,
        thumbnail=thumbnail_url,
        video_url=video_url,
        duration=duration or DEFAULT_DURATION,
    )
    try:
        return await catalog.add_video(draft)
    except CatalogError:
        await _discard(storage, VIDEOS_BUCKET, video_key)
        await _discard(storage, THUMBNAILS_BUCKET, object_key_from_url(THUMBNAILS_BUCKET, thumbnail_url))
        raise


__all__ = ["UploadError", "publish_video"]
