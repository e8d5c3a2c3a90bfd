"""Device-local binary storage for media originals that stay on this machine."""
from __future__ import annotations

import asyncio
import logging
import re
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)

VIDEO_NAMESPACE = "videos"
POST_NAMESPACE = "posts"
NAMESPACES: tuple[str, ...] = (VIDEO_NAMESPACE, POST_NAMESPACE)


class BlobStoreError(RuntimeError):
    """Raised when a local blob cannot be read or written."""


def _safe_name(key: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]", "-", (key or "").strip()).strip(".")
    if not cleaned:
        raise BlobStoreError("Blob keys must contain at least one safe character")
    return cleaned


class LocalBlobStore:
    """Key/value blobs on disk, one directory per namespace."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _namespace_dir(self, namespace: str) -> Path:
        if namespace not in NAMESPACES:
            raise BlobStoreError(f"Unknown blob namespace: {namespace}")
        return self._root / namespace

    def _path(self, namespace: str, key: str) -> Path:
        return self._namespace_dir(namespace) / _safe_name(key)

    def _put_sync(self, namespace: str, key: str, content: bytes) -> None:
        path = self._path(namespace, key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as exc:
            raise BlobStoreError(f"Unable to store blob {namespace}/{key}") from exc

    def _get_sync(self, namespace: str, key: str) -> bytes | None:
        path = self._path(namespace, key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise BlobStoreError(f"Unable to read blob {namespace}/{key}") from exc

    def _delete_sync(self, namespace: str, key: str) -> None:
        self._path(namespace, key).unlink(missing_ok=True)

    def _clear_sync(self, namespace: str) -> None:
        directory = self._namespace_dir(namespace)
        if directory.exists():
            shutil.rmtree(directory)

    async def put(self, namespace: str, key: str, content: bytes) -> None:
        await asyncio.to_thread(self._put_sync, namespace, key, content)

    async def get(self, namespace: str, key: str) -> bytes | None:
        return await asyncio.to_thread(self._get_sync, namespace, key)

    async def delete(self, namespace: str, key: str) -> None:
        await asyncio.to_thread(self._delete_sync, namespace, key)

    async def clear(self, namespace: str) -> None:
        await asyncio.to_thread(self._clear_sync, namespace)
        logger.info("Cleared local %s blobs", namespace)


__all__ = ["BlobStoreError", "LocalBlobStore", "NAMESPACES", "POST_NAMESPACE", "VIDEO_NAMESPACE"]
