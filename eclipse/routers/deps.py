"""Shared FastAPI dependencies for the routers."""
from __future__ import annotations

from contextlib import AsyncExitStack
from typing import AsyncIterator

from fastapi import Depends, HTTPException, Request, UploadFile, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..schemas import Profile
from ..services import AuthError, ProfileStore, ServiceContainer
from ..services.spaces_service import MediaFile

_security = HTTPBearer(auto_error=False)


def get_services(request: Request) -> ServiceContainer:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Services are not ready")
    return services


async def get_profile_store(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
    services: ServiceContainer = Depends(get_services),
) -> AsyncIterator[ProfileStore]:
    """Yield a profile store signed in with the request's bearer token."""

    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    async with AsyncExitStack() as stack:
        try:
            store = await stack.enter_async_context(services.open_profile_session(credentials.credentials))
        except AuthError as exc:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message) from exc
        if store.user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Profile unavailable")
        yield store


async def get_optional_profile_store(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
    services: ServiceContainer = Depends(get_services),
) -> AsyncIterator[ProfileStore | None]:
    """Like :func:`get_profile_store` but yields ``None`` for anonymous callers."""

    if not credentials or credentials.scheme.lower() != "bearer":
        yield None
        return
    async with AsyncExitStack() as stack:
        try:
            store = await stack.enter_async_context(services.open_profile_session(credentials.credentials))
        except AuthError:
            yield None
            return
        yield store


def require_user(store: ProfileStore) -> Profile:
    user = store.user
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in")
    return user


async def read_media_file(upload: UploadFile) -> MediaFile:
    filename = (upload.filename or "").strip()
    if not filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file must include a filename.")
    content_type = (upload.content_type or "application/octet-stream").strip() or "application/octet-stream"
    content = await upload.read()
    return MediaFile(filename=filename, content=content, content_type=content_type)


__all__ = [
    "get_optional_profile_store",
    "get_profile_store",
    "get_services",
    "read_media_file",
    "require_user",
]
