"""Authentication routes: register, login and logout."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ..schemas import AuthResponse, LoginRequest, RegisterRequest
from ..services import ProfileStore, ServiceContainer
from .deps import get_profile_store, get_services

router = APIRouter(prefix="/auth", tags=["auth"])


def _session_response(store: ProfileStore) -> AuthResponse:
    token = store.access_token
    if token is None:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Session was not created")
    return AuthResponse(access_token=token, profile=store.user)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register_endpoint(
    payload: RegisterRequest,
    services: ServiceContainer = Depends(get_services),
) -> AuthResponse:
    store = services.new_profile_store()
    await store.start()
    try:
        result = await store.register(payload.email, payload.name, payload.handle, payload.password)
        if not result.success:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error)
        return _session_response(store)
    finally:
        await store.close()


@router.post("/login", response_model=AuthResponse)
async def login_endpoint(
    payload: LoginRequest,
    services: ServiceContainer = Depends(get_services),
) -> AuthResponse:
    store = services.new_profile_store()
    await store.start()
    try:
        result = await store.login(payload.email, payload.password)
        if not result.success:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=result.error)
        return _session_response(store)
    finally:
        await store.close()


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout_endpoint(store: ProfileStore = Depends(get_profile_store)) -> Response:
    await store.logout()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
