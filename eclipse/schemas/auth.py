"""Pydantic schemas for authentication endpoints."""
from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field

from .profiles import Profile


class RegisterRequest(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=150)
    handle: str = Field(..., min_length=1, max_length=150)
    password: str | None = Field(default=None, max_length=128)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str | None = None


class AuthResult(BaseModel):
    """Outcome of a login or registration attempt."""

    success: bool
    error: str | None = None


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    profile: Profile | None = None


__all__ = ["RegisterRequest", "LoginRequest", "AuthResult", "AuthResponse"]
