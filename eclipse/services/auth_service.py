"""Email and password authentication backed by the ``accounts`` table."""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from functools import lru_cache
from typing import Any, Callable, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import SessionLocal
from ..models import Account
from ..security.secrets import MissingSecretError, require_secret

logger = logging.getLogger(__name__)

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

MIN_PASSWORD_LENGTH = 6


class AuthError(Exception):
    """Authentication failure carrying a human-readable message."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str
    user_metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    user: AuthUser
    expires_at: datetime


AuthListener = Callable[[AuthEvent, Optional[AuthSession]], Any]


class AuthSubscription:
    def __init__(self, client: "AuthClient", listener: AuthListener) -> None:
        self._client = client
        self._listener = listener

    def unsubscribe(self) -> None:
        self._client._remove_listener(self._listener)


@lru_cache(maxsize=1)
def _get_jwt_secret() -> str:
    try:
        return require_secret("JWT_SECRET_KEY")
    except MissingSecretError as exc:
        raise RuntimeError(str(exc)) from exc


def hash_password(password: str) -> str:
    """Hash a plain-text password using bcrypt."""

    return _pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    """Verify that ``password`` matches ``hashed_password``."""

    try:
        return _pwd_context.verify(password, hashed_password)
    except Exception:  # pragma: no cover - passlib internal errors are rare
        logger.exception("Password verification failed due to an unexpected error")
        return False


def _account_to_user(account: Account) -> AuthUser:
    return AuthUser(id=account.id, email=account.email, user_metadata=dict(account.user_metadata or {}))


class AuthClient:
    """Client-side view of authentication: one current session plus an event stream.

    Each client tracks at most one session. Listeners registered through
    :meth:`on_auth_state_change` receive ``SIGNED_IN`` and ``SIGNED_OUT``
    notifications, sync or async.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        *,
        secret: str | None = None,
        algorithm: str | None = None,
        expires_minutes: int | None = None,
    ) -> None:
        settings = get_settings()
        self._session_factory = session_factory
        self._secret = secret
        self._algorithm = algorithm or settings.jwt_algorithm
        self._expires_minutes = expires_minutes or settings.jwt_expires_minutes
        self._session: AuthSession | None = None
        self._listeners: list[AuthListener] = []

    def fork(self) -> "AuthClient":
        """Return a fresh client sharing this client's backend and token settings."""

        return AuthClient(
            self._session_factory,
            secret=self._secret,
            algorithm=self._algorithm,
            expires_minutes=self._expires_minutes,
        )

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------
    def _signing_secret(self) -> str:
        return self._secret or _get_jwt_secret()

    def _issue_session(self, user: AuthUser) -> AuthSession:
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(minutes=self._expires_minutes)
        payload = {"sub": user.id, "email": user.email, "exp": expires_at, "iat": now}
        token = jwt.encode(payload, self._signing_secret(), algorithm=self._algorithm)
        return AuthSession(access_token=token, user=user, expires_at=expires_at)

    def _decode_subject(self, token: str) -> str | None:
        try:
            payload = jwt.decode(token, self._signing_secret(), algorithms=[self._algorithm])
        except JWTError:
            return None
        subject = payload.get("sub")
        return str(subject) if subject else None

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    def on_auth_state_change(self, listener: AuthListener) -> AuthSubscription:
        self._listeners.append(listener)
        return AuthSubscription(self, listener)

    def _remove_listener(self, listener: AuthListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    async def _emit(self, event: AuthEvent, session: AuthSession | None) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event, session)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Auth listener failed while handling %s", event.value)

    # ------------------------------------------------------------------
    # Blocking database work
    # ------------------------------------------------------------------
    def _sign_up_sync(self, email: str, password: str, metadata: dict[str, Any]) -> AuthUser:
        with self._session_factory() as db:
            existing = db.scalar(select(Account).where(Account.email == email))
            if existing is not None:
                raise AuthError("User already registered")
            account = Account(email=email, hashed_password=hash_password(password), user_metadata=metadata)
            try:
                db.add(account)
                db.commit()
                db.refresh(account)
            except IntegrityError as exc:
                db.rollback()
                raise AuthError("User already registered") from exc
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception("Failed to register account")
                raise AuthError("Unable to register user") from exc
            return _account_to_user(account)

    def _sign_in_sync(self, email: str, password: str) -> AuthUser:
        with self._session_factory() as db:
            account = db.scalar(select(Account).where(Account.email == email))
            if account is None or not verify_password(password, account.hashed_password):
                raise AuthError("Invalid login credentials")
            try:
                account.last_sign_in_at = datetime.now(timezone.utc)
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                logger.warning("Failed to update last_sign_in_at for account %s", account.id)
            return _account_to_user(account)

    def _load_user_sync(self, user_id: str) -> AuthUser | None:
        try:
            with self._session_factory() as db:
                account = db.get(Account, user_id)
                return _account_to_user(account) if account is not None else None
        except SQLAlchemyError:
            logger.exception("Failed to load account %s", user_id)
            return None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def sign_up(self, email: str, password: str, metadata: dict[str, Any] | None = None) -> AuthSession:
        """Create an account with attached display metadata and sign it in."""

        normalized = (email or "").strip().lower()
        if not normalized:
            raise AuthError("Email required.")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters.")
        user = await asyncio.to_thread(self._sign_up_sync, normalized, password, dict(metadata or {}))
        logger.info("Registered account %s", user.id)
        session = self._issue_session(user)
        self._session = session
        await self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        normalized = (email or "").strip().lower()
        user = await asyncio.to_thread(self._sign_in_sync, normalized, password or "")
        session = self._issue_session(user)
        self._session = session
        await self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def get_user(self, access_token: str) -> AuthUser | None:
        """Resolve the account behind ``access_token``; ``None`` if invalid or unknown."""

        subject = self._decode_subject(access_token)
        if subject is None:
            return None
        return await asyncio.to_thread(self._load_user_sync, subject)

    async def set_session(self, access_token: str) -> AuthSession:
        """Adopt an existing token as this client's current session."""

        user = await self.get_user(access_token)
        if user is None:
            raise AuthError("Invalid session")
        try:
            claims = jwt.get_unverified_claims(access_token)
            expires_at = datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
        except (JWTError, KeyError, TypeError, ValueError):
            expires_at = datetime.now(timezone.utc) + timedelta(minutes=self._expires_minutes)
        self._session = AuthSession(access_token=access_token, user=user, expires_at=expires_at)
        return self._session

    def get_session(self) -> AuthSession | None:
        return self._session

    async def sign_out(self) -> None:
        session, self._session = self._session, None
        await self._emit(AuthEvent.SIGNED_OUT, session)


__all__ = [
    "AuthClient",
    "AuthError",
    "AuthEvent",
    "AuthSession",
    "AuthSubscription",
    "AuthUser",
    "hash_password",
    "verify_password",
]
