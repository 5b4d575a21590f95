"""Identity provider: password accounts, the client session and auth events."""

from __future__ import annotations

import asyncio
import secrets
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError
from sqlmodel import select

from ..domain.entities import AuthEvent, AuthSession, AuthUser, generate_id
from ..domain.errors import AuthError
from ..infra.database import SessionFactory
from ..logging_config import get_logger
from ..models.auth import AuthUserRecord

logger = get_logger(__name__)

AuthListener = Callable[[AuthEvent, Optional[AuthSession]], None]

_hasher = PasswordHasher()


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class IdentityProvider(Protocol):
    """The part of an identity provider the data layer consumes."""

    async def get_session(self) -> Optional[AuthSession]:
        ...

    async def sign_in_with_password(self, *, email: str, password: str) -> Optional[AuthSession]:
        ...

    async def sign_up(self, *, email: str, password: str, name: str = "") -> AuthSession:
        ...

    async def sign_out(self) -> None:
        ...

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        ...


class SQLModelIdentityProvider:
    """Password identities stored in ``auth_users``, hashed with argon2.

    Holds at most one client session at a time and notifies subscribers of
    sign-in, sign-out and token refresh.
    """

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory
        self._session: Optional[AuthSession] = None
        self._listeners: list[AuthListener] = []

    # -- accounts -------------------------------------------------------

    def _create_user(self, email: str, password: str, name: str) -> AuthUserRecord:
        password_hash = _hasher.hash(password)
        with self.session_factory() as session:
            existing = session.exec(
                select(AuthUserRecord).where(AuthUserRecord.email == email)
            ).first()
            if existing:
                raise AuthError("Email already registered")
            user = AuthUserRecord(id=generate_id(), email=email, name=name, password_hash=password_hash)
            session.add(user)
            session.commit()
            session.refresh(user)
            session.expunge(user)
            return user

    def _authenticate(self, email: str, password: str) -> Optional[AuthUserRecord]:
        with self.session_factory() as session:
            user = session.exec(select(AuthUserRecord).where(AuthUserRecord.email == email)).first()
            if user is None:
                return None
            try:
                _hasher.verify(user.password_hash, password)
            except (VerifyMismatchError, InvalidHash, VerificationError):
                return None
            user.last_sign_in_at = datetime.now(timezone.utc)
            session.add(user)
            session.commit()
            session.refresh(user)
            session.expunge(user)
            return user

    # -- session --------------------------------------------------------

    def _open_session(self, user: AuthUserRecord) -> AuthSession:
        self._session = AuthSession(
            user=AuthUser(id=user.id, email=user.email, name=user.name),
            access_token=secrets.token_urlsafe(32),
            issued_at=datetime.now(timezone.utc),
        )
        return self._session

    async def get_session(self) -> Optional[AuthSession]:
        return self._session

    async def sign_up(self, *, email: str, password: str, name: str = "") -> AuthSession:
        email = _normalize_email(email)
        if not email or not password:
            raise AuthError("Email and password are required")
        user = await asyncio.to_thread(self._create_user, email, password, name.strip())
        session = self._open_session(user)
        logger.info("Signed up new identity", extra={"user_id": user.id})
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_in_with_password(self, *, email: str, password: str) -> Optional[AuthSession]:
        email = _normalize_email(email)
        if not email:
            return None
        user = await asyncio.to_thread(self._authenticate, email, password)
        if user is None:
            logger.info("Rejected sign-in attempt")
            return None
        session = self._open_session(user)
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_out(self) -> None:
        if self._session is None:
            return
        self._session = None
        self._emit(AuthEvent.SIGNED_OUT, None)

    async def refresh_session(self) -> Optional[AuthSession]:
        """Rotate the access token of the current session."""
        if self._session is None:
            return None
        self._session = AuthSession(
            user=self._session.user,
            access_token=secrets.token_urlsafe(32),
            issued_at=datetime.now(timezone.utc),
        )
        self._emit(AuthEvent.TOKEN_REFRESHED, self._session)
        return self._session

    # -- events ---------------------------------------------------------

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """Subscribe to auth events; returns the unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: AuthEvent, session: Optional[AuthSession]) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                logger.exception(f"Auth listener failed on {event.value}")
