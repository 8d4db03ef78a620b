"""Password auth client with a session-change event stream."""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.db import get_session, new_id
from core.models import User, UserRole
from core.results import ErrorCode, Result
from core.security import (
    TokenError,
    create_access_token,
    get_password_hash,
    verify_password,
    verify_token,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8
SIGN_UP_ROLES = frozenset({UserRole.BRAND, UserRole.CREATOR})


class AuthEvent(StrEnum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True, slots=True)
class AuthSession:
    access_token: str
    user_id: str
    email: str
    role: str
    expires_at: datetime

    @property
    def expired(self) -> bool:
        return self.expires_at <= datetime.now(UTC)


AuthListener = Callable[[AuthEvent, AuthSession | None], None]


def _issue(user: User) -> AuthSession:
    token, expires_at = create_access_token({"sub": user.id, "email": user.email, "role": user.role})
    return AuthSession(token, user.id, user.email, user.role, expires_at)


def session_from_token(token: str) -> AuthSession | None:
    """Rebuild a session from a bearer token; None when invalid or expired."""
    try:
        claims = verify_token(token)
    except TokenError:
        return None
    return AuthSession(
        access_token=token,
        user_id=claims["sub"],
        email=claims.get("email", ""),
        role=claims.get("role", ""),
        expires_at=datetime.fromtimestamp(claims["exp"], UTC),
    )


class AuthClient:
    """
    Holds one signed-in session and tells listeners when it changes.

    Listeners are called synchronously on the thread that caused the
    change; on_auth_state_change emits INITIAL_SESSION right away.
    """

    def __init__(self, session: AuthSession | None = None) -> None:
        self._session = session
        self._listeners: list[AuthListener] = []
        self._lock = threading.Lock()

    def get_session(self) -> AuthSession | None:
        if self._session is not None and self._session.expired:
            self._session = None
        return self._session

    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)
        self._call(listener, AuthEvent.INITIAL_SESSION, self.get_session())

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def sign_up(self, email: str, password: str, full_name: str, role: str) -> Result[AuthSession]:
        email = (email or "").strip().lower()
        if not EMAIL_PATTERN.match(email):
            return Result.fail("Invalid email address", ErrorCode.VALIDATION_ERROR)
        if len(password or "") < MIN_PASSWORD_LENGTH:
            return Result.fail(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                ErrorCode.VALIDATION_ERROR,
            )
        if role not in SIGN_UP_ROLES:
            return Result.fail("Role must be brand or creator", ErrorCode.VALIDATION_ERROR)
        if not (full_name or "").strip():
            return Result.fail("Full name is required", ErrorCode.VALIDATION_ERROR)

        try:
            with get_session() as db:
                user = User(
                    id=new_id(),
                    email=email,
                    hashed_password=get_password_hash(password),
                    full_name=full_name.strip(),
                    role=role,
                )
                db.add(user)
                db.commit()
        except IntegrityError:
            return Result.fail("User already registered", ErrorCode.ALREADY_EXISTS)
        except SQLAlchemyError as e:
            logger.exception("Sign-up failed for %s", email)
            return Result.fail(str(e))

        session = _issue(user)
        self._set(AuthEvent.SIGNED_IN, session)
        return Result.ok(session)

    def sign_in_with_password(self, email: str, password: str) -> Result[AuthSession]:
        email = (email or "").strip().lower()
        try:
            with get_session() as db:
                user = db.scalar(select(User).where(func.lower(User.email) == email))
        except SQLAlchemyError as e:
            logger.exception("Sign-in lookup failed for %s", email)
            return Result.fail(str(e))

        if user is None or not verify_password(password or "", user.hashed_password):
            return Result.fail("Invalid login credentials", ErrorCode.NOT_AUTHENTICATED)

        session = _issue(user)
        self._set(AuthEvent.SIGNED_IN, session)
        return Result.ok(session)

    def sign_out(self) -> None:
        self._set(AuthEvent.SIGNED_OUT, None)

    def _set(self, event: AuthEvent, session: AuthSession | None) -> None:
        self._session = session
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            self._call(listener, event, session)

    @staticmethod
    def _call(listener: AuthListener, event: AuthEvent, session: AuthSession | None) -> None:
        try:
            listener(event, session)
        except Exception:
            logger.exception("Auth listener failed on %s", event)
