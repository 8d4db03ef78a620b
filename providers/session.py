"""
Session and profile state for one client.

SessionProvider replaces a process-wide auth singleton: construct it with
its collaborators, await init() to start listening to the auth client, and
await close() to dispose. The profile is hydrated from the identity cache
at construction so a returning user is not shown as loading.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from core.cache import create_cache
from core.config import settings
from core.models import UserRole
from core.results import ErrorCode, Result
from marketplace.profiles import FullProfile, create_user_profile, get_profile_by_user_id
from providers.auth import AuthClient, AuthEvent, AuthSession
from providers.store import IdentityCache

logger = logging.getLogger(__name__)

ROLE_HOME = {
    UserRole.BRAND: "/brand",
    UserRole.CREATOR: "/creator",
    UserRole.ADMIN: "/mosh-cockpit",
}

ProfileLoader = Callable[[str], FullProfile | None]


def redirect_for(role: str | None, redirect: str | None = None) -> str:
    """Home path for a role; a same-site redirect parameter wins."""
    if redirect and redirect.startswith("/") and not redirect.startswith("//"):
        return redirect
    return ROLE_HOME.get(role, "/")


class SessionProvider:
    def __init__(
        self,
        auth: AuthClient,
        store: IdentityCache | None = None,
        profile_loader: ProfileLoader = get_profile_by_user_id,
        timeout: float | None = None,
    ) -> None:
        self._auth = auth
        self._store = store or IdentityCache(create_cache())
        self._load_profile = profile_loader
        self._timeout = timeout if timeout is not None else settings.session_load_timeout_seconds

        self.auth_session: AuthSession | None = None
        self.profile: FullProfile | None = self._store.load()
        self.is_loading = self.profile is None

        self._loading_user_id: str | None = None
        self._signing_in = False
        self._mounted = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._safety_timer: asyncio.TimerHandle | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def user(self) -> dict[str, Any] | None:
        return self.profile.user if self.profile else None

    @property
    def role(self) -> str | None:
        return self.profile.role if self.profile else None

    @property
    def is_authenticated(self) -> bool:
        return self.profile is not None

    async def init(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._mounted = True
        self._safety_timer = self._loop.call_later(self._timeout, self._on_safety_timeout)
        self._unsubscribe = self._auth.on_auth_state_change(self._on_auth_event)

    async def close(self) -> None:
        """Stop reacting to events; in-flight loads finish but are ignored."""
        self._mounted = False
        if self._safety_timer is not None:
            self._safety_timer.cancel()
            self._safety_timer = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def wait_idle(self) -> None:
        """Wait for profile loads started so far."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_safety_timeout(self) -> None:
        if self._mounted and self.is_loading:
            logger.warning("Session load exceeded %.1fs, continuing without profile", self._timeout)
            self.is_loading = False

    def _on_auth_event(self, event: AuthEvent, session: AuthSession | None) -> None:
        if self._loop is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._handle_auth_event(event, session)
        else:
            self._loop.call_soon_threadsafe(self._handle_auth_event, event, session)

    def _handle_auth_event(self, event: AuthEvent, session: AuthSession | None) -> None:
        if not self._mounted:
            return
        self.auth_session = session

        if session is None:
            self._loading_user_id = None
            self._clear()
            return

        if event == AuthEvent.SIGNED_IN and self._signing_in:
            # sign_in() and sign_up() set this profile themselves
            self._loading_user_id = session.user_id
            return
        # one load per user; a fresh sign-in always reloads
        if self._loading_user_id == session.user_id and event != AuthEvent.SIGNED_IN:
            return
        self._loading_user_id = session.user_id
        task = self._loop.create_task(self._load(session.user_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _load(self, user_id: str) -> None:
        try:
            profile = await asyncio.to_thread(self._load_profile, user_id)
            if not self._mounted or self._loading_user_id != user_id:
                return
            if profile is not None:
                self._set_profile(profile)
        except Exception:
            logger.exception("Failed to load profile for %s", user_id)
        finally:
            if self._mounted:
                self.is_loading = False

    def _set_profile(self, profile: FullProfile) -> None:
        self.profile = profile
        self._store.save(profile)

    def _clear(self) -> None:
        self.profile = None
        self.is_loading = False
        self._store.reset()

    async def sign_in(self, email: str, password: str, redirect: str | None = None) -> Result[str]:
        """Sign in and load the profile eagerly; returns the path to go to."""
        self._signing_in = True
        try:
            result = await asyncio.to_thread(self._auth.sign_in_with_password, email, password)
            if not result.success:
                return Result.fail(result.error or "Sign-in failed", result.error_code)
            self._loading_user_id = result.data.user_id
            profile = await asyncio.to_thread(self._load_profile, result.data.user_id)
        finally:
            self._signing_in = False
        if profile is None:
            return Result.fail(
                "User profile not found. Please recreate your account.", ErrorCode.NOT_FOUND
            )
        self._set_profile(profile)
        self.is_loading = False
        return Result.ok(redirect_for(profile.role, redirect))

    async def sign_up(
        self,
        email: str,
        password: str,
        full_name: str,
        role: str,
        extended_profile: dict[str, Any] | None = None,
    ) -> Result[str]:
        self._signing_in = True
        try:
            result = await asyncio.to_thread(self._auth.sign_up, email, password, full_name, role)
            if not result.success:
                return Result.fail(result.error or "Sign-up failed", result.error_code)
            self._loading_user_id = result.data.user_id
            created = await asyncio.to_thread(
                create_user_profile, result.data.user_id, full_name, role, extended_profile
            )
        finally:
            self._signing_in = False
        if not created.success:
            return Result.fail(created.error or "Profile creation failed", created.error_code)
        self._set_profile(created.data)
        self.is_loading = False
        return Result.ok(redirect_for(role))

    async def sign_out(self) -> str:
        self._loading_user_id = None
        await asyncio.to_thread(self._auth.sign_out)
        self._clear()
        return "/"

    async def refresh_profile(self) -> FullProfile | None:
        if self.auth_session is None:
            return self.profile
        profile = await asyncio.to_thread(self._load_profile, self.auth_session.user_id)
        if profile is not None and self._mounted:
            self._set_profile(profile)
        return self.profile
