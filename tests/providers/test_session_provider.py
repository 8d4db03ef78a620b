"""Tests for the session provider."""

import asyncio
import threading
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import redis

from core.models import UserRole
from core.results import ErrorCode
from marketplace.profiles import FullProfile
from providers.auth import AuthClient, AuthEvent, AuthSession
from providers.session import SessionProvider, redirect_for
from providers.store import IdentityCache


def _session(user_id: str = "user-1", role: str = UserRole.BRAND) -> AuthSession:
    return AuthSession(
        access_token="token",
        user_id=user_id,
        email="lea@example.ch",
        role=role,
        expires_at=datetime.now(UTC) + timedelta(hours=1),
    )


def _profile(user_id: str = "user-1", role: str = UserRole.BRAND) -> FullProfile:
    return FullProfile(user={"id": user_id, "role": role, "full_name": "Léa"})


class TestRedirect:
    def test_role_homes(self):
        assert redirect_for(UserRole.BRAND) == "/brand"
        assert redirect_for(UserRole.CREATOR) == "/creator"
        assert redirect_for(UserRole.ADMIN) == "/mosh-cockpit"
        assert redirect_for(None) == "/"

    def test_redirect_parameter_wins_when_local(self):
        assert redirect_for(UserRole.BRAND, "/brand/campaigns/1") == "/brand/campaigns/1"
        assert redirect_for(UserRole.BRAND, "//evil.example") == "/brand"
        assert redirect_for(UserRole.BRAND, "https://evil.example") == "/brand"


class TestIdentityCache:
    def test_memory_round_trip(self):
        store = IdentityCache()
        store.save(_profile())

        assert store.load().user_id == "user-1"
        store.reset()
        assert store.load() is None

    def test_redis_errors_fall_back_to_memory(self):
        cache = MagicMock()
        cache.get.side_effect = redis.ConnectionError("down")
        cache.set.side_effect = redis.ConnectionError("down")
        store = IdentityCache(cache, key="ugc-auth-storage")

        store.save(_profile())

        assert store.load().user_id == "user-1"


class TestHydration:
    def test_cached_profile_is_not_loading(self):
        store = IdentityCache()
        store.save(_profile())

        provider = SessionProvider(AuthClient(), store, profile_loader=MagicMock())

        assert not provider.is_loading
        assert provider.role == UserRole.BRAND
        assert provider.is_authenticated

    def test_empty_cache_is_loading(self):
        provider = SessionProvider(AuthClient(), IdentityCache(), profile_loader=MagicMock())

        assert provider.is_loading
        assert provider.user is None


class TestLoading:
    def test_stalled_load_released_by_safety_timeout(self):
        release = threading.Event()

        def stalled_loader(_user_id):
            release.wait(5)
            return None

        async def scenario():
            provider = SessionProvider(
                AuthClient(_session()), IdentityCache(), profile_loader=stalled_loader, timeout=0.05
            )
            await provider.init()
            assert provider.is_loading
            await asyncio.sleep(0.2)
            loading_after_timeout = provider.is_loading
            release.set()
            await provider.wait_idle()
            await provider.close()
            return loading_after_timeout

        assert asyncio.run(scenario()) is False

    def test_initial_session_loads_profile_once(self):
        loader = MagicMock(return_value=_profile())
        auth = AuthClient(_session())

        async def scenario():
            provider = SessionProvider(auth, IdentityCache(), profile_loader=loader, timeout=1)
            await provider.init()
            await provider.wait_idle()
            # a repeated non-sign-in event for the same user is ignored
            provider._on_auth_event(AuthEvent.INITIAL_SESSION, _session())
            await provider.wait_idle()
            await provider.close()
            return provider

        provider = asyncio.run(scenario())

        loader.assert_called_once_with("user-1")
        assert provider.profile.user_id == "user-1"
        assert not provider.is_loading

    def test_sign_out_event_clears_profile(self):
        store = IdentityCache()
        store.save(_profile())
        auth = AuthClient(_session())

        async def scenario():
            provider = SessionProvider(
                auth, store, profile_loader=MagicMock(return_value=_profile()), timeout=1
            )
            await provider.init()
            await provider.wait_idle()
            auth.sign_out()
            await provider.close()
            return provider

        provider = asyncio.run(scenario())

        assert provider.profile is None
        assert store.load() is None

    def test_result_after_close_is_ignored(self):
        release = threading.Event()

        def slow_loader(_user_id):
            release.wait(5)
            return _profile()

        async def scenario():
            provider = SessionProvider(
                AuthClient(_session()), IdentityCache(), profile_loader=slow_loader, timeout=1
            )
            await provider.init()
            await provider.close()
            release.set()
            await provider.wait_idle()
            return provider

        provider = asyncio.run(scenario())

        assert provider.profile is None


class TestSignIn:
    def test_sign_in_returns_home_path(self, brand):
        auth = MagicMock()
        auth.sign_in_with_password.return_value.success = True
        auth.sign_in_with_password.return_value.data = _session(brand.id)

        async def scenario():
            provider = SessionProvider(auth, IdentityCache(), timeout=1)
            return await provider.sign_in("lea@example.ch", "secret-pass", "/brand/new")

        result = asyncio.run(scenario())

        assert result.success
        assert result.data == "/brand/new"

    def test_sign_in_loads_profile_once(self, db):
        assert AuthClient().sign_up("lea@example.ch", "secret-pass", "Léa", UserRole.BRAND).success
        user_id = AuthClient().sign_in_with_password("lea@example.ch", "secret-pass").data.user_id
        loader = MagicMock(return_value=_profile(user_id))

        async def scenario():
            provider = SessionProvider(AuthClient(), IdentityCache(), profile_loader=loader, timeout=1)
            await provider.init()
            result = await provider.sign_in("lea@example.ch", "secret-pass")
            await provider.wait_idle()
            await provider.close()
            return provider, result

        provider, result = asyncio.run(scenario())

        assert result.data == "/brand"
        loader.assert_called_once_with(user_id)
        assert provider.auth_session.user_id == user_id
        assert not provider.is_loading

    def test_missing_profile(self, db):
        auth = MagicMock()
        auth.sign_in_with_password.return_value.success = True
        auth.sign_in_with_password.return_value.data = _session("ghost")

        async def scenario():
            provider = SessionProvider(auth, IdentityCache(), timeout=1)
            return await provider.sign_in("ghost@example.ch", "secret-pass")

        result = asyncio.run(scenario())

        assert result.error_code == ErrorCode.NOT_FOUND
        assert result.error == "User profile not found. Please recreate your account."

    def test_sign_up_creates_profile(self, db):
        async def scenario():
            provider = SessionProvider(AuthClient(), IdentityCache(), timeout=1)
            result = await provider.sign_up(
                "nina@example.ch", "secret-pass", "Nina", UserRole.CREATOR, {"location_canton": "GE"}
            )
            return provider, result

        provider, result = asyncio.run(scenario())

        assert result.data == "/creator"
        assert provider.profile.creator_profile["location_canton"] == "GE"

    def test_duplicate_sign_up(self, db):
        auth = AuthClient()
        assert auth.sign_up("nina@example.ch", "secret-pass", "Nina", UserRole.CREATOR).success

        result = auth.sign_up("Nina@example.ch", "secret-pass", "Nina", UserRole.CREATOR)

        assert result.error_code == ErrorCode.ALREADY_EXISTS
