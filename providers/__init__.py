"""Client-side state holders: auth, session/profile and notification counters."""

from providers.auth import AuthClient, AuthEvent, AuthSession
from providers.notifications import NotificationCounterProvider
from providers.session import SessionProvider, redirect_for
from providers.store import IdentityCache

__all__ = [
    "AuthClient",
    "AuthEvent",
    "AuthSession",
    "IdentityCache",
    "NotificationCounterProvider",
    "SessionProvider",
    "redirect_for",
]
