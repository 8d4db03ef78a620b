"""Core infrastructure shared across all modules."""

from core.cache import RedisCache, create_cache
from core.config import settings
from core.db import get_session, init_db, new_id
from core.models import Base
from core.results import ErrorCode, MarketplaceError, Result

__all__ = [
    "Base",
    "ErrorCode",
    "MarketplaceError",
    "RedisCache",
    "Result",
    "create_cache",
    "get_session",
    "init_db",
    "new_id",
    "settings",
]
