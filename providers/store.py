"""Persisted identity snapshot used to hydrate the session before it loads."""

from __future__ import annotations

import logging

import redis

from core.cache import RedisCache
from core.config import settings
from marketplace.profiles import FullProfile

logger = logging.getLogger(__name__)


class IdentityCache:
    """
    Last known user and role profile under one fixed key.

    Backed by Redis when available, otherwise kept in memory for the
    lifetime of the process. Writes replace the whole snapshot.
    """

    def __init__(self, cache: RedisCache | None = None, key: str | None = None) -> None:
        self._cache = cache
        self.key = key or settings.identity_cache_key
        self._memory: dict | None = None

    def load(self) -> FullProfile | None:
        data = self._memory
        if self._cache:
            try:
                data = self._cache.get(self.key)
            except redis.RedisError:
                logger.warning("Identity cache unavailable, using memory copy")
        if not data or not data.get("user"):
            return None
        try:
            return FullProfile.from_dict(data)
        except (KeyError, TypeError):
            logger.warning("Discarding malformed identity snapshot")
            return None

    def save(self, profile: FullProfile) -> None:
        data = profile.to_dict()
        self._memory = data
        if self._cache:
            try:
                self._cache.set(self.key, data, ttl=settings.identity_cache_ttl_seconds)
            except redis.RedisError:
                logger.warning("Could not persist identity snapshot")

    def reset(self) -> None:
        self._memory = None
        if self._cache:
            try:
                self._cache.delete(self.key)
            except redis.RedisError:
                logger.warning("Could not clear identity snapshot")
