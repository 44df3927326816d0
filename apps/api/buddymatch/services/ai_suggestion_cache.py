"""TTL cache for AI suggestion results.

Injected into the ranker (held on app.state, exposed via a dependency) so it
can be swapped for Redis in multi-worker deployments or replaced in tests.
"""

import hashlib
import json
import logging
import threading
import time
from typing import Protocol

from pydantic import ValidationError

from buddymatch.core.config import settings
from buddymatch.core.redis_client import get_sync_redis_client
from buddymatch.schemas.ai_matching import AISuggestionResponse, NewcomerProfile

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "ai_suggestions:"


class SuggestionCacheUnavailableError(Exception):
    """The cache backend could not be cleared."""


def build_cache_key(newcomer_id: str, profile: NewcomerProfile) -> str:
    """Deterministic key for (newcomer id, profile snapshot)."""
    payload = json.dumps(
        {"newcomer_id": newcomer_id, "profile": profile.model_dump()},
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class SuggestionCache(Protocol):
    def get(self, key: str) -> AISuggestionResponse | None: ...

    def set(self, key: str, value: AISuggestionResponse) -> None: ...

    def clear(self) -> None: ...


class MemorySuggestionCache:
    """Process-local cache; entries expire after ttl_seconds."""

    def __init__(self, ttl_seconds: int = 300, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, AISuggestionResponse]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> AISuggestionResponse | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: AISuggestionResponse) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisSuggestionCache:
    """
    Shared cache backed by Redis SETEX.

    Outages and unreadable entries turn lookups into misses and writes into
    no-ops. A failed clear raises SuggestionCacheUnavailableError.
    """

    def __init__(self, client, ttl_seconds: int = 300, prefix: str = CACHE_KEY_PREFIX):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    def get(self, key: str) -> AISuggestionResponse | None:
        import redis

        try:
            raw = self.client.get(f"{self.prefix}{key}")
        except redis.RedisError as e:
            logger.warning(f"Suggestion cache read failed: {e}")
            return None
        if raw is None:
            return None
        try:
            return AISuggestionResponse.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable suggestion cache entry {key}: {e}")
            return None

    def set(self, key: str, value: AISuggestionResponse) -> None:
        import redis

        try:
            self.client.setex(f"{self.prefix}{key}", self.ttl_seconds, value.model_dump_json())
        except redis.RedisError as e:
            logger.warning(f"Suggestion cache write failed: {e}")

    def clear(self) -> None:
        import redis

        try:
            keys = list(self.client.scan_iter(match=f"{self.prefix}*"))
            if keys:
                self.client.delete(*keys)
        except redis.RedisError as e:
            logger.warning(f"Suggestion cache clear failed: {e}")
            raise SuggestionCacheUnavailableError("AI suggestion cache is unavailable") from e


def build_suggestion_cache() -> SuggestionCache:
    """Redis-backed when REDIS_URL is configured, in-memory otherwise."""
    ttl = settings.AI_SUGGESTION_CACHE_TTL_SECONDS
    client = get_sync_redis_client()
    if client is not None:
        logger.info("AI suggestion cache backed by Redis")
        return RedisSuggestionCache(client, ttl_seconds=ttl)
    return MemorySuggestionCache(ttl_seconds=ttl)
