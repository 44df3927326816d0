"""Tests for the suggestion cache backends."""

import pytest
import redis

from buddymatch.schemas.ai_matching import AISuggestionResponse, NewcomerProfile
from buddymatch.services.ai_suggestion_cache import (
    MemorySuggestionCache,
    RedisSuggestionCache,
    SuggestionCacheUnavailableError,
    build_cache_key,
)


RESPONSE = AISuggestionResponse(suggestions=[], total_analyzed=3, processing_time_ms=12)


class FakeRedis:
    """Minimal in-process stand-in for the redis client methods the cache uses."""

    def __init__(self, fail: bool = False):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.fail = fail

    def get(self, key):
        if self.fail:
            raise redis.ConnectionError("down")
        return self.store.get(key)

    def setex(self, key, ttl, value):
        if self.fail:
            raise redis.ConnectionError("down")
        self.store[key] = value
        self.ttls[key] = ttl

    def scan_iter(self, match):
        if self.fail:
            raise redis.ConnectionError("down")
        prefix = match.rstrip("*")
        return [key for key in self.store if key.startswith(prefix)]

    def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)


def test_cache_key_depends_on_id_and_profile():
    profile = NewcomerProfile(first_name="Nora", last_name="Tester", interests=["Chess"])

    key = build_cache_key("n1", profile)

    assert key == build_cache_key("n1", profile.model_copy())
    assert key != build_cache_key("n2", profile)
    assert key != build_cache_key("n1", profile.model_copy(update={"bio": "New bio"}))


def test_memory_cache_get_set_clear():
    cache = MemorySuggestionCache(ttl_seconds=60)

    assert cache.get("k") is None
    cache.set("k", RESPONSE)
    assert cache.get("k") == RESPONSE
    cache.clear()
    assert cache.get("k") is None


def test_redis_cache_round_trip_with_ttl():
    client = FakeRedis()
    cache = RedisSuggestionCache(client, ttl_seconds=300)

    cache.set("k", RESPONSE)

    assert client.ttls == {"ai_suggestions:k": 300}
    assert cache.get("k") == RESPONSE
    assert cache.get("other") is None


def test_redis_cache_clear_only_touches_its_prefix():
    client = FakeRedis()
    client.store["unrelated"] = "keep"
    cache = RedisSuggestionCache(client)
    cache.set("a", RESPONSE)
    cache.set("b", RESPONSE)

    cache.clear()

    assert client.store == {"unrelated": "keep"}


def test_redis_outage_degrades_to_miss(caplog):
    cache = RedisSuggestionCache(FakeRedis(fail=True))

    cache.set("k", RESPONSE)

    assert cache.get("k") is None
    assert "Suggestion cache read failed" in caplog.text


def test_unreadable_entry_is_a_miss(caplog):
    client = FakeRedis()
    cache = RedisSuggestionCache(client)
    client.store[f"{cache.prefix}k"] = '{"suggestions": "not a list"}'
    client.store[f"{cache.prefix}j"] = "not json at all"

    assert cache.get("k") is None
    assert cache.get("j") is None
    assert "Discarding unreadable suggestion cache entry k" in caplog.text


def test_redis_outage_on_clear_is_reported(caplog):
    cache = RedisSuggestionCache(FakeRedis(fail=True))

    with pytest.raises(SuggestionCacheUnavailableError):
        cache.clear()
    assert "Suggestion cache clear failed" in caplog.text
