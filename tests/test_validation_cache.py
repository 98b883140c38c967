"""
Tests for the Redis-backed validation cache.

Uses an in-memory stand-in for the Redis client (get / setex only).

Run with: pytest tests/test_validation_cache.py -v
"""

import sys
import pathlib
sys.path.insert(0, str(pathlib.Path(__file__).resolve().parent.parent))

import pytest
import redis

from src.validation_cache import ValidationCache, compute_cache_key, validate_all_cached


class FakeRedis:
    def __init__(self):
        self.values = {}
        self.ttls = {}

    def get(self, key):
        return self.values.get(key)

    def setex(self, key, ttl, value):
        self.values[key] = value
        self.ttls[key] = ttl


class BrokenRedis:
    def get(self, key):
        raise redis.ConnectionError("down")

    def setex(self, key, ttl, value):
        raise redis.ConnectionError("down")


TASKS = [{"TaskID": "T1", "TaskName": "Build", "Duration": 0, "RequiredSkills": "python"}]


class TestCacheKey:
    """Content-hash keys"""

    def test_same_input_same_key(self):
        assert compute_cache_key([], [], TASKS, []) == compute_cache_key([], [], TASKS, None)

    def test_key_order_irrelevant(self):
        first = compute_cache_key([{"a": 1, "b": 2}], [], [], [])
        second = compute_cache_key([{"b": 2, "a": 1}], [], [], [])
        assert first == second

    def test_change_changes_key(self):
        assert compute_cache_key([], [], TASKS, []) != compute_cache_key([], [], [], [])

    def test_prefix(self):
        assert compute_cache_key([], [], [], [], prefix="test").startswith("test:validation:")


class TestValidationCache:
    """Hit / miss behaviour"""

    def test_disabled_cache(self):
        cache = ValidationCache()
        assert cache.enabled == False
        result = validate_all_cached([], [], TASKS, cache=cache)
        assert not result["isValid"]
        assert cache.stats()["misses"] == 0

    def test_miss_then_hit(self):
        client = FakeRedis()
        cache = ValidationCache(client=client, ttl_seconds=60)
        first = validate_all_cached([], [], TASKS, cache=cache)
        second = validate_all_cached([], [], TASKS, cache=cache)
        assert first == second
        assert cache.hits == 1
        assert cache.misses == 1
        assert list(client.ttls.values()) == [60]

    def test_cached_result_matches_uncached(self):
        cached = validate_all_cached([], [], TASKS, cache=ValidationCache(client=FakeRedis()))
        plain = validate_all_cached([], [], TASKS)
        assert cached == plain

    def test_redis_failure_falls_through(self):
        cache = ValidationCache(client=BrokenRedis())
        result = validate_all_cached([], [], TASKS, cache=cache)
        assert result["summary"]["totalErrors"] >= 1

    def test_system_errors_not_cached(self, monkeypatch):
        from allocation.engine import orchestrator

        def explode(*args):
            raise RuntimeError("boom")

        monkeypatch.setattr(orchestrator, "validate_business", explode)
        client = FakeRedis()
        result = validate_all_cached([], [], [], cache=ValidationCache(client=client))
        assert result["errors"][0]["code"] == "system_error"
        assert client.values == {}

    def test_from_env_disabled(self, monkeypatch):
        monkeypatch.setenv("VALIDATION_CACHE_ENABLED", "false")
        monkeypatch.setenv("VALIDATION_CACHE_TTL_SECONDS", "120")
        cache = ValidationCache.from_env()
        assert cache.enabled == False
        assert cache.ttl_seconds == 120
