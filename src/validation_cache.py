"""
Validation Cache - best-effort Redis cache of validation results.

Results are keyed by a content hash of the full input snapshot, so the
same clients/workers/tasks/rules always map to the same entry and any
change produces a new key. The cache never changes an answer: a miss, a
disabled cache and a Redis failure all fall through to a fresh
validate_all run.

Configuration:
    VALIDATION_CACHE_ENABLED       "true" to use Redis (default: false)
    VALIDATION_CACHE_TTL_SECONDS   entry lifetime (default: 10800 = 3h)
    REDIS_KEY_PREFIX               key namespace (default: allocation)

Usage:
    from src.validation_cache import ValidationCache, validate_all_cached

    cache = ValidationCache.from_env()
    result = validate_all_cached(clients, workers, tasks, rules, cache=cache)
"""

import hashlib
import json
import logging
import os
from typing import Any, Dict, List, Optional

import orjson

from allocation.engine.orchestrator import validate_all

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3 * 60 * 60


def compute_cache_key(clients: Any, workers: Any, tasks: Any, rules: Any,
                      prefix: str = "allocation") -> Optional[str]:
    """
    SHA256 of the canonical JSON of the inputs.

    Returns None when the inputs cannot be serialised canonically (such
    inputs are simply not cached).
    """
    payload = {"clients": clients, "workers": workers, "tasks": tasks, "rules": rules or []}
    try:
        canonical = json.dumps(payload, sort_keys=True, default=str)
    except (TypeError, ValueError):
        return None
    digest = hashlib.sha256(canonical.encode()).hexdigest()
    return f"{prefix}:validation:{digest}"


class ValidationCache:
    """Thin get/set wrapper over a Redis-like client (get, setex)."""

    def __init__(self, client=None, ttl_seconds: int = DEFAULT_TTL_SECONDS,
                 key_prefix: str = "allocation"):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix
        self.hits = 0
        self.misses = 0

    @classmethod
    def from_env(cls) -> "ValidationCache":
        """Build from environment; the client stays None when disabled or unreachable."""
        enabled = os.getenv("VALIDATION_CACHE_ENABLED", "false").lower() in ("true", "1", "yes")
        client = None
        if enabled:
            from src.redis_manager import get_redis_client
            client = get_redis_client()
        return cls(
            client=client,
            ttl_seconds=int(os.getenv("VALIDATION_CACHE_TTL_SECONDS", str(DEFAULT_TTL_SECONDS))),
            key_prefix=os.getenv("REDIS_KEY_PREFIX", "allocation"),
        )

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def key_for(self, clients: Any, workers: Any, tasks: Any, rules: Any) -> Optional[str]:
        return compute_cache_key(clients, workers, tasks, rules, prefix=self.key_prefix)

    def get(self, key: Optional[str]) -> Optional[Dict[str, Any]]:
        if not self.enabled or key is None:
            return None
        try:
            raw = self.client.get(key)
        except Exception as e:
            logger.warning(f"Validation cache read failed for {key}: {e}")
            return None
        if raw is None:
            self.misses += 1
            return None
        try:
            value = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            logger.warning(f"Discarding corrupt validation cache entry {key}: {e}")
            return None
        self.hits += 1
        logger.info(f"Validation cache hit: {key}")
        return value

    def set(self, key: Optional[str], result: Dict[str, Any]) -> bool:
        if not self.enabled or key is None:
            return False
        try:
            self.client.setex(key, self.ttl_seconds, orjson.dumps(result))
        except Exception as e:
            logger.warning(f"Validation cache write failed for {key}: {e}")
            return False
        return True

    def stats(self) -> Dict[str, Any]:
        total = self.hits + self.misses
        return {
            "enabled": self.enabled,
            "hits": self.hits,
            "misses": self.misses,
            "hitRate": round(self.hits / total, 3) if total else 0.0,
            "ttlSeconds": self.ttl_seconds,
        }


def validate_all_cached(clients: List[Any], workers: List[Any], tasks: List[Any],
                        rules: Optional[List[Any]] = None,
                        cache: Optional[ValidationCache] = None) -> Dict[str, Any]:
    """
    validate_all(...).to_dict(), served from the cache when possible.

    The returned dict is identical whether or not a cache is configured.
    """
    key = cache.key_for(clients, workers, tasks, rules) if cache else None
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            return cached

    result = validate_all(clients, workers, tasks, rules).to_dict()
    if cache is not None and not any(f["code"] == "system_error" for f in result["errors"]):
        cache.set(key, result)
    return result
