"""
Briefsmith
LLM Response Cache.

Redis-backed cache for gateway responses, keyed by a deterministic request
fingerprint. Falls back to an in-memory TTL store when REDIS_URL is unset,
``memory://`` or unreachable.

Rules:
    - Fixed TTL of one hour.
    - Every read/write failure is logged and swallowed: the cache can only
      ever disable itself for a call, never fail it.
"""

import hashlib
import json
import logging
import time
from threading import Lock

import redis

from briefsmith.core.exceptions import CacheError

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600  # 1 hour
KEY_PREFIX = "llm:cache:"


class MemoryBackend:
    """Dict-based stand-in for the subset of the Redis API the cache uses."""

    def __init__(self):
        self._store: dict[str, tuple[str, float]] = {}  # key → (value, expires_at)
        self._lock = Lock()

    def get(self, key):
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if time.time() > expires_at:
                del self._store[key]
                return None
            return value

    def setex(self, key, ttl_seconds, value):
        with self._lock:
            self._store[key] = (value, time.time() + ttl_seconds)

    def delete(self, *keys):
        with self._lock:
            for k in keys:
                self._store.pop(k, None)

    def keys(self, pattern):
        """Simple glob matching for 'prefix*' patterns."""
        with self._lock:
            if pattern.endswith("*"):
                prefix = pattern[:-1]
                return [k for k in self._store if k.startswith(prefix)]
            return [k for k in self._store if k == pattern]

    def ping(self):
        return True


def build_backend(redis_url: str | None):
    """Connect to Redis, or fall back to an in-memory backend."""
    if redis_url and not redis_url.startswith("memory://"):
        try:
            client = redis.from_url(redis_url, decode_responses=True, socket_timeout=2)
            client.ping()
            logger.info("LLM cache: using Redis at %s", redis_url.split("@")[-1])
            return client
        except redis.RedisError as exc:
            logger.warning("Redis unavailable (%s) — falling back to memory cache", exc)
    return MemoryBackend()


class ResponseCacheService:
    """Fingerprint-keyed LLM response cache."""

    def __init__(self, backend=None, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.backend = backend if backend is not None else MemoryBackend()
        self.ttl_seconds = ttl_seconds
        self._stats = {"hits": 0, "misses": 0, "sets": 0, "errors": 0}

    @classmethod
    def from_url(cls, redis_url: str | None, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        return cls(backend=build_backend(redis_url), ttl_seconds=ttl_seconds)

    @staticmethod
    def compute_fingerprint(messages: list, options: dict) -> str:
        """
        Deterministic cache key for a (messages, options) request.

        Canonical JSON (sorted keys, compact separators) makes the key
        independent of dict field ordering; SHA-256 keeps it fixed-length.
        """
        payload = json.dumps(
            {"messages": messages, "options": options},
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        )
        return KEY_PREFIX + hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def get(self, key: str) -> dict | None:
        """Return the cached response, or None on miss or cache failure."""
        try:
            raw = self.backend.get(key)
            if raw is None:
                self._stats["misses"] += 1
                return None
            value = json.loads(raw)
            if not isinstance(value, dict):
                raise CacheError(f"Unexpected cached value type: {type(value).__name__}")
        except Exception as exc:
            self._stats["errors"] += 1
            logger.warning("Cache retrieval error: %s", exc)
            return None
        self._stats["hits"] += 1
        return value

    def set(self, key: str, response: dict) -> bool:
        """Store a response under ``key``. Returns False if the write failed."""
        try:
            self.backend.setex(key, self.ttl_seconds, json.dumps(response))
        except Exception as exc:
            self._stats["errors"] += 1
            logger.warning("Cache storage error: %s", exc)
            return False
        self._stats["sets"] += 1
        return True

    def clear(self, pattern: str = KEY_PREFIX + "*") -> int:
        """Delete all entries matching ``pattern``. Returns the count removed."""
        try:
            keys = self.backend.keys(pattern)
            if keys:
                self.backend.delete(*keys)
                logger.info("Cleared %d cache entries", len(keys))
            return len(keys)
        except Exception as exc:
            logger.error("Cache clear error: %s", exc)
            return 0

    def get_stats(self) -> dict:
        total = self._stats["hits"] + self._stats["misses"]
        hit_rate = (self._stats["hits"] / total * 100) if total > 0 else 0.0
        return {
            **self._stats,
            "hit_rate_pct": round(hit_rate, 2),
            "ttl_seconds": self.ttl_seconds,
            "backend": "memory" if isinstance(self.backend, MemoryBackend) else "redis",
        }

    def health_check(self) -> dict:
        try:
            self.backend.ping()
            return {"status": "ok", "backend": self.get_stats()["backend"]}
        except Exception as exc:
            return {"status": "error", "detail": str(exc)}
