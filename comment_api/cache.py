import json
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from comment_api.config import settings
from comment_api.exceptions import CacheUnavailableError

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Key-value cache backed by Redis, used as the substrate for the
    cache-aside comment list.

    Unlike a fire-and-forget cache, every operation reports backend
    failures as ``CacheUnavailableError`` so that the caller decides the
    policy: the read path treats it as a miss, the write path logs it and
    carries on.  An undecodable payload is not a backend failure and is
    reported as a plain miss.
    """

    def __init__(self, default_ttl: int | None = None) -> None:
        self._redis: redis.Redis | None = None
        self._default_ttl = default_ttl
        self._hits: int = 0
        self._misses: int = 0
        self._errors: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the connection pool.  Called once at application startup."""
        self._redis = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        # Ping to surface mis-configuration early (non-fatal).
        try:
            await self._redis.ping()
            logger.info("Redis connected: %s", settings.REDIS_URL)
        except RedisError as exc:
            logger.warning("Redis ping failed, list reads will hit the store: %s", exc)

    async def disconnect(self) -> None:
        """Close the connection pool.  Called once at application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def ping(self) -> bool:
        """Return True when Redis answers a PING."""
        if self._redis is None:
            return False
        try:
            return bool(await self._redis.ping())
        except RedisError:
            return False

    def _client(self) -> redis.Redis:
        if self._redis is None:
            self._errors += 1
            raise CacheUnavailableError("cache is not connected")
        return self._redis

    def _resolve_ttl(self, ttl: int | None) -> int | None:
        ttl = self._default_ttl if ttl is None else ttl
        return ttl or None

    # ------------------------------------------------------------------
    # Core cache operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> dict | list | None:
        """
        Return the cached value for *key*, or None on a miss.

        Raises ``CacheUnavailableError`` when Redis cannot answer.
        """
        client = self._client()
        try:
            data = await client.get(key)
        except RedisError as exc:
            self._errors += 1
            raise CacheUnavailableError(f"GET {key!r} failed: {exc}") from exc

        if data is None:
            self._misses += 1
            return None
        try:
            value = json.loads(data)
        except ValueError:
            logger.warning("Discarding undecodable cache entry for key=%r", key)
            self._misses += 1
            return None
        self._hits += 1
        return value

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        """
        Persist *value* under *key*.

        *ttl* overrides the manager's default expiry; leave it unset to
        use the configured one.
        """
        client = self._client()
        serialised = json.dumps(value, default=str)
        try:
            await client.set(key, serialised, ex=self._resolve_ttl(ttl))
        except RedisError as exc:
            self._errors += 1
            raise CacheUnavailableError(f"SET {key!r} failed: {exc}") from exc

    async def delete(self, key: str) -> None:
        """Remove *key*.  Deleting an absent key is a no-op."""
        client = self._client()
        try:
            removed = await client.delete(key)
        except RedisError as exc:
            self._errors += 1
            raise CacheUnavailableError(f"DELETE {key!r} failed: {exc}") from exc
        logger.debug("Cache invalidated key=%r (removed=%s)", key, removed)

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    def reset_stats(self) -> None:
        self._hits = self._misses = self._errors = 0

    @property
    def stats(self) -> dict:
        """Return a snapshot of hit/miss/error counters for metrics endpoints."""
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "errors": self._errors,
            "hit_rate": round(self._hits / total * 100, 1) if total > 0 else 0.0,
        }


# Module-level singleton shared across all request handlers.
cache = CacheManager(default_ttl=settings.CACHE_DEFAULT_TTL)
