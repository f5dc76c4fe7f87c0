"""
Cache distribué (Redis) avec repli automatique sur le cache local.

- Clés préfixées `shambasmart:cache:` pour cohabiter avec d'autres données.
- Chaque lecture / écriture Redis est recopiée dans le cache local, pour
  qu'une coupure Redis en cours de session ne vide pas le cache visible.
- Toute erreur Redis (connexion refusée, timeout, JSON corrompu) est loggée
  puis absorbée : on bascule sur le cache local.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, Optional

import redis

from shambasmart.services.utils.cache import ResponseCache, make_cache_key

logger = logging.getLogger("ShambaSmart.RedisCache")

KEY_PREFIX = "shambasmart:cache:"


class RedisResponseCache:
    """Même contrat que ResponseCache, adossé à Redis."""

    def __init__(
        self,
        client: Optional["redis.Redis"] = None,
        url: str = "",
        max_size: int = 1000,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl = ttl_seconds
        self._clock = clock
        self.fallback = ResponseCache(max_size=max_size, ttl_seconds=ttl_seconds, clock=clock)
        self.client = client
        if self.client is None and url:
            self.client = redis.Redis.from_url(url, socket_timeout=2, socket_connect_timeout=2)
            try:
                self.client.ping()
                logger.info("✅ Redis cache connected")
            except redis.RedisError as e:
                # Le client reste en place : redis-py se reconnecte au prochain appel
                logger.warning("⚠️ Redis unreachable at startup, using local cache for now: %s", e)

    @property
    def backend(self) -> str:
        return "redis" if self.client is not None else "memory"

    def _key(self, query: str, context: Any, scope: str) -> str:
        return KEY_PREFIX + make_cache_key(query, context, scope)

    def get(self, query: str, context: Any = None, scope: str = "") -> Optional[str]:
        if self.client is None:
            return self.fallback.get(query, context, scope)

        key = self._key(query, context, scope)
        try:
            raw = self.client.get(key)
            if raw:
                entry = json.loads(raw)
                age_ms = int((self._clock() - entry["timestamp"]) * 1000)
                remaining_ms = int(self.ttl * 1000) - age_ms
                if remaining_ms > 0:
                    entry["hitCount"] = int(entry.get("hitCount", 0)) + 1
                    self.client.set(key, json.dumps(entry), px=remaining_ms)
                    if not self.fallback.contains(query, context, scope):
                        self.fallback.set(query, entry["response"], context, scope)
                    logger.debug("Redis cache hit for query: %s...", query[:50])
                    return entry["response"]
                self.client.delete(key)
                return None
        except Exception as e:
            logger.warning("Redis get error, falling back to local cache: %s", e)

        return self.fallback.get(query, context, scope)

    def set(self, query: str, response: str, context: Any = None, scope: str = "") -> None:
        self.fallback.set(query, response, context, scope)
        if self.client is None:
            return

        entry = {"response": response, "timestamp": self._clock(), "hitCount": 0}
        try:
            self.client.set(
                self._key(query, context, scope),
                json.dumps(entry),
                px=int(self.ttl * 1000),
            )
        except Exception as e:
            logger.warning("Redis set error, kept in local cache only: %s", e)

    def clear_expired(self) -> int:
        # Redis expire ses clés lui-même (PX)
        return self.fallback.clear_expired()

    def clear(self) -> None:
        if self.client is not None:
            try:
                keys = list(self.client.scan_iter(match=KEY_PREFIX + "*"))
                if keys:
                    self.client.delete(*keys)
                logger.info("Redis cache cleared")
            except Exception as e:
                logger.warning("Redis clear error: %s", e)
        self.fallback.clear()

    def get_stats(self) -> Dict[str, Any]:
        if self.client is not None:
            try:
                total_hits = 0
                size = 0
                for key in self.client.scan_iter(match=KEY_PREFIX + "*"):
                    raw = self.client.get(key)
                    if raw:
                        size += 1
                        total_hits += int(json.loads(raw).get("hitCount", 0))
                return {"type": "redis", "size": size, "totalHits": total_hits}
            except Exception as e:
                logger.warning("Redis stats error: %s", e)

        stats = self.fallback.get_stats()
        return {"type": "memory", "size": stats["size"], "totalHits": stats["totalHits"]}

    def close(self) -> None:
        if self.client is not None:
            try:
                self.client.close()
                logger.info("Redis connection closed")
            except Exception as e:
                logger.warning("Redis close error: %s", e)


def build_response_cache(redis_url: str, max_size: int, fallback_max_size: int, ttl_seconds: float):
    """Cache distribué si REDIS_URL est défini, sinon cache local seul."""
    if redis_url:
        return RedisResponseCache(url=redis_url, max_size=fallback_max_size, ttl_seconds=ttl_seconds)
    logger.info("Redis not configured, using in-memory response cache")
    return ResponseCache(max_size=max_size, ttl_seconds=ttl_seconds)


__all__ = ["RedisResponseCache", "build_response_cache", "KEY_PREFIX"]
