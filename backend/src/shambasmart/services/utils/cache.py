"""
Response Cache — question normalisée + contexte grossier → réponse générée.

La clé ne contient JAMAIS l'identité de l'utilisateur : deux agriculteurs
qui posent la même question avec la même culture / région / étape
partagent la même entrée. Les conseils générés sont génériques.

Toutes les méthodes publiques sont "never throw" : une panne du cache
se traduit par un miss, l'appelant retombe toujours sur la génération.
"""

import hashlib
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("ShambaSmart.Cache")


@dataclass
class CacheEntry:
    response: str
    timestamp: float
    hit_count: int = 0


def _context_field(context: Any, *names: str) -> str:
    if context is None:
        return ""
    for name in names:
        value = context.get(name) if isinstance(context, dict) else getattr(context, name, None)
        if value:
            return str(value).strip().lower()
    return ""


def normalize_query(query: str) -> str:
    return " ".join((query or "").lower().split())


def context_fingerprint(context: Any) -> str:
    """Empreinte grossière : culture, région, étape. Rien d'autre."""
    return "|".join((
        _context_field(context, "crop"),
        _context_field(context, "region"),
        _context_field(context, "farm_stage", "farmStage"),
    ))


def make_cache_key(query: str, context: Any = None, scope: str = "") -> str:
    raw = f"{scope}|{normalize_query(query)}|{context_fingerprint(context)}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class ResponseCache:
    """Cache local borné, TTL paresseux + balayage périodique, protégé par un verrou."""

    def __init__(
        self,
        max_size: int = 100,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.time,
    ):
        self.max_size = max_size
        self.ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._labels: Dict[str, str] = {}
        self._lock = threading.Lock()

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.timestamp > self.ttl

    def get(self, query: str, context: Any = None, scope: str = "") -> Optional[str]:
        try:
            key = make_cache_key(query, context, scope)
            now = self._clock()
            with self._lock:
                entry = self._entries.get(key)
                if entry is None:
                    return None
                if self._expired(entry, now):
                    self._entries.pop(key, None)
                    self._labels.pop(key, None)
                    return None
                entry.hit_count += 1
                response = entry.response
            logger.debug("Cache hit for query: %s...", query[:50])
            return response
        except Exception as e:
            logger.warning("Cache get failed, treating as miss: %s", e)
            return None

    def contains(self, query: str, context: Any = None, scope: str = "") -> bool:
        """Présence d'une entrée valide, sans compter de hit."""
        key = make_cache_key(query, context, scope)
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not self._expired(entry, self._clock())

    def set(self, query: str, response: str, context: Any = None, scope: str = "") -> None:
        try:
            key = make_cache_key(query, context, scope)
            now = self._clock()
            with self._lock:
                if key not in self._entries and len(self._entries) >= self.max_size:
                    oldest = min(self._entries, key=lambda k: self._entries[k].timestamp)
                    self._entries.pop(oldest, None)
                    self._labels.pop(oldest, None)
                self._entries[key] = CacheEntry(response=response, timestamp=now)
                self._labels[key] = normalize_query(query)[:50]
            logger.debug("Cached response for query: %s...", query[:50])
        except Exception as e:
            logger.warning("Cache set failed, skipping: %s", e)

    def clear_expired(self) -> int:
        """Supprime toutes les entrées périmées. Retourne le nombre supprimé."""
        try:
            now = self._clock()
            with self._lock:
                stale = [k for k, e in self._entries.items() if self._expired(e, now)]
                for key in stale:
                    self._entries.pop(key, None)
                    self._labels.pop(key, None)
            if stale:
                logger.info("🧹 Cache sweep: %d expired entries removed", len(stale))
            return len(stale)
        except Exception as e:
            logger.warning("Cache sweep failed: %s", e)
            return 0

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            entries = [
                {"query": self._labels.get(key, key[:50]), "hits": entry.hit_count}
                for key, entry in self._entries.items()
            ]
        entries.sort(key=lambda e: e["hits"], reverse=True)
        return {
            "type": "memory",
            "size": len(entries),
            "totalHits": sum(e["hits"] for e in entries),
            "entries": entries[:10],
        }

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._labels.clear()
        logger.info("Response cache cleared")

    def __len__(self) -> int:
        return len(self._entries)


__all__ = [
    "CacheEntry",
    "ResponseCache",
    "make_cache_key",
    "normalize_query",
    "context_fingerprint",
]
