"""Result cache for validated match sets.

Entries are keyed by match fingerprint (user profile fields plus candidate-pool
version) and expire after a TTL. Reads rewrite each result's method to "cached".
The cache is best-effort: backend failures surface as CacheUnavailable, which
ResultCache logs and treats as a miss.
"""

import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence

from jobmatch.domain.models import CacheEntry, MatchMethod, MatchResult
from jobmatch.logging import get_logger
from jobmatch.persistence import MatchCacheRepository, PersistenceError, get_session
from jobmatch.utils.timestamps import utc_now

from .exceptions import CacheUnavailable

logger = get_logger(__name__, component="cache")


class CacheBackend(ABC):
    """Storage for cache entries. Implementations raise CacheUnavailable on failure."""

    name = "backend"

    @abstractmethod
    def get(self, fingerprint: str) -> Optional[CacheEntry]:
        """Return the stored entry, expired or not, or None."""

    @abstractmethod
    def set(self, entry: CacheEntry) -> None:
        """Store an entry, replacing any entry with the same fingerprint."""

    @abstractmethod
    def delete(self, fingerprint: str) -> None:
        """Remove an entry if present."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry."""

    def purge_expired(self, now: datetime) -> int:
        return 0

    def close(self) -> None:
        return None


class InMemoryCacheBackend(CacheBackend):
    """Thread-safe LRU dictionary bounded by max_entries."""

    name = "memory"

    def __init__(self, max_entries: int = 10000):
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, fingerprint: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is not None:
                self._entries.move_to_end(fingerprint)
            return entry

    def set(self, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[entry.fingerprint] = entry
            self._entries.move_to_end(entry.fingerprint)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def delete(self, fingerprint: str) -> None:
        with self._lock:
            self._entries.pop(fingerprint, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class SqlCacheBackend(CacheBackend):
    """Durable backend on the persistence layer; init_database() must have run."""

    name = "database"

    def get(self, fingerprint: str) -> Optional[CacheEntry]:
        try:
            with get_session() as session:
                return MatchCacheRepository(session).get(fingerprint)
        except PersistenceError as e:
            raise CacheUnavailable(f"Cache read failed: {e}") from e

    def set(self, entry: CacheEntry) -> None:
        try:
            with get_session() as session:
                MatchCacheRepository(session).upsert(entry)
        except PersistenceError as e:
            raise CacheUnavailable(f"Cache write failed: {e}") from e

    def delete(self, fingerprint: str) -> None:
        try:
            with get_session() as session:
                MatchCacheRepository(session).delete(fingerprint)
        except PersistenceError as e:
            raise CacheUnavailable(f"Cache delete failed: {e}") from e

    def clear(self) -> None:
        try:
            with get_session() as session:
                MatchCacheRepository(session).clear()
        except PersistenceError as e:
            raise CacheUnavailable(f"Cache clear failed: {e}") from e

    def purge_expired(self, now: datetime) -> int:
        try:
            with get_session() as session:
                return MatchCacheRepository(session).purge_expired(now)
        except PersistenceError as e:
            raise CacheUnavailable(f"Cache purge failed: {e}") from e


class ResultCache:
    """Best-effort TTL cache of validated match sets."""

    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        ttl_seconds: int = 1800,
        enabled: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.backend = backend or InMemoryCacheBackend()
        self.ttl = timedelta(seconds=ttl_seconds)
        self.enabled = enabled
        self._clock = clock

    @classmethod
    def from_config(cls, config, clock: Callable[[], datetime] = utc_now) -> "ResultCache":
        """Build a cache from a CacheConfig."""
        if config.backend == "database":
            backend: CacheBackend = SqlCacheBackend()
        else:
            backend = InMemoryCacheBackend(max_entries=config.max_entries)
        return cls(backend=backend, ttl_seconds=config.ttl_seconds, enabled=config.enabled, clock=clock)

    def get(self, fingerprint: str) -> Optional[List[MatchResult]]:
        """Return cached results with method "cached", or None on miss or failure."""
        if not self.enabled:
            return None

        try:
            entry = self.backend.get(fingerprint)
            if entry is None:
                logger.debug("Cache miss", extra={"event": "cache.miss", "fingerprint": fingerprint})
                return None
            if entry.is_expired(self._clock()):
                self.backend.delete(fingerprint)
                logger.debug("Cache entry expired", extra={"event": "cache.expired", "fingerprint": fingerprint})
                return None
        except CacheUnavailable as e:
            self._log_unavailable("get", e)
            return None

        logger.info(
            f"Cache hit ({len(entry.results)} results)",
            extra={
                "event": "cache.hit",
                "fingerprint": fingerprint,
                "source_method": entry.source_method,
                "result_count": len(entry.results),
            },
        )
        return [result.model_copy(update={"method": MatchMethod.CACHED.value}) for result in entry.results]

    def set(self, fingerprint: str, results: Sequence[MatchResult], source_method: str) -> bool:
        """Store a validated result set. Empty sets are not cached.

        Returns:
            True if the entry was stored
        """
        if not self.enabled or not results:
            return False

        now = self._clock()
        entry = CacheEntry(
            fingerprint=fingerprint,
            results=tuple(results),
            source_method=source_method,
            created_at=now,
            expires_at=now + self.ttl,
        )
        try:
            self.backend.set(entry)
        except CacheUnavailable as e:
            self._log_unavailable("set", e)
            return False

        logger.debug(
            "Cached result set",
            extra={
                "event": "cache.stored",
                "fingerprint": fingerprint,
                "source_method": source_method,
                "result_count": len(results),
            },
        )
        return True

    def purge_expired(self) -> int:
        try:
            return self.backend.purge_expired(self._clock())
        except CacheUnavailable as e:
            self._log_unavailable("purge", e)
            return 0

    def reset(self) -> None:
        try:
            self.backend.clear()
        except CacheUnavailable as e:
            self._log_unavailable("reset", e)

    def shutdown(self) -> None:
        self.backend.close()

    def _log_unavailable(self, operation: str, error: CacheUnavailable) -> None:
        logger.warning(
            f"Result cache unavailable during {operation}; continuing uncached: {error}",
            extra={"event": "cache.unavailable", "operation": operation, "backend": self.backend.name},
        )
