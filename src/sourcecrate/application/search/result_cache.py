"""
Result Cache and debounce guard for completed searches.

Features:
- Key: normalized query + limit + pdf-only flag
- TTL expiration (5 minutes by default), checked on read
- Oldest-first eviction via cachetools.FIFOCache once the entry cap is hit
- Corrupt entries are dropped and reported as a miss

Only finished searches are stored. An entry holds the final Paper tuple and
a snapshot of the corpus statistics, so a cache hit can restore the exact
state of the original run.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from cachetools import FIFOCache

from sourcecrate.domain.entities.paper import Paper

from .relevance_scorer import CorpusStatistics

if TYPE_CHECKING:
    from .orchestrator import SearchSummary

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 300.0
DEFAULT_MAX_ENTRIES = 10
DEFAULT_DEBOUNCE_SECONDS = 0.3


def make_cache_key(query: str, limit: int, pdf_only: bool) -> str:
    """``<normalized query>|<limit>|<true|false>``"""
    return f"{query.lower().strip()}|{limit}|{'true' if pdf_only else 'false'}"


@dataclass(frozen=True)
class CacheEntry:
    papers: tuple[Paper, ...]
    corpus: CorpusStatistics
    sources_completed: int
    total_sources: int
    summary: SearchSummary | None = None
    created_at: float = 0.0

    def is_expired(self, now: float, ttl: float) -> bool:
        return now - self.created_at > ttl

    def validate(self) -> None:
        """Raise ValueError when the entry cannot be replayed."""
        if not isinstance(self.papers, tuple) or not all(isinstance(p, Paper) for p in self.papers):
            raise ValueError("papers must be a tuple of Paper")
        if not isinstance(self.corpus, CorpusStatistics):
            raise ValueError("corpus must be CorpusStatistics")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    expirations: int = 0
    corruptions: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expirations": self.expirations,
            "corruptions": self.corruptions,
            "hit_rate": f"{self.hit_rate:.1%}",
        }


class ResultCache:
    """
    In-memory cache of completed searches.

    Example:
        cache = ResultCache(ttl=300, max_entries=10)
        key = make_cache_key("Machine Learning ", 10, False)
        cache.put(key, papers, corpus.snapshot(), sources_completed=9, total_sources=10)
        entry = cache.get(key)
    """

    def __init__(
        self,
        ttl: float = DEFAULT_CACHE_TTL,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            ttl: Seconds an entry stays valid
            max_entries: Entries kept before the oldest is evicted
            clock: Monotonic time source (injectable for tests)
        """
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: FIFOCache[str, CacheEntry] = FIFOCache(maxsize=max_entries)
        self._stats = CacheStats()

    @property
    def stats(self) -> CacheStats:
        return self._stats

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def keys(self) -> list[str]:
        """Keys from oldest to newest."""
        return list(self._entries.keys())

    def get(self, key: str) -> CacheEntry | None:
        """
        Return the entry for ``key`` if present, fresh and readable.

        Expired and corrupt entries are removed and count as misses.
        """
        entry = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            return None

        try:
            if not isinstance(entry, CacheEntry):
                raise ValueError(f"unexpected cache value {type(entry).__name__}")
            entry.validate()
            expired = entry.is_expired(self._clock(), self.ttl)
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Dropping corrupt cache entry {key!r}: {e}")
            self._entries.pop(key, None)
            self._stats.corruptions += 1
            self._stats.misses += 1
            return None

        if expired:
            logger.debug(f"Cache entry expired: {key!r}")
            self._entries.pop(key, None)
            self._stats.expirations += 1
            self._stats.misses += 1
            return None

        self._stats.hits += 1
        logger.debug(f"Cache hit: {key!r}")
        return entry

    def put(
        self,
        key: str,
        papers: Iterable[Paper],
        corpus: CorpusStatistics,
        *,
        sources_completed: int,
        total_sources: int,
        summary: SearchSummary | None = None,
    ) -> CacheEntry:
        """Store a completed search; the oldest entry is evicted past the cap."""
        entry = CacheEntry(
            papers=tuple(papers),
            corpus=corpus.snapshot(),
            sources_completed=sources_completed,
            total_sources=total_sources,
            summary=summary,
            created_at=self._clock(),
        )
        # Re-inserting must move the key to the newest position
        self._entries.pop(key, None)
        self._entries[key] = entry
        return entry

    def invalidate(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Result cache cleared")

    def cleanup_expired(self) -> int:
        """Remove all expired entries; returns how many were removed."""
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if not isinstance(entry, CacheEntry) or entry.is_expired(now, self.ttl)
        ]
        for key in expired:
            self._entries.pop(key, None)
        self._stats.expirations += len(expired)
        return len(expired)


@dataclass
class DebounceGuard:
    """
    Suppresses a cache-miss submission identical to the previous one when
    it arrives within ``window`` seconds.
    """

    window: float = DEFAULT_DEBOUNCE_SECONDS
    clock: Callable[[], float] = field(default=time.monotonic)
    _last_key: str | None = field(init=False, default=None)
    _last_time: float = field(init=False, default=float("-inf"))

    def should_run(self, key: str) -> bool:
        """Record the attempt and report whether it should proceed."""
        now = self.clock()
        if key == self._last_key and now - self._last_time < self.window:
            logger.debug(f"Debounced duplicate search {key!r}")
            return False
        self._last_key = key
        self._last_time = now
        return True

    def reset(self) -> None:
        self._last_key = None
        self._last_time = float("-inf")


__all__ = [
    "CacheEntry",
    "CacheStats",
    "DebounceGuard",
    "ResultCache",
    "make_cache_key",
]
