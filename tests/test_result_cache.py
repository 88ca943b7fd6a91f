"""
Tests for the completed-search cache and the debounce guard.
"""

from __future__ import annotations

import pytest

from sourcecrate.application.search.orchestrator import SearchSummary
from sourcecrate.application.search.relevance_scorer import CorpusStatistics
from sourcecrate.application.search.result_cache import (
    CacheEntry,
    DebounceGuard,
    ResultCache,
    make_cache_key,
)
from sourcecrate.domain.entities.paper import Paper


@pytest.fixture
def papers() -> list[Paper]:
    return [Paper(title="Cached One", doi="10.1/one", relevance_score=90.0), Paper(title="Cached Two")]


@pytest.fixture
def corpus(papers) -> CorpusStatistics:
    stats = CorpusStatistics()
    stats.update(papers)
    return stats


def _put(cache: ResultCache, key: str, papers, corpus) -> CacheEntry:
    return cache.put(key, papers, corpus, sources_completed=2, total_sources=3)


class TestCacheKey:
    def test_format(self):
        assert make_cache_key("  Machine Learning ", 10, False) == "machine learning|10|false"
        assert make_cache_key("RMS Titanic", 25, True) == "rms titanic|25|true"

    def test_only_query_is_normalized(self):
        assert make_cache_key("Q", 10, False) != make_cache_key("q", 20, False)


class TestResultCache:
    def test_put_and_get(self, clock, papers, corpus):
        cache = ResultCache(clock=clock)
        summary = SearchSummary(3, 2, 5, 2, 1200)
        cache.put("k", papers, corpus, sources_completed=2, total_sources=3, summary=summary)

        entry = cache.get("k")
        assert entry is not None
        assert entry.papers == tuple(papers)
        assert entry.sources_completed == 2
        assert entry.total_sources == 3
        assert entry.summary == summary
        assert cache.stats.hits == 1

    def test_corpus_snapshot_is_independent(self, clock, papers, corpus):
        cache = ResultCache(clock=clock)
        _put(cache, "k", papers, corpus)
        corpus.update([Paper(title="Later Addition")])
        assert cache.get("k").corpus.total_docs == 2

    def test_miss(self, clock):
        cache = ResultCache(clock=clock)
        assert cache.get("absent") is None
        assert cache.stats.misses == 1

    def test_expiry(self, clock, papers, corpus):
        cache = ResultCache(ttl=300, clock=clock)
        _put(cache, "k", papers, corpus)
        clock.advance(299)
        assert cache.get("k") is not None
        clock.advance(2)
        assert cache.get("k") is None
        assert "k" not in cache
        assert cache.stats.expirations == 1

    def test_evicts_oldest_past_capacity(self, clock, papers, corpus):
        cache = ResultCache(max_entries=10, clock=clock)
        for i in range(11):
            _put(cache, f"k{i}", papers, corpus)
        assert len(cache) == 10
        assert "k0" not in cache
        assert cache.keys()[0] == "k1"

    def test_reinsert_moves_key_to_newest(self, clock, papers, corpus):
        cache = ResultCache(max_entries=2, clock=clock)
        _put(cache, "a", papers, corpus)
        _put(cache, "b", papers, corpus)
        _put(cache, "a", papers, corpus)
        _put(cache, "c", papers, corpus)
        assert cache.keys() == ["a", "c"]

    def test_corrupt_entry_is_a_miss(self, clock, papers, corpus):
        cache = ResultCache(clock=clock)
        _put(cache, "k", papers, corpus)
        cache._entries["k"] = {"papers": "not an entry"}
        assert cache.get("k") is None
        assert "k" not in cache
        assert cache.stats.corruptions == 1

    def test_entry_with_bad_papers_is_a_miss(self, clock, corpus):
        cache = ResultCache(clock=clock)
        cache._entries["k"] = CacheEntry(papers=("junk",), corpus=corpus, sources_completed=1, total_sources=1)
        assert cache.get("k") is None
        assert cache.stats.corruptions == 1

    def test_invalidate_and_clear(self, clock, papers, corpus):
        cache = ResultCache(clock=clock)
        _put(cache, "a", papers, corpus)
        _put(cache, "b", papers, corpus)
        assert cache.invalidate("a") is True
        assert cache.invalidate("a") is False
        cache.clear()
        assert len(cache) == 0

    def test_cleanup_expired(self, clock, papers, corpus):
        cache = ResultCache(ttl=10, clock=clock)
        _put(cache, "old", papers, corpus)
        clock.advance(20)
        _put(cache, "new", papers, corpus)
        assert cache.cleanup_expired() == 1
        assert cache.keys() == ["new"]

    def test_stats_to_dict(self, clock):
        cache = ResultCache(clock=clock)
        cache.get("x")
        assert cache.stats.to_dict()["hit_rate"] == "0.0%"


class TestDebounceGuard:
    def test_first_submission_runs(self, clock):
        assert DebounceGuard(clock=clock).should_run("k")

    def test_rapid_duplicate_suppressed(self, clock):
        guard = DebounceGuard(clock=clock)
        guard.should_run("k")
        clock.advance(0.1)
        assert not guard.should_run("k")

    def test_duplicate_after_window_runs(self, clock):
        guard = DebounceGuard(clock=clock)
        guard.should_run("k")
        clock.advance(0.5)
        assert guard.should_run("k")

    def test_different_key_runs(self, clock):
        guard = DebounceGuard(clock=clock)
        guard.should_run("a")
        assert guard.should_run("b")

    def test_reset(self, clock):
        guard = DebounceGuard(clock=clock)
        guard.should_run("k")
        guard.reset()
        assert guard.should_run("k")
