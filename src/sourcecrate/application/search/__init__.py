"""
Federated Search

Fans one query out to every registered source, reconciles the records as
they stream in and keeps the result set ranked.

Key Components:
- SearchOrchestrator: Parallel fan-out with per-source timeouts
- RecordMerger: DOI / Bloom filter / fuzzy-title deduplication and merge
- BM25Scorer: Incremental corpus statistics and normalized relevance
- ResultCache: Completed searches, replayed without refetching
- SearchService: Cache, debounce, session lifecycle and final filtering

Architecture:
    User Query
        │
        ▼
    ┌──────────────────┐
    │  SearchService   │  ← Cache hit? Debounce? New session
    └────────┬─────────┘
             │
             ▼
    ┌──────────────────┐
    │ SearchOrchestrator│ ← One task per source
    └────────┬─────────┘
             │
    ┌────────┴────────┐
    ▼        ▼        ▼
  arXiv  CrossRef  PubMed ...  ← Settle in any order
    │        │        │
    └────────┴────────┘
             │
             ▼
    ┌──────────────────┐
    │  RecordMerger    │  ← Dedup + merge, then BM25 rescore
    └────────┬─────────┘
             │
             ▼
         Paper[]
"""

from __future__ import annotations

from .membership_filter import BloomFilter
from .orchestrator import (
    ResultsEvent,
    SearchCallbacks,
    SearchOrchestrator,
    SearchSummary,
    SourceCompleteEvent,
    SourceStartEvent,
)
from .record_merger import MergeOutcome, RecordMerger, merge_papers, merge_source_links
from .relevance_scorer import BM25Scorer, CorpusStatistics, stem, tokenize
from .result_cache import CacheEntry, CacheStats, DebounceGuard, ResultCache, make_cache_key
from .result_filters import SortMode, apply_filters, sort_by_relevance, sort_papers
from .service import SearchOutcome, SearchService, SearchStatus
from .session import SearchSession
from .similarity import TitleMatcher, dice_similarity

__all__ = [
    # Orchestration
    "SearchOrchestrator",
    "SearchCallbacks",
    "SearchSummary",
    "SourceStartEvent",
    "ResultsEvent",
    "SourceCompleteEvent",
    "SearchSession",
    # Reconciliation
    "RecordMerger",
    "MergeOutcome",
    "merge_papers",
    "merge_source_links",
    "BloomFilter",
    "TitleMatcher",
    "dice_similarity",
    # Ranking
    "BM25Scorer",
    "CorpusStatistics",
    "stem",
    "tokenize",
    "SortMode",
    "apply_filters",
    "sort_papers",
    "sort_by_relevance",
    # Service
    "SearchService",
    "SearchOutcome",
    "SearchStatus",
    "ResultCache",
    "CacheEntry",
    "CacheStats",
    "DebounceGuard",
    "make_cache_key",
]
