"""
Per-query search state.

A SearchSession owns everything that used to be global in a single-page
search UI: the DOI index, the Bloom filter, the paper map, corpus statistics
and completion counters. One session exists per submitted query; starting a
new query invalidates the previous session, and batches that arrive for an
invalidated session are discarded.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field

from sourcecrate.domain.entities.paper import Paper

from .membership_filter import DEFAULT_FILTER_SIZE, BloomFilter
from .relevance_scorer import BM25Scorer, CorpusStatistics, average_document_length

logger = logging.getLogger(__name__)

_generation_counter = itertools.count(1)


@dataclass
class SearchSession:
    """
    Mutable state for one in-flight query.

    Attributes:
        query: Raw query string
        limit: Per-source result limit
        source_names: Registry names of the sources being searched
        papers: Paper by dedup key, in insertion order
        doi_index: Normalized DOI → dedup key
        doi_filter: Bloom filter over every DOI seen
        normalized_titles: Dedup key → normalized title, for fuzzy matching
        scorer: BM25 scorer holding this query's corpus statistics
    """

    query: str
    limit: int
    source_names: tuple[str, ...] = ()
    pdf_only: bool = False
    filter_size: int = DEFAULT_FILTER_SIZE

    papers: dict[str, Paper] = field(default_factory=dict)
    doi_index: dict[str, str] = field(default_factory=dict)
    normalized_titles: dict[str, str] = field(default_factory=dict)
    scorer: BM25Scorer = field(default_factory=BM25Scorer)

    sources_completed: int = 0
    sources_successful: int = 0
    total_results: int = 0

    generation: int = field(init=False, default_factory=lambda: next(_generation_counter))
    started_at: float = field(init=False, default_factory=time.monotonic)
    doi_filter: BloomFilter = field(init=False)
    lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)
    _active: bool = field(init=False, default=True)
    _complete: bool = field(init=False, default=False)

    def __post_init__(self) -> None:
        self.doi_filter = BloomFilter(self.filter_size)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_complete(self) -> bool:
        return self._complete

    @property
    def total_sources(self) -> int:
        return len(self.source_names)

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)

    def invalidate(self) -> None:
        """Mark the session superseded; later batches are ignored."""
        if self._active:
            logger.debug(f"Session {self.generation} for {self.query!r} superseded")
        self._active = False

    def mark_complete(self) -> None:
        self._complete = True

    # -------------------------------------------------------------------------
    # Paper storage
    # -------------------------------------------------------------------------

    @property
    def corpus(self) -> CorpusStatistics:
        return self.scorer.corpus

    def store(self, key: str, paper: Paper) -> None:
        """Insert or replace the paper under ``key`` and index its DOI."""
        self.papers[key] = paper
        if paper.doi and paper.doi not in self.doi_index:
            self.doi_index[paper.doi] = key
            self.doi_filter.add(paper.doi)
        normalized = paper.normalized_title
        if normalized:
            self.normalized_titles[key] = normalized

    def results(self) -> list[Paper]:
        return list(self.papers.values())

    def rescore(self) -> None:
        """Score every paper against the current corpus statistics."""
        avg_length = average_document_length(self.papers.values())
        for key, paper in self.papers.items():
            self.papers[key] = paper.with_score(self.scorer.score(paper, self.query, avg_length))

    def restore(self, papers: Iterable[Paper], corpus: CorpusStatistics) -> None:
        """Rebuild state from a cached snapshot."""
        for paper in papers:
            self.store(paper.key, paper)
        self.corpus.restore(corpus)
        self.sources_completed = self.total_sources
        self._complete = True


__all__ = ["SearchSession"]
