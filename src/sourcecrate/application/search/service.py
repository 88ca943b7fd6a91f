"""
Search Service - the consumer-facing entry point.

Wraps the orchestrator with:
- Result cache lookup (synchronous, before any fetch starts)
- Debounce of repeated identical submissions
- Session lifecycle (a new query supersedes the previous one)
- Limit clamping so sources × limit stays bounded
- Final filtering (PDF only, relevance threshold) and sorting

Flow:
    search(query)
      ├─ blank query ─────────────→ EMPTY_QUERY
      ├─ cache hit ───────────────→ CACHED (threshold disabled)
      ├─ same miss within 300ms ──→ DEBOUNCED
      └─ new SearchSession → orchestrator → cache.put → COMPLETED
                                         └─ superseded → SUPERSEDED
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from enum import Enum

from sourcecrate.domain.entities.paper import Paper
from sourcecrate.shared.async_utils import invoke_callback
from sourcecrate.shared.exceptions import InvalidParameterError

from .orchestrator import SearchCallbacks, SearchOrchestrator, SearchSummary
from .result_cache import DebounceGuard, ResultCache, make_cache_key
from .result_filters import DEFAULT_MIN_RELEVANCE, SortMode, apply_filters, sort_papers
from .session import SearchSession

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10
DEFAULT_MAX_RESULTS_PER_SOURCE = 100
DEFAULT_MAX_TOTAL_RESULTS = 1000
TITLE_SEARCH_LIMIT = 25

_TITLE_CLEAN_RE = re.compile(r"[^\w\s-]")


class SearchStatus(Enum):
    COMPLETED = "completed"
    CACHED = "cached"
    DEBOUNCED = "debounced"
    EMPTY_QUERY = "empty_query"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class SearchOutcome:
    """
    What a consumer gets back from ``SearchService.search``.

    Attributes:
        status: How the request was handled
        query: Query as submitted
        cache_key: Key the result is (or would be) cached under
        papers: Filtered and sorted papers for display
        all_papers: Every reconciled paper, unfiltered
        summary: Run summary, None when no run happened
        relevance_threshold: Threshold that was applied (0 on cache hits)
    """

    status: SearchStatus
    query: str
    cache_key: str | None = None
    papers: tuple[Paper, ...] = ()
    all_papers: tuple[Paper, ...] = ()
    summary: SearchSummary | None = None
    relevance_threshold: float = 0.0

    @property
    def from_cache(self) -> bool:
        return self.status is SearchStatus.CACHED


@dataclass
class SearchService:
    """
    Cache-aware search facade over the orchestrator.

    Example:
        service = SearchService(orchestrator, ResultCache())
        outcome = await service.search("machine learning", limit=10)
        for paper in outcome.papers:
            print(paper.relevance_score, paper.title)
    """

    orchestrator: SearchOrchestrator
    cache: ResultCache = field(default_factory=ResultCache)
    debounce: DebounceGuard = field(default_factory=DebounceGuard)
    default_sources: Sequence[str] | None = None
    default_limit: int = DEFAULT_LIMIT
    max_results_per_source: int = DEFAULT_MAX_RESULTS_PER_SOURCE
    max_total_results: int = DEFAULT_MAX_TOTAL_RESULTS
    min_relevance: float = DEFAULT_MIN_RELEVANCE
    _current: SearchSession | None = field(init=False, default=None)

    @property
    def current_session(self) -> SearchSession | None:
        return self._current

    # -------------------------------------------------------------------------
    # Parameters
    # -------------------------------------------------------------------------

    def resolve_sources(self, sources: Sequence[str] | None = None) -> tuple[str, ...]:
        if sources:
            return tuple(dict.fromkeys(s.strip().lower() for s in sources if s.strip()))
        if self.default_sources:
            return tuple(self.default_sources)
        return tuple(self.orchestrator.registry.names())

    def clamp_limit(self, limit: int | None, source_count: int) -> int:
        """
        Per-source limit bounded by ``max_results_per_source`` and by
        ``max_total_results`` spread across the sources.
        """
        if limit is None:
            limit = self.default_limit
        if not isinstance(limit, int) or isinstance(limit, bool):
            raise InvalidParameterError("limit", limit, "a positive integer")
        cap = self.max_results_per_source
        if source_count > 0:
            cap = min(cap, max(1, self.max_total_results // source_count))
        return max(1, min(limit, cap))

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def search(
        self,
        query: str,
        *,
        limit: int | None = None,
        pdf_only: bool = False,
        min_relevance: float | None = None,
        sources: Sequence[str] | None = None,
        callbacks: SearchCallbacks | None = None,
        sort_mode: SortMode = SortMode.RELEVANCE,
    ) -> SearchOutcome:
        """
        Search every requested source, or replay a cached result.

        Args:
            query: Free-text query
            limit: Per-source result limit (clamped)
            pdf_only: Keep only papers with a validated PDF
            min_relevance: 0-100 threshold applied after completion
                           (defaults to the service setting; ignored on cache hits)
            sources: Registry names to search (defaults to all)
            callbacks: Streaming hooks
            sort_mode: Final ordering
        """
        callbacks = callbacks or SearchCallbacks()
        if not query or not query.strip():
            logger.warning("Ignoring blank search query")
            return SearchOutcome(status=SearchStatus.EMPTY_QUERY, query=query or "")

        names = self.resolve_sources(sources)
        effective_limit = self.clamp_limit(limit, len(names))
        key = make_cache_key(query, effective_limit, pdf_only)

        entry = self.cache.get(key)
        if entry is not None:
            return await self._replay(query, key, entry, names, effective_limit, pdf_only, callbacks, sort_mode)

        if not self.debounce.should_run(key):
            logger.info(f"Debounced repeated search for {query!r}")
            return SearchOutcome(status=SearchStatus.DEBOUNCED, query=query, cache_key=key)

        session = self._start_session(query, effective_limit, names, pdf_only)
        summary = await self.orchestrator.run_search(query, callbacks=callbacks, session=session)

        if not session.is_active:
            return SearchOutcome(status=SearchStatus.SUPERSEDED, query=query, cache_key=key, summary=summary)

        all_papers = session.results()
        self.cache.put(
            key,
            all_papers,
            session.corpus,
            sources_completed=session.sources_completed,
            total_sources=session.total_sources,
            summary=summary,
        )

        threshold = self.min_relevance if min_relevance is None else min_relevance
        filtered = apply_filters(all_papers, pdf_only=pdf_only, relevance_threshold=threshold, search_complete=True)
        return SearchOutcome(
            status=SearchStatus.COMPLETED,
            query=query,
            cache_key=key,
            papers=tuple(sort_papers(filtered, sort_mode)),
            all_papers=tuple(all_papers),
            summary=summary,
            relevance_threshold=threshold,
        )

    async def search_by_title(self, title: str, **kwargs) -> SearchOutcome:
        """Search for a known paper title: punctuation stripped, limit 25."""
        cleaned = " ".join(_TITLE_CLEAN_RE.sub(" ", title or "").split())
        kwargs.setdefault("limit", TITLE_SEARCH_LIMIT)
        return await self.search(cleaned, **kwargs)

    def clear_cache(self) -> None:
        self.cache.clear()
        self.debounce.reset()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _start_session(self, query: str, limit: int, names: tuple[str, ...], pdf_only: bool) -> SearchSession:
        if self._current is not None:
            self._current.invalidate()
        session = SearchSession(query=query, limit=limit, source_names=names, pdf_only=pdf_only)
        self._current = session
        return session

    async def _replay(
        self,
        query: str,
        key: str,
        entry,
        names: tuple[str, ...],
        limit: int,
        pdf_only: bool,
        callbacks: SearchCallbacks,
        sort_mode: SortMode,
    ) -> SearchOutcome:
        """Serve a cache hit: restore state, skip the orchestrator, no threshold."""
        session = self._start_session(query, limit, names, pdf_only)
        session.restore(entry.papers, entry.corpus)

        summary = entry.summary
        if summary is None:
            summary = SearchSummary(
                sources_searched=entry.total_sources,
                sources_successful=entry.sources_completed,
                total_results=len(entry.papers),
                unique_results=len(entry.papers),
                elapsed_ms=0,
            )
        summary = replace(summary, from_cache=True)
        logger.info(f"Serving {len(entry.papers)} cached papers for {query!r}")
        await invoke_callback(callbacks.on_complete, summary)

        filtered = apply_filters(entry.papers, pdf_only=pdf_only, relevance_threshold=0.0, search_complete=True)
        return SearchOutcome(
            status=SearchStatus.CACHED,
            query=query,
            cache_key=key,
            papers=tuple(sort_papers(filtered, sort_mode)),
            all_papers=entry.papers,
            summary=summary,
            relevance_threshold=0.0,
        )


__all__ = [
    "DEFAULT_LIMIT",
    "DEFAULT_MAX_RESULTS_PER_SOURCE",
    "DEFAULT_MAX_TOTAL_RESULTS",
    "SearchOutcome",
    "SearchService",
    "SearchStatus",
]
