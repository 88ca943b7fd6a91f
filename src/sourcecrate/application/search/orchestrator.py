"""
Search Orchestrator - parallel fan-out with streaming reconciliation.

Architecture:
    query
      │
      ▼
    ┌──────────────────────────────────────────┐
    │ one task per source (asyncio.TaskGroup)  │  ← per-source timeout
    └──────────┬──────────┬──────────┬─────────┘
               ▼          ▼          ▼
            arXiv     CrossRef    PubMed ...      ← settle in any order
               │          │          │
               └────┬─────┴──────────┘
                    ▼  (session lock: one batch at a time)
    ┌──────────────────────────────────────────┐
    │ RecordMerger → corpus update → rescore   │
    └──────────────────┬───────────────────────┘
                       ▼
            on_results / on_source_complete
                       │
                       ▼  (all sources settled)
                  on_complete

Per source the callback order is always start → results → complete.
Nothing is ordered across sources. A source that raises or times out is
reported through ``SourceCompleteEvent.error`` and never affects the
others.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sourcecrate.shared.async_utils import invoke_callback, run_with_timeout

from .record_merger import RecordMerger
from .session import SearchSession

if TYPE_CHECKING:
    from sourcecrate.domain.entities.paper import Paper
    from sourcecrate.infrastructure.sources.registry import SourceRegistry

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_TIMEOUT = 15.0


# =============================================================================
# Events
# =============================================================================


@dataclass(frozen=True, slots=True)
class SourceStartEvent:
    source: str


@dataclass(frozen=True, slots=True)
class ResultsEvent:
    """New or updated records produced by one source's batch."""

    source: str
    papers: tuple[Paper, ...]

    @property
    def count(self) -> int:
        return len(self.papers)


@dataclass(frozen=True, slots=True)
class SourceCompleteEvent:
    source: str
    count: int
    completed: int
    total: int
    error: str | None = None


@dataclass(frozen=True, slots=True)
class SearchSummary:
    sources_searched: int
    sources_successful: int
    total_results: int
    unique_results: int
    elapsed_ms: int
    from_cache: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "sources_searched": self.sources_searched,
            "sources_successful": self.sources_successful,
            "total_results": self.total_results,
            "unique_results": self.unique_results,
            "elapsed_ms": self.elapsed_ms,
            "from_cache": self.from_cache,
        }


Callback = Callable[[Any], Awaitable[None] | None]


@dataclass
class SearchCallbacks:
    """Optional consumer hooks; each may be a plain function or a coroutine function."""

    on_source_start: Callback | None = None
    on_results: Callback | None = None
    on_source_complete: Callback | None = None
    on_complete: Callback | None = None


# =============================================================================
# Orchestrator
# =============================================================================


@dataclass
class _BatchResult:
    records: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None


class SearchOrchestrator:
    """
    Fans a query out to every requested source and reconciles results as
    they arrive.

    Example:
        orchestrator = SearchOrchestrator(SourceRegistry.with_defaults())
        summary = await orchestrator.run_search(
            "machine learning",
            limit=10,
            source_names=["arxiv", "crossref"],
            callbacks=SearchCallbacks(on_results=print),
        )
    """

    def __init__(
        self,
        registry: SourceRegistry,
        merger: RecordMerger | None = None,
        default_timeout: float = DEFAULT_SOURCE_TIMEOUT,
    ) -> None:
        self.registry = registry
        self.merger = merger or RecordMerger()
        self.default_timeout = default_timeout

    async def run_search(
        self,
        query: str,
        *,
        limit: int = 10,
        source_names: Sequence[str] | None = None,
        callbacks: SearchCallbacks | None = None,
        session: SearchSession | None = None,
    ) -> SearchSummary:
        """
        Run one search to completion.

        Args:
            query: Raw query string
            limit: Per-source result limit
            source_names: Registry names to search (default: all registered)
            callbacks: Streaming hooks
            session: Pre-built session (the search service passes its own so
                     it can invalidate it when a newer query arrives)

        Returns:
            Summary of the run. ``on_complete`` is not fired for a session
            that was invalidated before all sources settled.
        """
        if session is None:
            names = tuple(source_names) if source_names is not None else tuple(self.registry.names())
            session = SearchSession(query=query, limit=limit, source_names=names)
        callbacks = callbacks or SearchCallbacks()

        logger.info(f"Searching {session.total_sources} sources for {session.query!r} (limit={session.limit})")

        if session.source_names:
            async with asyncio.TaskGroup() as tg:
                for name in session.source_names:
                    tg.create_task(self._search_source(session, name, callbacks))

        summary = SearchSummary(
            sources_searched=session.total_sources,
            sources_successful=session.sources_successful,
            total_results=session.total_results,
            unique_results=len(session.papers),
            elapsed_ms=session.elapsed_ms,
        )

        if not session.is_active:
            logger.info(f"Search for {session.query!r} was superseded; discarding completion")
            return summary

        session.mark_complete()
        logger.info(
            f"Search for {session.query!r} complete: {summary.unique_results} unique papers "
            f"from {summary.sources_successful}/{summary.sources_searched} sources in {summary.elapsed_ms}ms"
        )
        await invoke_callback(callbacks.on_complete, summary)
        return summary

    async def _search_source(self, session: SearchSession, name: str, callbacks: SearchCallbacks) -> None:
        if session.is_active:
            await invoke_callback(callbacks.on_source_start, SourceStartEvent(name))

        batch = await self._fetch(session, name)

        async with session.lock:
            if not session.is_active:
                logger.debug(f"Discarding {len(batch.records)} stale records from {name}")
                return

            changed = self._process_batch(session, name, batch.records) if batch.records else []
            session.sources_completed += 1
            session.total_results += len(batch.records)
            if batch.records and batch.error is None:
                session.sources_successful += 1

            if changed:
                await invoke_callback(callbacks.on_results, ResultsEvent(name, tuple(changed)))
            await invoke_callback(
                callbacks.on_source_complete,
                SourceCompleteEvent(
                    source=name,
                    count=len(batch.records),
                    completed=session.sources_completed,
                    total=session.total_sources,
                    error=batch.error,
                ),
            )

    async def _fetch(self, session: SearchSession, name: str) -> _BatchResult:
        """Call one adapter, converting every failure into an error string."""
        try:
            adapter = self.registry.get(name)
            timeout = getattr(adapter, "search_timeout", None) or self.default_timeout
            records = await run_with_timeout(adapter.search(session.query, session.limit), timeout, source=name)
            if not isinstance(records, list):
                records = list(records or [])
        except Exception as e:
            logger.warning(f"Source {name} failed: {e}")
            return _BatchResult(error=str(e) or type(e).__name__)

        logger.debug(f"Source {name} returned {len(records)} records")
        return _BatchResult(records=records)

    def _process_batch(self, session: SearchSession, name: str, records: list[dict[str, Any]]) -> list[Paper]:
        """Merge a batch into the session and rescore; returns new or updated papers."""
        display_name = getattr(self.registry.get(name), "display_name", name)
        outcomes = self.merger.merge_batch(session, records, source=display_name)
        if not outcomes:
            return []
        session.corpus.update(outcome.paper for outcome in outcomes)
        session.rescore()
        changed_keys = dict.fromkeys(outcome.key for outcome in outcomes)
        return [session.papers[key] for key in changed_keys if key in session.papers]


__all__ = [
    "DEFAULT_SOURCE_TIMEOUT",
    "ResultsEvent",
    "SearchCallbacks",
    "SearchOrchestrator",
    "SearchSummary",
    "SourceCompleteEvent",
    "SourceStartEvent",
]
