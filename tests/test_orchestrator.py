"""
Tests for the parallel search orchestrator.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from sourcecrate.application.search import (
    ResultsEvent,
    SearchCallbacks,
    SearchOrchestrator,
    SearchSession,
    SearchSummary,
    SourceCompleteEvent,
    SourceStartEvent,
)


class EventRecorder:
    """Collects callback invocations in arrival order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []

    def callbacks(self) -> SearchCallbacks:
        return SearchCallbacks(
            on_source_start=lambda e: self.events.append(("start", e)),
            on_results=lambda e: self.events.append(("results", e)),
            on_source_complete=lambda e: self.events.append(("complete", e)),
            on_complete=lambda e: self.events.append(("done", e)),
        )

    def of_kind(self, kind: str) -> list:
        return [event for k, event in self.events if k == kind]


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


def _session(*names: str, query: str = "machine learning", limit: int = 10) -> SearchSession:
    return SearchSession(query=query, limit=limit, source_names=names)


# =============================================================================
# Fan-out and reconciliation
# =============================================================================


class TestRunSearch:
    async def test_duplicates_merged_across_sources(self, fake_adapters, registry_factory, recorder):
        orchestrator = SearchOrchestrator(registry_factory(*fake_adapters))
        session = _session("arxiv", "crossref", "pubmed")

        summary = await orchestrator.run_search("machine learning", session=session, callbacks=recorder.callbacks())

        assert summary == SearchSummary(
            sources_searched=3,
            sources_successful=3,
            total_results=3,
            unique_results=1,
            elapsed_ms=summary.elapsed_ms,
        )
        paper = session.results()[0]
        assert len(paper.source_links) == 3
        assert paper.citation_count == 500
        assert session.is_complete

    async def test_adapters_receive_query_and_limit(self, fake_adapters, registry_factory):
        orchestrator = SearchOrchestrator(registry_factory(*fake_adapters))
        await orchestrator.run_search("machine learning", session=_session("arxiv", limit=7))
        assert fake_adapters[0].calls == [("machine learning", 7)]
        assert fake_adapters[1].calls == []

    async def test_default_session_uses_all_registered_sources(self, fake_adapters, registry_factory):
        orchestrator = SearchOrchestrator(registry_factory(*fake_adapters))
        summary = await orchestrator.run_search("machine learning", limit=5)
        assert summary.sources_searched == 3
        assert all(adapter.calls == [("machine learning", 5)] for adapter in fake_adapters)

    async def test_papers_are_scored(self, make_adapter, make_record, registry_factory):
        adapter = make_adapter(
            "a",
            [make_record("Machine Learning in Practice", doi="10.1/a"), make_record("Cooking at Home", doi="10.1/b")],
        )
        session = _session("a")
        await SearchOrchestrator(registry_factory(adapter)).run_search("machine learning", session=session)

        scores = {p.title: p.relevance_score for p in session.results()}
        assert all(score is not None for score in scores.values())
        assert scores["Machine Learning in Practice"] > scores["Cooking at Home"]

    async def test_no_sources(self, registry_factory, recorder):
        orchestrator = SearchOrchestrator(registry_factory())
        summary = await orchestrator.run_search("anything", session=_session(), callbacks=recorder.callbacks())
        assert summary.sources_searched == 0
        assert summary.unique_results == 0
        assert len(recorder.of_kind("done")) == 1


# =============================================================================
# Callbacks
# =============================================================================


class TestCallbacks:
    async def test_per_source_order(self, fake_adapters, registry_factory, recorder):
        orchestrator = SearchOrchestrator(registry_factory(*fake_adapters))
        await orchestrator.run_search(
            "machine learning", session=_session("arxiv", "crossref", "pubmed"), callbacks=recorder.callbacks()
        )

        for name in ("arxiv", "crossref", "pubmed"):
            kinds = [
                kind
                for kind, event in recorder.events
                if kind != "done" and getattr(event, "source", None) == name
            ]
            assert kinds == ["start", "results", "complete"]
        assert recorder.events[-1][0] == "done"

    async def test_event_payloads(self, fake_adapters, registry_factory, recorder):
        orchestrator = SearchOrchestrator(registry_factory(*fake_adapters))
        await orchestrator.run_search(
            "machine learning", session=_session("arxiv", "crossref", "pubmed"), callbacks=recorder.callbacks()
        )

        assert all(isinstance(e, SourceStartEvent) for e in recorder.of_kind("start"))
        results = recorder.of_kind("results")
        assert all(isinstance(e, ResultsEvent) and e.count == 1 for e in results)

        completes = recorder.of_kind("complete")
        assert all(isinstance(e, SourceCompleteEvent) for e in completes)
        assert sorted(e.completed for e in completes) == [1, 2, 3]
        assert {e.total for e in completes} == {3}
        assert all(e.error is None for e in completes)

    async def test_async_callbacks_awaited(self, fake_adapters, registry_factory):
        seen: list[str] = []

        async def on_results(event: ResultsEvent) -> None:
            await asyncio.sleep(0)
            seen.append(event.source)

        orchestrator = SearchOrchestrator(registry_factory(*fake_adapters))
        await orchestrator.run_search(
            "machine learning",
            session=_session("arxiv", "crossref"),
            callbacks=SearchCallbacks(on_results=on_results),
        )
        assert sorted(seen) == ["arxiv", "crossref"]

    async def test_failing_callback_does_not_break_search(self, fake_adapters, registry_factory):
        def explode(event):
            raise RuntimeError("consumer bug")

        done: list[SearchSummary] = []
        orchestrator = SearchOrchestrator(registry_factory(*fake_adapters))
        summary = await orchestrator.run_search(
            "machine learning",
            session=_session("arxiv", "crossref"),
            callbacks=SearchCallbacks(on_results=explode, on_source_complete=explode, on_complete=done.append),
        )
        assert summary.unique_results == 1
        assert done == [summary]


# =============================================================================
# Failure isolation
# =============================================================================


class TestFailureIsolation:
    async def test_raising_source_reported_on_completion(self, make_adapter, make_record, registry_factory, recorder):
        good = make_adapter("good", [make_record("Good Paper", doi="10.1/good")])
        bad = make_adapter("bad", error=RuntimeError("boom"))
        session = _session("good", "bad")

        summary = await SearchOrchestrator(registry_factory(good, bad)).run_search(
            "paper", session=session, callbacks=recorder.callbacks()
        )

        errors = {e.source: e.error for e in recorder.of_kind("complete")}
        assert errors == {"good": None, "bad": "boom"}
        assert summary.sources_successful == 1
        assert summary.unique_results == 1
        assert len(recorder.of_kind("done")) == 1

    async def test_non_iterable_return_isolated(self, make_adapter, make_record, registry_factory, recorder):
        good = make_adapter("good", [make_record("Good Paper", doi="10.1/good")])
        bad = make_adapter("bad")
        bad.search = AsyncMock(return_value=5)

        summary = await SearchOrchestrator(registry_factory(good, bad)).run_search(
            "paper", session=_session("good", "bad"), callbacks=recorder.callbacks()
        )

        errors = {e.source: e.error for e in recorder.of_kind("complete")}
        assert errors["good"] is None
        assert "not iterable" in errors["bad"]
        assert summary.sources_successful == 1
        assert summary.unique_results == 1
        assert len(recorder.of_kind("done")) == 1

    async def test_iterable_failing_midway_isolated(self, make_adapter, make_record, registry_factory, recorder):
        def broken_stream():
            yield make_record("Partial Paper")
            raise RuntimeError("upstream stream broke")

        good = make_adapter("good", [make_record("Good Paper", doi="10.1/good")])
        bad = make_adapter("bad")
        bad.search = AsyncMock(return_value=broken_stream())
        session = _session("good", "bad")

        summary = await SearchOrchestrator(registry_factory(good, bad)).run_search(
            "paper", session=session, callbacks=recorder.callbacks()
        )

        errors = {e.source: e.error for e in recorder.of_kind("complete")}
        assert errors == {"good": None, "bad": "upstream stream broke"}
        assert summary.sources_successful == 1
        assert [p.title for p in session.papers.values()] == ["Good Paper"]
        assert len(recorder.of_kind("done")) == 1

    async def test_timeout_reported_as_error(self, make_adapter, make_record, registry_factory, recorder):
        slow = make_adapter("slow", [make_record("Late Paper")], delay=1.0, search_timeout=0.05)
        fast = make_adapter("fast", [make_record("Quick Paper")])

        summary = await SearchOrchestrator(registry_factory(slow, fast)).run_search(
            "paper", session=_session("slow", "fast"), callbacks=recorder.callbacks()
        )

        errors = {e.source: e.error for e in recorder.of_kind("complete")}
        assert errors["fast"] is None
        assert "timed out" in errors["slow"]
        assert summary.unique_results == 1

    async def test_default_timeout_used_when_adapter_has_none(self, make_adapter, registry_factory, recorder):
        slow = make_adapter("slow", delay=1.0, search_timeout=0)
        orchestrator = SearchOrchestrator(registry_factory(slow), default_timeout=0.05)
        await orchestrator.run_search("q", session=_session("slow"), callbacks=recorder.callbacks())
        assert "timed out" in recorder.of_kind("complete")[0].error

    async def test_unknown_source(self, registry_factory, recorder):
        await SearchOrchestrator(registry_factory()).run_search(
            "q", session=_session("nope"), callbacks=recorder.callbacks()
        )
        event = recorder.of_kind("complete")[0]
        assert event.source == "nope"
        assert "nope" in event.error

    async def test_empty_source_not_successful(self, make_adapter, registry_factory, recorder):
        empty = make_adapter("empty", [])
        summary = await SearchOrchestrator(registry_factory(empty)).run_search(
            "q", session=_session("empty"), callbacks=recorder.callbacks()
        )
        assert summary.sources_successful == 0
        assert recorder.of_kind("results") == []
        assert recorder.of_kind("complete")[0].count == 0

    async def test_malformed_records_do_not_fail_batch(self, make_adapter, make_record, registry_factory):
        adapter = make_adapter("a", [make_record("Valid Paper"), {"title": ""}, {"doi": "10.1/no-title"}])
        session = _session("a")
        summary = await SearchOrchestrator(registry_factory(adapter)).run_search("valid", session=session)
        assert summary.total_results == 3
        assert summary.unique_results == 1


# =============================================================================
# Superseded sessions
# =============================================================================


class TestStaleSessions:
    async def test_invalidated_session_discards_results(self, make_adapter, make_record, registry_factory, recorder):
        slow = make_adapter("slow", [make_record("Stale Paper")], delay=0.05)
        session = _session("slow")
        orchestrator = SearchOrchestrator(registry_factory(slow))

        task = asyncio.create_task(
            orchestrator.run_search("stale", session=session, callbacks=recorder.callbacks())
        )
        await asyncio.sleep(0.01)
        session.invalidate()
        await task

        assert session.papers == {}
        assert recorder.of_kind("results") == []
        assert recorder.of_kind("complete") == []
        assert recorder.of_kind("done") == []
        assert not session.is_complete
