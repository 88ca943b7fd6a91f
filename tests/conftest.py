"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from sourcecrate.application.search import (
    DebounceGuard,
    ResultCache,
    SearchOrchestrator,
    SearchService,
    SearchSession,
)
from sourcecrate.domain.entities.paper import Paper
from sourcecrate.infrastructure.sources import SourceRegistry

# ============================================================
# Fake Sources
# ============================================================


class FakeAdapter:
    """In-memory source adapter with optional delay and failure."""

    def __init__(
        self,
        name: str,
        records: list[dict[str, Any]] | None = None,
        *,
        delay: float = 0.0,
        error: Exception | None = None,
        search_timeout: float = 5.0,
        display_name: str | None = None,
    ) -> None:
        self.name = name
        self.display_name = display_name or name
        self.records = records or []
        self.delay = delay
        self.error = error
        self.search_timeout = search_timeout
        self.calls: list[tuple[str, int]] = []
        self.closed = False

    async def search(self, query: str, limit: int) -> list[dict[str, Any]]:
        self.calls.append((query, limit))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [dict(record) for record in self.records[:limit]]

    async def close(self) -> None:
        self.closed = True


def make_registry(*adapters: FakeAdapter) -> SourceRegistry:
    """Registry whose factories return the given fake adapters."""
    return SourceRegistry({adapter.name: (lambda a=adapter: a) for adapter in adapters})


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================================
# Record Fixtures
# ============================================================


def raw_record(title: str, **fields: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "title": title,
        "authors": ["A. Author"],
        "abstract": "",
        "year": 2020,
        "doi": None,
        "url": None,
        "pdf_url": None,
        "journal": None,
        "citation_count": 0,
        "is_open_access": False,
    }
    record.update(fields)
    return record


@pytest.fixture
def ml_records() -> dict[str, list[dict[str, Any]]]:
    """The same machine learning paper as reported by three sources."""
    return {
        "arxiv": [
            raw_record(
                "Machine Learning",
                doi="10.1/ml",
                pdf_url="https://arxiv.org/pdf/x.pdf",
                is_open_access=True,
                citation_count=0,
                source="arXiv",
            )
        ],
        "crossref": [
            raw_record(
                "Machine Learning",
                doi="https://doi.org/10.1/ML",
                citation_count=500,
                source="CrossRef",
            )
        ],
        "pubmed": [
            raw_record(
                "Machine learning.",
                doi="10.1/ml",
                citation_count=10,
                source="PubMed",
            )
        ],
    }


@pytest.fixture
def sample_paper() -> Paper:
    return Paper.from_raw(
        raw_record(
            "Deep Learning for Protein Structure Prediction",
            authors=["Jane Doe", "John Roe"],
            abstract="We apply deep learning to protein structure prediction.",
            year=2021,
            doi="10.1000/proteins.2021",
            url="https://example.org/paper",
            pdf_url="https://example.org/paper.pdf",
            journal="Journal of Proteins",
            citation_count=42,
            is_open_access=True,
        ),
        source="CrossRef",
    )


@pytest.fixture
def session() -> SearchSession:
    return SearchSession(query="machine learning", limit=10, source_names=("arxiv", "crossref", "pubmed"))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_adapters(ml_records) -> list[FakeAdapter]:
    return [FakeAdapter(name, records) for name, records in ml_records.items()]


@pytest.fixture
def service_factory(clock):
    """Build a SearchService over fake adapters with a controllable clock."""

    def _factory(*adapters: FakeAdapter, **kwargs: Any) -> SearchService:
        registry = make_registry(*adapters)
        return SearchService(
            orchestrator=SearchOrchestrator(registry),
            cache=ResultCache(clock=clock),
            debounce=DebounceGuard(clock=clock),
            **kwargs,
        )

    return _factory


# ============================================================
# Factory Fixtures
# ============================================================


@pytest.fixture
def make_adapter():
    return FakeAdapter


@pytest.fixture
def make_record():
    return raw_record


@pytest.fixture
def registry_factory():
    return make_registry
