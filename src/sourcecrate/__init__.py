"""
SourceCrate Search - Federated Academic Literature Search

Queries many scholarly sources in parallel, merges duplicate records as
they stream in and ranks the combined set with an incremental BM25 model.

Usage:
    from sourcecrate import create_container

    container = create_container(email="your@email.com")
    outcome = await container.search_service().search("machine learning", limit=10)

    for paper in outcome.papers:
        print(f"{paper.relevance_score:5.1f} {paper.title} ({', '.join(paper.sources)})")

Features:
    - Ten sources: arXiv, CrossRef, PubMed, OpenAlex, DOAJ, Europe PMC,
      Semantic Scholar, Unpaywall, DataCite, Zenodo
    - Streaming callbacks per source
    - DOI, Bloom filter and fuzzy-title deduplication
    - Normalized 0-100 relevance scores
    - Result cache with replay
"""

from .application.search import (
    SearchCallbacks,
    SearchOrchestrator,
    SearchOutcome,
    SearchService,
    SearchStatus,
    SearchSummary,
    SortMode,
)
from .container import ApplicationContainer, create_container
from .domain import Paper, SourceLink
from .infrastructure import DEFAULT_SOURCES, SourceRegistry

__version__ = "0.1.0"

__all__ = [
    # High-level API
    "SearchService",
    "SearchOutcome",
    "SearchStatus",
    "SearchCallbacks",
    "SearchSummary",
    "SortMode",
    "ApplicationContainer",
    "create_container",
    # Orchestration
    "SearchOrchestrator",
    "SourceRegistry",
    "DEFAULT_SOURCES",
    # Domain
    "Paper",
    "SourceLink",
]
