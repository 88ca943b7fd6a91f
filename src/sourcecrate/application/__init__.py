"""
Application Layer - Use Cases and Business Logic Orchestration

Contains:
- search: Federated search (fan-out, deduplication, ranking, caching)
"""

from .search import (
    SearchCallbacks,
    SearchOrchestrator,
    SearchOutcome,
    SearchService,
    SearchStatus,
    SearchSummary,
    SortMode,
)

__all__ = [
    "SearchCallbacks",
    "SearchOrchestrator",
    "SearchOutcome",
    "SearchService",
    "SearchStatus",
    "SearchSummary",
    "SortMode",
]
