"""
Post-processing of the reconciled result set: filtering and ordering.

Sort modes:
    RELEVANCE            score desc (0.1 tolerance), then title asc
    RELEVANCE_CITATIONS  score desc (0.1 tolerance), then citations desc, then year desc

Scores within 0.1 of the highest score in their run are treated as tied,
so floating point noise never decides the order.
"""

from __future__ import annotations

import functools
from collections.abc import Iterable
from enum import Enum

from sourcecrate.domain.entities.paper import Paper

SCORE_TOLERANCE = 0.1
_EPSILON = 1e-9
DEFAULT_MIN_RELEVANCE = 35.0


class SortMode(Enum):
    RELEVANCE = "relevance"
    RELEVANCE_CITATIONS = "relevance_citations"


def apply_filters(
    papers: Iterable[Paper],
    *,
    pdf_only: bool = False,
    relevance_threshold: float = 0.0,
    search_complete: bool = True,
) -> list[Paper]:
    """
    Filter the result set.

    Args:
        papers: Papers to filter
        pdf_only: Keep only papers with at least one validated PDF link
        relevance_threshold: Minimum 0-100 score; unscored papers always pass
        search_complete: The threshold is applied only once every source has
            settled, so counts do not jump around while results stream in

    Returns:
        Filtered list, order preserved
    """
    filtered = list(papers)
    if pdf_only:
        filtered = [p for p in filtered if p.has_pdf]
    if search_complete and relevance_threshold > 0:
        filtered = [p for p in filtered if p.relevance_score is None or p.relevance_score >= relevance_threshold]
    return filtered


def _score(paper: Paper) -> float:
    return paper.relevance_score or 0.0


def _is_tied(higher: float, lower: float) -> bool:
    return higher - lower <= SCORE_TOLERANCE + _EPSILON


def _compare_titles(a: Paper, b: Paper) -> int:
    title_a = (a.title or "").lower()
    title_b = (b.title or "").lower()
    return (title_a > title_b) - (title_a < title_b)


def _compare_citations(a: Paper, b: Paper) -> int:
    if a.citation_count != b.citation_count:
        return b.citation_count - a.citation_count
    return (b.year or 0) - (a.year or 0)


_TIE_BREAKERS = {
    SortMode.RELEVANCE: _compare_titles,
    SortMode.RELEVANCE_CITATIONS: _compare_citations,
}


def _tie_groups(papers: list[Paper]) -> list[list[Paper]]:
    """
    Split score-descending papers into runs anchored on their top score.

    A paper joins the current run while it is within the tolerance of the
    run's first paper, so ties never chain across a wider spread and the
    grouping does not depend on input order.
    """
    groups: list[list[Paper]] = []
    for paper in papers:
        if groups and _is_tied(_score(groups[-1][0]), _score(paper)):
            groups[-1].append(paper)
        else:
            groups.append([paper])
    return groups


def sort_papers(papers: Iterable[Paper], mode: SortMode = SortMode.RELEVANCE) -> list[Paper]:
    """Return a new list ordered by ``mode``. The sort is stable."""
    tie_breaker = functools.cmp_to_key(_TIE_BREAKERS[mode])
    by_score = sorted(papers, key=_score, reverse=True)
    return [paper for group in _tie_groups(by_score) for paper in sorted(group, key=tie_breaker)]


def sort_by_relevance(papers: Iterable[Paper]) -> list[Paper]:
    return sort_papers(papers, SortMode.RELEVANCE)


__all__ = [
    "DEFAULT_MIN_RELEVANCE",
    "SCORE_TOLERANCE",
    "SortMode",
    "apply_filters",
    "sort_by_relevance",
    "sort_papers",
]
