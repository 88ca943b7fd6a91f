"""
Record reconciliation: decide whether an incoming record duplicates one
already in the session, and merge the two into a single Paper.

Matching priority:
    1. DOI pre-filter (Bloom filter). "Definitely absent" means new.
    2. Exact DOI index. Authoritative whenever the incoming record has a DOI.
    3. Fuzzy title match (bigram Dice ≥ 0.85) for records without a DOI,
       first match in insertion order wins.

Merge rules (existing record wins for descriptive fields):
    - title, authors, abstract, journal, year, url, doi: first non-empty
    - pdf_url: shortest validated PDF URL, else first non-empty
    - citation_count: max
    - is_open_access: any
    - source_links: incoming links replace same-source links, others append
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from sourcecrate.domain.entities.paper import Paper, SourceLink, is_valid_pdf_url
from sourcecrate.shared.exceptions import MalformedRecordError

from .similarity import TitleMatcher

if TYPE_CHECKING:
    from .session import SearchSession

logger = logging.getLogger(__name__)


# =============================================================================
# Pure merge
# =============================================================================


def merge_source_links(existing: Iterable[SourceLink], incoming: Iterable[SourceLink]) -> tuple[SourceLink, ...]:
    """Union of links with at most one link per source; incoming replaces in place."""
    links = list(existing)
    for link in incoming:
        for i, current in enumerate(links):
            if current.source == link.source:
                links[i] = link
                break
        else:
            links.append(link)
    return tuple(links)


def select_pdf_url(first: str | None, second: str | None) -> str | None:
    """Prefer the shorter validated PDF URL; the first value wins ties."""
    valid = [url for url in (first, second) if is_valid_pdf_url(url)]
    if valid:
        return min(valid, key=len)
    return first or second


def merge_papers(existing: Paper, incoming: Paper) -> Paper:
    """
    Merge ``incoming`` into ``existing``, returning a new Paper.

    Neither argument is modified.
    """
    existing = Paper.from_raw(existing)
    incoming = Paper.from_raw(incoming)
    return replace(
        existing,
        title=existing.title or incoming.title,
        authors=existing.authors or incoming.authors,
        abstract=existing.abstract or incoming.abstract,
        year=existing.year or incoming.year,
        doi=existing.doi or incoming.doi,
        url=existing.url or incoming.url,
        pdf_url=select_pdf_url(existing.pdf_url, incoming.pdf_url),
        journal=existing.journal or incoming.journal,
        citation_count=max(existing.citation_count, incoming.citation_count),
        is_open_access=existing.is_open_access or incoming.is_open_access,
        source_links=merge_source_links(existing.source_links, incoming.source_links),
    )


# =============================================================================
# Session-aware reconciliation
# =============================================================================


@dataclass(frozen=True, slots=True)
class MergeOutcome:
    """Result of reconciling one incoming record."""

    key: str
    paper: Paper
    is_new: bool


class RecordMerger:
    """
    Reconciles incoming records against a SearchSession.

    Example:
        merger = RecordMerger()
        outcomes = merger.merge_batch(session, raw_records, source="CrossRef")
    """

    def __init__(self, matcher: TitleMatcher | None = None) -> None:
        self.matcher = matcher or TitleMatcher()

    def find_duplicate(self, session: SearchSession, paper: Paper) -> str | None:
        """
        Key of the session record that ``paper`` duplicates, if any.

        A DOI the Bloom filter has definitely never seen is new without
        further checks; ``SearchSession.store`` records it in the filter.
        """
        if paper.doi:
            if not session.doi_filter.might_contain(paper.doi):
                return None
            return session.doi_index.get(paper.doi)

        title = paper.normalized_title
        if not title:
            return None
        for key, existing_title in session.normalized_titles.items():
            if self.matcher.matches_normalized(title, existing_title):
                return key
        return None

    def merge_record(self, session: SearchSession, paper: Paper) -> MergeOutcome:
        """Insert ``paper`` into the session or merge it into its duplicate."""
        duplicate_key = self.find_duplicate(session, paper)
        if duplicate_key is None and paper.key in session.papers:
            duplicate_key = paper.key

        if duplicate_key is not None:
            merged = merge_papers(session.papers[duplicate_key], paper)
            session.store(duplicate_key, merged)
            logger.debug(f"Merged {paper.source} record into {duplicate_key}")
            return MergeOutcome(key=duplicate_key, paper=merged, is_new=False)

        key = paper.key
        session.store(key, paper)
        return MergeOutcome(key=key, paper=paper, is_new=True)

    def merge_batch(
        self,
        session: SearchSession,
        records: Iterable[Mapping[str, Any] | Paper],
        *,
        source: str,
    ) -> list[MergeOutcome]:
        """
        Reconcile a whole batch from one source.

        A record that fails validation or reconciliation is dropped and
        logged; the rest of the batch continues.
        """
        outcomes: list[MergeOutcome] = []
        for raw in records:
            try:
                paper = Paper.from_raw(raw, source=source)
                outcomes.append(self.merge_record(session, paper))
            except MalformedRecordError as e:
                logger.warning(f"Dropping record: {e}")
            except Exception as e:
                logger.exception(f"Failed to reconcile {source} record: {e}")
        return outcomes


__all__ = [
    "MergeOutcome",
    "RecordMerger",
    "merge_papers",
    "merge_source_links",
    "select_pdf_url",
]
