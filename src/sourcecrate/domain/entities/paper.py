"""
Paper - canonical bibliographic record.

A Paper is an immutable value. Every adapter hands back loosely shaped
dicts; ``Paper.from_raw`` is the single place where those dicts are
validated and normalized (DOI lowercased and stripped of resolver prefixes,
authors coerced to a tuple, counts clamped). Merging two Papers never
mutates either of them, it produces a new value.

Each Paper carries one SourceLink per contributing source, so consumers can
show where a record was found and which copy has a usable PDF.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any
from urllib.parse import urlparse

from sourcecrate.shared.exceptions import MalformedRecordError

# =============================================================================
# Normalization helpers
# =============================================================================

_DOI_PREFIXES = (
    "https://doi.org/",
    "http://doi.org/",
    "https://dx.doi.org/",
    "http://dx.doi.org/",
    "doi:",
)

# Hosts known to serve HTML error pages in place of the advertised PDF
KNOWN_BROKEN_URL_PATTERNS = ("/aop-cambridge-core/content/view/",)

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_doi(doi: str | None) -> str | None:
    """
    Normalize a DOI for comparison.

    Lowercases, trims, and strips resolver prefixes. Returns None for empty
    input so callers can treat "no DOI" uniformly.
    """
    if not doi:
        return None
    value = str(doi).strip().lower()
    for prefix in _DOI_PREFIXES:
        value = value.removeprefix(prefix)
    value = value.strip()
    return value or None


def normalize_title(title: str | None) -> str:
    """Lowercase, replace punctuation with spaces, collapse whitespace."""
    if not title:
        return ""
    text = _PUNCTUATION_RE.sub(" ", title.lower())
    return _WHITESPACE_RE.sub(" ", text).strip()


def is_valid_url(url: str | None) -> bool:
    """Check for an absolute http(s) URL with a host."""
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_known_broken_url(url: str | None) -> bool:
    if not url:
        return False
    return any(pattern in url for pattern in KNOWN_BROKEN_URL_PATTERNS)


def is_valid_pdf_url(url: str | None) -> bool:
    """
    Check whether a URL can be offered as a direct PDF link.

    DOI resolvers are rejected: they redirect to landing pages, not files.
    """
    if url is None or not is_valid_url(url):
        return False
    if "doi.org/" in url or url.startswith("https://doi.apa.org/"):
        return False
    return not is_known_broken_url(url)


# =============================================================================
# Value types
# =============================================================================


@dataclass(frozen=True, slots=True)
class SourceLink:
    """Per-source provenance of a merged record."""

    source: str
    pdf_url: str | None = None
    page_url: str | None = None
    has_pdf: bool = False
    is_open_access: bool = False
    citation_count: int = 0

    @classmethod
    def from_paper(cls, paper: Paper) -> SourceLink:
        return cls(
            source=paper.source,
            pdf_url=paper.pdf_url,
            page_url=paper.url,
            has_pdf=is_valid_pdf_url(paper.pdf_url),
            is_open_access=paper.is_open_access,
            citation_count=paper.citation_count,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "pdf_url": self.pdf_url,
            "url": self.page_url,
            "has_pdf": self.has_pdf,
            "is_open_access": self.is_open_access,
            "citation_count": self.citation_count,
        }


@dataclass(frozen=True, slots=True)
class Paper:
    """
    Canonical bibliographic record produced by the search pipeline.

    Attributes:
        title: Paper title (required, never blank)
        authors: Author display names
        abstract: Abstract text, empty when unknown
        year: Publication year
        doi: Normalized DOI
        url: Landing page URL
        pdf_url: Direct PDF URL, if any source offered one
        journal: Journal or venue name
        source: Display name of the source that produced the record
        citation_count: Highest citation count reported by any source
        is_open_access: True if any source reports open access
        relevance_score: 0-100 score, None until scored
        source_links: One link per contributing source
    """

    title: str
    authors: tuple[str, ...] = ()
    abstract: str = ""
    year: int | None = None
    doi: str | None = None
    url: str | None = None
    pdf_url: str | None = None
    journal: str | None = None
    source: str = "unknown"
    citation_count: int = 0
    is_open_access: bool = False
    relevance_score: float | None = None
    source_links: tuple[SourceLink, ...] = field(default=())

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any] | Paper, *, source: str | None = None) -> Paper:
        """
        Build a Paper from an adapter record.

        Accepts snake_case keys plus the camelCase aliases some sources use
        (``pdfUrl``, ``citationCount``, ``isOpenAccess``). The record's own
        SourceLink is attached on construction.

        Raises:
            MalformedRecordError: The record is not a mapping or has no usable title.
        """
        if isinstance(raw, Paper):
            if raw.source_links:
                return raw
            return replace(raw, source_links=(SourceLink.from_paper(raw),))

        if not isinstance(raw, Mapping):
            raise MalformedRecordError(f"expected a mapping, got {type(raw).__name__}", source=source, record=raw)

        record_source = _clean_str(raw.get("source")) or source or "unknown"

        title = raw.get("title")
        if isinstance(title, (list, tuple)):
            title = title[0] if title else None
        if title is not None and not isinstance(title, str):
            raise MalformedRecordError(
                f"title must be a string, got {type(title).__name__}", source=record_source, record=raw
            )
        title = _WHITESPACE_RE.sub(" ", title or "").strip()
        if not title:
            raise MalformedRecordError("missing title", source=record_source, record=raw)

        pdf_url = _clean_str(raw.get("pdf_url") or raw.get("pdfUrl") or raw.get("open_access_pdf"))
        is_open_access = raw.get("is_open_access", raw.get("isOpenAccess", False))

        paper = cls(
            title=title,
            authors=_coerce_authors(raw.get("authors")),
            abstract=_clean_str(raw.get("abstract")) or "",
            year=_coerce_year(raw.get("year")),
            doi=normalize_doi(_clean_str(raw.get("doi"))),
            url=_clean_str(raw.get("url")),
            pdf_url=pdf_url,
            journal=_clean_str(raw.get("journal")),
            source=record_source,
            citation_count=_coerce_count(raw.get("citation_count", raw.get("citationCount"))),
            is_open_access=bool(is_open_access),
        )
        return replace(paper, source_links=(SourceLink.from_paper(paper),))

    # -------------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------------

    @property
    def normalized_title(self) -> str:
        return normalize_title(self.title)

    @property
    def key(self) -> str:
        """
        Deduplication key.

        ``doi:<doi>`` when a DOI is known, else ``title:<normalized title>``,
        else ``url:<url>``. A record with none of those gets a content hash
        so the same record always maps to the same key.
        """
        if self.doi:
            return f"doi:{self.doi}"
        normalized = self.normalized_title
        if normalized:
            return f"title:{normalized}"
        if self.url:
            return f"url:{self.url}"
        digest = hashlib.sha1(
            "|".join([self.title, ";".join(self.authors), str(self.year or ""), self.source]).encode("utf-8")
        ).hexdigest()
        return f"hash:{digest[:16]}"

    @property
    def sources(self) -> tuple[str, ...]:
        """Distinct contributing source names, in merge order."""
        if not self.source_links:
            return (self.source,)
        return tuple(link.source for link in self.source_links)

    @property
    def merged_count(self) -> int:
        return max(1, len(self.source_links))

    @property
    def has_pdf(self) -> bool:
        if any(link.has_pdf and is_valid_pdf_url(link.pdf_url) for link in self.source_links):
            return True
        return is_valid_pdf_url(self.pdf_url)

    @property
    def best_pdf_url(self) -> str | None:
        """Shortest validated PDF URL across all sources."""
        candidates = [link.pdf_url for link in self.source_links if link.has_pdf and is_valid_pdf_url(link.pdf_url)]
        if is_valid_pdf_url(self.pdf_url):
            candidates.append(self.pdf_url)
        if not candidates:
            return None
        return min(candidates, key=lambda url: len(url or ""))

    @property
    def doi_url(self) -> str | None:
        if not self.doi:
            return None
        return f"https://doi.org/{self.doi}"

    def link_for(self, source: str) -> SourceLink | None:
        for link in self.source_links:
            if link.source == source:
                return link
        return None

    def with_score(self, score: float) -> Paper:
        return replace(self, relevance_score=score)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "title": self.title,
            "authors": list(self.authors),
            "abstract": self.abstract,
            "year": self.year,
            "doi": self.doi,
            "url": self.url,
            "pdf_url": self.pdf_url,
            "journal": self.journal,
            "source": self.source,
            "citation_count": self.citation_count,
            "is_open_access": self.is_open_access,
            "relevance_score": self.relevance_score,
            "sources": list(self.sources),
            "source_links": [link.to_dict() for link in self.source_links],
        }


# =============================================================================
# Coercion helpers
# =============================================================================


def _clean_str(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    return value or None


def _coerce_authors(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        items: Iterable[Any] = [value]
    elif isinstance(value, Iterable):
        items = value
    else:
        return ()
    authors = []
    for item in items:
        if isinstance(item, Mapping):
            item = item.get("name")
        name = _clean_str(item)
        if name:
            authors.append(name)
    return tuple(authors)


def _coerce_year(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    match = re.search(r"\d{4}", str(value))
    return int(match.group()) if match else None


def _coerce_count(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


__all__ = [
    "KNOWN_BROKEN_URL_PATTERNS",
    "Paper",
    "SourceLink",
    "is_known_broken_url",
    "is_valid_pdf_url",
    "is_valid_url",
    "normalize_doi",
    "normalize_title",
]
