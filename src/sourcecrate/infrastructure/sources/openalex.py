"""
OpenAlex Integration

API Documentation: https://docs.openalex.org/

Features:
- Completely free and open (no API key required)
- Comprehensive coverage (200M+ works) with citation counts
- Open access status and best OA location per work
"""

from __future__ import annotations

import logging
import urllib.parse
from typing import Any

from .base_client import DEFAULT_EMAIL, BaseAPIClient, RawRecord

logger = logging.getLogger(__name__)

OA_WORKS_URL = "https://api.openalex.org/works"
MAX_ABSTRACT_CHARS = 500


class OpenAlexClient(BaseAPIClient):
    """
    OpenAlex works search client.

    Usage:
        client = OpenAlexClient(email="you@example.org")
        results = await client.search("CRISPR gene editing", limit=10)
    """

    name = "openalex"
    _service_name = "OpenAlex"

    def __init__(self, email: str | None = None, timeout: float = 15.0) -> None:
        """
        Args:
            email: Email for polite pool (higher rate limits)
            timeout: Request timeout in seconds
        """
        self._email = email or DEFAULT_EMAIL
        super().__init__(
            timeout=timeout,
            min_interval=0.1,
            headers={
                "User-Agent": f"sourcecrate-search/0.1 (mailto:{self._email})",
                "Accept": "application/json",
            },
        )

    async def search(self, query: str, limit: int) -> list[RawRecord]:
        params = {"search": query, "per-page": str(min(limit, 200)), "mailto": self._email}
        data = await self._make_request(f"{OA_WORKS_URL}?{urllib.parse.urlencode(params)}")
        if not isinstance(data, dict):
            return []
        return self._parse_items(data.get("results") or [], self._normalize_work)

    def _normalize_work(self, work: dict[str, Any]) -> RawRecord | None:
        if not work.get("title"):
            return None

        authors = [
            a["author"]["display_name"]
            for a in work.get("authorships") or []
            if (a.get("author") or {}).get("display_name")
        ]

        open_access = work.get("open_access") or {}
        primary = work.get("primary_location") or {}
        pdf_url = open_access.get("oa_url") or primary.get("pdf_url")

        return self._record(
            title=work["title"],
            authors=authors,
            abstract=self._reconstruct_abstract(work.get("abstract_inverted_index")),
            year=work.get("publication_year"),
            doi=work.get("doi"),
            url=work.get("id"),
            pdf_url=pdf_url,
            journal=(primary.get("source") or {}).get("display_name"),
            citation_count=work.get("cited_by_count") or 0,
            is_open_access=bool(open_access.get("is_oa")),
        )

    @staticmethod
    def _reconstruct_abstract(abstract_index: dict[str, list[int]] | None) -> str:
        """
        Rebuild abstract text from OpenAlex's inverted index.

        Format: {"word": [positions], ...}. Output is truncated to 500 characters.
        """
        if not abstract_index:
            return ""

        word_positions = [(pos, word) for word, positions in abstract_index.items() for pos in positions]
        word_positions.sort(key=lambda x: x[0])
        return " ".join(word for _, word in word_positions)[:MAX_ABSTRACT_CHARS]


__all__ = ["OpenAlexClient"]
