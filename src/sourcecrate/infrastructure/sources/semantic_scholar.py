"""
Semantic Scholar Integration

Provides cross-domain academic search via the Semantic Scholar Graph API.

API Documentation: https://api.semanticscholar.org/api-docs/

The public endpoint is aggressively rate limited, so requests are spaced
at least 1.1 seconds apart.
"""

from __future__ import annotations

import logging
import urllib.parse
from typing import Any

from .base_client import BaseAPIClient, RawRecord

logger = logging.getLogger(__name__)

S2_SEARCH_URL = "https://api.semanticscholar.org/graph/v1/paper/search"
S2_PAPER_URL = "https://www.semanticscholar.org/paper/{paper_id}"
S2_MAX_LIMIT = 100

DEFAULT_FIELDS = [
    "paperId",
    "title",
    "authors",
    "year",
    "abstract",
    "venue",
    "citationCount",
    "url",
    "openAccessPdf",
    "externalIds",  # Contains DOI, PubMed ID, etc.
]


class SemanticScholarClient(BaseAPIClient):
    """
    Semantic Scholar API client.

    Usage:
        client = SemanticScholarClient()
        results = await client.search("deep learning medical imaging", limit=10)
    """

    name = "semanticscholar"
    _service_name = "Semantic Scholar"

    def __init__(self, api_key: str | None = None, timeout: float = 15.0) -> None:
        """
        Args:
            api_key: Optional S2 API key (sent as x-api-key)
            timeout: Request timeout in seconds
        """
        headers = {"Accept": "application/json"}
        if api_key:
            headers["x-api-key"] = api_key
        super().__init__(timeout=timeout, min_interval=1.1, headers=headers)

    async def search(self, query: str, limit: int) -> list[RawRecord]:
        params = {"query": query, "limit": str(min(limit, S2_MAX_LIMIT)), "fields": ",".join(DEFAULT_FIELDS)}
        data = await self._make_request(f"{S2_SEARCH_URL}?{urllib.parse.urlencode(params)}")
        if not isinstance(data, dict):
            return []
        return self._parse_items(data.get("data") or [], self._normalize_paper)

    def _normalize_paper(self, paper: dict[str, Any]) -> RawRecord | None:
        if not paper.get("title"):
            return None
        pdf_url = (paper.get("openAccessPdf") or {}).get("url")
        url = paper.get("url")
        if not url and paper.get("paperId"):
            url = S2_PAPER_URL.format(paper_id=paper["paperId"])

        return self._record(
            title=paper["title"],
            authors=[a.get("name") for a in paper.get("authors") or [] if a.get("name")],
            abstract=paper.get("abstract") or "",
            year=paper.get("year"),
            doi=(paper.get("externalIds") or {}).get("DOI"),
            url=url,
            pdf_url=pdf_url,
            journal=paper.get("venue") or None,
            citation_count=paper.get("citationCount") or 0,
            is_open_access=bool(pdf_url),
        )


__all__ = ["SemanticScholarClient"]
