"""
Unpaywall Integration

Unpaywall tracks legal open access copies for DOIs. Its search endpoint
is restricted here to open access results, so every record it returns has
a best OA location.

API Documentation: https://unpaywall.org/products/api

Note:
    Unpaywall requires a real contact email on every request.
"""

from __future__ import annotations

import logging
import urllib.parse
from typing import Any

from .base_client import DEFAULT_EMAIL, BaseAPIClient, RawRecord

logger = logging.getLogger(__name__)

UNPAYWALL_SEARCH_URL = "https://api.unpaywall.org/v2/search"


class UnpaywallClient(BaseAPIClient):
    """Unpaywall title search client."""

    name = "unpaywall"
    _service_name = "Unpaywall"
    search_timeout = 30.0

    def __init__(self, email: str | None = None, timeout: float = 30.0) -> None:
        self._email = email or DEFAULT_EMAIL
        super().__init__(timeout=timeout, min_interval=0.1, headers={"Accept": "application/json"})

    async def search(self, query: str, limit: int) -> list[RawRecord]:
        # The endpoint has a fixed page size; the limit is applied client-side
        params = {"query": query, "is_oa": "true", "page": "1", "email": self._email}
        data = await self._make_request(f"{UNPAYWALL_SEARCH_URL}?{urllib.parse.urlencode(params)}")
        if not isinstance(data, dict):
            return []
        results = (data.get("results") or [])[:limit]
        return self._parse_items(results, self._parse_result)

    def _parse_result(self, item: dict[str, Any]) -> RawRecord | None:
        response = item.get("response") or {}
        if not response.get("title"):
            return None

        authors = []
        for author in response.get("z_authors") or []:
            name = f"{author.get('given', '')} {author.get('family', '')}".strip()
            if name:
                authors.append(name)

        best_oa = response.get("best_oa_location") or {}
        doi = response.get("doi")

        return self._record(
            title=response["title"],
            authors=authors,
            abstract=response.get("abstract") or "",
            year=response.get("year"),
            doi=doi,
            url=response.get("doi_url") or (f"https://doi.org/{doi}" if doi else None),
            pdf_url=best_oa.get("url_for_pdf") or best_oa.get("url"),
            journal=response.get("journal_name"),
            citation_count=0,
            is_open_access=response.get("is_oa") is True,
        )


__all__ = ["UnpaywallClient"]
