"""
DOAJ (Directory of Open Access Journals) Integration

API Documentation: https://doaj.org/api/docs

Everything indexed by DOAJ is open access by definition.
"""

from __future__ import annotations

import logging
import urllib.parse
from typing import Any

from .base_client import BaseAPIClient, RawRecord

logger = logging.getLogger(__name__)

DOAJ_SEARCH_URL = "https://doaj.org/api/v4/search/articles/_search"


class DOAJClient(BaseAPIClient):
    """DOAJ article search client."""

    name = "doaj"
    _service_name = "DOAJ"

    def __init__(self, timeout: float = 15.0) -> None:
        super().__init__(timeout=timeout, min_interval=0.2, headers={"Accept": "application/json"})

    async def search(self, query: str, limit: int) -> list[RawRecord]:
        params = {"q": query, "pageSize": str(limit)}
        url = f"{DOAJ_SEARCH_URL}?{urllib.parse.urlencode(params)}"
        data = await self._make_request(url)
        if not isinstance(data, dict):
            return []
        return self._parse_items(data.get("results") or [], self._parse_article)

    def _parse_article(self, item: dict[str, Any]) -> RawRecord | None:
        bibjson = item.get("bibjson") or {}
        if not bibjson.get("title"):
            return None

        doi = next((i.get("id") for i in bibjson.get("identifier") or [] if i.get("type") == "doi"), None)
        links = bibjson.get("link") or []
        fulltext = next(
            (link for link in links if link.get("type") == "fulltext" or link.get("content_type") == "PDF"),
            None,
        )

        return self._record(
            title=bibjson["title"],
            authors=[a.get("name") for a in bibjson.get("author") or [] if a.get("name")],
            abstract=bibjson.get("abstract") or "",
            year=bibjson.get("year"),
            doi=doi,
            url=links[0].get("url") if links else None,
            pdf_url=fulltext.get("url") if fulltext else None,
            journal=(bibjson.get("journal") or {}).get("title"),
            citation_count=0,
            is_open_access=True,
        )


__all__ = ["DOAJClient"]
