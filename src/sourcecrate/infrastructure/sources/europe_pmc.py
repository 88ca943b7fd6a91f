"""
Europe PMC Integration

API Documentation: https://europepmc.org/RestfulWebService

Covers PubMed plus preprints, patents and agricultural literature, and
reports citation counts and open access status directly.
"""

from __future__ import annotations

import logging
import urllib.parse
from typing import Any

from .base_client import BaseAPIClient, RawRecord

logger = logging.getLogger(__name__)

EUROPE_PMC_SEARCH_URL = "https://www.ebi.ac.uk/europepmc/webservices/rest/search"
EUROPE_PMC_ARTICLE_URL = "https://europepmc.org/article/{source}/{id}"


class EuropePMCClient(BaseAPIClient):
    """Europe PMC REST search client."""

    name = "europepmc"
    _service_name = "Europe PMC"

    def __init__(self, timeout: float = 15.0) -> None:
        super().__init__(timeout=timeout, min_interval=0.1, headers={"Accept": "application/json"})

    async def search(self, query: str, limit: int) -> list[RawRecord]:
        params = {"query": query, "format": "json", "pageSize": str(limit), "resultType": "core"}
        data = await self._make_request(f"{EUROPE_PMC_SEARCH_URL}?{urllib.parse.urlencode(params)}")
        if not isinstance(data, dict):
            return []
        results = (data.get("resultList") or {}).get("result") or []
        return self._parse_items(results, self._parse_result)

    def _parse_result(self, item: dict[str, Any]) -> RawRecord | None:
        if not item.get("title"):
            return None

        if item.get("authorString"):
            authors = [a.strip().rstrip(".") for a in item["authorString"].split(", ") if a.strip()]
        else:
            authors = [
                f"{a.get('firstName', '')} {a.get('lastName', '')}".strip()
                for a in (item.get("authorList") or {}).get("author") or []
            ]

        full_text = (item.get("fullTextUrlList") or {}).get("fullTextUrl") or []
        pdf_url = next((u.get("url") for u in full_text if u.get("documentStyle") == "pdf"), None)

        url = None
        if item.get("source") and item.get("id"):
            url = EUROPE_PMC_ARTICLE_URL.format(source=item["source"], id=item["id"])

        return self._record(
            title=item["title"],
            authors=[a for a in authors if a],
            abstract=item.get("abstractText") or "",
            year=item.get("pubYear"),
            doi=item.get("doi"),
            url=url,
            pdf_url=pdf_url,
            journal=item.get("journalTitle") or ((item.get("journalInfo") or {}).get("journal") or {}).get("title"),
            citation_count=item.get("citedByCount") or 0,
            is_open_access=item.get("isOpenAccess") == "Y",
        )


__all__ = ["EuropePMCClient"]
