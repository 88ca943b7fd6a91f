"""
DataCite Integration

DataCite registers DOIs for datasets, software and institutional
repositories. It is a metadata source only; no PDF links are offered.

API Documentation: https://support.datacite.org/docs/api
"""

from __future__ import annotations

import logging
import urllib.parse
from typing import Any

from .base_client import BaseAPIClient, RawRecord

logger = logging.getLogger(__name__)

DATACITE_DOIS_URL = "https://api.datacite.org/dois"


class DataCiteClient(BaseAPIClient):
    """DataCite DOI search client."""

    name = "datacite"
    _service_name = "DataCite"

    def __init__(self, timeout: float = 15.0) -> None:
        super().__init__(timeout=timeout, min_interval=0.1, headers={"Accept": "application/vnd.api+json"})

    async def search(self, query: str, limit: int) -> list[RawRecord]:
        params = {"query": query, "page[size]": str(limit), "page[number]": "1"}
        data = await self._make_request(f"{DATACITE_DOIS_URL}?{urllib.parse.urlencode(params)}")
        if not isinstance(data, dict):
            return []
        return self._parse_items(data.get("data") or [], self._parse_doi)

    def _parse_doi(self, item: dict[str, Any]) -> RawRecord | None:
        attributes = item.get("attributes") or {}
        titles = attributes.get("titles") or []
        title = titles[0].get("title") if titles else None
        if not title:
            return None

        authors = []
        for creator in attributes.get("creators") or []:
            name = creator.get("name") or f"{creator.get('givenName', '')} {creator.get('familyName', '')}".strip()
            if name:
                authors.append(name)

        abstract = next(
            (
                d.get("description")
                for d in attributes.get("descriptions") or []
                if d.get("descriptionType") == "Abstract" and d.get("description")
            ),
            "",
        )
        doi = attributes.get("doi")

        return self._record(
            title=title,
            authors=authors,
            abstract=abstract,
            year=attributes.get("publicationYear"),
            doi=doi,
            url=attributes.get("url") or (f"https://doi.org/{doi}" if doi else None),
            pdf_url=None,
            journal=attributes.get("publisher") if isinstance(attributes.get("publisher"), str) else None,
            citation_count=(item.get("meta") or {}).get("citationCount") or attributes.get("citationCount") or 0,
            is_open_access=False,
        )


__all__ = ["DataCiteClient"]
