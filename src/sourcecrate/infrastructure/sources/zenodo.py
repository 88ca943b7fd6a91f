"""
Zenodo Integration

Zenodo is CERN's open repository for papers, datasets and software. All
records are open access; a PDF link is offered when a PDF file is attached.

API Documentation: https://developers.zenodo.org/
"""

from __future__ import annotations

import logging
import re
import urllib.parse
from typing import Any

from .base_client import BaseAPIClient, RawRecord

logger = logging.getLogger(__name__)

ZENODO_RECORDS_URL = "https://zenodo.org/api/records/"
ZENODO_RECORD_URL = "https://zenodo.org/record/{id}"

# Descriptions are HTML
_TAG_RE = re.compile(r"<[^>]+>")


class ZenodoClient(BaseAPIClient):
    """Zenodo records search client."""

    name = "zenodo"
    _service_name = "Zenodo"

    def __init__(self, timeout: float = 15.0) -> None:
        super().__init__(timeout=timeout, min_interval=0.1, headers={"Accept": "application/json"})

    async def search(self, query: str, limit: int) -> list[RawRecord]:
        params = {"q": query, "size": str(limit), "page": "1", "sort": "bestmatch"}
        data = await self._make_request(f"{ZENODO_RECORDS_URL}?{urllib.parse.urlencode(params)}")
        if not isinstance(data, dict):
            return []
        hits = (data.get("hits") or {}).get("hits") or []
        return self._parse_items(hits, self._parse_record)

    def _parse_record(self, item: dict[str, Any]) -> RawRecord | None:
        metadata = item.get("metadata") or {}
        if not metadata.get("title"):
            return None

        authors = []
        for creator in metadata.get("creators") or []:
            name = creator.get("name") or f"{creator.get('given', '')} {creator.get('family', '')}".strip()
            if name:
                authors.append(name)

        pdf_url = None
        for file in item.get("files") or []:
            if file.get("type") == "pdf" or str(file.get("key", "")).endswith(".pdf"):
                pdf_url = (file.get("links") or {}).get("self")
                break

        description = metadata.get("description") or ""
        if description:
            description = " ".join(_TAG_RE.sub(" ", description).split())

        url = (item.get("links") or {}).get("html")
        if not url and item.get("id"):
            url = ZENODO_RECORD_URL.format(id=item["id"])

        return self._record(
            title=metadata["title"],
            authors=authors,
            abstract=description,
            year=metadata.get("publication_date"),
            doi=item.get("doi") or metadata.get("doi"),
            url=url,
            pdf_url=pdf_url,
            journal=(metadata.get("journal") or {}).get("title"),
            citation_count=0,
            is_open_access=True,
        )


__all__ = ["ZenodoClient"]
