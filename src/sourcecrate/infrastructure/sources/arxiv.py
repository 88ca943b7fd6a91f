"""
arXiv Integration

Searches arXiv preprints through the Atom export API.

API Documentation: https://info.arxiv.org/help/api/

Every arXiv record is open access and has a direct PDF derived from its
identifier. Citation counts are not provided.
"""

from __future__ import annotations

import logging
import urllib.parse

import defusedxml.ElementTree as ET

from sourcecrate.shared.exceptions import ParseError

from .base_client import BaseAPIClient, RawRecord

logger = logging.getLogger(__name__)

ARXIV_API_URL = "https://export.arxiv.org/api/query"
ARXIV_PDF_URL = "https://arxiv.org/pdf/{arxiv_id}.pdf"

_NAMESPACES = {
    "atom": "http://www.w3.org/2005/Atom",
    "arxiv": "http://arxiv.org/schemas/atom",
}


class ArxivClient(BaseAPIClient):
    """
    arXiv API client.

    Usage:
        client = ArxivClient()
        results = await client.search("graph neural networks", limit=10)
    """

    name = "arxiv"
    _service_name = "arXiv"

    def __init__(self, timeout: float = 15.0) -> None:
        # arXiv asks for no more than one request every three seconds
        super().__init__(timeout=timeout, min_interval=3.0)

    async def search(self, query: str, limit: int) -> list[RawRecord]:
        params = {
            "search_query": f"all:{query}",
            "start": "0",
            "max_results": str(limit),
            "sortBy": "relevance",
            "sortOrder": "descending",
        }
        url = f"{ARXIV_API_URL}?{urllib.parse.urlencode(params)}"
        xml_text = await self._make_request(url, expect_json=False)
        if not isinstance(xml_text, str) or not xml_text.strip():
            return []
        return self._parse_atom_response(xml_text)

    def _parse_atom_response(self, xml_text: str) -> list[RawRecord]:
        try:
            root = ET.fromstring(xml_text)
        except ET.ParseError as e:
            raise ParseError(f"unparseable Atom feed: {e}", source=self._service_name) from e
        return self._parse_items(root.findall("atom:entry", _NAMESPACES), self._parse_entry)

    def _parse_entry(self, entry) -> RawRecord | None:
        title = _text(entry.find("atom:title", _NAMESPACES))
        if not title:
            return None

        entry_id = _text(entry.find("atom:id", _NAMESPACES))
        arxiv_id = entry_id.split("/abs/", 1)[1] if entry_id and "/abs/" in entry_id else None
        pdf_url = ARXIV_PDF_URL.format(arxiv_id=arxiv_id) if arxiv_id else None

        authors = []
        for author in entry.findall("atom:author", _NAMESPACES):
            name = _text(author.find("atom:name", _NAMESPACES))
            if name:
                authors.append(name)

        published = _text(entry.find("atom:published", _NAMESPACES))
        year = int(published[:4]) if published and published[:4].isdigit() else None

        doi = _text(entry.find("arxiv:doi", _NAMESPACES))
        if not doi:
            for link in entry.findall("atom:link", _NAMESPACES):
                if link.get("title") == "doi":
                    doi = link.get("href")
                    break

        return self._record(
            title=" ".join(title.split()),
            authors=authors,
            abstract=" ".join((_text(entry.find("atom:summary", _NAMESPACES)) or "").split()),
            year=year,
            doi=doi,
            url=entry_id,
            pdf_url=pdf_url,
            journal="arXiv (preprint)",
            citation_count=0,
            is_open_access=True,
        )


def _text(element) -> str | None:
    if element is None or element.text is None:
        return None
    return element.text.strip() or None


__all__ = ["ArxivClient"]
