"""
CrossRef API Integration

CrossRef is the DOI registration agency for most scholarly publishers, so
its records are the most reliable source of DOIs and citation counts.

API Documentation: https://api.crossref.org/swagger-ui/index.html

Rate Limits:
- Polite pool (with email): ~50 req/sec
- Anonymous: ~1 req/sec (strongly discouraged)

CrossRef does not reliably report open access status; records are marked
closed unless another source says otherwise.
"""

from __future__ import annotations

import logging
import re
import urllib.parse
from typing import TYPE_CHECKING, Any

from .base_client import _CONTINUE, DEFAULT_EMAIL, BaseAPIClient, RawRecord

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)

CROSSREF_WORKS_URL = "https://api.crossref.org/works"
SELECT_FIELDS = "DOI,title,author,published,published-print,published-online,abstract,container-title,is-referenced-by-count,URL,link"

# JATS markup (<jats:p>, <jats:italic>, ...) embedded in abstracts
_TAG_RE = re.compile(r"<[^>]+>")


class CrossRefClient(BaseAPIClient):
    """
    CrossRef works search client.

    Usage:
        client = CrossRefClient(email="you@example.org")
        results = await client.search("machine learning", limit=10)
    """

    name = "crossref"
    _service_name = "CrossRef"
    search_timeout = 30.0

    def __init__(self, email: str | None = None, timeout: float = 30.0) -> None:
        """
        Args:
            email: Contact email for polite pool access (strongly recommended)
            timeout: Request timeout in seconds
        """
        self._email = email or DEFAULT_EMAIL
        super().__init__(
            timeout=timeout,
            min_interval=0.05,
            headers={
                "User-Agent": f"sourcecrate-search/0.1 (mailto:{self._email})",
                "Accept": "application/json",
            },
        )

    async def _execute_request(
        self,
        url: str,
        *,
        method: str = "GET",
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Add mailto parameter for polite pool access."""
        separator = "&" if "?" in url else "?"
        url = f"{url}{separator}mailto={urllib.parse.quote(self._email)}"
        return await super()._execute_request(url, method=method, data=data, headers=headers)

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        if response.status_code == 404:
            logger.debug(f"CrossRef: nothing found - {url}")
            return None
        return _CONTINUE

    def _parse_response(self, response: httpx.Response, expect_json: bool) -> Any:
        """Extract 'message' key from CrossRef JSON responses."""
        data = response.json()
        return data.get("message", data)

    async def search(self, query: str, limit: int) -> list[RawRecord]:
        params = {"query": query, "rows": str(limit), "select": SELECT_FIELDS}
        message = await self._make_request(f"{CROSSREF_WORKS_URL}?{urllib.parse.urlencode(params)}")
        if not isinstance(message, dict):
            return []
        return self._parse_items(message.get("items") or [], self._parse_work)

    def _parse_work(self, item: dict[str, Any]) -> RawRecord | None:
        titles = item.get("title") or []
        if not titles:
            return None

        authors = []
        for author in item.get("author") or []:
            name = f"{author.get('given', '')} {author.get('family', '')}".strip()
            if name:
                authors.append(name)

        pdf_url = None
        for link in item.get("link") or []:
            if link.get("content-type") == "application/pdf":
                pdf_url = link.get("URL")
                break

        abstract = item.get("abstract") or ""
        if abstract:
            abstract = " ".join(_TAG_RE.sub(" ", abstract).split())

        containers = item.get("container-title") or []
        return self._record(
            title=titles[0],
            authors=authors,
            abstract=abstract,
            year=self.extract_year(item),
            doi=item.get("DOI"),
            url=item.get("URL"),
            pdf_url=pdf_url,
            journal=containers[0] if containers else None,
            citation_count=item.get("is-referenced-by-count") or 0,
            is_open_access=False,
        )

    @staticmethod
    def extract_year(work: dict[str, Any]) -> int | None:
        """
        Publication year from the first populated date field.

        Priority: published > published-print > published-online
        """
        for field in ("published", "published-print", "published-online"):
            date_parts = (work.get(field) or {}).get("date-parts") or [[]]
            if date_parts and date_parts[0] and date_parts[0][0]:
                return int(date_parts[0][0])
        return None


__all__ = ["CrossRefClient"]
