"""
PubMed Integration via NCBI E-utilities

Two-step search:
1. ESearch (JSON) returns the PMIDs ranked by relevance
2. EFetch (XML) returns the article records for those PMIDs

API Documentation: https://www.ncbi.nlm.nih.gov/books/NBK25501/

NCBI occasionally answers with a 200 that carries an error payload
("backend failed", "database is not supported"); those are retried with
exponential backoff before the source gives up.

PubMed does not report citation counts. Articles deposited in PMC get a
direct PMC PDF link and are treated as open access.
"""

from __future__ import annotations

import logging
import urllib.parse
from typing import Any

import defusedxml.ElementTree as ET
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from sourcecrate.shared.exceptions import ParseError, ServiceUnavailableError, is_retryable_error

from .base_client import DEFAULT_EMAIL, BaseAPIClient, RawRecord

logger = logging.getLogger(__name__)

EUTILS_BASE = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"
ESEARCH_URL = f"{EUTILS_BASE}/esearch.fcgi"
EFETCH_URL = f"{EUTILS_BASE}/efetch.fcgi"
PUBMED_ARTICLE_URL = "https://pubmed.ncbi.nlm.nih.gov/{pmid}/"
PMC_PDF_URL = "https://www.ncbi.nlm.nih.gov/pmc/articles/{pmc}/pdf/"

# Retry settings for transient NCBI errors
MAX_RETRIES = 3
RETRY_DELAY = 1  # seconds


def _is_retryable_ncbi(error: BaseException) -> bool:
    return isinstance(error, Exception) and is_retryable_error(error)


class PubMedClient(BaseAPIClient):
    """
    PubMed E-utilities client.

    Usage:
        client = PubMedClient(email="you@example.org")
        results = await client.search("CRISPR off-target effects", limit=10)
    """

    name = "pubmed"
    _service_name = "PubMed"

    def __init__(self, email: str | None = None, api_key: str | None = None, timeout: float = 15.0) -> None:
        """
        Args:
            email: Contact email sent with every E-utilities request
            api_key: Optional NCBI API key (raises the limit from 3 to 10 req/s)
            timeout: Request timeout in seconds
        """
        self._email = email or DEFAULT_EMAIL
        self._api_key = api_key
        super().__init__(timeout=timeout, min_interval=0.1 if api_key else 0.34)

    def _common_params(self) -> dict[str, str]:
        params = {"db": "pubmed", "tool": "sourcecrate", "email": self._email}
        if self._api_key:
            params["api_key"] = self._api_key
        return params

    async def search(self, query: str, limit: int) -> list[RawRecord]:
        try:
            pmids = await self._search_ids_with_retry(query, limit)
            if not pmids:
                return []
            xml_text = await self._fetch_with_retry(pmids)
        except ServiceUnavailableError as e:
            logger.warning(f"PubMed unavailable after {MAX_RETRIES} attempts: {e}")
            return []
        if not xml_text:
            return []
        return self._parse_efetch(xml_text)

    @retry(
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential(multiplier=RETRY_DELAY, min=RETRY_DELAY, max=RETRY_DELAY * 4),
        retry=retry_if_exception(_is_retryable_ncbi),
        reraise=True,
    )
    async def _search_ids_with_retry(self, query: str, retmax: int) -> list[str]:
        """ESearch for PMIDs, retrying NCBI backend errors."""
        params = {**self._common_params(), "term": query, "retmax": str(retmax), "retmode": "json", "sort": "relevance"}
        data = await self._make_request(f"{ESEARCH_URL}?{urllib.parse.urlencode(params)}")
        if not isinstance(data, dict):
            return []
        result = data.get("esearchresult") or {}
        error = data.get("error") or result.get("ERROR")
        if error:
            raise ServiceUnavailableError(str(error), service="PubMed")
        return list(result.get("idlist") or [])

    @retry(
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential(multiplier=RETRY_DELAY, min=RETRY_DELAY, max=RETRY_DELAY * 4),
        retry=retry_if_exception(_is_retryable_ncbi),
        reraise=True,
    )
    async def _fetch_with_retry(self, pmids: list[str]) -> str | None:
        """EFetch article XML, retrying NCBI backend errors."""
        params = {**self._common_params(), "id": ",".join(pmids), "retmode": "xml"}
        text = await self._make_request(f"{EFETCH_URL}?{urllib.parse.urlencode(params)}", expect_json=False)
        if not isinstance(text, str):
            return None
        if "<ERROR>" in text[:500]:
            raise ServiceUnavailableError("EFetch returned an error document", service="PubMed")
        return text

    def _parse_efetch(self, xml_text: str) -> list[RawRecord]:
        try:
            root = ET.fromstring(xml_text)
        except ET.ParseError as e:
            raise ParseError(f"unparseable EFetch XML: {e}", source=self._service_name) from e
        return self._parse_items(root.iter("PubmedArticle"), self._parse_article)

    def _parse_article(self, article) -> RawRecord | None:
        citation = article.find("MedlineCitation")
        if citation is None:
            return None
        info = citation.find("Article")
        if info is None:
            return None

        title = _all_text(info.find("ArticleTitle"))
        if not title:
            return None
        pmid = _all_text(citation.find("PMID"))

        abstract = " ".join(
            text for node in info.findall("Abstract/AbstractText") if (text := _all_text(node))
        )

        authors = []
        for author in info.findall("AuthorList/Author"):
            name = " ".join(
                part for part in (_all_text(author.find("ForeName")), _all_text(author.find("LastName"))) if part
            ) or _all_text(author.find("CollectiveName"))
            if name:
                authors.append(name)

        ids: dict[str, str] = {}
        for node in article.findall("PubmedData/ArticleIdList/ArticleId"):
            id_type = node.get("IdType")
            value = _all_text(node)
            if id_type and value:
                ids.setdefault(id_type, value)

        pmc = ids.get("pmc")
        pdf_url = PMC_PDF_URL.format(pmc=pmc) if pmc else None

        return self._record(
            title=title,
            authors=authors,
            abstract=abstract,
            year=self._extract_year(info),
            doi=ids.get("doi"),
            url=PUBMED_ARTICLE_URL.format(pmid=pmid) if pmid else None,
            pdf_url=pdf_url,
            journal=_all_text(info.find("Journal/Title")),
            citation_count=0,
            is_open_access=bool(pdf_url),
        )

    @staticmethod
    def _extract_year(info: Any) -> int | None:
        pub_date = info.find("Journal/JournalIssue/PubDate")
        if pub_date is None:
            return None
        year = _all_text(pub_date.find("Year"))
        if year and year.isdigit():
            return int(year)
        # e.g. <MedlineDate>1998 Dec-1999 Jan</MedlineDate>
        medline = _all_text(pub_date.find("MedlineDate"))
        if medline and medline[:4].isdigit():
            return int(medline[:4])
        return None


def _all_text(element) -> str | None:
    """Text of an element including nested inline markup (<i>, <sup>, ...)."""
    if element is None:
        return None
    text = " ".join("".join(element.itertext()).split())
    return text or None


__all__ = ["PubMedClient"]
