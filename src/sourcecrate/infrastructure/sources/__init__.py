"""
Academic source adapters.

Each adapter maps one service's search API onto the common raw record
shape; the registry resolves adapters by name.

Sources:
    arxiv, crossref, pubmed, openalex, doaj, europepmc,
    semanticscholar, unpaywall, datacite, zenodo
"""

from .arxiv import ArxivClient
from .base_client import BaseAPIClient, RawRecord, SourceAdapter
from .crossref import CrossRefClient
from .datacite import DataCiteClient
from .doaj import DOAJClient
from .europe_pmc import EuropePMCClient
from .openalex import OpenAlexClient
from .pubmed import PubMedClient
from .registry import DEFAULT_SOURCES, AdapterFactory, SourceRegistry
from .semantic_scholar import SemanticScholarClient
from .unpaywall import UnpaywallClient
from .zenodo import ZenodoClient

__all__ = [
    "DEFAULT_SOURCES",
    "AdapterFactory",
    "ArxivClient",
    "BaseAPIClient",
    "CrossRefClient",
    "DOAJClient",
    "DataCiteClient",
    "EuropePMCClient",
    "OpenAlexClient",
    "PubMedClient",
    "RawRecord",
    "SemanticScholarClient",
    "SourceAdapter",
    "SourceRegistry",
    "UnpaywallClient",
    "ZenodoClient",
]
