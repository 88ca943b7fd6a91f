"""
Source registry: name → adapter factory, resolved at startup.

Adapters are created lazily on first use and cached by name for the life
of the registry, so one httpx client (and one rate limiter and circuit
breaker) exists per source.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from functools import partial

from sourcecrate.shared.exceptions import UnknownSourceError

from .arxiv import ArxivClient
from .base_client import SourceAdapter
from .crossref import CrossRefClient
from .datacite import DataCiteClient
from .doaj import DOAJClient
from .europe_pmc import EuropePMCClient
from .openalex import OpenAlexClient
from .pubmed import PubMedClient
from .semantic_scholar import SemanticScholarClient
from .unpaywall import UnpaywallClient
from .zenodo import ZenodoClient

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[], SourceAdapter]

# Order is the default fan-out order
DEFAULT_SOURCES: tuple[str, ...] = (
    "arxiv",
    "crossref",
    "pubmed",
    "openalex",
    "doaj",
    "europepmc",
    "semanticscholar",
    "unpaywall",
    "datacite",
    "zenodo",
)


class SourceRegistry:
    """
    Explicit registry of source adapters.

    Example:
        registry = SourceRegistry.with_defaults(email="you@example.org")
        adapter = registry.get("crossref")
        records = await adapter.search("machine learning", 10)
    """

    def __init__(self, factories: Mapping[str, AdapterFactory] | None = None) -> None:
        self._factories: dict[str, AdapterFactory] = dict(factories or {})
        self._instances: dict[str, SourceAdapter] = {}

    @classmethod
    def with_defaults(
        cls,
        *,
        email: str | None = None,
        pubmed_api_key: str | None = None,
        semantic_scholar_api_key: str | None = None,
    ) -> SourceRegistry:
        """Registry holding all built-in adapters."""
        return cls(
            {
                "arxiv": ArxivClient,
                "crossref": partial(CrossRefClient, email=email),
                "pubmed": partial(PubMedClient, email=email, api_key=pubmed_api_key),
                "openalex": partial(OpenAlexClient, email=email),
                "doaj": DOAJClient,
                "europepmc": EuropePMCClient,
                "semanticscholar": partial(SemanticScholarClient, api_key=semantic_scholar_api_key),
                "unpaywall": partial(UnpaywallClient, email=email),
                "datacite": DataCiteClient,
                "zenodo": ZenodoClient,
            }
        )

    def register(self, name: str, factory: AdapterFactory) -> None:
        """Add or replace a factory. A cached instance under ``name`` is dropped."""
        self._factories[name] = factory
        self._instances.pop(name, None)

    def names(self) -> list[str]:
        return list(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def get(self, name: str) -> SourceAdapter:
        """
        Adapter for ``name``, created on first request.

        Raises:
            UnknownSourceError: ``name`` is not registered
        """
        adapter = self._instances.get(name)
        if adapter is not None:
            return adapter
        factory = self._factories.get(name)
        if factory is None:
            raise UnknownSourceError(name, available=self.names())
        adapter = factory()
        self._instances[name] = adapter
        logger.debug(f"Created adapter for source {name!r}")
        return adapter

    @property
    def instances(self) -> dict[str, SourceAdapter]:
        return dict(self._instances)

    async def close(self) -> None:
        """Close every adapter that was created."""
        for name, adapter in list(self._instances.items()):
            close = getattr(adapter, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                logger.warning(f"Failed to close adapter {name!r}: {e}")
        self._instances.clear()


__all__ = ["DEFAULT_SOURCES", "AdapterFactory", "SourceRegistry"]
