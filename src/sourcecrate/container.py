"""
Application DI Container (dependency-injector).

Centralizes service creation and lifecycle management.

Usage::

    from sourcecrate.container import ApplicationContainer, create_container

    container = create_container(email="user@example.com")
    service = container.search_service()
    outcome = await service.search("machine learning")

    # In tests, override any provider:
    container.source_registry.override(providers.Object(fake_registry))
"""

from __future__ import annotations

import logging
import os
from typing import Any

from dependency_injector import containers, providers

from sourcecrate.shared.exceptions import InvalidParameterError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "email": None,
    "pubmed_api_key": None,
    "semantic_scholar_api_key": None,
    "sources": None,
    "default_limit": 10,
    "max_results_per_source": 100,
    "max_total_results": 1000,
    "cache_ttl": 300.0,
    "cache_max_entries": 10,
    "debounce_seconds": 0.3,
    "min_relevance": 35.0,
    "default_timeout": 15.0,
}


def _create_source_registry(
    email: str | None,
    pubmed_api_key: str | None,
    semantic_scholar_api_key: str | None,
) -> object:
    """Lazy factory for SourceRegistry (avoids importing every adapter at load)."""
    from sourcecrate.infrastructure.sources import SourceRegistry

    return SourceRegistry.with_defaults(
        email=email or None,
        pubmed_api_key=pubmed_api_key or None,
        semantic_scholar_api_key=semantic_scholar_api_key or None,
    )


def _create_orchestrator(registry: object, default_timeout: float) -> object:
    from sourcecrate.application.search import SearchOrchestrator

    return SearchOrchestrator(registry, default_timeout=float(default_timeout))


def _create_result_cache(ttl: float, max_entries: int) -> object:
    from sourcecrate.application.search import ResultCache

    return ResultCache(ttl=float(ttl), max_entries=int(max_entries))


def _create_search_service(
    orchestrator: object,
    cache: object,
    debounce_seconds: float,
    sources: list[str] | None,
    default_limit: int,
    max_results_per_source: int,
    max_total_results: int,
    min_relevance: float,
) -> object:
    from sourcecrate.application.search import DebounceGuard, SearchService

    return SearchService(
        orchestrator=orchestrator,
        cache=cache,
        debounce=DebounceGuard(window=float(debounce_seconds)),
        default_sources=tuple(sources) if sources else None,
        default_limit=int(default_limit),
        max_results_per_source=int(max_results_per_source),
        max_total_results=int(max_total_results),
        min_relevance=float(min_relevance),
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for the search application.

    Manages creation and lifecycle of all core services:
    - ``source_registry``: Named source adapters
    - ``orchestrator``: Parallel fan-out and reconciliation
    - ``result_cache``: Completed-search cache
    - ``search_service``: Consumer-facing search entry point
    """

    config = providers.Configuration()

    source_registry = providers.Singleton(
        _create_source_registry,
        email=config.email,
        pubmed_api_key=config.pubmed_api_key,
        semantic_scholar_api_key=config.semantic_scholar_api_key,
    )

    orchestrator = providers.Singleton(
        _create_orchestrator,
        registry=source_registry,
        default_timeout=config.default_timeout,
    )

    result_cache = providers.Singleton(
        _create_result_cache,
        ttl=config.cache_ttl,
        max_entries=config.cache_max_entries,
    )

    search_service = providers.Singleton(
        _create_search_service,
        orchestrator=orchestrator,
        cache=result_cache,
        debounce_seconds=config.debounce_seconds,
        sources=config.sources,
        default_limit=config.default_limit,
        max_results_per_source=config.max_results_per_source,
        max_total_results=config.max_total_results,
        min_relevance=config.min_relevance,
    )


def _parse_sources(value: str | None) -> list[str] | None:
    if not value:
        return None
    names = [name.strip().lower() for name in value.split(",") if name.strip()]
    return names or None


def _env_float(environ: dict[str, str], name: str) -> float | None:
    raw = environ.get(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError as e:
        raise InvalidParameterError(name, raw, "a number") from e


def config_from_env(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Read ``SOURCECRATE_*`` settings; unset variables are omitted."""
    env = dict(os.environ if environ is None else environ)
    values: dict[str, Any] = {}

    email = env.get("SOURCECRATE_EMAIL", "").strip()
    if email:
        values["email"] = email
    pubmed_key = env.get("NCBI_API_KEY", "").strip()
    if pubmed_key:
        values["pubmed_api_key"] = pubmed_key
    s2_key = env.get("SEMANTIC_SCHOLAR_API_KEY", "").strip()
    if s2_key:
        values["semantic_scholar_api_key"] = s2_key

    sources = _parse_sources(env.get("SOURCECRATE_SOURCES"))
    if sources:
        values["sources"] = sources

    cache_ttl = _env_float(env, "SOURCECRATE_CACHE_TTL")
    if cache_ttl is not None:
        values["cache_ttl"] = cache_ttl
    timeout = _env_float(env, "SOURCECRATE_DEFAULT_TIMEOUT")
    if timeout is not None:
        values["default_timeout"] = timeout
    return values


def create_container(
    environ: dict[str, str] | None = None,
    **overrides: Any,
) -> ApplicationContainer:
    """
    Build a configured container.

    Precedence: explicit ``overrides`` → environment → defaults.
    ``None`` overrides are ignored.
    """
    config = dict(DEFAULT_CONFIG)
    config.update(config_from_env(environ))
    config.update({key: value for key, value in overrides.items() if value is not None})

    container = ApplicationContainer()
    container.config.from_dict(config)
    logger.debug(f"Container configured with sources={config['sources'] or 'all'}")
    return container


__all__ = ["DEFAULT_CONFIG", "ApplicationContainer", "config_from_env", "create_container"]
