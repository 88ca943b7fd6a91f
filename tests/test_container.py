"""Tests for DI container and environment configuration."""

from __future__ import annotations

import pytest
from dependency_injector import providers

from sourcecrate.application.search import ResultCache, SearchOrchestrator, SearchService
from sourcecrate.container import DEFAULT_CONFIG, ApplicationContainer, config_from_env, create_container
from sourcecrate.infrastructure.sources import SourceRegistry
from sourcecrate.shared.exceptions import InvalidParameterError

# ============================================================================
# DI Container Tests
# ============================================================================


class TestApplicationContainer:
    """Test the DI container manages services correctly."""

    def test_config_values(self) -> None:
        container = ApplicationContainer()
        container.config.from_dict({**DEFAULT_CONFIG, "email": "test@example.com"})
        assert container.config.email() == "test@example.com"
        assert container.config.cache_ttl() == 300.0

    def test_singletons(self) -> None:
        container = create_container(environ={})
        assert container.search_service() is container.search_service()
        assert container.source_registry() is container.source_registry()
        assert container.search_service().orchestrator is container.orchestrator()
        assert container.search_service().cache is container.result_cache()

    def test_service_wiring(self) -> None:
        container = create_container(environ={}, min_relevance=50.0, cache_ttl=60)
        service = container.search_service()

        assert isinstance(service, SearchService)
        assert isinstance(service.orchestrator, SearchOrchestrator)
        assert isinstance(service.cache, ResultCache)
        assert service.min_relevance == 50.0
        assert service.cache.ttl == 60.0
        assert service.debounce.window == 0.3
        assert service.default_sources is None
        assert service.orchestrator.registry is container.source_registry()

    def test_registry_has_all_sources(self) -> None:
        container = create_container(environ={}, email="me@example.org")
        registry = container.source_registry()
        assert isinstance(registry, SourceRegistry)
        assert "semanticscholar" in registry.names()

    def test_override_provider(self) -> None:
        """Container supports provider overriding for tests."""
        container = create_container(environ={})
        fake_registry = SourceRegistry({})
        container.source_registry.override(providers.Object(fake_registry))
        try:
            assert container.orchestrator().registry is fake_registry
        finally:
            container.source_registry.reset_override()


# ============================================================================
# Environment Configuration
# ============================================================================


class TestConfigFromEnv:
    def test_empty_environment(self) -> None:
        assert config_from_env({}) == {}

    def test_reads_variables(self) -> None:
        values = config_from_env(
            {
                "SOURCECRATE_EMAIL": " me@example.org ",
                "NCBI_API_KEY": "ncbi",
                "SEMANTIC_SCHOLAR_API_KEY": "s2",
                "SOURCECRATE_SOURCES": "ArXiv, crossref,,",
                "SOURCECRATE_CACHE_TTL": "120",
                "SOURCECRATE_DEFAULT_TIMEOUT": "5.5",
            }
        )
        assert values == {
            "email": "me@example.org",
            "pubmed_api_key": "ncbi",
            "semantic_scholar_api_key": "s2",
            "sources": ["arxiv", "crossref"],
            "cache_ttl": 120.0,
            "default_timeout": 5.5,
        }

    def test_blank_values_ignored(self) -> None:
        assert config_from_env({"SOURCECRATE_EMAIL": "  ", "SOURCECRATE_SOURCES": " , "}) == {}

    def test_invalid_number(self) -> None:
        with pytest.raises(InvalidParameterError, match="SOURCECRATE_CACHE_TTL"):
            config_from_env({"SOURCECRATE_CACHE_TTL": "soon"})

    def test_reads_process_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("SOURCECRATE_EMAIL", "env@example.org")
        assert config_from_env()["email"] == "env@example.org"


class TestCreateContainer:
    def test_defaults(self) -> None:
        container = create_container(environ={})
        assert container.config.default_limit() == 10
        assert container.config.sources() is None

    def test_environment_over_defaults(self) -> None:
        container = create_container(environ={"SOURCECRATE_SOURCES": "pubmed"})
        assert container.search_service().default_sources == ("pubmed",)

    def test_overrides_over_environment(self) -> None:
        container = create_container(
            environ={"SOURCECRATE_EMAIL": "env@example.org"},
            email="cli@example.org",
        )
        assert container.config.email() == "cli@example.org"

    def test_none_override_ignored(self) -> None:
        container = create_container(environ={"SOURCECRATE_EMAIL": "env@example.org"}, email=None)
        assert container.config.email() == "env@example.org"
