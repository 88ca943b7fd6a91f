"""
Infrastructure Layer - External Systems Integration

Contains:
- sources: HTTP adapters for academic search APIs and the source registry
"""

from .sources import DEFAULT_SOURCES, SourceAdapter, SourceRegistry

__all__ = [
    "DEFAULT_SOURCES",
    "SourceAdapter",
    "SourceRegistry",
]
