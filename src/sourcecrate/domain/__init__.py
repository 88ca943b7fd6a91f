"""
Domain Layer - Core Business Objects

Contains:
- entities: Paper and SourceLink value types plus normalization rules
"""

from .entities import Paper, SourceLink, normalize_doi, normalize_title

__all__ = [
    "Paper",
    "SourceLink",
    "normalize_doi",
    "normalize_title",
]
