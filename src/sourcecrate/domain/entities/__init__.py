"""
Domain Entities

Core value objects for multi-source literature search.
"""

from __future__ import annotations

from .paper import (
    KNOWN_BROKEN_URL_PATTERNS,
    Paper,
    SourceLink,
    is_known_broken_url,
    is_valid_pdf_url,
    is_valid_url,
    normalize_doi,
    normalize_title,
)

__all__ = [
    "Paper",
    "SourceLink",
    "KNOWN_BROKEN_URL_PATTERNS",
    "is_known_broken_url",
    "is_valid_pdf_url",
    "is_valid_url",
    "normalize_doi",
    "normalize_title",
]
