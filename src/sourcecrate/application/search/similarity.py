"""
Title similarity for fuzzy duplicate detection.

Uses the Sørensen-Dice coefficient over character bigram sets:

    dice(a, b) = 2 * |B(a) ∩ B(b)| / (|B(a)| + |B(b)|)

Bigram Dice is cheap, order-insensitive at the word level, and tolerant of
the small spelling differences (optimization / optimisation, dropped
punctuation, subtitle separators) that different sources introduce.
"""

from __future__ import annotations

from dataclasses import dataclass

from sourcecrate.domain.entities.paper import normalize_title

DEFAULT_DUPLICATE_THRESHOLD = 0.85


def bigrams(text: str) -> set[str]:
    """Set of 2-character substrings of ``text``."""
    return {text[i : i + 2] for i in range(len(text) - 1)}


def dice_similarity(first: str | None, second: str | None) -> float:
    """
    Bigram Dice similarity in [0, 1].

    Comparison is case-insensitive and ignores surrounding whitespace.
    Identical strings score 1.0; empty strings and strings shorter than two
    characters (with no equal counterpart) score 0.
    """
    if not first or not second:
        return 0.0

    a = first.lower().strip()
    b = second.lower().strip()
    if a == b:
        return 1.0
    if len(a) < 2 or len(b) < 2:
        return 0.0

    grams_a = bigrams(a)
    grams_b = bigrams(b)
    return 2.0 * len(grams_a & grams_b) / (len(grams_a) + len(grams_b))


@dataclass(frozen=True)
class TitleMatcher:
    """Decides whether two titles name the same paper."""

    threshold: float = DEFAULT_DUPLICATE_THRESHOLD

    def similarity(self, first: str | None, second: str | None) -> float:
        return dice_similarity(normalize_title(first), normalize_title(second))

    def is_match(self, first: str | None, second: str | None) -> bool:
        return self.similarity(first, second) >= self.threshold

    def matches_normalized(self, first: str, second: str) -> bool:
        """Same as ``is_match`` for titles already passed through ``normalize_title``."""
        return dice_similarity(first, second) >= self.threshold


__all__ = [
    "DEFAULT_DUPLICATE_THRESHOLD",
    "TitleMatcher",
    "bigrams",
    "dice_similarity",
    "normalize_title",
]
