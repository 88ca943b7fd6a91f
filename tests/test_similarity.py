"""
Tests for bigram Dice title similarity.
"""

from __future__ import annotations

import pytest

from sourcecrate.application.search.similarity import TitleMatcher, bigrams, dice_similarity


class TestBigrams:
    def test_bigrams(self):
        assert bigrams("abc") == {"ab", "bc"}

    def test_short_strings(self):
        assert bigrams("a") == set()
        assert bigrams("") == set()


class TestDiceSimilarity:
    def test_identical(self):
        assert dice_similarity("Neural Networks", "neural networks ") == 1.0

    def test_empty(self):
        assert dice_similarity("", "abc") == 0.0
        assert dice_similarity(None, "abc") == 0.0

    def test_single_character(self):
        assert dice_similarity("a", "b") == 0.0
        assert dice_similarity("a", "A") == 1.0

    def test_disjoint(self):
        assert dice_similarity("abc", "xyz") == 0.0

    def test_symmetric(self):
        a, b = "graph neural networks", "graph neural network"
        assert dice_similarity(a, b) == pytest.approx(dice_similarity(b, a))

    def test_range(self):
        value = dice_similarity("deep learning", "machine learning")
        assert 0.0 < value < 1.0


class TestTitleMatcher:
    def test_spelling_variant_matches(self):
        matcher = TitleMatcher()
        assert matcher.is_match("Optimization of Neural Networks", "Optimisation of Neural Networks")

    def test_punctuation_ignored(self):
        matcher = TitleMatcher()
        assert matcher.is_match("Machine Learning.", "machine learning")

    def test_different_titles_do_not_match(self):
        matcher = TitleMatcher()
        assert not matcher.is_match("Deep Learning for Vision", "Reinforcement Learning in Robotics")

    def test_threshold_is_inclusive(self):
        matcher = TitleMatcher(threshold=1.0)
        assert matcher.is_match("Same Title", "same title")
        assert not matcher.is_match("Same Title", "Same Titles")

    def test_matches_normalized(self):
        matcher = TitleMatcher()
        assert matcher.matches_normalized("optimization of neural networks", "optimisation of neural networks")
