"""
Streaming BM25 relevance scoring.

Scores are produced while results are still arriving, so two properties
matter more than absolute precision:

1. **Fixed normalization** - the raw BM25 sum is divided by a theoretical
   maximum that does not depend on the current corpus size, so a score
   computed after the first source answered is comparable to one computed
   after the last.

2. **Incremental corpus statistics** - document frequencies grow as new
   unique documents arrive and are never recounted.

BM25 per query term t (Robertson & Zaragoza):

    idf(t)  = max(0.1, ln((N - df + 0.5) / (df + 0.5)))
    tf'(t)  = tf * (k1 + 1) / (tf + k1 * (1 - b + b * |d| / avgdl))
    score   = Σ tf'(t) * idf(t) * w(t)

    w(t) = 2.0 when the term was capitalized in the raw query, else 1.0

    normalized = clamp(score / (|q| * (k1 + 1) * ln(199.5 / 0.5) * 2.0) * 100, 0, 100)

Additive boosts applied after normalization (each capped at 100):
    - full query inside the title: +100
    - otherwise, title coverage of query words: 100% +80, ≥75% +50, ≥50% +30, >0 +15
    - full query inside the abstract but not the title: +40
    - time-sensitive query and paper at most one year old: +20 * (1 - age)

Document text is title ×3 + abstract + journal. Authors are deliberately
left out so that surname collisions with query words do not score.
"""

from __future__ import annotations

import copy
import datetime
import math
import re
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sourcecrate.domain.entities.paper import Paper


# =============================================================================
# Parameters
# =============================================================================

_BM25_K1 = 1.7  # Term frequency saturation
_BM25_B = 0.85  # Document length normalization
_MIN_IDF = 0.1
_CAPITALIZED_TERM_WEIGHT = 2.0
_TITLE_REPEAT = 3
_DEFAULT_AVG_LENGTH = 100.0
_EMPTY_QUERY_SCORE = 50.0
_MAX_SCORE = 100.0

# ln((200 - 0.5) / 0.5): IDF of a singleton term in a ~200 document corpus
_MAX_IDF = math.log(199.5 / 0.5)

_TITLE_PHRASE_BOOST = 100.0
_ABSTRACT_PHRASE_BOOST = 40.0
_TITLE_COVERAGE_BOOSTS = (
    (1.0, 80.0),
    (0.75, 50.0),
    (0.5, 30.0),
)
_TITLE_PARTIAL_BOOST = 15.0
_RECENCY_BOOST = 20.0

STOPWORDS = frozenset(
    {
        "the", "and", "for", "that", "this", "with", "from", "was", "are", "been",
        "have", "has", "will", "would", "can", "but", "not", "all", "what", "which",
    }
)  # fmt: skip

_TOKEN_STRIP_RE = re.compile(r"[^\w\s-]")
_QUOTES_RE = re.compile(r"['\"]")


# =============================================================================
# Tokenization
# =============================================================================

_SUFFIX_RULES = (
    ("ational", "ate"),
    ("tional", "tion"),
    ("ization", "ize"),
    ("isation", "ise"),
    ("iveness", "ive"),
    ("fulness", "ful"),
    ("ousness", "ous"),
    ("ingly", ""),
)
_ING_RE = re.compile(r"^(.{3,})ing$")
_ED_RE = re.compile(r"^(.{3,})ed$")
_VOWELS = "aeiou"


def _ends_in_consonant(word: str) -> bool:
    return bool(word) and word[-1] not in _VOWELS


def stem(word: str) -> str:
    """
    Light Porter-style suffix stripping.

    Deterministic and order-sensitive: derivational suffixes first, then
    -ing, -ed, -ies, -es and plural -s. Words of three characters or fewer
    are returned unchanged.
    """
    if len(word) <= 3:
        return word

    result = word
    for suffix, replacement in _SUFFIX_RULES:
        if result.endswith(suffix):
            result = result[: -len(suffix)] + replacement
    if result != word:
        return result

    if match := _ING_RE.match(result):
        result = match.group(1)
        if _ends_in_consonant(result) and len(result) > 3:
            result += "e"
        return result

    if match := _ED_RE.match(result):
        result = match.group(1)
        if _ends_in_consonant(result) and len(result) > 3 and not result.endswith("e"):
            result += "e"
        return result

    if result.endswith("ies"):
        result = result[:-3] + "y"

    if result == word and result.endswith("es") and len(result) > 4:
        result = result[:-2]
        if _ends_in_consonant(result):
            result += "e"

    if result == word and result.endswith("s") and len(result) > 3 and not result.endswith("ss"):
        result = result[:-1]

    return result


def tokenize(text: str | None) -> list[str]:
    """
    Tokenize text for indexing and querying.

    lowercase → strip punctuation except hyphens → split on whitespace →
    drop tokens of length ≤ 2 → drop stopwords → stem.
    """
    if not text:
        return []
    words = _TOKEN_STRIP_RE.sub(" ", text.lower()).split()
    return [stem(w) for w in words if len(w) > 2 and w not in STOPWORDS]


def paper_text(paper: Paper) -> str:
    """Weighted text used for scoring: title ×3, abstract, journal."""
    parts = [paper.title] * _TITLE_REPEAT
    parts.append(paper.abstract or "")
    if paper.journal:
        parts.append(paper.journal)
    return " ".join(parts)


def document_id(paper: Paper) -> str:
    return paper.doi or paper.title


def average_document_length(papers: Iterable[Paper]) -> float:
    """Mean token count over ``papers``; the default length when empty."""
    lengths = [len(tokenize(paper_text(p))) for p in papers]
    if not lengths:
        return _DEFAULT_AVG_LENGTH
    avg = sum(lengths) / len(lengths)
    return avg if avg > 0 else 1.0


# =============================================================================
# Corpus statistics
# =============================================================================


@dataclass
class CorpusStatistics:
    """
    Document frequencies for the papers seen in one search.

    Reset per query. Within a query, each document (keyed by DOI or title)
    is counted at most once.
    """

    document_frequency: dict[str, int] = field(default_factory=dict)
    total_docs: int = 0
    processed_doc_ids: set[str] = field(default_factory=set)

    def update(self, papers: Iterable[Paper]) -> int:
        """
        Add unseen documents to the statistics.

        Returns:
            Number of documents newly counted
        """
        added = 0
        for paper in papers:
            doc_id = document_id(paper)
            if doc_id in self.processed_doc_ids:
                continue
            self.processed_doc_ids.add(doc_id)
            self.total_docs += 1
            added += 1
            for term in set(tokenize(paper_text(paper))):
                self.document_frequency[term] = self.document_frequency.get(term, 0) + 1
        return added

    def idf(self, term: str) -> float:
        if self.total_docs == 0:
            return 0.0
        df = self.document_frequency.get(term, 0)
        if df == 0:
            return 0.0
        n = self.total_docs
        return max(_MIN_IDF, math.log((n - df + 0.5) / (df + 0.5)))

    def reset(self) -> None:
        self.document_frequency.clear()
        self.total_docs = 0
        self.processed_doc_ids.clear()

    def snapshot(self) -> CorpusStatistics:
        """Independent deep copy, safe to store in the result cache."""
        return copy.deepcopy(self)

    def restore(self, snapshot: CorpusStatistics) -> None:
        self.document_frequency = dict(snapshot.document_frequency)
        self.total_docs = snapshot.total_docs
        self.processed_doc_ids = set(snapshot.processed_doc_ids)


# =============================================================================
# Scorer
# =============================================================================


class BM25Scorer:
    """
    BM25 scorer with fixed 0-100 normalization and title/recency boosts.

    Example:
        scorer = BM25Scorer()
        scorer.corpus.update(papers)
        avg = average_document_length(papers)
        score = scorer.score(papers[0], "RMS Titanic", avg)
    """

    def __init__(
        self,
        k1: float = _BM25_K1,
        b: float = _BM25_B,
        corpus: CorpusStatistics | None = None,
        current_year: Callable[[], int] | None = None,
    ) -> None:
        self.k1 = k1
        self.b = b
        self.corpus = corpus if corpus is not None else CorpusStatistics()
        self._current_year = current_year or (lambda: datetime.date.today().year)

    def theoretical_max(self, query_term_count: int) -> float:
        return query_term_count * (self.k1 + 1) * _MAX_IDF * _CAPITALIZED_TERM_WEIGHT

    @staticmethod
    def capitalized_terms(query: str) -> set[str]:
        """Stems of query words written with a leading capital letter."""
        terms = set()
        for word in query.split():
            if len(word) > 2 and "A" <= word[0] <= "Z":
                cleaned = _TOKEN_STRIP_RE.sub("", word.lower())
                if cleaned:
                    terms.add(stem(cleaned))
        return terms

    def is_time_sensitive(self, query: str) -> bool:
        year = self._current_year()
        pattern = rf"\b(recent|latest|new|current|{year}|{year - 1})\b"
        return re.search(pattern, query, re.IGNORECASE) is not None

    def score(self, paper: Paper, query: str, avg_length: float = _DEFAULT_AVG_LENGTH) -> float:
        """
        Score ``paper`` against ``query``.

        Args:
            paper: Paper to score
            query: Raw query string as typed by the user
            avg_length: Average document length of the live result set

        Returns:
            Score in [0, 100]; exactly 50 when the query has no usable terms
        """
        query_terms = tokenize(query)
        if not query_terms:
            return _EMPTY_QUERY_SCORE

        doc_tokens = tokenize(paper_text(paper))
        doc_length = len(doc_tokens)
        term_counts = Counter(doc_tokens)
        weighted_terms = self.capitalized_terms(query)
        avgdl = avg_length if avg_length > 0 else _DEFAULT_AVG_LENGTH

        raw = 0.0
        for term in query_terms:
            tf = term_counts.get(term, 0)
            if tf == 0:
                continue
            tf_norm = (tf * (self.k1 + 1)) / (tf + self.k1 * (1 - self.b + self.b * doc_length / avgdl))
            weight = _CAPITALIZED_TERM_WEIGHT if term in weighted_terms else 1.0
            raw += tf_norm * self.corpus.idf(term) * weight

        max_raw = self.theoretical_max(len(query_terms))
        normalized = max(0.0, min(_MAX_SCORE, raw / max_raw * 100)) if max_raw > 0 else _EMPTY_QUERY_SCORE

        normalized = self._apply_text_boosts(normalized, paper, query)
        return self._apply_recency_boost(normalized, paper, query)

    def _apply_text_boosts(self, score: float, paper: Paper, query: str) -> float:
        title = (paper.title or "").lower()
        abstract = (paper.abstract or "").lower()
        phrase = _QUOTES_RE.sub("", query.lower()).strip()
        in_title = phrase in title

        if in_title:
            score = min(_MAX_SCORE, score + _TITLE_PHRASE_BOOST)
        else:
            words = [w for w in phrase.split() if len(w) > 2]
            coverage = sum(1 for w in words if w in title) / len(words) if words else 0.0
            boost = 0.0
            for minimum, points in _TITLE_COVERAGE_BOOSTS:
                if coverage >= minimum:
                    boost = points
                    break
            else:
                if coverage > 0:
                    boost = _TITLE_PARTIAL_BOOST
            score = min(_MAX_SCORE, score + boost)

        if not in_title and phrase in abstract:
            score = min(_MAX_SCORE, score + _ABSTRACT_PHRASE_BOOST)
        return score

    def _apply_recency_boost(self, score: float, paper: Paper, query: str) -> float:
        if not paper.year or not self.is_time_sensitive(query):
            return score
        age = self._current_year() - paper.year
        if 0 <= age <= 1:
            score = min(_MAX_SCORE, score + _RECENCY_BOOST * (1 - age))
        return score


__all__ = [
    "BM25Scorer",
    "CorpusStatistics",
    "STOPWORDS",
    "average_document_length",
    "document_id",
    "paper_text",
    "stem",
    "tokenize",
]
