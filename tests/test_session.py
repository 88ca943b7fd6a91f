"""
Tests for per-query search session state.
"""

from __future__ import annotations

from sourcecrate.application.search.relevance_scorer import CorpusStatistics
from sourcecrate.application.search.session import SearchSession
from sourcecrate.domain.entities.paper import Paper


class TestSessionLifecycle:
    def test_new_session_is_active(self, session):
        assert session.is_active
        assert not session.is_complete
        assert session.total_sources == 3

    def test_invalidate(self, session):
        session.invalidate()
        assert not session.is_active

    def test_generations_increase(self):
        first = SearchSession(query="a", limit=1)
        second = SearchSession(query="b", limit=1)
        assert second.generation > first.generation

    def test_sessions_do_not_share_state(self):
        first = SearchSession(query="a", limit=1)
        second = SearchSession(query="b", limit=1)
        first.store("doi:10.1/x", Paper(title="X", doi="10.1/x"))
        assert second.papers == {}
        assert not second.doi_filter.might_contain("10.1/x")
        assert first.corpus is not second.corpus

    def test_elapsed_ms_non_negative(self, session):
        assert session.elapsed_ms >= 0


class TestSessionStorage:
    def test_store_indexes_doi_and_title(self, session):
        paper = Paper(title="Graph Networks", doi="10.1/g")
        session.store(paper.key, paper)
        assert session.doi_index == {"10.1/g": "doi:10.1/g"}
        assert session.doi_filter.might_contain("10.1/g")
        assert session.normalized_titles == {"doi:10.1/g": "graph networks"}

    def test_store_keeps_first_doi_mapping(self, session):
        session.store("doi:10.1/g", Paper(title="A", doi="10.1/g"))
        session.store("other", Paper(title="B", doi="10.1/g"))
        assert session.doi_index["10.1/g"] == "doi:10.1/g"

    def test_results_in_insertion_order(self, session):
        for title in ("First", "Second", "Third"):
            paper = Paper(title=title)
            session.store(paper.key, paper)
        assert [p.title for p in session.results()] == ["First", "Second", "Third"]

    def test_rescore_sets_scores(self, session):
        papers = [Paper(title="Machine Learning Basics"), Paper(title="Pottery")]
        for paper in papers:
            session.store(paper.key, paper)
        session.corpus.update(papers)
        session.rescore()
        scores = [p.relevance_score for p in session.results()]
        assert all(score is not None for score in scores)
        assert scores[0] > scores[1]

    def test_restore_from_snapshot(self, session):
        corpus = CorpusStatistics()
        papers = (Paper(title="Cached", doi="10.1/c", relevance_score=80.0),)
        corpus.update(papers)

        session.restore(papers, corpus.snapshot())

        assert session.is_complete
        assert session.sources_completed == session.total_sources
        assert session.results() == list(papers)
        assert session.corpus.total_docs == 1
        assert session.doi_filter.might_contain("10.1/c")
