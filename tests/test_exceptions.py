"""
Tests for the exception hierarchy and retry helpers.
"""

from __future__ import annotations

import pytest

from sourcecrate.shared.exceptions import (
    APIError,
    ConfigurationError,
    DataError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    InvalidParameterError,
    InvalidQueryError,
    MalformedRecordError,
    NetworkError,
    ParseError,
    RateLimitError,
    ServiceUnavailableError,
    SourceCrateError,
    SourceTimeoutError,
    UnknownSourceError,
    ValidationError,
    get_retry_delay,
    is_retryable_error,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        ("error", "parent"),
        [
            (RateLimitError(), APIError),
            (NetworkError(), APIError),
            (SourceTimeoutError("arXiv", 15), APIError),
            (ServiceUnavailableError(), APIError),
            (InvalidQueryError(""), ValidationError),
            (InvalidParameterError("limit", -1, "a positive integer"), ValidationError),
            (MalformedRecordError("no title"), DataError),
            (ParseError("bad xml"), DataError),
            (UnknownSourceError("scopus"), ConfigurationError),
        ],
    )
    def test_subclasses(self, error, parent):
        assert isinstance(error, parent)
        assert isinstance(error, SourceCrateError)

    def test_categories(self):
        assert NetworkError().category is ErrorCategory.NETWORK
        assert InvalidQueryError("").category is ErrorCategory.VALIDATION
        assert ParseError("x").category is ErrorCategory.DATA
        assert UnknownSourceError("x").severity is ErrorSeverity.CRITICAL


class TestMessages:
    def test_timeout(self):
        error = SourceTimeoutError("CrossRef", 30.0)
        assert str(error) == "CrossRef: timed out after 30s"
        assert error.context.source == "CrossRef"
        assert error.severity is ErrorSeverity.TRANSIENT

    def test_service_unavailable(self):
        assert str(ServiceUnavailableError("backend failed", service="PubMed")) == "PubMed: backend failed"

    def test_parse_error_with_source(self):
        assert str(ParseError("bad", source="arXiv")) == "Parse error (arXiv): bad"
        assert str(ParseError("bad")) == "Parse error: bad"

    def test_malformed_record(self):
        error = MalformedRecordError("missing title", source="DOAJ", record={"doi": "x"})
        assert str(error) == "Malformed record from DOAJ: missing title"
        assert error.context.input_value == {"doi": "x"}

    def test_invalid_parameter(self):
        error = InvalidParameterError("limit", "ten", "a positive integer")
        assert str(error) == "Invalid parameter 'limit': 'ten' (expected a positive integer)"
        assert error.context.suggestion == "Expected a positive integer"

    def test_unknown_source_suggestion(self):
        error = UnknownSourceError("scopus", available=["arxiv", "crossref"])
        assert error.context.suggestion == "Use one of: arxiv, crossref"
        assert UnknownSourceError("scopus").context.suggestion is None


class TestToDict:
    def test_minimal(self):
        assert SourceCrateError("boom").to_dict() == {
            "error": "boom",
            "category": "api",
            "severity": "error",
            "retryable": False,
        }

    def test_with_context(self):
        error = RateLimitError(retry_after=5.0, context=ErrorContext(source="Semantic Scholar", operation="search"))
        data = error.to_dict()
        assert data["source"] == "Semantic Scholar"
        assert data["operation"] == "search"
        assert data["suggestion"] == "Wait and retry the request"
        assert data["retry_after_seconds"] == 5.0
        assert data["severity"] == "transient"


class TestRetryHelpers:
    def test_retryable_flags(self):
        assert is_retryable_error(ServiceUnavailableError())
        assert is_retryable_error(SourceTimeoutError("x", 1))
        assert not is_retryable_error(ParseError("x"))
        assert not is_retryable_error(InvalidQueryError(""))

    def test_plain_exceptions_by_message(self):
        assert is_retryable_error(RuntimeError("Backend failed: try later"))
        assert is_retryable_error(OSError("Connection reset by peer"))
        assert not is_retryable_error(KeyError("title"))

    def test_delay_grows_and_is_capped(self):
        first = get_retry_delay(RuntimeError("x"), 0)
        third = get_retry_delay(RuntimeError("x"), 2)
        assert 1.0 <= first <= 1.1
        assert 4.0 <= third <= 4.4
        assert get_retry_delay(RuntimeError("x"), 10) == 30.0

    def test_delay_uses_retry_after(self):
        assert 3.0 <= get_retry_delay(RateLimitError(retry_after=3.0), 0) <= 3.3
