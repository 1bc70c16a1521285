"""Tests for tenacity retry decorators."""

import pytest

from cli.retry import embedding_retry, with_retry
from llm.base import LLMError, LLMRateLimitError


def scripted(*outcomes):
    """Callable that raises or returns each outcome in turn; counts calls."""
    calls = []

    def fn():
        outcome = outcomes[min(len(calls), len(outcomes) - 1)]
        calls.append(outcome)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return fn, calls


class TestWithRetry:
    def test_retries_then_succeeds(self):
        fn, calls = scripted(ValueError("flaky"), "ok")
        assert with_retry(max_attempts=3, min_wait=0, max_wait=0)(fn)() == "ok"
        assert len(calls) == 2

    def test_reraises_last_error(self):
        fn, calls = scripted(ValueError("always"))
        with pytest.raises(ValueError, match="always"):
            with_retry(max_attempts=2, min_wait=0, max_wait=0)(fn)()
        assert len(calls) == 2


class TestEmbeddingRetry:
    def test_rate_limit_is_retried(self):
        fn, _ = scripted(LLMRateLimitError("slow down"), [0.1])
        assert embedding_retry(min_wait=0, max_wait=0)(fn)() == [0.1]

    def test_other_errors_surface_immediately(self):
        fn, calls = scripted(LLMError("bad request"))
        with pytest.raises(LLMError):
            embedding_retry(min_wait=0, max_wait=0)(fn)()
        assert len(calls) == 1
