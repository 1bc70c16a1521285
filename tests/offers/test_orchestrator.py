"""Tests for per-artifact generation, retries and fallback."""

import dataclasses
from unittest.mock import MagicMock

import pytest

from llm.base import LLMError
from observability import metrics
from offers.definitions.landing_page import LANDING_PAGE_OFFER
from offers.definitions.timeline import TIMELINE_OFFER
from offers.orchestrator import GenerationOrchestrator
from offers.registry import OfferRegistry, registry
from offers.types import PromptContext, RetryPolicy
from shared_types import ArtifactStatus

CONTEXT = PromptContext(intent="buy", flow="buy", business_name="Acme Realty", advice=("Shop three lenders",))
USER_INPUT = {"email": "lead@example.com", "location": "Austin"}


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_orchestrator(sleeps):
    def _make(llm, **kwargs):
        return GenerationOrchestrator(llm, sleep=sleeps.append, **kwargs)

    return _make


def with_attempts(definition, attempts, backoff=1.0):
    return dataclasses.replace(definition, retry=RetryPolicy(max_attempts=attempts, backoff_seconds=backoff))


class TestRunArtifact:
    """Single-artifact state machine."""

    def test_success_first_attempt(self, make_orchestrator, mock_llm):
        outcome = make_orchestrator(mock_llm).run_artifact("landingPage", USER_INPUT, CONTEXT, "ip:1.2.3.4")

        assert outcome.status == ArtifactStatus.SUCCEEDED
        assert outcome.attempts == 1
        payload = outcome.payload
        assert payload["type"] == "landingPage"
        assert payload["id"].startswith("landingPage-")
        assert payload["businessName"] == "Acme Realty"
        assert payload["flow"] == "buy"
        assert payload["version"] == LANDING_PAGE_OFFER.version
        assert payload["recommendations"][0]["priority"] == "high"
        assert len(outcome.usage) == 1
        assert outcome.usage[0].success
        assert outcome.usage[0].identity == "ip:1.2.3.4"
        assert outcome.usage[0].cost_usd > 0

    def test_llm_called_with_system_and_json(self, make_orchestrator, mock_llm):
        make_orchestrator(mock_llm).run_artifact("landingPage", USER_INPUT, CONTEXT)

        args, kwargs = mock_llm.complete.call_args
        messages = args[0]
        assert [m["role"] for m in messages] == ["system", "user"]
        assert "Shop three lenders" in messages[1]["content"]
        assert kwargs["response_format"] == "json"
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.8

    def test_retries_then_succeeds(self, make_orchestrator, mock_llm, completion, landing_page_response, sleeps):
        mock_llm.complete.side_effect = [
            LLMError("timeout"),
            completion("not json at all"),
            completion(landing_page_response),
        ]
        definition = with_attempts(LANDING_PAGE_OFFER, 3)

        outcome = make_orchestrator(mock_llm).run_artifact(definition, USER_INPUT, CONTEXT)

        assert outcome.status == ArtifactStatus.SUCCEEDED
        assert outcome.attempts == 3
        assert len(outcome.usage) == 3
        assert [u.success for u in outcome.usage] == [False, False, True]
        assert [u.attempt for u in outcome.usage] == [1, 2, 3]
        assert outcome.errors[0].startswith("attempt 1: LLM call failed")
        assert sleeps == [1.0, 2.0]
        assert metrics.get("llm.calls", offer="landingPage") == 3
        assert metrics.get("llm.failures", offer="landingPage") == 2

    def test_exhausted_attempts_use_fallback(self, make_orchestrator, failing_llm):
        outcome = make_orchestrator(failing_llm).run_artifact("landingPage", USER_INPUT, CONTEXT)

        assert outcome.status == ArtifactStatus.FALLBACK
        assert outcome.via_fallback
        assert outcome.attempts == 2
        assert len(outcome.usage) == 2
        assert outcome.payload["recommendations"][0]["title"] == "Schedule a Call"
        assert outcome.payload["id"].startswith("fallback-")
        assert outcome.payload["type"] == "landingPage"
        assert metrics.get("generation.fallbacks", offer="landingPage") == 1

    def test_fallback_template_not_mutated(self, make_orchestrator, failing_llm):
        make_orchestrator(failing_llm).run_artifact("landingPage", USER_INPUT, CONTEXT)
        assert "id" not in LANDING_PAGE_OFFER.fallback.template

    def test_invalid_output_is_retried(self, make_orchestrator, mock_llm, completion, landing_page_response):
        mock_llm.complete.side_effect = [
            completion({**landing_page_response, "recommendations": []}),
            completion(landing_page_response),
        ]
        outcome = make_orchestrator(mock_llm).run_artifact("landingPage", USER_INPUT, CONTEXT)

        assert outcome.status == ArtifactStatus.SUCCEEDED
        assert "Must have at least one recommendation" in outcome.errors[0]

    def test_empty_response_is_a_failure(self, make_orchestrator, mock_llm, completion):
        mock_llm.complete.return_value = completion("   ")
        outcome = make_orchestrator(mock_llm).run_artifact("landingPage", USER_INPUT, CONTEXT)

        assert outcome.status == ArtifactStatus.FALLBACK
        assert outcome.usage[0].error == "empty response"

    def test_no_fallback_means_failed(self, make_orchestrator, failing_llm):
        definition = dataclasses.replace(
            LANDING_PAGE_OFFER, fallback=dataclasses.replace(LANDING_PAGE_OFFER.fallback, strategy="error")
        )
        outcome = make_orchestrator(failing_llm).run_artifact(definition, USER_INPUT, CONTEXT)

        assert outcome.status == ArtifactStatus.FAILED
        assert outcome.payload is None

    def test_invalid_input_never_calls_llm(self, make_orchestrator, mock_llm):
        outcome = make_orchestrator(mock_llm).run_artifact("landingPage", {"email": "nope"}, CONTEXT)

        assert outcome.status == ArtifactStatus.FAILED
        assert outcome.error_kind == "ValidationError"
        assert outcome.usage == []
        mock_llm.complete.assert_not_called()

    def test_unknown_offer(self, make_orchestrator, mock_llm):
        outcome = make_orchestrator(mock_llm).run_artifact("brochure", USER_INPUT, CONTEXT)
        assert outcome.status == ArtifactStatus.FAILED
        assert outcome.error_kind == "ConfigurationError"

    def test_no_llm_configured(self, make_orchestrator):
        outcome = make_orchestrator(None).run_artifact("landingPage", USER_INPUT, CONTEXT)
        assert outcome.status == ArtifactStatus.FAILED
        assert outcome.errors == ["No LLM provider configured"]

    def test_backoff_override(self, make_orchestrator, failing_llm, sleeps):
        definition = with_attempts(LANDING_PAGE_OFFER, 3, backoff=5.0)
        make_orchestrator(failing_llm, backoff_seconds=0.1).run_artifact(definition, USER_INPUT, CONTEXT)
        assert sleeps == [0.1, 0.2]


class TestFastPath:
    """Template-built offers skip the LLM."""

    def test_timeline_without_llm(self, make_orchestrator):
        outcome = make_orchestrator(None).run_artifact("real-estate-timeline", {"location": "Austin"}, CONTEXT)

        assert outcome.status == ArtifactStatus.SUCCEEDED
        assert outcome.attempts == 1
        assert outcome.usage == []
        assert outcome.payload["type"] == "real-estate-timeline"
        assert outcome.payload["phases"]

    def test_builder_error_without_fallback_fails(self, make_orchestrator):
        broken = dataclasses.replace(
            registry.get("real-estate-timeline"),
            build_direct=MagicMock(side_effect=ValueError("bad phases")),
        )
        outcome = make_orchestrator(None).run_artifact(broken, {}, CONTEXT)

        assert outcome.status == ArtifactStatus.FAILED
        assert outcome.errors == ["Builder failed: bad phases"]


class TestGenerate:
    def test_failure_in_one_artifact_does_not_stop_others(self, make_orchestrator, mock_llm):
        result = make_orchestrator(mock_llm).generate(
            ["landingPage", "real-estate-timeline"], {"location": "Austin"}, CONTEXT
        )

        assert result.outcomes["landingPage"].status == ArtifactStatus.FAILED
        assert result.outcomes["real-estate-timeline"].status == ArtifactStatus.SUCCEEDED
        assert list(result.results) == ["real-estate-timeline"]
        assert result.succeeded

    def test_post_process_error_does_not_stop_others(self, make_orchestrator, mock_llm):
        def explode(output, user_input):
            raise TypeError("bad comparable")

        broken = dataclasses.replace(with_attempts(LANDING_PAGE_OFFER, 2, backoff=0), post_process=explode)
        custom = OfferRegistry([broken, TIMELINE_OFFER])

        result = make_orchestrator(mock_llm, registry=custom).generate(
            ["landingPage", "real-estate-timeline"], USER_INPUT, CONTEXT
        )

        landing = result.outcomes["landingPage"]
        assert landing.status == ArtifactStatus.FALLBACK
        assert landing.attempts == 2
        assert "Post-processing failed: bad comparable" in landing.errors[0]
        assert result.outcomes["real-estate-timeline"].status == ArtifactStatus.SUCCEEDED

    def test_unexpected_error_is_recorded(self, make_orchestrator, mock_llm):
        def crash(user_input, context):
            raise RuntimeError("prompt template missing")

        broken = dataclasses.replace(LANDING_PAGE_OFFER, build_prompt=crash)
        custom = OfferRegistry([broken, TIMELINE_OFFER])

        result = make_orchestrator(mock_llm, registry=custom).generate(
            ["landingPage", "real-estate-timeline"], USER_INPUT, CONTEXT
        )

        landing = result.outcomes["landingPage"]
        assert landing.status == ArtifactStatus.FAILED
        assert landing.error_kind == "RuntimeError"
        assert landing.errors == ["Unexpected error: prompt template missing"]
        assert result.outcomes["real-estate-timeline"].status == ArtifactStatus.SUCCEEDED

    def test_timeline_with_multi_select_answer(self, make_orchestrator, mock_llm):
        outcome = make_orchestrator(mock_llm).run_artifact("real-estate-timeline", {"timeline": ["3-6 months"]}, CONTEXT)
        assert outcome.status == ArtifactStatus.SUCCEEDED
        assert not outcome.errors

    def test_usage_aggregated(self, make_orchestrator, mock_llm):
        custom = OfferRegistry([LANDING_PAGE_OFFER])
        result = make_orchestrator(mock_llm, registry=custom).generate(["landingPage"], USER_INPUT, CONTEXT)

        assert len(result.usage) == 1
        assert result.total_cost == round(result.usage[0].cost_usd, 6)
        debug = result.debug_info()
        assert debug["llmCalls"] == 1
        assert debug["outcomes"]["landingPage"]["status"] == "succeeded"
