"""Tests for the request-level generation pipeline."""

import dataclasses
from unittest.mock import MagicMock

import pytest

from knowledge.retrieval import KnowledgeRetrievalService
from knowledge.store import Point
from offers.definitions.landing_page import LANDING_PAGE_OFFER
from offers.errors import ConfigurationError, GenerationError, RetrievalError, ValidationError
from offers.orchestrator import GenerationOrchestrator
from offers.registry import OfferRegistry
from offers.service import GenerationRequest, GenerationService, build_query
from personalization.models import KnowledgeItem, TenantConfig
from shared_types import ProgressEventType

LEAD = {"email": "lead@example.com", "location": "Austin", "timeline": "0-3 months"}


@pytest.fixture
def knowledge_store(story_payloads):
    tip = KnowledgeItem.model_validate(
        {
            "id": "tip-fast",
            "title": "Move fast",
            "advice": "Get pre-approved before touring",
            "kind": "tip",
            "applicableWhen": {
                "ruleGroups": [{"rules": [{"field": "timeline", "operator": "equals", "value": "0-3 months"}]}]
            },
        }
    )
    points = [Point(i, p) for i, p in story_payloads.items()] + [Point(tip.id, tip.to_payload())]
    store = MagicMock()
    store.scroll.return_value = (points, None)
    store.get.return_value = []
    return store


@pytest.fixture
def retrieval(knowledge_store):
    return KnowledgeRetrievalService(knowledge_store)


@pytest.fixture
def make_service(tenant_store, retrieval, no_sleep):
    def _make(llm, offers=("landingPage",), registry=None, **tenant_kwargs):
        tenant_store.save_tenant(
            TenantConfig(id="acme", slug="acme-realty", business_name="Acme Realty", offers=list(offers), **tenant_kwargs)
        )
        kwargs = {"registry": registry} if registry is not None else {}
        orchestrator = GenerationOrchestrator(llm, sleep=no_sleep, **kwargs)
        return GenerationService(tenant_store, orchestrator, retrieval=retrieval, collection_prefix="tenant_", **kwargs)

    return _make


def request(**kwargs):
    defaults = {"intent": "buy", "user_input": dict(LEAD), "client_identifier": "acme-realty", "identity": "ip:1.1.1.1"}
    return GenerationRequest(**{**defaults, **kwargs})


class TestBuildQuery:
    def test_joins_known_fields(self):
        assert build_query("buy", {"location": "Austin", "budget": "", "goals": ["schools", "yard"]}) == (
            "buy real estate Austin schools yard"
        )


class TestRun:
    def test_landing_page(self, make_service, mock_llm, tenant_store):
        result = make_service(mock_llm).run(request())

        page = result["landingPage"]
        assert [r["priority"] for r in page["recommendations"]] == ["high", "high", "medium", "low"]
        assert page["businessName"] == "Acme Realty"
        assert "_debug" in result
        assert result["_debug"]["outcomes"]["landingPage"]["status"] == "succeeded"
        assert result["_debug"]["retrieval"]["degraded"] is True

        generations = tenant_store.list_generations("acme")
        assert len(generations) == 1
        assert generations[0]["status"] == "completed"
        assert tenant_store.usage_summary("acme")["calls"] == 1

    def test_retrieved_advice_reaches_prompt(self, make_service, mock_llm):
        make_service(mock_llm).run(request())
        prompt = mock_llm.complete.call_args.args[0][1]["content"]
        assert "Move fast: Get pre-approved before touring" in prompt

    def test_usage_counters_bumped(self, make_service, mock_llm, knowledge_store):
        make_service(mock_llm).run(request())
        knowledge_store.get.assert_called_once_with("tenant_acme", ["tip-fast"])

    def test_ambiguous_offer_choice(self, make_service, mock_llm):
        service = make_service(mock_llm, offers=("landingPage", "pdf"))
        with pytest.raises(ValidationError) as exc_info:
            service.run(request())
        assert exc_info.value.available_offers == ["landingPage", "pdf"]
        mock_llm.complete.assert_not_called()

    def test_requested_offer(self, make_service, mock_llm):
        result = make_service(mock_llm, offers=("landingPage", "pdf")).run(request(offer="landingPage"))
        assert set(result) == {"landingPage", "_debug"}

    def test_unknown_tenant(self, make_service, mock_llm):
        with pytest.raises(ConfigurationError):
            make_service(mock_llm).run(request(client_identifier="nobody"))

    def test_inactive_tenant(self, make_service, mock_llm):
        with pytest.raises(ConfigurationError, match="not active"):
            make_service(mock_llm, is_active=False).run(request())

    def test_invalid_input_is_a_validation_error(self, make_service, mock_llm, tenant_store):
        with pytest.raises(ValidationError) as exc_info:
            make_service(mock_llm).run(request(user_input={"email": "nope"}))

        assert exc_info.value.message == "Invalid input"
        assert any("Invalid email format" in e for e in exc_info.value.errors)
        assert tenant_store.list_generations("acme")[0]["status"] == "failed"

    def test_fallback_counts_as_success(self, make_service, failing_llm):
        result = make_service(failing_llm).run(request())
        assert result["landingPage"]["id"].startswith("fallback-")
        assert result["_debug"]["outcomes"]["landingPage"]["viaFallback"] is True

    def test_nothing_produced_is_a_generation_error(self, make_service, failing_llm):
        no_fallback = dataclasses.replace(
            LANDING_PAGE_OFFER, fallback=dataclasses.replace(LANDING_PAGE_OFFER.fallback, strategy="error")
        )
        service = make_service(failing_llm, registry=OfferRegistry([no_fallback]))
        with pytest.raises(GenerationError, match="Failed to generate any offers"):
            service.run(request())


class TestStream:
    def test_event_sequence(self, make_service, mock_llm):
        events = list(make_service(mock_llm).stream(request()))

        assert [e.step for e in events] == [
            "config",
            "offers",
            "advice",
            "advice",
            "generating",
            "generated",
            "finalizing",
            "complete",
        ]
        percents = [e.percent for e in events]
        assert percents == sorted(percents)
        assert percents[-1] == 100
        assert events[-1].event == ProgressEventType.COMPLETE
        assert "landingPage" in events[-1].data

    def test_error_is_last_event(self, make_service, mock_llm):
        events = list(make_service(mock_llm, offers=("landingPage", "pdf")).stream(request()))

        assert events[-1].event == ProgressEventType.ERROR
        assert events[-1].data["availableOffers"] == ["landingPage", "pdf"]
        assert sum(1 for e in events if e.terminal) == 1


class TestTimelineOffer:
    def test_stories_linked_without_llm(self, make_service):
        result = make_service(None, offers=("real-estate-timeline",)).run(request())

        timeline = result["real-estate-timeline"]
        closing = next(p for p in timeline["phases"] if p["id"] == "closing")
        linked = [s for s in closing["steps"] if s.get("linkedStoryId")]
        assert linked[0]["linkedStoryId"] == "story-closing-a"
        assert linked[0]["story"]["title"] == "Keys on a rainy Friday"
        assert timeline["metadata"]["storyCount"] >= 1

    def test_assignment_not_persisted(self, make_service, tenant_store):
        make_service(None, offers=("real-estate-timeline",)).run(request())
        assert tenant_store.get_tenant("acme").phases == {}

    def test_story_lookup_failure_uses_template(self, make_service, knowledge_store):
        knowledge_store.scroll.side_effect = RetrievalError("down")
        result = make_service(None, offers=("real-estate-timeline",)).run(request())
        assert result["real-estate-timeline"]["metadata"]["storyCount"] == 0
