"""Request-level generation pipeline shared by the HTTP routes and the CLI.

load tenant -> select offers -> facts -> retrieve advice -> generate each
artifact -> persist record and usage -> complete.

The pipeline is written once as a generator of progress events. Streaming
callers forward the events; buffered callers drain them and keep the final
payload.
"""

import time
from dataclasses import dataclass
from typing import Iterator, Optional

import structlog

from knowledge.retrieval import STORY_FILTER, KnowledgeRetrievalService, RetrievalResult
from offers.errors import GenerationError, PipelineError, ValidationError
from offers.orchestrator import GenerationOrchestrator
from offers.progress import ProgressEvent, StreamingProgressReporter, artifact_window
from offers.registry import OfferRegistry, registry as default_registry
from offers.types import GenerationRecord, GenerationResult, OfferDefinition, PromptContext
from personalization.facts import build_fact_map
from personalization.models import TenantConfig, TimelinePhase
from personalization.scoring import TIMELINE_OFFER, assign_items_to_phases
from personalization.timeline import default_phases
from shared_types import ProgressEventType

logger = structlog.get_logger()

# user input fields folded into the retrieval query, in order
QUERY_FIELDS = (
    "location",
    "budget",
    "timeline",
    "propertyType",
    "bedrooms",
    "goals",
    "concerns",
    "pageGoal",
)


@dataclass
class GenerationRequest:
    intent: str
    user_input: dict
    client_identifier: str
    offer: Optional[str] = None
    conversation_id: Optional[str] = None
    # rate-limit identity: user id or client address
    identity: Optional[str] = None


def build_query(intent: str, user_input: dict) -> str:
    parts = [f"{intent} real estate"]
    for name in QUERY_FIELDS:
        value = user_input.get(name)
        if isinstance(value, (list, tuple)):
            value = " ".join(str(v) for v in value)
        if value not in (None, ""):
            parts.append(str(value))
    return " ".join(parts)


class GenerationService:
    def __init__(
        self,
        tenants,
        orchestrator: GenerationOrchestrator,
        retrieval: Optional[KnowledgeRetrievalService] = None,
        registry: OfferRegistry = default_registry,
        collection_prefix: str = "",
    ):
        self.tenants = tenants
        self.orchestrator = orchestrator
        self.retrieval = retrieval
        self.registry = registry
        self.collection_prefix = collection_prefix

    def stream(
        self,
        request: GenerationRequest,
        reporter: Optional[StreamingProgressReporter] = None,
    ) -> Iterator[ProgressEvent]:
        reporter = reporter or StreamingProgressReporter()
        return reporter.events(self._steps(request, reporter))

    def run(self, request: GenerationRequest) -> dict:
        """Buffered generation. Returns ``{offerType: payload, ..., "_debug": {...}}``.

        Raises:
            PipelineError: the same failure a stream would report as ``error``
        """
        reporter = StreamingProgressReporter()
        final: Optional[ProgressEvent] = None
        for event in self.stream(request, reporter):
            final = event
        if reporter.exception is not None:
            raise reporter.exception
        if final is None or final.event != ProgressEventType.COMPLETE:
            raise GenerationError("Generation ended without a result")
        return final.data

    # -- steps --

    def _steps(self, request: GenerationRequest, reporter: StreamingProgressReporter) -> Iterator[ProgressEvent]:
        started = time.time()
        yield reporter.progress("config", "Loading configuration", 10)
        tenant = self.tenants.resolve(request.client_identifier)
        definitions = self.registry.select(tenant.offers, request.intent, request.offer)
        offer_types = [d.type for d in definitions]
        yield reporter.progress("offers", f"Preparing {len(definitions)} offer(s)", 20, {"offers": offer_types})

        yield reporter.progress("advice", "Retrieving relevant advice", 30)
        collection = tenant.collection_name(self.collection_prefix)
        retrieved = self._retrieve(tenant, request, collection)
        advice = KnowledgeRetrievalService.advice_texts(retrieved) if retrieved else []
        yield reporter.progress("advice", f"Found {len(advice)} pieces of advice", 40, {"count": len(advice)})

        context = PromptContext(
            intent=request.intent,
            flow=request.intent,
            business_name=tenant.business_name,
            advice=tuple(advice),
        )
        result = GenerationResult(retrieval=retrieved.metadata if retrieved else {}, started_at=started)
        total = len(definitions)
        for index, definition in enumerate(definitions):
            begin, end = artifact_window(index, total)
            yield reporter.progress(
                "generating", f"Generating {definition.label}", begin, {"offer": definition.type}
            )
            artifact_context = self._context_for(definition, tenant, context, collection)
            outcome = self.orchestrator.run_artifact(definition, request.user_input, artifact_context, request.identity)
            result.add(outcome)
            yield reporter.progress(
                "generated",
                f"{definition.label}: {outcome.status.value}",
                end,
                {"offer": definition.type, "status": outcome.status.value},
            )

        yield reporter.progress("finalizing", "Finalizing results", 90)
        result.duration_ms = int((time.time() - started) * 1000)
        self._persist(tenant, request, result)
        if not result.succeeded:
            raise self._failure(result)

        if retrieved and self.retrieval is not None:
            self.retrieval.increment_usage(collection, [r.item.id for r in retrieved.items])
        logger.info(
            "generation.completed",
            tenant_id=tenant.id,
            offers=offer_types,
            produced=list(result.results),
            cost_usd=result.total_cost,
            duration_ms=result.duration_ms,
        )
        yield reporter.complete({**result.results, "_debug": result.debug_info()})

    def _retrieve(
        self, tenant: TenantConfig, request: GenerationRequest, collection: str
    ) -> Optional[RetrievalResult]:
        if self.retrieval is None:
            return None
        facts = build_fact_map(request.user_input)
        return self.retrieval.retrieve(
            request.intent,
            facts,
            build_query(request.intent, request.user_input),
            collection,
        )

    def _context_for(
        self,
        definition: OfferDefinition,
        tenant: TenantConfig,
        context: PromptContext,
        collection: str,
    ) -> PromptContext:
        if definition.type != TIMELINE_OFFER:
            return context
        phases, stories = self.timeline_inputs(tenant, context.flow, collection)
        return PromptContext(
            intent=context.intent,
            flow=context.flow,
            business_name=context.business_name,
            advice=context.advice,
            additional={"phases": phases, "stories": stories},
        )

    def timeline_inputs(
        self, tenant: TenantConfig, flow: str, collection: str
    ) -> tuple[list[TimelinePhase], dict[str, dict]]:
        """Configured (or template) phases with open steps filled from the collection."""
        phases = tenant.phases.get(flow) or default_phases(flow)
        if self.retrieval is None:
            return phases, {}
        try:
            items = list(self.retrieval.iter_items(collection, where=STORY_FILTER))
        except PipelineError as e:
            logger.warning("generation.timeline_stories_unavailable", tenant_id=tenant.id, error=e.message)
            return phases, {}
        assignment = assign_items_to_phases(flow, phases, items, self.retrieval.weights)
        stories = {item.id: item.model_dump() for item in items}
        return assignment.phases, stories

    def _persist(self, tenant: TenantConfig, request: GenerationRequest, result: GenerationResult) -> None:
        record = GenerationRecord.from_result(
            result,
            tenant_id=tenant.id,
            flow=request.intent,
            intent=request.intent,
            conversation_id=request.conversation_id,
            identity=request.identity,
        )
        generation_id = self.tenants.save_generation(record)
        self.tenants.save_usage(tenant.id, result.usage, generation_id)

    @staticmethod
    def _failure(result: GenerationResult) -> PipelineError:
        outcomes = list(result.outcomes.values())
        errors = [f"{o.offer_type}: {e}" for o in outcomes for e in o.errors]
        if outcomes and all(o.error_kind == "ValidationError" for o in outcomes):
            return ValidationError("Invalid input", errors=errors)
        return GenerationError("Failed to generate any offers")
