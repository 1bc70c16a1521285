"""Per-artifact generation with bounded retries and template fallback.

Each offer moves through Pending -> Building -> Calling -> Validating and ends
Succeeded, Fallback or Failed. Artifacts are generated one after another; a
failure in one never stops the rest.
"""

import copy
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Union

import structlog

from llm.base import LLMProvider
from observability import metrics
from offers.cost import calculate_cost, estimate_cost
from offers.errors import ConfigurationError, PipelineError, ValidationError
from offers.prompts import SYSTEM_MESSAGE
from offers.registry import OfferRegistry, registry as default_registry
from offers.types import (
    ArtifactOutcome,
    GenerationResult,
    OfferDefinition,
    PromptContext,
    UsageRecord,
)
from offers.validators import extract_json, sanitize_output, validate_input
from shared_types import ArtifactStatus

logger = structlog.get_logger()


@dataclass
class Success:
    payload: dict
    warnings: list[str] = field(default_factory=list)


@dataclass
class Failure:
    error: str


AttemptResult = Union[Success, Failure]


def _now_ms() -> int:
    return int(time.time() * 1000)


def stamp_base_properties(
    payload: dict,
    definition: OfferDefinition,
    context: PromptContext,
    fallback: bool = False,
) -> dict:
    prefix = "fallback" if fallback else definition.type
    payload["id"] = f"{prefix}-{_now_ms()}"
    payload["type"] = definition.type
    payload["businessName"] = context.business_name
    payload["flow"] = context.flow
    payload["generatedAt"] = datetime.now(timezone.utc).isoformat()
    payload["version"] = definition.version
    return payload


class GenerationOrchestrator:
    """Turns offer definitions plus user input into artifacts.

    ``sleep`` is injected so tests can skip real backoff waits.
    """

    def __init__(
        self,
        llm: Optional[LLMProvider],
        registry: OfferRegistry = default_registry,
        sleep: Callable[[float], None] = time.sleep,
        backoff_seconds: Optional[float] = None,
    ):
        self.llm = llm
        self.registry = registry
        self._sleep = sleep
        # overrides each offer's own backoff when set (config: generation.backoff_seconds)
        self.backoff_seconds = backoff_seconds

    def generate(
        self,
        offer_types: Iterable[str],
        user_input: dict,
        context: PromptContext,
        identity: Optional[str] = None,
    ) -> GenerationResult:
        """Generate every requested offer sequentially."""
        result = GenerationResult()
        for offer_type in offer_types:
            result.add(self.run_artifact(offer_type, user_input, context, identity))
        result.duration_ms = int((time.time() - result.started_at) * 1000)
        return result

    def run_artifact(
        self,
        offer: Union[str, OfferDefinition],
        user_input: dict,
        context: PromptContext,
        identity: Optional[str] = None,
    ) -> ArtifactOutcome:
        """Generate one artifact. Errors end up on the outcome, never raised."""
        offer_type = offer if isinstance(offer, str) else offer.type
        outcome = ArtifactOutcome(offer_type=offer_type)
        start = time.perf_counter()
        try:
            definition = offer if isinstance(offer, OfferDefinition) else self.registry.get(offer)
            self._build(definition, outcome, user_input, context, identity)
        except PipelineError as e:
            outcome.status = ArtifactStatus.FAILED
            outcome.errors.append(e.message)
            if isinstance(e, ValidationError):
                outcome.errors.extend(e.errors)
            outcome.error_kind = type(e).__name__
            logger.warning("generation.artifact_rejected", offer=offer_type, error=e.message)
        except Exception as e:
            outcome.status = ArtifactStatus.FAILED
            outcome.errors.append(f"Unexpected error: {e}")
            outcome.error_kind = type(e).__name__
            logger.error("generation.artifact_crashed", offer=offer_type, error=str(e))
        outcome.duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "generation.artifact_finished",
            offer=offer_type,
            status=outcome.status.value,
            attempts=outcome.attempts,
            duration_ms=outcome.duration_ms,
        )
        return outcome

    def _build(
        self,
        definition: OfferDefinition,
        outcome: ArtifactOutcome,
        user_input: dict,
        context: PromptContext,
        identity: Optional[str],
    ) -> None:
        outcome.status = ArtifactStatus.BUILDING
        check = validate_input(definition.input_requirements, context.intent, user_input)
        if not check.ok:
            raise ValidationError(
                f"Invalid input for {definition.type}",
                errors=check.messages(),
                missing=check.missing,
            )

        if not definition.uses_llm:
            self._build_direct(definition, outcome, user_input, context)
            return

        if self.llm is None:
            raise ConfigurationError("No LLM provider configured")
        if definition.build_prompt is None:
            raise ConfigurationError(f"Offer {definition.type} has no prompt builder")

        prompt = definition.build_prompt(user_input, context)
        estimate = estimate_cost(
            definition.generation.model,
            definition.generation.max_tokens,
            user_input,
            context.advice,
            definition.output_schema,
        )
        logger.debug(
            "generation.cost_estimate",
            offer=definition.type,
            input_tokens=estimate.input_tokens,
            output_tokens=estimate.output_tokens,
            cost_usd=round(estimate.cost_usd, 6),
        )
        messages = [
            {"role": "system", "content": SYSTEM_MESSAGE},
            {"role": "user", "content": prompt},
        ]

        policy = definition.retry
        max_attempts = max(1, policy.max_attempts)
        attempt = 0
        while attempt < max_attempts:
            attempt += 1
            outcome.attempts = attempt
            result = self._attempt(definition, outcome, messages, attempt, identity)
            if isinstance(result, Success):
                try:
                    payload = self._finalize(definition, result.payload, user_input, context)
                except Exception as e:
                    metrics.counter("llm.failures", offer=definition.type)
                    result = Failure(f"Post-processing failed: {e}")
                else:
                    outcome.payload = payload
                    outcome.warnings.extend(result.warnings)
                    outcome.status = ArtifactStatus.SUCCEEDED
                    return

            outcome.errors.append(f"attempt {attempt}: {result.error}")
            logger.warning(
                "generation.attempt_failed",
                offer=definition.type,
                attempt=attempt,
                max_attempts=max_attempts,
                error=result.error,
            )
            if attempt < max_attempts:
                outcome.status = ArtifactStatus.RETRYING
                self._sleep(self._delay(definition, attempt))

        self._fall_back(definition, outcome, context)

    def _delay(self, definition: OfferDefinition, attempt: int) -> float:
        policy = definition.retry
        if self.backoff_seconds is None:
            return policy.delay(attempt)
        if policy.exponential:
            return self.backoff_seconds * (2 ** (attempt - 1))
        return self.backoff_seconds

    def _attempt(
        self,
        definition: OfferDefinition,
        outcome: ArtifactOutcome,
        messages: list[dict],
        attempt: int,
        identity: Optional[str],
    ) -> AttemptResult:
        params = definition.generation
        outcome.status = ArtifactStatus.CALLING
        record = UsageRecord(
            offer_type=definition.type,
            model=params.model,
            attempt=attempt,
            success=False,
            identity=identity,
        )
        outcome.usage.append(record)
        metrics.counter("llm.calls", offer=definition.type)

        start = time.perf_counter()
        try:
            completion = self.llm.complete(
                messages,
                model=params.model,
                max_tokens=params.max_tokens,
                temperature=params.temperature,
                response_format="json",
            )
        except Exception as e:
            record.latency_ms = int((time.perf_counter() - start) * 1000)
            record.error = str(e) or type(e).__name__
            metrics.counter("llm.failures", offer=definition.type)
            return Failure(f"LLM call failed: {record.error}")
        record.latency_ms = int((time.perf_counter() - start) * 1000)

        record.model = completion.model or params.model
        record.input_tokens = completion.usage.input_tokens
        record.output_tokens = completion.usage.output_tokens
        record.cost_usd = calculate_cost(record.model, record.input_tokens, record.output_tokens)

        if not completion.content or not completion.content.strip():
            record.error = "empty response"
            metrics.counter("llm.failures", offer=definition.type)
            return Failure("Empty response from LLM")

        outcome.status = ArtifactStatus.VALIDATING
        try:
            parsed = extract_json(completion.content)
        except ValueError as e:
            record.error = str(e)
            metrics.counter("llm.failures", offer=definition.type)
            return Failure(str(e))

        if definition.validate_output is not None:
            verdict = definition.validate_output(parsed)
            if not verdict.valid:
                record.error = "; ".join(verdict.errors)
                metrics.counter("llm.failures", offer=definition.type)
                return Failure(f"Output validation failed: {record.error}")
            warnings = verdict.warnings
        else:
            warnings = []

        record.success = True
        return Success(payload=parsed, warnings=list(warnings))

    def _finalize(
        self,
        definition: OfferDefinition,
        payload: dict,
        user_input: dict,
        context: PromptContext,
    ) -> dict:
        clean = sanitize_output(payload)
        if definition.post_process is not None:
            clean = definition.post_process(clean, user_input)
        return stamp_base_properties(clean, definition, context)

    def _fall_back(self, definition: OfferDefinition, outcome: ArtifactOutcome, context: PromptContext) -> None:
        if not definition.fallback.has_template:
            outcome.status = ArtifactStatus.FAILED
            logger.error("generation.failed", offer=definition.type, attempts=outcome.attempts)
            return
        template = copy.deepcopy(dict(definition.fallback.template))
        outcome.payload = stamp_base_properties(template, definition, context, fallback=True)
        outcome.status = ArtifactStatus.FALLBACK
        metrics.counter("generation.fallbacks", offer=definition.type)
        logger.warning("generation.fallback_used", offer=definition.type, attempts=outcome.attempts)

    def _build_direct(
        self,
        definition: OfferDefinition,
        outcome: ArtifactOutcome,
        user_input: dict,
        context: PromptContext,
    ) -> None:
        outcome.attempts = 1
        outcome.status = ArtifactStatus.VALIDATING
        try:
            payload = definition.build_direct(user_input, context)
        except (KeyError, TypeError, ValueError) as e:
            outcome.errors.append(f"Builder failed: {e}")
            self._fall_back(definition, outcome, context)
            return

        if definition.validate_output is not None:
            verdict = definition.validate_output(payload)
            if not verdict.valid:
                outcome.errors.extend(verdict.errors)
                self._fall_back(definition, outcome, context)
                return
            outcome.warnings.extend(verdict.warnings)
        try:
            outcome.payload = self._finalize(definition, payload, user_input, context)
        except Exception as e:
            outcome.errors.append(f"Post-processing failed: {e}")
            self._fall_back(definition, outcome, context)
            return
        outcome.status = ArtifactStatus.SUCCEEDED
