"""Offer definitions and generation result types."""

import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from shared_types import ArtifactStatus

OFFER_VERSION = "2.0.0"


@dataclass(frozen=True)
class FieldValidation:
    """Per-field input checks. ``kind`` is one of email, phone, number, text."""

    kind: str = "text"
    pattern: Optional[str] = None
    pattern_message: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None


@dataclass(frozen=True)
class InputRequirements:
    required: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()
    validation: Mapping[str, FieldValidation] = field(default_factory=dict)
    # intent -> required fields, replacing ``required`` for that intent
    required_by_intent: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def required_for(self, intent: str) -> tuple[str, ...]:
        return self.required_by_intent.get(intent, self.required)


@dataclass(frozen=True)
class SchemaField:
    type: str  # string | number | boolean | array | object
    description: str = ""
    required: bool = True
    example: Any = None


@dataclass(frozen=True)
class OutputSchema:
    output_type: str
    properties: Mapping[str, SchemaField]

    def example(self) -> dict:
        return {name: f.example for name, f in self.properties.items() if f.example is not None}


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def from_lists(cls, errors: list[str], warnings: Optional[list[str]] = None) -> "ValidationResult":
        return cls(valid=not errors, errors=list(errors), warnings=list(warnings or []))


@dataclass(frozen=True)
class GenerationParams:
    model: str = "gpt-4o-mini"
    max_tokens: int = 3000
    temperature: float = 0.7


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded attempts with backoff between them (seconds)."""

    max_attempts: int = 3
    backoff_seconds: float = 1.0
    exponential: bool = True

    def delay(self, attempt: int) -> float:
        """Wait before attempt ``attempt + 1`` (``attempt`` is 1-based)."""
        if self.exponential:
            return self.backoff_seconds * (2 ** (attempt - 1))
        return self.backoff_seconds


@dataclass(frozen=True)
class FallbackPolicy:
    strategy: str = "use-template"  # use-template | error
    template: Optional[Mapping[str, Any]] = None

    @property
    def has_template(self) -> bool:
        return self.strategy == "use-template" and self.template is not None


@dataclass(frozen=True)
class PromptContext:
    intent: str
    flow: str
    business_name: str
    advice: tuple[str, ...] = ()
    additional: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OfferDefinition:
    """Static description of one generated artifact type."""

    type: str
    label: str
    description: str
    supported_intents: tuple[str, ...]
    input_requirements: InputRequirements
    output_schema: OutputSchema
    build_prompt: Optional[Callable[[dict, PromptContext], str]] = None
    validate_output: Optional[Callable[[dict], ValidationResult]] = None
    post_process: Optional[Callable[[dict, dict], dict]] = None
    generation: GenerationParams = GenerationParams()
    retry: RetryPolicy = RetryPolicy()
    fallback: FallbackPolicy = FallbackPolicy()
    version: str = OFFER_VERSION
    category: str = "content"
    # Non-LLM builders take (user_input, context) and return the payload directly
    build_direct: Optional[Callable[[dict, PromptContext], dict]] = None

    @property
    def uses_llm(self) -> bool:
        return self.build_direct is None

    def supports(self, intent: str) -> bool:
        return intent in self.supported_intents

    def summary(self) -> dict:
        return {
            "type": self.type,
            "label": self.label,
            "description": self.description,
            "supportedIntents": list(self.supported_intents),
            "required": list(self.input_requirements.required),
            "optional": list(self.input_requirements.optional),
            "model": self.generation.model if self.uses_llm else None,
            "maxAttempts": self.retry.max_attempts,
            "hasFallback": self.fallback.has_template,
            "version": self.version,
            "category": self.category,
        }


@dataclass
class UsageRecord:
    """One LLM call, successful or not."""

    offer_type: str
    model: str
    attempt: int
    success: bool
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0
    cost_usd: float = 0.0
    identity: Optional[str] = None
    error: Optional[str] = None
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ArtifactOutcome:
    offer_type: str
    status: ArtifactStatus = ArtifactStatus.PENDING
    attempts: int = 0
    payload: Optional[dict] = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    duration_ms: int = 0
    usage: list[UsageRecord] = field(default_factory=list)
    # exception class name when the artifact was rejected before any call
    error_kind: Optional[str] = None

    @property
    def via_fallback(self) -> bool:
        return self.status == ArtifactStatus.FALLBACK

    @property
    def produced(self) -> bool:
        return self.payload is not None

    def to_dict(self) -> dict:
        return {
            "offerType": self.offer_type,
            "status": self.status.value,
            "attempts": self.attempts,
            "viaFallback": self.via_fallback,
            "errors": self.errors,
            "warnings": self.warnings,
            "durationMs": self.duration_ms,
        }


@dataclass
class GenerationResult:
    """Everything produced by one orchestrator run."""

    outcomes: dict[str, ArtifactOutcome] = field(default_factory=dict)
    usage: list[UsageRecord] = field(default_factory=list)
    retrieval: dict = field(default_factory=dict)
    started_at: float = field(default_factory=time.time)
    duration_ms: int = 0

    def add(self, outcome: ArtifactOutcome) -> None:
        self.outcomes[outcome.offer_type] = outcome
        self.usage.extend(outcome.usage)

    @property
    def results(self) -> dict[str, dict]:
        return {t: o.payload for t, o in self.outcomes.items() if o.produced}

    @property
    def errors(self) -> dict[str, list[str]]:
        return {t: o.errors for t, o in self.outcomes.items() if o.errors}

    @property
    def succeeded(self) -> bool:
        return any(o.produced for o in self.outcomes.values())

    @property
    def total_cost(self) -> float:
        return round(sum(u.cost_usd for u in self.usage), 6)

    def debug_info(self) -> dict:
        return {
            "outcomes": {t: o.to_dict() for t, o in self.outcomes.items()},
            "retrieval": self.retrieval,
            "llmCalls": len(self.usage),
            "totalTokens": sum(u.input_tokens + u.output_tokens for u in self.usage),
            "totalCost": self.total_cost,
            "durationMs": self.duration_ms,
        }


@dataclass
class GenerationRecord:
    """Append-only log entry persisted once per request."""

    tenant_id: str
    flow: str
    intent: str
    offer_types: list[str]
    status: str  # completed | partial | failed
    results: dict
    errors: dict
    outcomes: dict
    retrieval: dict
    usage: list[dict]
    duration_ms: int
    conversation_id: Optional[str] = None
    identity: Optional[str] = None
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @classmethod
    def from_result(
        cls,
        result: GenerationResult,
        tenant_id: str,
        flow: str,
        intent: str,
        conversation_id: Optional[str] = None,
        identity: Optional[str] = None,
    ) -> "GenerationRecord":
        produced = result.results
        if not produced:
            status = "failed"
        elif len(produced) < len(result.outcomes):
            status = "partial"
        else:
            status = "completed"
        return cls(
            tenant_id=tenant_id,
            flow=flow,
            intent=intent,
            offer_types=list(result.outcomes),
            status=status,
            results=produced,
            errors=result.errors,
            outcomes={t: o.to_dict() for t, o in result.outcomes.items()},
            retrieval=result.retrieval,
            usage=[u.to_dict() for u in result.usage],
            duration_ms=result.duration_ms,
            conversation_id=conversation_id,
            identity=identity,
        )
