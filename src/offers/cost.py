"""Token and cost estimation for offer generation."""

import json
import math
from dataclasses import dataclass

import structlog

from offers.types import OutputSchema

logger = structlog.get_logger()

# USD per 1M tokens: (input, output)
MODEL_PRICING: dict[str, tuple[float, float]] = {
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4o": (2.50, 10.00),
    "claude-3-5-sonnet": (3.00, 15.00),
    "claude-sonnet-4-20250514": (3.00, 15.00),
    "gemini-2.5-flash": (0.30, 2.50),
}
DEFAULT_PRICING_MODEL = "gpt-4o-mini"

PROMPT_OVERHEAD_TOKENS = 200
TOKENS_PER_OUTPUT_FIELD = 50


@dataclass(frozen=True)
class CostEstimate:
    input_tokens: int
    output_tokens: int
    cost_usd: float
    model: str

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


def estimate_tokens(text: str) -> int:
    """Rough count: one token per four characters."""
    return math.ceil(len(text) / 4)


def _pricing(model: str) -> tuple[float, float]:
    if model in MODEL_PRICING:
        return MODEL_PRICING[model]
    # Versioned names ("gpt-4o-mini-2024-07-18") price like their base model
    for name in sorted(MODEL_PRICING, key=len, reverse=True):
        if model.startswith(name):
            return MODEL_PRICING[name]
    logger.warning("cost.unknown_model", model=model, fallback=DEFAULT_PRICING_MODEL)
    return MODEL_PRICING[DEFAULT_PRICING_MODEL]


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    input_rate, output_rate = _pricing(model)
    return (input_tokens / 1_000_000) * input_rate + (output_tokens / 1_000_000) * output_rate


def estimate_cost(
    model: str,
    max_tokens: int,
    user_input: dict,
    advice: list[str] | tuple[str, ...],
    schema: OutputSchema,
) -> CostEstimate:
    """Pre-call estimate from input size, advice context and schema size."""
    input_text = "\n".join(f"{k}: {v}" for k, v in user_input.items())
    schema_text = json.dumps(
        {name: {"type": f.type, "description": f.description} for name, f in schema.properties.items()},
        indent=2,
    )
    input_tokens = (
        estimate_tokens(input_text)
        + (estimate_tokens("\n\n".join(advice)) if advice else 0)
        + PROMPT_OVERHEAD_TOKENS
        + estimate_tokens(schema_text)
    )
    output_tokens = min(len(schema.properties) * TOKENS_PER_OUTPUT_FIELD, max_tokens)
    return CostEstimate(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cost_usd=calculate_cost(model, input_tokens, output_tokens),
        model=model,
    )
