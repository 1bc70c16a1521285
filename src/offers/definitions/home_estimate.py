"""Home value estimate offer (sellers only)."""

from offers.prompts import build_base_prompt
from offers.types import (
    FallbackPolicy,
    FieldValidation,
    GenerationParams,
    InputRequirements,
    OfferDefinition,
    OutputSchema,
    PromptContext,
    RetryPolicy,
    SchemaField,
    ValidationResult,
)
from offers.validators import validate_against_schema

DEFAULT_DISCLAIMER = (
    "This estimate is generated by AI based on available market data. "
    "It should not be considered a professional appraisal."
)

OUTPUT_SCHEMA = OutputSchema(
    output_type="HomeEstimateOutput",
    properties={
        "propertyAddress": SchemaField("string", "The property address", example="Property Address"),
        "estimatedValue": SchemaField(
            "object",
            "Estimated property value range",
            example={"low": 400000, "high": 450000, "confidence": 70, "currency": "USD"},
        ),
        "comparables": SchemaField(
            "array",
            "Comparable properties sold recently",
            example=[
                {
                    "address": "Similar property nearby",
                    "soldPrice": 425000,
                    "soldDate": "2024-11-01",
                    "similarity": 85,
                    "distance": "0.3 miles",
                }
            ],
        ),
        "factors": SchemaField(
            "array",
            "Factors affecting property value",
            example=[{"factor": "Location", "impact": "positive", "description": "..."}],
        ),
        "recommendations": SchemaField(
            "array", "Recommendations for the seller", example=["Specific recommendation"]
        ),
        "disclaimer": SchemaField("string", "AI estimate disclaimer", required=False),
    },
)

FALLBACK_TEMPLATE = {
    "propertyAddress": "Your Property",
    "estimatedValue": {"low": 0, "high": 0, "confidence": 0, "currency": "USD"},
    "comparables": [],
    "factors": [
        {
            "factor": "Unable to generate estimate",
            "impact": "neutral",
            "description": "Please contact us for a personalized home valuation.",
        },
    ],
    "recommendations": [
        "Contact us for a professional home valuation",
        "Schedule a free consultation with our team",
    ],
    "disclaimer": (
        "We were unable to generate an automated estimate. "
        "Please reach out for personalized assistance."
    ),
}

_DETAIL_FIELDS = ("propertyAddress", "propertyType", "propertyAge", "renovations", "bedrooms", "bathrooms")


def build_prompt(user_input: dict, context: PromptContext) -> str:
    details = "\n".join(
        f"{name}: {user_input[name]}" for name in _DETAIL_FIELDS if user_input.get(name)
    )
    example = {**OUTPUT_SCHEMA.example(), "propertyAddress": user_input.get("propertyAddress") or "Property Address"}
    instructions = f"""This is an AI-generated estimate. Generate realistic but SIMULATED data.
1. Estimated value: a low-high range with 10-15% spread, confidence 60-80
2. Comparables: 3-5 recent sales within 20% of the estimate, similarity 70-90
3. Factors: 4-6 items with positive, negative or neutral impact
4. Recommendations: 3-5 specific, actionable items for sellers
5. Always include a disclaimer

PROPERTY DETAILS PROVIDED:
{details}"""
    return build_base_prompt("Home Estimate", user_input, context, example, instructions)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_output(output: dict) -> ValidationResult:
    result = validate_against_schema(output, OUTPUT_SCHEMA)
    if not isinstance(output, dict):
        return result
    errors = list(result.errors)
    warnings = list(result.warnings)

    value = output.get("estimatedValue")
    if isinstance(value, dict):
        low, high = value.get("low"), value.get("high")
        if not _is_number(low):
            errors.append("Missing or invalid low value")
        if not _is_number(high):
            errors.append("Missing or invalid high value")
        if _is_number(low) and _is_number(high) and low >= high:
            errors.append("Low must be less than high")

    comparables = output.get("comparables")
    if isinstance(comparables, list):
        if not comparables:
            errors.append("Must have at least one comparable")
        elif len(comparables) < 3:
            warnings.append("Consider adding more comparables")

    if isinstance(output.get("factors"), list) and not output["factors"]:
        errors.append("Must have at least one factor")

    # Empty-array warnings for comparables/factors are superseded by the errors above
    warnings = [w for w in warnings if w not in ("Field comparables is empty", "Field factors is empty")]
    return ValidationResult.from_lists(errors, warnings)


def _similarity(comparable) -> float:
    value = comparable.get("similarity") if isinstance(comparable, dict) else None
    return value if _is_number(value) else 0


def post_process(output: dict, user_input: dict) -> dict:
    """Most similar comparables first; make sure a disclaimer is present."""
    comparables = sorted(
        output.get("comparables") or [],
        key=_similarity,
        reverse=True,
    )
    return {
        **output,
        "comparables": comparables,
        "disclaimer": output.get("disclaimer") or DEFAULT_DISCLAIMER,
    }


HOME_ESTIMATE_OFFER = OfferDefinition(
    type="home-estimate",
    label="Home Value Estimate",
    description="AI-generated property valuation with market analysis",
    supported_intents=("sell",),
    input_requirements=InputRequirements(
        required=("propertyAddress", "email"),
        optional=("propertyType", "propertyAge", "renovations", "bedrooms", "bathrooms"),
        validation={
            "email": FieldValidation(kind="email"),
            "propertyAddress": FieldValidation(min_length=10),
            "bedrooms": FieldValidation(kind="number"),
        },
    ),
    output_schema=OUTPUT_SCHEMA,
    build_prompt=build_prompt,
    validate_output=validate_output,
    post_process=post_process,
    generation=GenerationParams(model="gpt-4o-mini", max_tokens=3500, temperature=0.6),
    retry=RetryPolicy(max_attempts=2),
    fallback=FallbackPolicy(template=FALLBACK_TEMPLATE),
    category="analysis",
)
