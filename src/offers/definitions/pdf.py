"""Downloadable PDF guide offer."""

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

OUTPUT_SCHEMA = OutputSchema(
    output_type="PdfOutput",
    properties={
        "title": SchemaField("string", "Guide title", example="Your Personalized Home Buying Guide"),
        "sections": SchemaField(
            "array",
            "Ordered sections with heading and content",
            example=[{"heading": "Getting Started", "content": "...", "order": 1}],
        ),
    },
)

FALLBACK_TEMPLATE = {
    "title": "Your Real Estate Guide",
    "sections": [
        {
            "heading": "Getting Started",
            "content": "Contact us for personalized guidance on your real estate journey.",
            "order": 1,
        },
    ],
}


def build_prompt(user_input: dict, context: PromptContext) -> str:
    instructions = """Create a comprehensive guide with:
- A clear, personalized title
- 4-6 ordered sections covering the user's next steps
- Practical checklists where helpful"""
    return build_base_prompt("PDF Guide", user_input, context, OUTPUT_SCHEMA.example(), instructions)


def validate_output(output: dict) -> ValidationResult:
    result = validate_against_schema(output, OUTPUT_SCHEMA)
    if not isinstance(output, dict):
        return result
    errors = list(result.errors)
    if isinstance(output.get("sections"), list) and not output["sections"]:
        errors.append("Must have at least one section")
    return ValidationResult.from_lists(errors, result.warnings)


def post_process(output: dict, user_input: dict) -> dict:
    sections = output.get("sections") or []
    ordered = [
        {**s, "order": s.get("order", i)} if isinstance(s, dict) else s
        for i, s in enumerate(sections, start=1)
    ]
    return {**output, "sections": ordered}


PDF_OFFER = OfferDefinition(
    type="pdf",
    label="Custom PDF Guide",
    description="Downloadable guide tailored to your situation",
    supported_intents=("buy", "sell", "browse"),
    input_requirements=InputRequirements(
        required=("email",),
        optional=("name", "location"),
        validation={"email": FieldValidation(kind="email")},
        required_by_intent={"browse": ()},
    ),
    output_schema=OUTPUT_SCHEMA,
    build_prompt=build_prompt,
    validate_output=validate_output,
    post_process=post_process,
    generation=GenerationParams(model="gpt-4o-mini", max_tokens=4000, temperature=0.7),
    retry=RetryPolicy(max_attempts=2),
    fallback=FallbackPolicy(template=FALLBACK_TEMPLATE),
    category="content",
)
