"""Personalized video script offer."""

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
    output_type="VideoOutput",
    properties={
        "title": SchemaField("string", "Video title", example="Your Home Buying Roadmap"),
        "script": SchemaField("string", "Full narration script", example="Full script text..."),
        "sections": SchemaField(
            "array",
            "Timestamped sections",
            example=[
                {"timestamp": "0:00", "heading": "Introduction", "content": "...", "visualNotes": "..."},
                {"timestamp": "1:30", "heading": "Key Points", "content": "...", "visualNotes": "..."},
            ],
        ),
        "metadata": SchemaField(
            "object", "Duration and tone", required=False, example={"estimatedDuration": "3-5 minutes"}
        ),
    },
)

FALLBACK_TEMPLATE = {
    "title": "Your Personalized Video",
    "script": "Contact us for your personalized video content.",
    "sections": [
        {"timestamp": "0:00", "heading": "Introduction", "content": "Welcome!"},
    ],
}


def build_prompt(user_input: dict, context: PromptContext) -> str:
    instructions = f"""Create a video script with:
- Engaging opening hook
- 3-5 clear sections with timestamps
- Topic: {user_input.get('videoTopic') or 'process-overview'}
- Location: {user_input.get('location') or 'general'}
- Conversational, friendly tone"""
    return build_base_prompt("Video Script", user_input, context, OUTPUT_SCHEMA.example(), instructions)


def validate_output(output: dict) -> ValidationResult:
    result = validate_against_schema(output, OUTPUT_SCHEMA)
    if not isinstance(output, dict):
        return result
    errors = list(result.errors)
    if isinstance(output.get("sections"), list) and not output["sections"]:
        errors.append("Must have at least one section")
    return ValidationResult.from_lists(errors, result.warnings)


VIDEO_OFFER = OfferDefinition(
    type="video",
    label="Personalized Video",
    description="Custom video content tailored to your interests",
    supported_intents=("buy", "sell", "browse"),
    input_requirements=InputRequirements(
        required=("email",),
        optional=("videoTopic", "location", "name"),
        validation={"email": FieldValidation(kind="email")},
    ),
    output_schema=OUTPUT_SCHEMA,
    build_prompt=build_prompt,
    validate_output=validate_output,
    generation=GenerationParams(model="gpt-4o-mini", max_tokens=3000, temperature=0.75),
    retry=RetryPolicy(max_attempts=2),
    fallback=FallbackPolicy(template=FALLBACK_TEMPLATE),
    category="content",
)
