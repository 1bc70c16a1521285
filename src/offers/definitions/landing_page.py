"""Personal landing page offer."""

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

PRIORITY_RANK = {"high": 1, "medium": 2, "low": 3}
_UNRANKED = 99

OUTPUT_SCHEMA = OutputSchema(
    output_type="LandingPageOutput",
    properties={
        "hero": SchemaField(
            "object",
            "Hero section",
            example={
                "title": "Your Personalized Real Estate Hub",
                "subtitle": "Everything you need to know",
                "ctaText": "Get Started",
            },
        ),
        "summary": SchemaField("object", "Summary section", example={"title": "Overview", "content": "..."}),
        "insights": SchemaField(
            "array", "Key insights", example=[{"title": "Key Insight", "description": "...", "icon": "TrendingUp"}]
        ),
        "recommendations": SchemaField(
            "array",
            "Recommendations, each with a priority of high, medium or low",
            example=[{"title": "Next Step", "description": "...", "priority": "high"}],
        ),
    },
)

FALLBACK_TEMPLATE = {
    "hero": {
        "title": "Your Real Estate Journey Starts Here",
        "subtitle": "Personalized guidance for your next move",
        "ctaText": "Get Started",
    },
    "summary": {
        "title": "Welcome",
        "content": "Contact us for personalized real estate guidance.",
    },
    "insights": [
        {"title": "Expert Guidance", "description": "Work with experienced professionals"},
    ],
    "recommendations": [
        {"title": "Schedule a Call", "description": "Discuss your goals with us", "priority": "high"},
    ],
}


def build_prompt(user_input: dict, context: PromptContext) -> str:
    instructions = f"""Create landing page content with:
- Compelling hero section
- Clear value proposition
- 3-5 key insights
- 3-5 actionable recommendations, each with a priority
- Focused on {user_input.get('pageGoal') or 'education'}
- Location: {user_input.get('location') or 'general'}"""
    return build_base_prompt("Landing Page", user_input, context, OUTPUT_SCHEMA.example(), instructions)


def validate_output(output: dict) -> ValidationResult:
    result = validate_against_schema(output, OUTPUT_SCHEMA)
    if not isinstance(output, dict):
        return result
    errors = list(result.errors)
    if isinstance(output.get("insights"), list) and not output["insights"]:
        errors.append("Must have at least one insight")
    if isinstance(output.get("recommendations"), list) and not output["recommendations"]:
        errors.append("Must have at least one recommendation")
    return ValidationResult.from_lists(errors, result.warnings)


def priority_rank(recommendation) -> float:
    if not isinstance(recommendation, dict):
        return _UNRANKED
    priority = recommendation.get("priority")
    if isinstance(priority, bool):
        return _UNRANKED
    if isinstance(priority, (int, float)):
        return priority
    return PRIORITY_RANK.get(str(priority).lower(), _UNRANKED)


def post_process(output: dict, user_input: dict) -> dict:
    """Order recommendations by ascending priority (high first); stable on ties."""
    recommendations = sorted(output.get("recommendations") or [], key=priority_rank)
    return {**output, "recommendations": recommendations}


LANDING_PAGE_OFFER = OfferDefinition(
    type="landingPage",
    label="Personal Landing Page",
    description="Custom landing page with your insights and recommendations",
    supported_intents=("buy", "sell", "browse"),
    input_requirements=InputRequirements(
        required=("email",),
        optional=("pageGoal", "location", "name"),
        validation={"email": FieldValidation(kind="email")},
    ),
    output_schema=OUTPUT_SCHEMA,
    build_prompt=build_prompt,
    validate_output=validate_output,
    post_process=post_process,
    generation=GenerationParams(model="gpt-4o-mini", max_tokens=3000, temperature=0.8),
    retry=RetryPolicy(max_attempts=2),
    fallback=FallbackPolicy(template=FALLBACK_TEMPLATE),
    category="content",
)
