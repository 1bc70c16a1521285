"""Real-estate timeline offer, assembled from phase templates without an LLM.

Phases come from the tenant's configured phases (or the flow template), steps
keep their linked stories, and the schedule is stretched or compressed by the
user's stated timeline.
"""

import math
import re
from datetime import datetime, timezone

from personalization.models import TimelinePhase
from personalization.timeline import default_phases, get_flow_template
from offers.types import (
    FallbackPolicy,
    InputRequirements,
    OfferDefinition,
    OutputSchema,
    PromptContext,
    RetryPolicy,
    SchemaField,
    ValidationResult,
)
from offers.validators import validate_against_schema

TIMELINE_MULTIPLIERS = {
    "0-3 months": 0.5,
    "3-6 months": 0.75,
    "6-12 months": 1.0,
    "12+ months": 1.25,
}

STORY_EMPHASIS_PHASES = frozenset(
    {"financial-prep", "house-hunting", "make-offer", "under-contract", "closing", "home-prep", "review-offers"}
)

_FLOW_TITLES = {
    "buy": "Your Home Buying Journey",
    "sell": "Your Home Selling Journey",
    "browse": "Your Real Estate Exploration",
}

_WEEKS = re.compile(r"Week\s+(\d+)(?:-(\d+))?", re.IGNORECASE)

OUTPUT_SCHEMA = OutputSchema(
    output_type="TimelineOutput",
    properties={
        "title": SchemaField("string", "Timeline title"),
        "subtitle": SchemaField("string", "Who it is personalized for"),
        "phases": SchemaField("array", "Ordered phases with steps"),
        "totalEstimatedTime": SchemaField("string", "Overall duration"),
        "disclaimer": SchemaField("string", "Variability disclaimer"),
    },
)

DISCLAIMER = (
    "Timelines are estimates and vary with market conditions, financing and "
    "individual circumstances. Your agent will help you adjust as you go."
)


def _answer(user_input: dict, key: str) -> str:
    """Single answer as text; multi-select answers use their first choice."""
    value = user_input.get(key)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    return "" if value is None else str(value).strip()


def _truthy(value) -> bool:
    return str(value).strip().lower() in ("true", "yes", "y", "1")


def adjust_timeline(base: str, multiplier: float) -> str:
    """Scale a ``Week X-Y`` label; other formats pass through."""
    match = _WEEKS.search(base)
    if not match:
        return base
    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else start
    new_start = max(1, round(start * multiplier))
    new_end = max(new_start, round(end * multiplier))
    if new_start == new_end:
        return f"Week {new_start}"
    return f"Week {new_start}-{new_end}"


def _conditional_steps(phase_id: str, user_input: dict) -> list[dict]:
    steps = []
    location = _answer(user_input, "location")
    budget = _answer(user_input, "budget")
    if _truthy(_answer(user_input, "isFirstTimeBuyer")):
        if phase_id == "financial-prep":
            steps.append({
                "title": "Research first-time buyer programs and grants in your area",
                "priority": "high",
                "details": "Many states and cities offer down payment assistance for first-time buyers",
            })
        if phase_id == "house-hunting":
            steps.append({"title": "Focus on move-in ready homes to avoid renovation costs", "priority": "medium"})
    if location and phase_id in ("market-research", "house-hunting"):
        steps.append({"title": f"Research {location} neighborhood trends and pricing", "priority": "high"})
    if budget and phase_id == "make-offer":
        steps.append({"title": f"Prepare offer strategy for the {budget} price range", "priority": "high"})
    if _answer(user_input, "timeline") == "0-3 months" and phase_id == "financial-prep":
        steps.append({
            "title": "Fast-track your pre-approval - contact multiple lenders this week",
            "priority": "high",
        })
    return steps


def _story_summary(story: dict) -> dict:
    return {k: story.get(k) for k in ("id", "title", "situation", "action", "outcome", "advice") if story.get(k)}


def _render_phase(phase: TimelinePhase, user_input: dict, multiplier: float, stories: dict) -> dict:
    skipped = phase.id == "financial-prep" and _truthy(_answer(user_input, "isPreApproved"))
    steps = []
    for step in phase.steps:
        rendered = {"id": step.id, "title": step.title, "priority": step.priority}
        if step.linked_story_id:
            rendered["linkedStoryId"] = step.linked_story_id
            if step.linked_story_id in stories:
                rendered["story"] = _story_summary(stories[step.linked_story_id])
        elif step.inline_experience:
            rendered["inlineExperience"] = step.inline_experience
        steps.append(rendered)

    extra = _conditional_steps(phase.id, user_input)
    phase_doc = {
        "id": phase.id,
        "name": phase.name,
        "timeline": adjust_timeline(phase.timeline, multiplier),
        "description": phase.description,
        "order": phase.order,
        "steps": steps,
        "suggestedActions": extra,
        "storySlot": phase.id in STORY_EMPHASIS_PHASES,
        "isOptional": phase.optional,
        "isSkipped": skipped,
    }
    if skipped:
        phase_doc["skipReason"] = "You're already pre-approved! Great head start."
    return phase_doc


def _total_time(phases: list[dict]) -> str:
    active = [p for p in phases if not p["isSkipped"]]
    weeks = 16
    if active:
        match = _WEEKS.search(active[-1]["timeline"])
        if match:
            weeks = int(match.group(2) or match.group(1))
    months = math.ceil(weeks / 4)
    return f"{months} month{'s' if months > 1 else ''}"


def _subtitle(user_input: dict) -> str:
    parts = []
    if _truthy(_answer(user_input, "isFirstTimeBuyer")):
        parts.append("First-time buyer")
    budget = _answer(user_input, "budget")
    if budget:
        parts.append(budget)
    timeline = _answer(user_input, "timeline")
    if timeline:
        parts.append(f"{timeline} timeline")
    if not parts:
        return "Personalized step-by-step guide"
    return "Personalized for: " + " / ".join(parts)


def build_timeline(user_input: dict, context: PromptContext) -> dict:
    """Build the timeline payload.

    ``context.additional`` may carry ``phases`` (configured TimelinePhase list
    for the flow) and ``stories`` (item id -> narrative fields).
    """
    flow = context.flow
    phases = context.additional.get("phases") or default_phases(flow)
    stories = context.additional.get("stories") or {}
    multiplier = TIMELINE_MULTIPLIERS.get(_answer(user_input, "timeline") or "6-12 months", 1.0)

    rendered = [_render_phase(p, user_input, multiplier, stories) for p in phases]
    title = _FLOW_TITLES.get(flow, "Your Real Estate Timeline")
    location = _answer(user_input, "location")
    if location:
        title = f"{title} in {location}"

    return {
        "title": title,
        "subtitle": _subtitle(user_input),
        "flowName": get_flow_template(flow).display_name,
        "phases": rendered,
        "totalEstimatedTime": _total_time(rendered),
        "disclaimer": DISCLAIMER,
        "agentAdvice": list(context.advice),
        "userSituation": {
            k: user_input.get(k) for k in ("location", "budget", "timeline", "isFirstTimeBuyer") if user_input.get(k)
        },
        "metadata": {
            "generationMethod": "fast-template",
            "phasesCount": len(rendered),
            "storyCount": sum(1 for p in rendered for s in p["steps"] if s.get("linkedStoryId")),
            "builtAt": datetime.now(timezone.utc).isoformat(),
        },
    }


def validate_output(output: dict) -> ValidationResult:
    result = validate_against_schema(output, OUTPUT_SCHEMA)
    if isinstance(output, dict) and isinstance(output.get("phases"), list) and not output["phases"]:
        return ValidationResult.from_lists([*result.errors, "Must have at least one phase"], result.warnings)
    return result


TIMELINE_OFFER = OfferDefinition(
    type="real-estate-timeline",
    label="Real Estate Timeline",
    description="Step-by-step timeline for your move, with stories from your agent",
    supported_intents=("buy", "sell", "browse"),
    input_requirements=InputRequirements(
        optional=("location", "budget", "timeline", "isFirstTimeBuyer", "isPreApproved", "email"),
    ),
    output_schema=OUTPUT_SCHEMA,
    validate_output=validate_output,
    retry=RetryPolicy(max_attempts=1, backoff_seconds=0),
    fallback=FallbackPolicy(strategy="error"),
    category="lead-generation",
    build_direct=build_timeline,
)
