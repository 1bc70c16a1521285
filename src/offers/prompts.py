"""Shared prompt scaffolding for LLM-backed offers."""

import json
import re

from offers.types import PromptContext

SYSTEM_MESSAGE = (
    "You are an expert real estate content generator. "
    "Always respond with valid JSON only."
)

_FLOW_CONTEXT = {
    "buy": "The user is looking to buy/purchase",
    "sell": "The user is looking to sell",
    "browse": "The user is browsing and exploring options",
}

_OUTPUT_INSTRUCTIONS = """CRITICAL INSTRUCTIONS:
1. Respond with ONLY valid JSON - no markdown, no code blocks, no explanations
2. The JSON must match the {label} structure exactly
3. All required fields must be present
4. Make the content personalized and specific to the user's situation
5. Do not use placeholder values like {{name}} or [value] - fill in actual content"""

_QUALITY_GUIDELINES = """QUALITY GUIDELINES:
- Be specific and actionable
- Use the user's actual information (don't make up data)
- Keep language professional yet approachable"""


def field_label(name: str) -> str:
    """``propertyAddress`` -> ``Property Address``."""
    spaced = re.sub(r"([A-Z])", r" \1", name).replace("_", " ")
    return " ".join(word.capitalize() for word in spaced.split())


def greeting_name(user_input: dict) -> str:
    name = user_input.get("name") or user_input.get("firstName")
    if name:
        return str(name)
    email = user_input.get("email")
    if email:
        handle = str(email).split("@")[0]
        return handle[:1].upper() + handle[1:]
    return "there"


def format_user_input(user_input: dict) -> str:
    return "\n".join(f"- {field_label(k)}: {v}" for k, v in user_input.items() if v not in (None, ""))


def format_advice(advice) -> str:
    if not advice:
        return ""
    numbered = "\n\n".join(f"{i}. {text}" for i, text in enumerate(advice, start=1))
    return f"RELEVANT ADVICE FROM KNOWLEDGE BASE:\n{numbered}"


def build_base_prompt(
    label: str,
    user_input: dict,
    context: PromptContext,
    output_example: dict,
    instructions: str = "",
) -> str:
    """Assemble the common prompt layout around offer-specific instructions."""
    flow_context = _FLOW_CONTEXT.get(context.flow, f"The user is in the {context.flow} flow")
    sections = [
        f"You are creating a personalized {label} for {greeting_name(user_input)} "
        f"at {context.business_name or 'our team'}.",
        f"USER CONTEXT:\n{flow_context}\n{format_user_input(user_input)}",
        format_advice(context.advice),
        instructions.strip(),
        _OUTPUT_INSTRUCTIONS.format(label=label),
        _QUALITY_GUIDELINES,
        f"OUTPUT STRUCTURE:\n{json.dumps(output_example, indent=2)}",
        f"Generate the {label} now:",
    ]
    return "\n\n".join(s for s in sections if s)
