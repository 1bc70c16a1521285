"""Input requirement checks, output schema checks and LLM output cleanup."""

import json
import re
from dataclasses import dataclass, field
from typing import Any

from offers.types import FieldValidation, InputRequirements, OutputSchema, ValidationResult

KIND_PATTERNS = {
    "email": re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$"),
    "phone": re.compile(r"^[\d\s\-\+\(\)]+$"),
    "number": re.compile(r"^-?\d+\.?\d*$"),
}

_CODE_BLOCK = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```")
_BRACED = re.compile(r"\{[\s\S]*\}")

_PY_TYPES = {
    "string": (str,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list,),
    "object": (dict,),
}


@dataclass
class InputCheck:
    missing: list[str] = field(default_factory=list)
    invalid: list[dict] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing and not self.invalid

    def messages(self) -> list[str]:
        out = [f"{name}: required" for name in self.missing]
        out.extend(f"{item['field']}: {item['reason']}" for item in self.invalid)
        return out


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value).strip()


def check_field(value: str, rules: FieldValidation) -> str | None:
    """Return the reason ``value`` is invalid, or None."""
    pattern = KIND_PATTERNS.get(rules.kind)
    if pattern and not pattern.match(value):
        return f"Invalid {rules.kind} format"
    if rules.pattern:
        try:
            custom = re.compile(rules.pattern)
        except re.error:
            custom = None
        if custom and not custom.search(value):
            return rules.pattern_message or "Does not match required pattern"
    if rules.min_length is not None and len(value) < rules.min_length:
        return f"Must be at least {rules.min_length} characters"
    if rules.max_length is not None and len(value) > rules.max_length:
        return f"Must be at most {rules.max_length} characters"
    return None


def validate_input(requirements: InputRequirements, intent: str, user_input: dict) -> InputCheck:
    """Check required fields exist and every provided field passes its rules."""
    check = InputCheck()
    required = requirements.required_for(intent)

    for name in required:
        if not _as_text(user_input.get(name)):
            check.missing.append(name)

    for name in (*required, *requirements.optional):
        value = _as_text(user_input.get(name))
        rules = requirements.validation.get(name)
        if not value or rules is None:
            continue
        reason = check_field(value, rules)
        if reason:
            check.invalid.append({"field": name, "reason": reason})
    return check


def validate_against_schema(output: Any, schema: OutputSchema) -> ValidationResult:
    """Generic structural check driven by the offer's output schema."""
    if not isinstance(output, dict):
        return ValidationResult(valid=False, errors=["Output must be an object"])

    errors: list[str] = []
    warnings: list[str] = []
    for name, prop in schema.properties.items():
        value = output.get(name)
        if value is None:
            if prop.required:
                errors.append(f"Missing required field: {name}")
            continue
        expected = _PY_TYPES.get(prop.type)
        # bool is an int subclass; keep it out of "number"
        wrong_bool = prop.type == "number" and isinstance(value, bool)
        if expected and (not isinstance(value, expected) or wrong_bool):
            errors.append(f"Field {name} should be {prop.type}")
            continue
        if prop.type == "array" and not value:
            warnings.append(f"Field {name} is empty")
        if prop.type == "string" and prop.required and not value.strip():
            errors.append(f"Field {name} is empty")
    return ValidationResult.from_lists(errors, warnings)


def extract_json(text: str) -> dict:
    """Pull a JSON object out of an LLM reply.

    Tries the raw text, then a fenced code block, then the outermost braces.

    Raises:
        ValueError: no parsable JSON object was found
    """
    if not text or not text.strip():
        raise ValueError("Empty response")

    candidates = [text.strip()]
    block = _CODE_BLOCK.search(text)
    if block:
        candidates.append(block.group(1).strip())
    braced = _BRACED.search(text)
    if braced:
        candidates.append(braced.group(0))

    first_error = None
    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as e:
            first_error = first_error or e
            continue
        if isinstance(parsed, dict):
            return parsed
    raise ValueError(f"Could not extract a JSON object from LLM response: {first_error}")


def sanitize_output(value: Any) -> Any:
    """Trim strings and drop underscore-prefixed keys, recursively."""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        return [sanitize_output(v) for v in value]
    if isinstance(value, dict):
        return {k: sanitize_output(v) for k, v in value.items() if not str(k).startswith("_")}
    return value
