"""Fact-map construction from collected intake answers."""

from typing import Any

from personalization.rules import FactValue

# Canonical fact fields and the answer keys that feed them
FACT_ALIASES: dict[str, list[str]] = {
    "propertyType": ["propertyType", "property", "homeType", "home", "dwelling", "propertyKind"],
    "timeline": ["timeline", "timeframe", "when", "urgency", "timing", "timeToSell", "timeToBuy"],
    "sellingReason": ["sellingReason", "sellReason", "whySelling"],
    "buyingReason": ["buyingReason", "buyReason", "whyBuying"],
    "motivation": ["motivation", "reason", "why"],
    "budget": ["budget", "price", "priceRange", "affordability", "maxPrice", "budgetRange"],
    "location": ["location", "area", "neighborhood", "city", "region", "where"],
    "propertyAge": ["propertyAge", "age", "yearBuilt", "homeAge", "houseAge"],
    "bedrooms": ["bedrooms", "beds", "bedroomCount", "bedroom"],
    "renovations": ["renovations", "updates", "improvements", "renovated", "remodel"],
    "isFirstTimeBuyer": ["isFirstTimeBuyer", "firstTimeBuyer", "firstTime", "isFirstTime"],
    "isPreApproved": ["isPreApproved", "preApproved", "preApproval"],
    "currentStage": ["currentStage", "stage"],
    "buyerType": ["buyerType"],
    "email": ["email", "contactEmail"],
    "phone": ["phone", "contactPhone"],
    "name": ["name", "contactName"],
    "pageGoal": ["pageGoal"],
    "propertyAddress": ["propertyAddress", "address"],
}

KNOWN_FACT_FIELDS: frozenset[str] = frozenset(FACT_ALIASES)

_ALIAS_INDEX = {alias: field for field, aliases in FACT_ALIASES.items() for alias in aliases}


def _normalize_value(value: Any) -> FactValue | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple, set)):
        items = [str(v).strip() for v in value if v is not None and str(v).strip()]
        return items or None
    text = str(value).strip()
    return text or None


def build_fact_map(user_input: dict[str, Any]) -> dict[str, FactValue]:
    """Flatten collected answers into ``field -> str | list[str]``.

    Original keys are kept as-is; known aliases also populate their canonical
    field unless the canonical key was answered directly. Empty answers are dropped.
    """
    facts: dict[str, FactValue] = {}
    for key, raw in (user_input or {}).items():
        value = _normalize_value(raw)
        if value is None:
            continue
        facts[key] = value

    for key, value in list(facts.items()):
        canonical = _ALIAS_INDEX.get(key)
        if canonical and canonical not in facts:
            facts[canonical] = value
    return facts
