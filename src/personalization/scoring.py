"""Heuristic story-to-phase scoring and assignment.

Used where no applicability rules were authored: narrative knowledge items are
matched to timeline phases by explicit placement, tag overlap and keyword
overlap with the narrative text.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

import structlog

from personalization.models import KnowledgeItem, TimelinePhase

logger = structlog.get_logger()

TIMELINE_OFFER = "real-estate-timeline"

# Titles of seeded demo stories that must never be linked to a real timeline
SAMPLE_STORY_TITLES = frozenset(
    {
        "First-Time Buyer Success in Competitive Market",
        "Navigating Inspection Issues",
        "Relocating Family Finds Home Remotely",
        "Downsizing Empty Nesters",
        "Investment Property Win",
        "Closing Day Save",
    }
)

_CLOSING = ["closing", "settlement", "title", "escrow", "keys", "final walkthrough", "moving"]
_UNDER_CONTRACT = ["inspection", "appraisal", "contingency", "repairs", "negotiate", "due diligence"]

PHASE_KEYWORDS: dict[str, list[str]] = {
    # buy
    "financial-prep": [
        "mortgage", "pre-approval", "budget", "financing", "loan",
        "credit", "down payment", "savings", "afford",
    ],
    "find-agent": ["agent", "realtor", "representation", "interview", "hire"],
    "house-hunting": [
        "search", "viewing", "tour", "showing", "open house",
        "listings", "neighborhood", "schools",
    ],
    "make-offer": ["offer", "negotiate", "bid", "contract", "terms", "contingency", "competitive"],
    "under-contract": _UNDER_CONTRACT,
    "closing": _CLOSING,
    "post-closing": ["move", "settle", "utilities", "address change"],
    # sell
    "home-prep": ["staging", "repairs", "declutter", "photography", "curb appeal", "prepare"],
    "set-price": ["price", "pricing", "valuation", "comparable", "market analysis"],
    "list-property": ["listing", "mls", "marketing", "showings", "open house", "price"],
    "marketing-showings": ["marketing", "showings", "open house", "feedback"],
    "review-offers": ["offers", "multiple offers", "negotiate", "counter", "terms"],
    "under-contract-sell": _UNDER_CONTRACT,
    "closing-sell": _CLOSING,
    # browse
    "understand-options": ["rent", "options", "goals", "market conditions"],
    "financial-education": ["mortgage", "credit", "down payment", "loan", "first-time"],
    "market-research": ["neighborhood", "schools", "trends", "inventory", "open house"],
    "decision-time": ["decision", "pre-qualified", "ready", "timeline"],
    "next-steps": ["investment", "alerts", "next step"],
}


@dataclass(frozen=True)
class ScoringWeights:
    """Bonus magnitudes; tunable through the ``scoring`` config section."""

    explicit_placement_bonus: int = 100
    tag_match_bonus: int = 10
    content_match_bonus: int = 5


@dataclass
class Assignment:
    flow: str
    phase_id: str
    phase_name: str
    step_id: str
    item_id: str
    item_title: str
    score: int


@dataclass
class AssignmentResult:
    flow: str
    phases: list[TimelinePhase]
    assignments: list[Assignment] = field(default_factory=list)
    unassigned: list[str] = field(default_factory=list)


def score_item_for_phase(
    item: KnowledgeItem,
    phase_id: str,
    weights: ScoringWeights = ScoringWeights(),
    keywords: Optional[Iterable[str]] = None,
    offer_type: str = TIMELINE_OFFER,
) -> int:
    """Relevance of ``item`` to ``phase_id``. Zero means "not a candidate"."""
    score = 0
    if phase_id in item.placements.get(offer_type, []):
        score += weights.explicit_placement_bonus

    phase_keywords = [k.lower() for k in (keywords if keywords is not None else PHASE_KEYWORDS.get(phase_id, []))]

    for tag in item.tags:
        tag_lower = tag.lower()
        if not tag_lower:
            continue
        for keyword in phase_keywords:
            if keyword in tag_lower or tag_lower in keyword:
                score += weights.tag_match_bonus

    content = item.narrative_text()
    for keyword in phase_keywords:
        if keyword in content:
            score += weights.content_match_bonus

    return score


def eligible_for_flow(item: KnowledgeItem, flow: str) -> bool:
    if not item.active:
        return False
    if item.title in SAMPLE_STORY_TITLES:
        return False
    if not (item.title or item.situation or item.advice):
        return False
    return not item.flows or flow in item.flows


def assign_items_to_phases(
    flow: str,
    phases: list[TimelinePhase],
    items: list[KnowledgeItem],
    weights: ScoringWeights = ScoringWeights(),
) -> AssignmentResult:
    """Link at most one item per phase, never reusing an item within the flow.

    Phases are visited in the given order. Each takes the highest-scoring
    unassigned item (ties keep input order) and links it to the first open
    step. Returns copies; the input phases are left untouched.
    """
    updated = [phase.model_copy(deep=True) for phase in phases]
    candidates = [item for item in items if eligible_for_flow(item, flow)]
    # Items already linked in the incoming phases count as consumed
    consumed = {step.linked_story_id for phase in updated for step in phase.steps if step.linked_story_id}
    result = AssignmentResult(flow=flow, phases=updated)

    for phase in updated:
        open_step = next((s for s in phase.steps if s.is_open), None)
        if open_step is None:
            continue

        best: Optional[KnowledgeItem] = None
        best_score = 0
        for item in candidates:
            if item.id in consumed:
                continue
            score = score_item_for_phase(item, phase.id, weights)
            if score > best_score:
                best, best_score = item, score

        if best is None:
            continue

        open_step.linked_story_id = best.id
        consumed.add(best.id)
        result.assignments.append(
            Assignment(
                flow=flow,
                phase_id=phase.id,
                phase_name=phase.name,
                step_id=open_step.id,
                item_id=best.id,
                item_title=best.title or "Untitled Story",
                score=best_score,
            )
        )

    result.unassigned = [item.id for item in candidates if item.id not in consumed]
    logger.info(
        "stories.assigned",
        flow=flow,
        candidates=len(candidates),
        assigned=len(result.assignments),
    )
    return result
