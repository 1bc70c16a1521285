"""Rule evaluation and heuristic scoring for knowledge personalization."""

from .rules import (
    ApplicableWhen,
    Applicability,
    ConditionRule,
    RuleGroup,
    RuleResult,
    evaluate,
    evaluate_applicability,
)
from .scoring import ScoringWeights, assign_items_to_phases, score_item_for_phase

__all__ = [
    "ApplicableWhen",
    "Applicability",
    "ConditionRule",
    "RuleGroup",
    "RuleResult",
    "ScoringWeights",
    "assign_items_to_phases",
    "evaluate",
    "evaluate_applicability",
    "score_item_for_phase",
]
