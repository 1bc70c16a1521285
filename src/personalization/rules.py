"""Recursive rule evaluation for knowledge-item applicability.

A rule tree is made of ``ConditionRule`` leaves and ``RuleGroup`` nodes. The
single entry point is :func:`evaluate`, which walks the tree against a flat
fact map and returns whether it matched and with what weighted score.

Evaluation is total: a missing fact, a malformed value or an empty group makes
the owning node non-matching, it never raises.
"""

import math
from dataclasses import dataclass
from typing import Annotated, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag
from pydantic.alias_generators import to_camel

from shared_types import LogicOperator, MatchOperator

FactValue = Union[str, list[str]]
Facts = Mapping[str, FactValue]

# Score granted to an item with no rule groups (applies to everyone in the flow)
UNIVERSAL_SCORE = 1.0


class ConditionRule(BaseModel):
    """Leaf: compare one fact against a value."""

    model_config = ConfigDict(frozen=True)

    field: str
    operator: MatchOperator
    value: Union[str, list[str]]
    weight: Optional[float] = None


def _node_kind(node) -> str:
    if isinstance(node, dict):
        return "group" if "logic" in node else "condition"
    return "group" if isinstance(node, RuleGroup) else "condition"


RuleNode = Annotated[
    Union[
        Annotated[ConditionRule, Tag("condition")],
        Annotated["RuleGroup", Tag("group")],
    ],
    Discriminator(_node_kind),
]


class RuleGroup(BaseModel):
    """Internal node: AND/OR over child rules or groups."""

    model_config = ConfigDict(frozen=True)

    logic: LogicOperator = LogicOperator.AND
    rules: list[RuleNode] = Field(default_factory=list)


RuleGroup.model_rebuild()


class ApplicableWhen(BaseModel):
    """Applicability block attached to a knowledge item.

    ``rule_groups`` is a disjunction: the item applies when any group matches
    and the accumulated score of the matching groups reaches ``min_match_score``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    flow: Optional[list[str]] = None
    rule_groups: Optional[list[RuleGroup]] = None
    min_match_score: float = 0.0


@dataclass(frozen=True)
class RuleResult:
    matched: bool
    score: float


@dataclass(frozen=True)
class Applicability:
    applicable: bool
    score: float
    reason: str


NO_MATCH = RuleResult(matched=False, score=0.0)


def _to_number(raw) -> Optional[float]:
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, (int, float)):
        number = float(raw)
    else:
        text = str(raw).strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _equals(fact: FactValue, value) -> bool:
    if isinstance(value, list):
        return False
    if isinstance(fact, list):
        return len(fact) == 1 and fact[0] == value
    return fact == value


def _includes(fact: FactValue, value) -> bool:
    if isinstance(value, list):
        # Membership: the fact (or any element of it) is one of the listed values
        if isinstance(fact, list):
            return any(f in value for f in fact)
        return fact in value
    if isinstance(fact, list):
        return value in fact
    return value in fact


def _compare(fact: FactValue, value, op: MatchOperator) -> bool:
    if isinstance(fact, list) or isinstance(value, list):
        return False
    left = _to_number(fact)
    right = _to_number(value)
    if left is None or right is None:
        return False
    return left > right if op == MatchOperator.GREATER_THAN else left < right


def _between(fact: FactValue, value) -> bool:
    if isinstance(fact, list) or not isinstance(value, list) or len(value) != 2:
        return False
    number = _to_number(fact)
    low = _to_number(value[0])
    high = _to_number(value[1])
    if number is None or low is None or high is None:
        return False
    return low <= number <= high


def _is_missing(fact) -> bool:
    if fact is None:
        return True
    if isinstance(fact, str):
        return fact == ""
    if isinstance(fact, list):
        return len(fact) == 0
    return False


def _condition_matches(rule: ConditionRule, fact: FactValue) -> bool:
    op = rule.operator
    if op == MatchOperator.EQUALS:
        return _equals(fact, rule.value)
    if op == MatchOperator.NOT_EQUALS:
        return not _equals(fact, rule.value)
    if op == MatchOperator.INCLUDES:
        return _includes(fact, rule.value)
    if op in (MatchOperator.GREATER_THAN, MatchOperator.LESS_THAN):
        return _compare(fact, rule.value, op)
    if op == MatchOperator.BETWEEN:
        return _between(fact, rule.value)
    return False


def _evaluate_condition(rule: ConditionRule, facts: Facts) -> RuleResult:
    fact = facts.get(rule.field)
    if _is_missing(fact):
        return NO_MATCH
    if not _condition_matches(rule, fact):
        return NO_MATCH
    return RuleResult(matched=True, score=rule.weight if rule.weight is not None else 1.0)


def _evaluate_group(group: RuleGroup, facts: Facts) -> RuleResult:
    if not group.rules:
        return NO_MATCH

    results = [evaluate(child, facts) for child in group.rules]

    if group.logic == LogicOperator.AND:
        if all(r.matched for r in results):
            return RuleResult(matched=True, score=sum(r.score for r in results))
        return NO_MATCH

    matching = [r for r in results if r.matched]
    if not matching:
        return NO_MATCH
    return RuleResult(matched=True, score=sum(r.score for r in matching))


def evaluate(node: Union[ConditionRule, RuleGroup], facts: Facts) -> RuleResult:
    """Evaluate a rule node against a fact map."""
    if isinstance(node, RuleGroup):
        return _evaluate_group(node, facts)
    return _evaluate_condition(node, facts)


def evaluate_applicability(
    when: Optional[ApplicableWhen],
    flow: str,
    facts: Facts,
) -> Applicability:
    """Decide whether an item applies in ``flow`` for these facts, and how strongly."""
    if when is None:
        return Applicability(True, UNIVERSAL_SCORE, "Universal advice")

    if when.flow and flow not in when.flow:
        return Applicability(False, 0.0, f"Flow mismatch: item is for {', '.join(when.flow)}")

    if not when.rule_groups:
        return Applicability(True, UNIVERSAL_SCORE, "Universal advice")

    result = evaluate(RuleGroup(logic=LogicOperator.OR, rules=list(when.rule_groups)), facts)
    if not result.matched:
        return Applicability(False, 0.0, "No rule group matched")

    if result.score < when.min_match_score:
        return Applicability(
            False,
            result.score,
            f"Match score {result.score:g} below threshold {when.min_match_score:g}",
        )
    return Applicability(True, result.score, f"Rules matched with score {result.score:g}")


def iter_conditions(node: Union[ConditionRule, RuleGroup]):
    """Yield every ConditionRule leaf in a tree, depth first."""
    if isinstance(node, RuleGroup):
        for child in node.rules:
            yield from iter_conditions(child)
    else:
        yield node


def validate_rule_fields(node: Union[ConditionRule, RuleGroup], known_fields) -> list[str]:
    """Return field ids referenced by the tree that are not in ``known_fields``."""
    unknown: list[str] = []
    for cond in iter_conditions(node):
        if cond.field not in known_fields and cond.field not in unknown:
            unknown.append(cond.field)
    return unknown


def validate_rule_tree(
    node: Union[ConditionRule, RuleGroup],
    known_fields: Optional[set[str]] = None,
) -> list[str]:
    """Return configuration problems in a rule tree (empty list when clean).

    Meant for configuration-save time; evaluation itself never needs it.
    """
    problems: list[str] = []

    def _walk(n, path: str) -> None:
        if isinstance(n, RuleGroup):
            if not n.rules:
                problems.append(f"{path}: group has no rules")
            for i, child in enumerate(n.rules):
                _walk(child, f"{path}.rules[{i}]")
            return

        if known_fields is not None and n.field not in known_fields:
            problems.append(f"{path}: unknown field '{n.field}'")
        if n.operator == MatchOperator.BETWEEN:
            if not isinstance(n.value, list) or len(n.value) != 2:
                problems.append(f"{path}: between needs a [min, max] pair")
            elif any(_to_number(v) is None for v in n.value):
                problems.append(f"{path}: between bounds must be numeric")
        elif n.operator in (MatchOperator.GREATER_THAN, MatchOperator.LESS_THAN):
            if isinstance(n.value, list) or _to_number(n.value) is None:
                problems.append(f"{path}: {n.operator.value} needs a numeric value")

    _walk(node, "root")
    return problems
