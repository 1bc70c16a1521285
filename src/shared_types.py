"""Shared enums and types for realty-intake."""

from enum import StrEnum


class Intent(StrEnum):
    BUY = "buy"
    SELL = "sell"
    BROWSE = "browse"


class KnowledgeKind(StrEnum):
    STORY = "story"
    TIP = "tip"
    ADVICE = "advice"


class LogicOperator(StrEnum):
    AND = "AND"
    OR = "OR"


class MatchOperator(StrEnum):
    EQUALS = "equals"
    INCLUDES = "includes"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    BETWEEN = "between"


class ArtifactStatus(StrEnum):
    PENDING = "pending"
    BUILDING = "building"
    CALLING = "calling"
    VALIDATING = "validating"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FALLBACK = "fallback"
    FAILED = "failed"


class ProgressEventType(StrEnum):
    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"


class RetrievalSource(StrEnum):
    VECTOR = "vector"
    RULE = "rule"
