"""Knowledge items and timeline structures."""

import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from personalization.rules import ApplicableWhen
from shared_types import KnowledgeKind

NARRATIVE_FIELDS = ("title", "situation", "action", "outcome", "advice")


class KnowledgeItem(BaseModel):
    """A reusable story, tip or piece of advice owned by a tenant collection."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str = ""
    situation: str = ""
    action: str = ""
    outcome: str = ""
    advice: str = ""
    tags: list[str] = Field(default_factory=list)
    flows: list[str] = Field(default_factory=list)
    kind: KnowledgeKind = KnowledgeKind.ADVICE
    category: Optional[str] = None
    applicable_when: Optional[ApplicableWhen] = None
    # offer type -> phase ids the author pinned this item to
    placements: dict[str, list[str]] = Field(default_factory=dict)
    usage_count: int = 0
    active: bool = True
    updated_at: Optional[str] = None

    def narrative_text(self) -> str:
        """Concatenate narrative fields into one lower-cased search string."""
        return " ".join(getattr(self, f) for f in NARRATIVE_FIELDS if getattr(self, f)).lower()

    def document(self) -> str:
        """Text embedded and stored as the vector-store document."""
        parts = [self.title, self.situation, self.action, self.outcome, self.advice]
        return "\n".join(p for p in parts if p)

    def to_payload(self) -> dict[str, Any]:
        """Flatten into a vector-store payload (scalar values only)."""
        return {
            "title": self.title,
            "situation": self.situation,
            "action": self.action,
            "outcome": self.outcome,
            "advice": self.advice,
            "tags": ",".join(self.tags),
            "flows": ",".join(self.flows),
            "kind": self.kind.value,
            "category": self.category or "",
            "applicable_when": (
                self.applicable_when.model_dump_json(by_alias=True, exclude_none=True)
                if self.applicable_when
                else ""
            ),
            "placements": json.dumps(self.placements) if self.placements else "",
            "usage_count": self.usage_count,
            "active": self.active,
            "updated_at": self.updated_at or "",
        }

    @classmethod
    def from_payload(cls, item_id: str, payload: dict[str, Any]) -> "KnowledgeItem":
        """Rebuild an item from a stored payload (inverse of ``to_payload``)."""

        def _split(raw) -> list[str]:
            if isinstance(raw, list):
                return [str(x) for x in raw]
            return [x.strip() for x in str(raw or "").split(",") if x.strip()]

        applicable = payload.get("applicable_when") or None
        if isinstance(applicable, str):
            applicable = json.loads(applicable)
        placements = payload.get("placements") or {}
        if isinstance(placements, str):
            placements = json.loads(placements)

        return cls(
            id=item_id,
            title=payload.get("title") or "",
            situation=payload.get("situation") or "",
            action=payload.get("action") or "",
            outcome=payload.get("outcome") or "",
            advice=payload.get("advice") or "",
            tags=_split(payload.get("tags")),
            flows=_split(payload.get("flows")),
            kind=payload.get("kind") or KnowledgeKind.ADVICE,
            category=payload.get("category") or None,
            applicable_when=applicable,
            placements=placements,
            usage_count=int(payload.get("usage_count") or 0),
            active=bool(payload.get("active", True)),
            updated_at=payload.get("updated_at") or None,
        )


class ActionableStep(BaseModel):
    """One step of a timeline phase.

    A step is either linked to a knowledge item or carries inline text.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str
    priority: str = "medium"
    linked_story_id: Optional[str] = None
    inline_experience: Optional[str] = None

    @model_validator(mode="after")
    def check_link_or_inline(self):
        if self.linked_story_id and self.inline_experience:
            raise ValueError(f"Step {self.id} cannot carry both a linked story and inline text")
        return self

    @property
    def is_open(self) -> bool:
        return not self.linked_story_id and not self.inline_experience


class TimelinePhase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    description: str = ""
    timeline: str = ""
    order: int = 0
    optional: bool = False
    steps: list[ActionableStep] = Field(default_factory=list)


class TenantConfig(BaseModel):
    """Per-tenant configuration document."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    slug: str
    business_name: str = ""
    offers: list[str] = Field(default_factory=list)
    # vector collection; defaults to "<prefix><id>"
    collection: Optional[str] = None
    # flow -> configured timeline phases
    phases: dict[str, list[TimelinePhase]] = Field(default_factory=dict)
    is_active: bool = True

    def collection_name(self, prefix: str = "") -> str:
        return self.collection or f"{prefix}{self.id}"
