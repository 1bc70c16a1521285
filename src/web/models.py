"""Pydantic request/response schemas for the web API."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from shared_types import Intent

# --- Offers ---


class GenerateRequest(BaseModel):
    """Offer generation request. ``flow`` is accepted as an alias of ``intent``."""

    model_config = ConfigDict(populate_by_name=True)

    intent: Optional[Intent] = None
    flow: Optional[Intent] = None
    user_input: dict[str, Any] = Field(default_factory=dict, alias="userInput")
    offer: Optional[str] = None
    client_identifier: str = Field(..., min_length=1, alias="clientIdentifier")
    conversation_id: Optional[str] = Field(None, alias="conversationId")

    @model_validator(mode="after")
    def require_intent(self):
        if self.intent is None and self.flow is None:
            raise ValueError("intent (or flow) is required")
        if self.intent is None:
            self.intent = self.flow
        return self


class OfferSummary(BaseModel):
    type: str
    label: str
    description: str
    supportedIntents: list[str]
    required: list[str]
    optional: list[str]
    model: Optional[str] = None
    maxAttempts: int
    hasFallback: bool
    version: str
    category: str


# --- Stories ---


class AutoAssignRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    client_identifier: str = Field(..., min_length=1, alias="clientIdentifier")
    flows: list[Intent] = Field(default_factory=lambda: [Intent.BUY, Intent.SELL, Intent.BROWSE])
    save: bool = True


class AssignmentItem(BaseModel):
    flow: str
    phaseId: str
    phaseName: str
    stepId: str
    storyId: str
    storyTitle: str
    score: int


class AutoAssignResponse(BaseModel):
    success: bool = True
    assignments: list[AssignmentItem] = Field(default_factory=list)
    unassigned: dict[str, list[str]] = Field(default_factory=dict)
    saved: bool = False
