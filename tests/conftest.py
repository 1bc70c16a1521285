"""Shared test fixtures for realty-intake."""

import copy
import json
import os
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Wide terminal so rich tables in CLI output are not truncated under CliRunner
os.environ.setdefault("COLUMNS", "200")

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from llm.base import Completion, LLMError, Usage  # noqa: E402
from observability import metrics  # noqa: E402


def make_completion(content, model="gpt-4o-mini", input_tokens=120, output_tokens=80) -> Completion:
    if isinstance(content, dict):
        content = json.dumps(content)
    return Completion(
        content=content,
        usage=Usage(input_tokens=input_tokens, output_tokens=output_tokens),
        model=model,
    )


LANDING_PAGE_RESPONSE = {
    "hero": {"title": "Welcome Home", "subtitle": "Your next move", "ctaText": "Start"},
    "summary": {"title": "Overview", "content": "A plan for buying in Austin."},
    "insights": [{"title": "Rates", "description": "Rates eased this quarter", "icon": "TrendingUp"}],
    "recommendations": [
        {"title": "Tour homes", "description": "Book three showings", "priority": "low"},
        {"title": "Get pre-approved", "description": "Talk to two lenders", "priority": "high"},
        {"title": "Set a budget", "description": "Cap monthly payment", "priority": "medium"},
        {"title": "Check schools", "description": "Compare ratings", "priority": "high"},
    ],
}


@pytest.fixture
def landing_page_response():
    return copy.deepcopy(LANDING_PAGE_RESPONSE)


@pytest.fixture
def completion():
    """Factory for canned provider completions."""
    return make_completion


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def mock_llm():
    """LLM provider stub returning a valid landing page."""
    llm = MagicMock()
    llm.complete.return_value = make_completion(LANDING_PAGE_RESPONSE)
    llm.embed.return_value = [0.1, 0.2, 0.3]
    return llm


@pytest.fixture
def failing_llm():
    llm = MagicMock()
    llm.complete.side_effect = LLMError("upstream timeout")
    return llm


@pytest.fixture
def no_sleep():
    return lambda seconds: None


@pytest.fixture
def tenant_store(tmp_path):
    from web.tenant_store import TenantStore

    return TenantStore(tmp_path / "realty.db")


@pytest.fixture
def story_payloads():
    """Stored payloads for a small buy-flow story collection."""
    from personalization.models import KnowledgeItem

    items = [
        KnowledgeItem(
            id="story-closing-a",
            title="Keys on a rainy Friday",
            situation="Closing was delayed by the title company",
            action="We pushed escrow to sign remotely",
            outcome="Buyer got the keys the same day",
            tags=["closing"],
            flows=["buy"],
            kind="story",
            placements={"real-estate-timeline": ["closing"]},
            updated_at="2024-03-01T00:00:00+00:00",
        ),
        KnowledgeItem(
            id="story-closing-b",
            title="Final walkthrough surprise",
            situation="The final walkthrough found a broken heater",
            action="Negotiated a closing credit",
            outcome="Closed on time",
            tags=["closing"],
            flows=["buy"],
            kind="story",
            placements={"real-estate-timeline": ["closing"]},
            updated_at="2024-02-01T00:00:00+00:00",
        ),
        KnowledgeItem(
            id="story-credit",
            title="Fixing credit before pre-approval",
            situation="First-time buyer with a thin credit file and a tight budget",
            action="Paid down a card and waited for the credit score update before the mortgage application",
            outcome="Pre-approved at a better rate",
            tags=["credit", "budget"],
            flows=["buy"],
            kind="story",
            updated_at="2024-01-15T00:00:00+00:00",
        ),
    ]
    return {item.id: item.to_payload() for item in items}
