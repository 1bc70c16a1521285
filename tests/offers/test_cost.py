"""Tests for token and cost estimation."""

import pytest

from offers.cost import calculate_cost, estimate_cost, estimate_tokens
from offers.types import OutputSchema, SchemaField


class TestCost:
    def test_estimate_tokens(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    def test_calculate_cost(self):
        # gpt-4o-mini: $0.15 in / $0.60 out per 1M tokens
        assert calculate_cost("gpt-4o-mini", 1_000_000, 1_000_000) == pytest.approx(0.75)

    def test_versioned_model_prices_like_base(self):
        assert calculate_cost("gpt-4o-mini-2024-07-18", 1000, 0) == calculate_cost("gpt-4o-mini", 1000, 0)
        assert calculate_cost("gpt-4o-2024-08-06", 1000, 0) == calculate_cost("gpt-4o", 1000, 0)

    def test_unknown_model_uses_default(self):
        assert calculate_cost("mystery-model", 1000, 1000) == calculate_cost("gpt-4o-mini", 1000, 1000)

    def test_estimate_cost(self):
        schema = OutputSchema("T", {"a": SchemaField("string"), "b": SchemaField("array")})
        estimate = estimate_cost("gpt-4o-mini", 60, {"email": "a@b.co"}, ["Shop three lenders"], schema)

        assert estimate.output_tokens == 60  # capped by max_tokens (2 fields x 50 = 100)
        assert estimate.input_tokens > 200
        assert estimate.total_tokens == estimate.input_tokens + estimate.output_tokens
        assert estimate.cost_usd == pytest.approx(
            calculate_cost("gpt-4o-mini", estimate.input_tokens, estimate.output_tokens)
        )
