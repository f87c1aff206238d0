"""Tests for usage accounting."""

import pytest
from pydantic import ValidationError

from maker.usage import ModelPrice, Usage, UsageAccumulator, estimate_cost

PRICING = {"openai/gpt-4o": ModelPrice(prompt=2.0, completion=10.0)}


class TestUsage:
    """Tests for Usage construction and arithmetic."""

    def test_from_response_prefers_reported_cost(self):
        """A cost reported by the service is used verbatim."""
        usage = Usage.from_response(
            {"prompt_tokens": 100, "completion_tokens": 20, "total_tokens": 120, "cost": 0.5},
            "openai/gpt-4o",
            PRICING,
        )
        assert usage.prompt_tokens == 100
        assert usage.output_tokens == 20
        assert usage.total_tokens == 120
        assert usage.cost == 0.5
        assert usage.calls == 1

    def test_from_response_estimates_cost(self):
        """Without a reported cost, the pricing table is applied."""
        usage = Usage.from_response(
            {"prompt_tokens": 1_000_000, "completion_tokens": 100_000},
            "openai/gpt-4o",
            PRICING,
        )
        assert usage.total_tokens == 1_100_000
        assert usage.cost == pytest.approx(3.0)

    def test_from_response_missing_block(self):
        """A response without usage still counts as one call."""
        usage = Usage.from_response(None, "openai/gpt-4o", PRICING)
        assert usage.total_tokens == 0
        assert usage.calls == 1

    def test_unknown_model_costs_zero(self):
        """Models missing from the pricing table are priced at zero."""
        assert estimate_cost("someone/unknown", 1000, 1000, PRICING) == 0.0

    def test_addition(self):
        """Adding usages sums every field."""
        a = Usage(prompt_tokens=1, output_tokens=2, total_tokens=3, cost=0.1, calls=1)
        b = Usage(prompt_tokens=10, output_tokens=20, total_tokens=30, cost=0.2, calls=2)
        total = a + b
        assert (total.prompt_tokens, total.output_tokens, total.total_tokens) == (11, 22, 33)
        assert total.cost == pytest.approx(0.3)
        assert total.calls == 3

    def test_negative_rejected(self):
        """Negative counts cannot be constructed, keeping totals monotonic."""
        with pytest.raises(ValidationError):
            Usage(prompt_tokens=-1)


class TestUsageAccumulator:
    """Tests for UsageAccumulator."""

    def test_sums_every_contribution(self):
        """The total is the exact sum of N known contributions."""
        accumulator = UsageAccumulator()
        for i in range(1, 6):
            accumulator.add(Usage(prompt_tokens=i, output_tokens=i, total_tokens=2 * i, cost=0.01, calls=1))
        assert accumulator.total.prompt_tokens == 15
        assert accumulator.total.total_tokens == 30
        assert accumulator.total.calls == 5
        assert accumulator.total.cost == pytest.approx(0.05)

    def test_none_is_ignored(self):
        """Adding None leaves the total unchanged."""
        accumulator = UsageAccumulator(Usage(prompt_tokens=3, calls=1))
        assert accumulator.add(None).prompt_tokens == 3
