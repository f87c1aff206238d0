"""Token and cost accounting across model calls."""

import logging
from typing import Any, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ModelPrice(BaseModel):
    """USD price per million tokens for one model."""

    prompt: float = Field(ge=0)
    completion: float = Field(ge=0)


# Example rates; override through EngineConfig.pricing
DEFAULT_PRICING: dict[str, ModelPrice] = {
    "anthropic/claude-sonnet-4": ModelPrice(prompt=3.0, completion=15.0),
    "anthropic/claude-opus-4": ModelPrice(prompt=15.0, completion=75.0),
    "openai/gpt-4o": ModelPrice(prompt=2.5, completion=10.0),
    "openai/gpt-4o-mini": ModelPrice(prompt=0.15, completion=0.6),
    "google/gemini-2.5-pro": ModelPrice(prompt=1.25, completion=10.0),
    "google/gemini-2.5-flash": ModelPrice(prompt=0.3, completion=2.5),
}


def estimate_cost(
    model: str,
    prompt_tokens: int,
    output_tokens: int,
    pricing: dict[str, ModelPrice],
) -> float:
    """Estimate USD cost of one call from the pricing table.

    Unknown models are priced at zero.
    """
    price = pricing.get(model)
    if price is None:
        logger.debug(f"No pricing for model {model!r}; cost estimated as 0")
        return 0.0
    return (prompt_tokens * price.prompt + output_tokens * price.completion) / 1_000_000


class Usage(BaseModel):
    """Tokens and estimated cost consumed by one or more model calls."""

    prompt_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    cost: float = Field(default=0.0, ge=0)
    calls: int = Field(default=0, ge=0)

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            cost=self.cost + other.cost,
            calls=self.calls + other.calls,
        )

    @classmethod
    def from_response(
        cls,
        data: Optional[dict[str, Any]],
        model: str,
        pricing: dict[str, ModelPrice],
    ) -> "Usage":
        """Build the usage of a single call from the service's usage block.

        Args:
            data: The ``usage`` object of a chat completion (may be missing)
            model: Model that served the call, used for price lookup
            pricing: Pricing table used when the service reports no cost

        Returns:
            Usage with ``calls == 1``
        """
        data = data or {}
        prompt_tokens = int(data.get("prompt_tokens") or 0)
        output_tokens = int(data.get("completion_tokens") or 0)
        total_tokens = int(data.get("total_tokens") or prompt_tokens + output_tokens)
        reported_cost = data.get("cost")
        if isinstance(reported_cost, (int, float)) and reported_cost >= 0:
            cost = float(reported_cost)
        else:
            cost = estimate_cost(model, prompt_tokens, output_tokens, pricing)
        return cls(
            prompt_tokens=prompt_tokens,
            output_tokens=output_tokens,
            total_tokens=total_tokens,
            cost=cost,
            calls=1,
        )


class UsageAccumulator:
    """Running usage total. Never decreases; every call is added exactly once."""

    def __init__(self, initial: Optional[Usage] = None):
        self._total = initial or Usage()

    @property
    def total(self) -> Usage:
        return self._total

    def add(self, usage: Optional[Usage]) -> Usage:
        """Add one contribution and return the new total."""
        if usage is not None:
            self._total = self._total + usage
        return self._total
