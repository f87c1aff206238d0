"""DiversityRouter: cap how many of a step's candidates share a vendor."""

import random

from maker.config import AUTO_MODEL, PipelineRole
from maker.routing.pool import validate_pool


def extract_vendor(model_id: str) -> str:
    """Vendor prefix of an OpenRouter model ID.

    Examples:
        "anthropic/claude-opus-4" -> "anthropic"
        "openrouter/auto" -> "openrouter"
        "some-model" -> "unknown"
    """
    vendor, sep, _ = model_id.partition("/")
    return vendor if sep else "unknown"


def vendor_counts(selections: list[str]) -> dict[str, int]:
    """Number of selected models per vendor."""
    counts: dict[str, int] = {}
    for model in selections:
        vendor = extract_vendor(model)
        counts[vendor] = counts.get(vendor, 0) + 1
    return counts


class DiversityRouter:
    """Pick solver models at random while capping each vendor per step.

    Keeps one vendor's blind spots from dominating the vote. With
    ``max_per_vendor=2`` no more than two of a step's candidate attempts
    come from, say, "anthropic". Once every vendor is at its cap the
    attempt goes to ``openrouter/auto``. Planner and judge calls take the
    first pool entry.
    """

    def __init__(self, model_pool: list[str], max_per_vendor: int = 2):
        """Initialize the diversity router.

        Args:
            model_pool: OpenRouter model IDs.
            max_per_vendor: Max attempts per vendor within one step.
        """
        if max_per_vendor < 1:
            raise ValueError("max_per_vendor must be at least 1")
        self.model_pool = validate_pool(model_pool)
        self.max_per_vendor = max_per_vendor

    def select_model(
        self,
        role: PipelineRole,
        step: int,
        attempt: int,
        existing_selections: list[str],
    ) -> str:
        if role != PipelineRole.SOLVER:
            return self.model_pool[0]

        counts = vendor_counts(existing_selections)
        open_models = [
            model
            for model in self.model_pool
            if counts.get(extract_vendor(model), 0) < self.max_per_vendor
        ]
        if not open_models:
            return AUTO_MODEL
        return random.choice(open_models)
