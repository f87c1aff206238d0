"""PoolRouter: rotate solver attempts through a model pool."""

import random

from maker.config import PipelineRole


def validate_pool(model_pool: list[str]) -> list[str]:
    """Return a copy of model_pool, rejecting empty pools and blank IDs."""
    if not model_pool:
        raise ValueError("model_pool cannot be empty")
    blank = [model for model in model_pool if not isinstance(model, str) or not model.strip()]
    if blank:
        raise ValueError(f"model_pool contains invalid model IDs: {blank!r}")
    return list(model_pool)


class PoolRouter:
    """Spread a step's candidate attempts over a pool of models.

    Attempt ``n`` of step ``s`` gets ``pool[(s + n) % len(pool)]``. The K
    parallel attempts of a step therefore land on distinct models whenever
    the pool holds at least K entries, replacement attempts continue the
    rotation, and consecutive steps start one model further along.

    Planner and judge calls always go to ``anchor`` (the first pool entry
    unless given), so the plan and the verdicts come from one model.
    """

    def __init__(self, model_pool: list[str], anchor: str | None = None, shuffle: bool = False):
        """Initialize the pool router.

        Args:
            model_pool: OpenRouter model IDs to rotate through.
            anchor: Model for planner and judge calls.
            shuffle: Randomize the rotation order once, at construction.
        """
        pool = validate_pool(model_pool)
        if shuffle:
            random.shuffle(pool)
        self.model_pool = pool
        self.anchor = anchor or model_pool[0]

    def select_model(
        self,
        role: PipelineRole,
        step: int,
        attempt: int,
        existing_selections: list[str],
    ) -> str:
        if role != PipelineRole.SOLVER:
            return self.anchor
        return self.model_pool[(step + attempt) % len(self.model_pool)]
