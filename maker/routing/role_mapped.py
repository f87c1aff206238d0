"""RoleMappedRouter: map pipeline roles to explicit model lists."""

from maker.config import AUTO_MODEL, PipelineRole
from maker.routing.pool import validate_pool


class RoleMappedRouter:
    """Map each pipeline role to an ordered list of models.

    Solver attempts rotate through the role's list so retries land on a
    different model; planner and judge always get the first entry.
    """

    def __init__(
        self,
        role_models: dict[PipelineRole, list[str]],
        default: str = AUTO_MODEL,
    ):
        """Initialize the role mapped router.

        Args:
            role_models: Dict mapping PipelineRole to ordered list of model IDs.
                Example:
                {
                    PipelineRole.PLANNER: ["anthropic/claude-opus-4"],
                    PipelineRole.SOLVER: ["openai/gpt-4o-mini", "google/gemini-2.5-flash"],
                    PipelineRole.JUDGE: ["anthropic/claude-sonnet-4"],
                }
            default: Model for roles missing from role_models.
        """
        self.role_models = {
            role: validate_pool(models) for role, models in role_models.items() if models
        }
        self.default = default

    def select_model(
        self,
        role: PipelineRole,
        step: int,
        attempt: int,
        existing_selections: list[str],
    ) -> str:
        models = self.role_models.get(role)
        if not models:
            return self.default
        if role == PipelineRole.SOLVER:
            return models[attempt % len(models)]
        return models[0]
