"""Model selection for pipeline calls."""

import logging

from maker.config import EngineConfig, PipelineRole, RoutingMode

logger = logging.getLogger(__name__)


def select_model(
    config: EngineConfig,
    role: PipelineRole,
    step: int = 0,
    attempt: int = 0,
    existing_selections: list[str] | None = None,
) -> str:
    """Select a model for one pipeline call using the configured router.

    Routing priority:
    1. If CUSTOM mode, call config.custom_router.select_model(...)
    2. Otherwise return config.model_name
    3. On router failure or an invalid answer, fall back to config.model_name

    Args:
        config: Engine configuration with routing settings
        role: Which component is calling
        step: Current step index (0-indexed)
        attempt: Attempt index within the step
        existing_selections: Models already selected for this step

    Returns:
        OpenRouter model ID string
    """
    if config.routing_mode != RoutingMode.CUSTOM or config.custom_router is None:
        return config.model_name

    try:
        selected = config.custom_router.select_model(
            role=role,
            step=step,
            attempt=attempt,
            existing_selections=list(existing_selections or []),
        )
    except Exception as e:
        logger.warning(
            f"Router.select_model() failed for role={role.value}, step={step}, "
            f"attempt={attempt}: {e}. Falling back to {config.model_name}."
        )
        return config.model_name

    if isinstance(selected, str) and selected.strip():
        return selected

    logger.warning(
        f"Router returned invalid model ID: {selected!r}. "
        f"Falling back to {config.model_name}."
    )
    return config.model_name
