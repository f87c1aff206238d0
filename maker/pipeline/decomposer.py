"""Step decomposer: one task in, an ordered plan of atomic steps out."""

import logging
from typing import Any, Optional

from maker.cancellation import CancelToken
from maker.config import EngineConfig, PipelineRole
from maker.errors import Cancelled, SchemaParseFailure
from maker.openrouter.client import ModelClient
from maker.pipeline.parsing import parse_json_response
from maker.pipeline.prompts import DECOMPOSITION_PROMPT, PLAN_SCHEMA, user_message
from maker.pipeline.routing_helper import select_model
from maker.schemas import Attachment, DecompositionResult

logger = logging.getLogger(__name__)


def _extract_steps(data: Any) -> list[str]:
    """Pull the step list out of a decoded plan.

    Accepts ``{"steps": [...]}`` or a bare array of strings.

    Raises:
        SchemaParseFailure: If the value is not a non-empty list of strings
    """
    if isinstance(data, dict):
        data = data.get("steps")
    if not isinstance(data, list):
        raise SchemaParseFailure(f"Plan is not a list of steps: {type(data).__name__}")
    if not all(isinstance(step, str) for step in data):
        raise SchemaParseFailure("Plan contains non-string steps")

    steps = [step.strip() for step in data if step.strip()]
    if not steps:
        raise SchemaParseFailure("Plan is empty")
    return steps


async def decompose(
    task: str,
    client: ModelClient,
    config: EngineConfig,
    attachments: Optional[list[Attachment]] = None,
    cancel_token: Optional[CancelToken] = None,
) -> DecompositionResult:
    """Decompose a task into sequential atomic steps with one model call.

    Malformed output is recovered by falling back to a single-step plan
    holding the original task. Plans longer than ``config.max_steps`` are
    truncated.

    Args:
        task: Operator's free-text request
        client: Model service
        config: Engine configuration
        attachments: Files sent along with the task
        cancel_token: Session cancellation token

    Returns:
        DecompositionResult with a non-empty plan and the usage of the call

    Raises:
        Cancelled: If the token is signalled before or during the call
        ServiceCallFailure: If the model service fails
    """
    if cancel_token is not None:
        cancel_token.raise_if_cancelled()

    messages = [
        {"role": "system", "content": config.system_prompt},
        user_message(DECOMPOSITION_PROMPT.format(task=task), attachments),
    ]
    response = await client.complete(
        messages,
        model=select_model(config, PipelineRole.PLANNER),
        response_schema=PLAN_SCHEMA,
        cancel_token=cancel_token,
    )

    if cancel_token is not None and cancel_token.cancelled:
        raise Cancelled(cancel_token.reason, usage=response.usage)

    try:
        plan = _extract_steps(parse_json_response(response.content))
    except SchemaParseFailure as e:
        logger.warning(f"Decomposition unusable ({e}); falling back to single-step plan")
        return DecompositionResult(plan=[task], usage=response.usage, fallback=True)

    if len(plan) > config.max_steps:
        logger.info(f"Plan has {len(plan)} steps; truncating to {config.max_steps}")
        plan = plan[: config.max_steps]

    return DecompositionResult(plan=plan, usage=response.usage)
