"""Candidate generator: parallel, temperature-varied attempts at one step."""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Optional

from maker.cancellation import CancelToken
from maker.config import EngineConfig, PipelineRole
from maker.errors import Cancelled, ServiceCallFailure
from maker.openrouter.client import ModelClient
from maker.pipeline.prompts import CANDIDATE_PROMPT, user_message
from maker.pipeline.quality import is_red_flag
from maker.pipeline.routing_helper import select_model
from maker.schemas import FAILURE_MARKER, Attachment, Candidate, GenerationResult
from maker.usage import Usage, UsageAccumulator

logger = logging.getLogger(__name__)


@dataclass
class _Attempt:
    """Result slot for one dispatched call. Written only by that call."""

    index: int
    temperature: float
    model: str
    text: Optional[str] = None
    usage: Optional[Usage] = None
    error: Optional[str] = None
    cancelled: bool = False


def sample_temperature(config: EngineConfig) -> float:
    """Base temperature plus random jitter, clamped to the service maximum."""
    jitter = random.uniform(0.0, config.temperature_jitter)
    return min(config.temperature + jitter, config.max_temperature)


def placeholder_candidate(step: str, attempts: int) -> Candidate:
    """Synthetic candidate used when every attempt was rejected."""
    return Candidate(
        text=f"{FAILURE_MARKER} No acceptable candidate after {attempts} attempts for step: {step}",
        temperature=0.0,
        failed=True,
    )


async def _run_attempt(
    attempt: _Attempt,
    messages: list[dict],
    client: ModelClient,
    config: EngineConfig,
    cancel_token: Optional[CancelToken],
) -> _Attempt:
    try:
        response = await client.complete(
            messages,
            model=attempt.model,
            sampling={"temperature": attempt.temperature},
            cancel_token=cancel_token,
            tools_enabled=config.tools_enabled,
        )
    except Cancelled as e:
        attempt.cancelled = True
        attempt.usage = e.usage
        return attempt
    except ServiceCallFailure as e:
        attempt.error = str(e)
        return attempt

    attempt.text = response.content
    attempt.usage = response.usage
    attempt.model = response.model_used
    return attempt


async def generate(
    step: str,
    context: str,
    client: ModelClient,
    config: EngineConfig,
    k: Optional[int] = None,
    attachments: Optional[list[Attachment]] = None,
    cancel_token: Optional[CancelToken] = None,
    step_index: int = 0,
) -> GenerationResult:
    """Generate up to ``k`` accepted candidates for one step.

    At most ``k - accepted`` calls are in flight at any time. Each rejected or
    failed attempt is replaced by a new call until ``k`` candidates pass the
    red-flag filter or the attempt budget (``retry_multiplier * k``) is spent.
    If the budget runs out with nothing accepted, a single placeholder
    candidate marked ``failed`` is returned so voting can still proceed.

    Once the cancel token fires no new call is dispatched; in-flight calls
    settle (or abort) and the usage gathered so far is returned with
    ``cancelled=True``.

    Args:
        step: The step to solve
        context: Original request plus results of completed steps
        client: Model service
        config: Engine configuration
        k: Accepted candidates wanted (defaults to config.voting_k)
        attachments: Files sent along with the task
        cancel_token: Session cancellation token
        step_index: Index of the step, passed to the router

    Returns:
        GenerationResult; candidates are ordered by dispatch order
    """
    k = k or config.voting_k
    budget = k * config.retry_multiplier
    messages = [
        {"role": "system", "content": config.system_prompt},
        user_message(CANDIDATE_PROMPT.format(context=context, step=step), attachments),
    ]

    accepted: list[_Attempt] = []
    usage = UsageAccumulator()
    red_flags = 0
    dispatched = 0
    selections: list[str] = []
    pending: set[asyncio.Task] = set()

    def cancelled() -> bool:
        return cancel_token is not None and cancel_token.cancelled

    def dispatch() -> None:
        nonlocal dispatched
        model = select_model(
            config,
            PipelineRole.SOLVER,
            step=step_index,
            attempt=dispatched,
            existing_selections=selections,
        )
        selections.append(model)
        attempt = _Attempt(
            index=dispatched, temperature=sample_temperature(config), model=model
        )
        pending.add(
            asyncio.create_task(_run_attempt(attempt, messages, client, config, cancel_token))
        )
        dispatched += 1

    try:
        while True:
            while not cancelled() and len(accepted) + len(pending) < k and dispatched < budget:
                dispatch()
            if not pending:
                break

            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                attempt = task.result()
                usage.add(attempt.usage)
                if attempt.cancelled:
                    continue
                if attempt.error is not None:
                    red_flags += 1
                    logger.warning(f"Candidate call {attempt.index} failed: {attempt.error}")
                elif is_red_flag(attempt.text, config.max_candidate_chars):
                    red_flags += 1
                    logger.warning(
                        f"Candidate {attempt.index} red-flagged for step {step!r} "
                        f"({len(attempt.text or '')} chars)"
                    )
                else:
                    accepted.append(attempt)
    finally:
        for task in pending:
            task.cancel()

    accepted.sort(key=lambda a: a.index)
    candidates = [
        Candidate(
            text=a.text or "",
            temperature=a.temperature,
            model=a.model,
            usage=a.usage or Usage(),
        )
        for a in accepted
    ]

    if cancelled():
        return GenerationResult(
            candidates=candidates,
            red_flags=red_flags,
            attempts=dispatched,
            usage=usage.total,
            cancelled=True,
        )

    if not candidates:
        logger.warning(
            f"Attempt budget of {budget} exhausted with no acceptable candidate "
            f"for step {step!r}"
        )
        candidates = [placeholder_candidate(step, dispatched)]

    return GenerationResult(
        candidates=candidates,
        red_flags=red_flags,
        attempts=dispatched,
        usage=usage.total,
    )
