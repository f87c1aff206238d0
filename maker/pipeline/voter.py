"""Consensus voter: an automated judge picks one winning candidate."""

import logging
from typing import Any, Optional

from maker.cancellation import CancelToken
from maker.config import EngineConfig, PipelineRole
from maker.errors import Cancelled, SchemaParseFailure
from maker.openrouter.client import ModelClient
from maker.pipeline.parsing import parse_json_response
from maker.pipeline.prompts import VOTE_SCHEMA, VOTING_PROMPT, format_candidates
from maker.pipeline.routing_helper import select_model
from maker.schemas import Candidate, VoteResult

logger = logging.getLogger(__name__)

FALLBACK_REASON = "Fallback: judge response was unusable, defaulting to the first candidate"


def _read_vote(data: Any, candidate_count: int) -> tuple[int, str]:
    """Validate a decoded judge answer.

    Raises:
        SchemaParseFailure: If bestIndex is missing, non-numeric or out of range
    """
    if not isinstance(data, dict):
        raise SchemaParseFailure("Vote is not an object")

    index = data.get("bestIndex")
    # bool is an int subclass; reject it explicitly
    if isinstance(index, bool) or not isinstance(index, (int, float)):
        raise SchemaParseFailure(f"bestIndex is not numeric: {index!r}")
    if isinstance(index, float):
        if not index.is_integer():
            raise SchemaParseFailure(f"bestIndex is not an integer: {index!r}")
        index = int(index)
    if not 0 <= index < candidate_count:
        raise SchemaParseFailure(
            f"bestIndex {index} out of range for {candidate_count} candidates"
        )

    reason = data.get("reason")
    return index, reason if isinstance(reason, str) else ""


async def vote(
    step: str,
    candidates: list[Candidate],
    client: ModelClient,
    config: EngineConfig,
    cancel_token: Optional[CancelToken] = None,
    step_index: int = 0,
) -> VoteResult:
    """Ask the judge model for the best candidate's index.

    Single-winner semantics: the judge's index is authoritative and ties are
    not detected. Any unusable answer falls back to index 0.

    Args:
        step: The step being evaluated
        candidates: Accepted candidates (at least one)
        client: Model service
        config: Engine configuration
        cancel_token: Session cancellation token
        step_index: Index of the step, passed to the router

    Returns:
        VoteResult with a winner index in [0, len(candidates))

    Raises:
        Cancelled: If the token is signalled before dispatch or while the call
            is in flight; a verdict that arrives after cancellation is dropped
            and its usage travels on the exception
        ServiceCallFailure: If the model service fails
    """
    if not candidates:
        raise ValueError("vote() requires at least one candidate")
    if cancel_token is not None:
        cancel_token.raise_if_cancelled()

    prompt = VOTING_PROMPT.format(
        step=step,
        candidates=format_candidates(
            [c.text for c in candidates], config.vote_preview_chars
        ),
        last_index=len(candidates) - 1,
    )
    response = await client.complete(
        [{"role": "user", "content": prompt}],
        model=select_model(config, PipelineRole.JUDGE, step=step_index),
        sampling={"temperature": 0.0},
        response_schema=VOTE_SCHEMA,
        cancel_token=cancel_token,
    )
    if cancel_token is not None and cancel_token.cancelled:
        raise Cancelled(cancel_token.reason, usage=response.usage)

    try:
        index, reason = _read_vote(parse_json_response(response.content), len(candidates))
    except SchemaParseFailure as e:
        logger.warning(f"Vote for step {step!r} unusable ({e}); picking candidate 0")
        return VoteResult(
            winner_index=0, reason=FALLBACK_REASON, usage=response.usage, fallback=True
        )

    return VoteResult(winner_index=index, reason=reason, usage=response.usage)
