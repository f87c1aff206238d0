"""Shared fixtures: a scripted model service and a test config."""

import asyncio
import json
from typing import Any, Optional

import pytest

from maker.cancellation import CancelToken
from maker.config import EngineConfig
from maker.errors import Cancelled
from maker.openrouter.client import LLMResponse
from maker.usage import Usage

# Candidate reply that blocks until the cancel token fires
HANG = object()

DEFAULT_VOTE = json.dumps({"bestIndex": 0, "reason": "first is fine"})


def make_response(
    content: str,
    prompt_tokens: int = 10,
    output_tokens: int = 5,
    cost: float = 0.001,
    model: str = "test/model",
) -> LLMResponse:
    return LLMResponse(
        content=content,
        model_used=model,
        usage=Usage(
            prompt_tokens=prompt_tokens,
            output_tokens=output_tokens,
            total_tokens=prompt_tokens + output_tokens,
            cost=cost,
            calls=1,
        ),
    )


def plan_reply(*steps: str) -> str:
    return json.dumps({"steps": list(steps)})


def vote_reply(index: Any, reason: str = "best") -> str:
    return json.dumps({"bestIndex": index, "reason": reason})


class FakeClient:
    """Scripted model service.

    Replies are routed by the response schema name: ``plan`` calls pop from
    ``plans``, ``vote`` calls from ``votes`` and unstructured calls from
    ``candidates``. A reply may be a string, an LLMResponse, an exception to
    raise, or HANG. When a queue is empty a default reply is used.
    """

    def __init__(
        self,
        plans: Optional[list[Any]] = None,
        candidates: Optional[list[Any]] = None,
        votes: Optional[list[Any]] = None,
        default_candidate: str = "A concise answer.",
    ):
        self.plans = list(plans or [])
        self.candidates = list(candidates or [])
        self.votes = list(votes or [])
        self.default_candidate = default_candidate
        self.calls: list[dict[str, Any]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def kinds(self) -> list[str]:
        return [call["kind"] for call in self.calls]

    def _next(self, kind: str) -> Any:
        if kind == "plan":
            return self.plans.pop(0) if self.plans else plan_reply("Only step")
        if kind == "vote":
            return self.votes.pop(0) if self.votes else DEFAULT_VOTE
        return self.candidates.pop(0) if self.candidates else self.default_candidate

    async def complete(
        self,
        messages: list[dict],
        model: Optional[str] = None,
        sampling: Optional[dict[str, Any]] = None,
        response_schema: Optional[dict[str, Any]] = None,
        cancel_token: Optional[CancelToken] = None,
        tools_enabled: bool = False,
    ) -> LLMResponse:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        kind = response_schema["name"] if response_schema else "candidate"
        self.calls.append({
            "kind": kind,
            "messages": messages,
            "model": model,
            "sampling": sampling,
            "tools_enabled": tools_enabled,
        })
        reply = self._next(kind)

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if reply is HANG:
                assert cancel_token is not None, "HANG needs a cancel token"
                await cancel_token.wait()
                raise Cancelled(cancel_token.reason)
            await asyncio.sleep(0)
        finally:
            self.in_flight -= 1

        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, LLMResponse):
            return reply
        return make_response(reply)


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig(openrouter_api_key="test-key", voting_k=2, tools_enabled=False)
