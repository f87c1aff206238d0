"""Session orchestrator: drives decompose -> (generate -> vote) per step -> chain."""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from maker.cancellation import CancelToken
from maker.config import TERMINAL_STATUSES, EngineConfig, SessionStatus
from maker.errors import Cancelled, InvalidTransition, ServiceCallFailure
from maker.openrouter.client import ModelClient
from maker.pipeline.decomposer import decompose
from maker.pipeline.generator import generate
from maker.pipeline.prompts import build_context, format_step_result
from maker.pipeline.voter import vote
from maker.schemas import Attachment, Session, StepResult
from maker.store import SessionStore
from maker.usage import Usage

logger = logging.getLogger(__name__)

SessionListener = Callable[[Session], Union[None, Awaitable[None]]]

STOPPED_MARKER = "[Stopped: the operator cancelled this task.]"

_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.PLANNING: frozenset({SessionStatus.GENERATING_CANDIDATES}),
    SessionStatus.GENERATING_CANDIDATES: frozenset({SessionStatus.VOTING}),
    SessionStatus.VOTING: frozenset({SessionStatus.EXECUTING}),
    SessionStatus.EXECUTING: frozenset(
        {SessionStatus.GENERATING_CANDIDATES, SessionStatus.DONE}
    ),
    SessionStatus.DONE: frozenset(),
    SessionStatus.STOPPED: frozenset(),
}


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    """STOPPED is reachable from every non-terminal status."""
    if target == SessionStatus.STOPPED:
        return current not in TERMINAL_STATUSES
    return target in _TRANSITIONS[current]


def _append_line(content: str, line: str) -> str:
    return f"{content.rstrip()}\n\n{line}" if content.strip() else line


class SessionOrchestrator:
    """Single writer for one session's state.

    Every mutation goes through ``_commit``, which stamps the session,
    persists a snapshot and notifies the listener. Parallel candidate calls
    never touch the session; the orchestrator merges their results after the
    generator's fan-in.
    """

    def __init__(
        self,
        session: Session,
        client: ModelClient,
        config: EngineConfig,
        store: Optional[SessionStore] = None,
        attachments: Optional[list[Attachment]] = None,
        cancel_token: Optional[CancelToken] = None,
        on_update: Optional[SessionListener] = None,
    ):
        self._session = session
        self._client = client
        self._config = config
        self._store = store
        self._attachments = attachments or []
        self._token = cancel_token or CancelToken()
        self._on_update = on_update

    @property
    def session(self) -> Session:
        return self._session

    @property
    def cancel_token(self) -> CancelToken:
        return self._token

    async def run(self) -> Session:
        """Drive the session to DONE or STOPPED.

        Cancellation and service failures end in STOPPED and are not raised.
        Unexpected errors also stop the session, then propagate.

        Returns:
            The final session
        """
        await self._commit()
        try:
            await self._execute()
        except Cancelled as e:
            await self._stop(charge=e.usage)
        except ServiceCallFailure as e:
            logger.error(f"Session {self._session.id}: model service failed: {e}")
            await self._stop(error=str(e))
        except asyncio.CancelledError:
            await self._stop()
            raise
        except Exception as e:
            logger.exception(f"Session {self._session.id}: unexpected error")
            await self._stop(error=f"Unexpected error: {e}")
            raise
        return self._session

    async def _execute(self) -> None:
        config = self._config
        session = self._session

        decomposition = await decompose(
            session.task,
            self._client,
            config,
            attachments=self._attachments,
            cancel_token=self._token,
        )
        if decomposition.fallback:
            logger.info(f"Session {session.id}: running task as a single step")
        await self._transition(
            SessionStatus.GENERATING_CANDIDATES,
            plan=decomposition.plan,
            current_step_index=0,
            usage=self._charged(decomposition.usage),
        )

        completed = ""
        for index, step in enumerate(self._session.plan):
            if self._token.cancelled:
                await self._stop()
                return
            if self._session.status != SessionStatus.GENERATING_CANDIDATES:
                await self._transition(
                    SessionStatus.GENERATING_CANDIDATES, current_step_index=index
                )

            generation = await generate(
                step,
                build_context(session.task, completed),
                self._client,
                config,
                attachments=self._attachments,
                cancel_token=self._token,
                step_index=index,
            )
            if generation.cancelled or self._token.cancelled:
                await self._stop(charge=generation.usage)
                return
            await self._transition(
                SessionStatus.VOTING, usage=self._charged(generation.usage)
            )

            verdict = await vote(
                step,
                generation.candidates,
                self._client,
                config,
                cancel_token=self._token,
                step_index=index,
            )
            winner = generation.candidates[verdict.winner_index]
            completed += format_step_result(index, step, winner.text)

            result = StepResult(
                step=step,
                result=winner.text,
                candidates=generation.candidates,
                votes=[
                    1 if i == verdict.winner_index else 0
                    for i in range(len(generation.candidates))
                ],
                winner_index=verdict.winner_index,
                red_flags=generation.red_flags,
                reason=verdict.reason,
                usage=generation.usage + verdict.usage,
            )
            await self._transition(
                SessionStatus.EXECUTING,
                completed_steps=[*self._session.completed_steps, result],
                current_step_index=index + 1,
                content=completed.strip(),
                usage=self._charged(verdict.usage),
            )

        await self._transition(SessionStatus.DONE)
        logger.info(
            f"Session {session.id} done: {len(self._session.completed_steps)} steps, "
            f"{self._session.usage.total_tokens} tokens, ${self._session.usage.cost:.4f}"
        )

    def _charged(self, usage: Optional[Usage]) -> Usage:
        """Session usage after adding one contribution."""
        if usage is None:
            return self._session.usage
        return self._session.usage + usage

    async def _transition(self, status: SessionStatus, **changes: Any) -> None:
        current = self._session.status
        if not can_transition(current, status):
            raise InvalidTransition(f"{current.value} -> {status.value}")
        logger.info(f"Session {self._session.id}: {current.value} -> {status.value}")
        await self._commit(status=status, **changes)

    async def _stop(self, error: Optional[str] = None, charge: Optional[Usage] = None) -> None:
        """Move to STOPPED exactly once, charging any late usage."""
        if self._session.is_terminal:
            return
        line = f"[Error: {error}]" if error else STOPPED_MARKER
        await self._transition(
            SessionStatus.STOPPED,
            usage=self._charged(charge),
            error=error,
            content=_append_line(self._session.content, line),
        )

    async def _commit(self, **changes: Any) -> None:
        for field, value in changes.items():
            setattr(self._session, field, value)
        self._session.touch()

        if self._store is not None:
            await asyncio.to_thread(self._store.save, self._session.model_copy(deep=True))
        await self._notify()

    async def _notify(self) -> None:
        if self._on_update is None:
            return
        try:
            outcome = self._on_update(self._session.model_copy(deep=True))
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(f"Session listener failed: {e}")
