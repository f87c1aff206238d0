"""MAKER public adapter."""

import asyncio
import logging
from typing import Optional

from maker.cancellation import CancelToken
from maker.config import EngineConfig, PipelineRole
from maker.openrouter.client import ModelClient, OpenRouterClient
from maker.pipeline.orchestrator import SessionListener, SessionOrchestrator
from maker.pipeline.routing_helper import select_model
from maker.schemas import Attachment, ChatReply, Session
from maker.store import SessionStore, load_sessions

logger = logging.getLogger(__name__)

EMPTY_REPLY = "No response generated."


class Maker:
    """Public interface to the MAKER engine.

    Usage:
        from maker import EngineConfig, Maker

        engine = Maker(config=EngineConfig(openrouter_api_key="sk-or-..."))

        session = await engine.run("Plan a 3-day trip to Lisbon")
        print(session.content)
    """

    def __init__(
        self,
        config: EngineConfig,
        client: Optional[ModelClient] = None,
        store: Optional[SessionStore] = None,
    ):
        """Initialize the engine.

        Args:
            config: EngineConfig containing API key and pipeline settings
            client: Model service; defaults to an OpenRouterClient for config
            store: Where session snapshots are persisted (optional)
        """
        self.config = config
        self._client = client if client is not None else OpenRouterClient(config)
        self._store = store

    async def run(
        self,
        task: str,
        attachments: Optional[list[Attachment]] = None,
        cancel_token: Optional[CancelToken] = None,
        on_update: Optional[SessionListener] = None,
    ) -> Session:
        """Run a task through decomposition, candidate generation and voting.

        The configuration is snapshotted on entry; edits made while the
        session runs apply to the next one.

        Args:
            task: Operator's free-text request
            attachments: Files to send along with the task
            cancel_token: Signal it to stop the session at the next boundary
            on_update: Called with a copy of the session after every change

        Returns:
            The session in status DONE or STOPPED
        """
        attachments = attachments or []
        session = Session(task=task, attachments=[a.ref() for a in attachments])
        orchestrator = SessionOrchestrator(
            session,
            self._client,
            self.config.snapshot(),
            store=self._store,
            attachments=attachments,
            cancel_token=cancel_token,
            on_update=on_update,
        )
        return await orchestrator.run()

    def run_sync(
        self,
        task: str,
        attachments: Optional[list[Attachment]] = None,
    ) -> Session:
        """Synchronous wrapper for run()."""
        return asyncio.run(self.run(task, attachments))

    async def chat(
        self,
        prompt: str,
        history: Optional[list[dict]] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> ChatReply:
        """Answer directly with one model call, bypassing the pipeline.

        Args:
            prompt: The new user message
            history: Prior turns as dicts with 'role' ('user', 'model' or
                'assistant') and 'content'
            cancel_token: Aborts the call when signalled

        Returns:
            ChatReply with the text, serving model and usage
        """
        config = self.config.snapshot()
        messages: list[dict] = [{"role": "system", "content": config.system_prompt}]
        for turn in history or []:
            role = "assistant" if turn.get("role") in ("model", "assistant") else "user"
            messages.append({"role": role, "content": turn.get("content", "")})
        messages.append({"role": "user", "content": prompt})

        response = await self._client.complete(
            messages,
            model=select_model(config, PipelineRole.SOLVER),
            sampling={"temperature": config.temperature},
            cancel_token=cancel_token,
            tools_enabled=config.tools_enabled,
        )
        return ChatReply(
            text=response.content or EMPTY_REPLY,
            model_used=response.model_used,
            usage=response.usage,
        )

    def load_sessions(self) -> list[Session]:
        """Load persisted sessions, stopping any left mid-pipeline by a crash."""
        if self._store is None:
            return []
        return load_sessions(self._store)

    def delete_session(self, session_id: str) -> None:
        if self._store is not None:
            self._store.delete(session_id)

    async def aclose(self) -> None:
        close = getattr(self._client, "aclose", None)
        if close is not None:
            await close()
