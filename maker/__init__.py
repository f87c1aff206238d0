"""MAKER: decompose a task, vote on candidate solutions, chain the winners.

Public exports:
- Maker: The public interface for running tasks
- EngineConfig: Configuration for the engine
- CancelToken: Cooperative cancellation signal for a run
- Session: Result record returned by Maker.run()
"""

from maker.cancellation import CancelToken
from maker.config import EngineConfig, SessionStatus
from maker.engine import Maker
from maker.schemas import Attachment, Session, StepResult

__all__ = [
    "Maker",
    "EngineConfig",
    "CancelToken",
    "Session",
    "SessionStatus",
    "StepResult",
    "Attachment",
]
