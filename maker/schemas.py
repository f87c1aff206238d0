"""Data structures for the MAKER pipeline."""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from maker.config import TERMINAL_STATUSES, SessionStatus
from maker.usage import Usage

# Prefix carried by the synthetic candidate emitted when no attempt passes the filter
FAILURE_MARKER = "[NO VALID CANDIDATE]"


def _now() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


class Attachment(BaseModel):
    """An operator-supplied file passed along with the task.

    ``data`` holds plain text for textual types and base64 for everything else.
    """

    name: str
    mime_type: str = "text/plain"
    data: str

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")

    def ref(self) -> "AttachmentRef":
        return AttachmentRef(name=self.name, mime_type=self.mime_type)


class AttachmentRef(BaseModel):
    """Attachment metadata kept on the session record (payload is not persisted)."""

    name: str
    mime_type: str


class Candidate(BaseModel):
    """One model-generated attempt at solving a step."""

    model_config = ConfigDict(frozen=True)

    text: str
    temperature: float
    model: str = ""
    usage: Usage = Field(default_factory=Usage)
    failed: bool = Field(
        default=False,
        description="True only for the synthetic placeholder emitted on budget exhaustion",
    )


class DecompositionResult(BaseModel):
    """Plan produced by the decomposer plus the cost of producing it."""

    plan: list[str] = Field(min_length=1)
    usage: Usage
    fallback: bool = False


class GenerationResult(BaseModel):
    """Outcome of candidate generation for one step."""

    candidates: list[Candidate]
    red_flags: int = 0
    attempts: int = 0
    usage: Usage = Field(default_factory=Usage)
    cancelled: bool = False

    @property
    def exhausted(self) -> bool:
        return len(self.candidates) == 1 and self.candidates[0].failed


class VoteResult(BaseModel):
    """Judge's pick among a step's candidates."""

    winner_index: int = Field(ge=0)
    reason: str
    usage: Usage
    fallback: bool = False


class StepResult(BaseModel):
    """Record of one completed step. Immutable once appended to a session."""

    model_config = ConfigDict(frozen=True)

    step: str
    result: str
    candidates: list[Candidate]
    votes: list[int]
    winner_index: int = Field(ge=0)
    red_flags: int = Field(default=0, ge=0)
    reason: str = ""
    usage: Usage = Field(default_factory=Usage)


class Session(BaseModel):
    """One end-to-end run of the decompose/generate/vote pipeline for one task."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    task: str
    attachments: list[AttachmentRef] = Field(default_factory=list)
    plan: list[str] = Field(default_factory=list)
    current_step_index: int = 0
    completed_steps: list[StepResult] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)
    status: SessionStatus = SessionStatus.PLANNING
    content: str = ""
    error: Optional[str] = None
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_complete(self) -> bool:
        return self.status == SessionStatus.DONE

    def touch(self) -> None:
        self.updated_at = _now()

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "Session":
        return cls.model_validate_json(data)


class ChatReply(BaseModel):
    """Result of a direct single-call chat turn."""

    text: str
    model_used: str
    usage: Usage
