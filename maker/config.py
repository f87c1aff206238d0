"""Engine configuration and enums."""

import logging
import os
import re
from enum import Enum
from typing import Any, Optional, Protocol

from pydantic import BaseModel, Field, model_validator

from maker.usage import DEFAULT_PRICING, ModelPrice

logger = logging.getLogger(__name__)

# OpenRouter picks the model itself
AUTO_MODEL = "openrouter/auto"


class SessionStatus(str, Enum):
    """Lifecycle status of a session."""

    PLANNING = "planning"
    GENERATING_CANDIDATES = "generating_candidates"
    VOTING = "voting"
    EXECUTING = "executing"
    DONE = "done"
    STOPPED = "stopped"


TERMINAL_STATUSES = frozenset({SessionStatus.DONE, SessionStatus.STOPPED})


class PipelineRole(str, Enum):
    """Which pipeline component a model call serves."""

    PLANNER = "planner"
    SOLVER = "solver"
    JUDGE = "judge"


class RoutingMode(str, Enum):
    """Router selection mode for the engine."""

    AUTO = "auto"
    CUSTOM = "custom"


class Router(Protocol):
    """Protocol for pluggable model selection at call time.

    Implementations must:
    - Return a valid OpenRouter model ID string
    - Be callable at inference time (each model call)
    - Fall back gracefully; caller will use the configured model on failure
    - Account for existing_selections to enforce diversity
    """

    def select_model(
        self,
        role: PipelineRole,
        step: int,
        attempt: int,
        existing_selections: list[str],
    ) -> str:
        """Select a model for this call.

        Args:
            role: Pipeline role (PLANNER, SOLVER, JUDGE)
            step: Current step index (0-indexed; 0 for planning)
            attempt: Index of this attempt within the step (0-indexed)
            existing_selections: Models already selected for this step

        Returns:
            OpenRouter model ID (e.g., "anthropic/claude-sonnet-4")
            If selection fails, return "openrouter/auto".
        """
        ...


DEFAULT_SYSTEM_PROMPT = (
    "You are Zero-Chat, an implementation of the MAKER framework. "
    "You solve complex problems by decomposing them into atomic subtasks "
    "and verifying each step to ensure zero errors."
)

DEFAULT_CONFIG_MD = """# Zero-Chat Configuration

## Model Settings
Model: openrouter/auto
Temperature: 0.7

## MAKER Framework Settings
# Accepted candidates per step before voting
VotingK: 3
# Maximum steps for decomposition
MaxDecompositionSteps: 10

## Tools & Context
EnableBrowsing: true

## System Prompt
You are Zero-Chat, an implementation of the MAKER framework.
You solve complex problems by decomposing them into atomic subtasks
and verifying each step to ensure zero errors.
"""


class EngineConfig(BaseModel):
    """Configuration for the MAKER engine."""

    model_config = {"arbitrary_types_allowed": True, "protected_namespaces": ()}

    openrouter_api_key: Optional[str] = None
    model_name: str = AUTO_MODEL
    voting_k: int = Field(default=3, ge=1, description="Accepted candidates per step")
    max_steps: int = Field(default=10, ge=1, description="Upper bound on plan length")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    tools_enabled: bool = True

    # Candidate generation
    retry_multiplier: int = Field(
        default=3,
        ge=1,
        description="Attempt budget per step is retry_multiplier * voting_k",
    )
    temperature_jitter: float = Field(default=0.3, ge=0.0)
    max_temperature: float = Field(default=1.0, ge=0.0, le=2.0)
    max_candidate_chars: int = Field(default=2000, ge=1)
    vote_preview_chars: int = Field(default=1000, ge=1)

    # Router configuration
    routing_mode: RoutingMode = Field(
        default=RoutingMode.AUTO,
        description="Router selection mode: AUTO (model_name for every call) or CUSTOM",
    )
    custom_router: Optional[Any] = Field(
        default=None,
        description="Custom Router implementation. Required if routing_mode is CUSTOM.",
    )

    pricing: dict[str, ModelPrice] = Field(
        default_factory=lambda: dict(DEFAULT_PRICING),
        description="USD per million tokens, keyed by model ID",
    )

    @model_validator(mode="after")
    def resolve_api_key(self) -> "EngineConfig":
        """Resolve API key from explicit value or OPENROUTER_KEY environment variable."""
        if self.openrouter_api_key and self.openrouter_api_key.strip():
            return self
        env_key = os.environ.get("OPENROUTER_KEY")
        if env_key and env_key.strip():
            object.__setattr__(self, "openrouter_api_key", env_key)
            return self
        raise ValueError(
            "openrouter_api_key must be provided or OPENROUTER_KEY environment variable must be set"
        )

    @model_validator(mode="after")
    def validate_custom_router(self) -> "EngineConfig":
        """Validate that custom_router is provided when routing_mode is CUSTOM."""
        if self.routing_mode == RoutingMode.CUSTOM and self.custom_router is None:
            raise ValueError("custom_router required when routing_mode is CUSTOM")
        return self

    @property
    def attempt_budget(self) -> int:
        return self.voting_k * self.retry_multiplier

    def snapshot(self) -> "EngineConfig":
        """Copy taken at the start of a run so later edits don't leak into it."""
        return self.model_copy(update={"pricing": dict(self.pricing)})

    @classmethod
    def from_markdown(cls, text: str, **overrides: Any) -> "EngineConfig":
        """Build a config from a Zero-Chat markdown document.

        Args:
            text: Markdown config (see DEFAULT_CONFIG_MD)
            **overrides: Field values that take precedence over the document

        Returns:
            Validated EngineConfig
        """
        values = parse_config_markdown(text)
        values.update(overrides)
        return cls(**values)


_SYSTEM_PROMPT_RE = re.compile(r"^##\s*System Prompt\s*$\n(.*)", re.MULTILINE | re.DOTALL)


def _parse_int(value: str, default: int, key: str) -> int:
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Config {key}: {value!r} is not an integer, using {default}")
        return default


def _parse_float(value: str, default: float, key: str) -> float:
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Config {key}: {value!r} is not a number, using {default}")
        return default


def parse_config_markdown(text: str) -> dict[str, Any]:
    """Parse the Zero-Chat markdown config format into EngineConfig fields.

    ``Key: value`` lines outside headers and ``#`` comments are read
    case-insensitively. Everything after the ``## System Prompt`` header
    becomes the system prompt. Unknown keys are ignored.
    """
    values: dict[str, Any] = {}
    prompt_match = _SYSTEM_PROMPT_RE.search(text)
    body = text[: prompt_match.start()] if prompt_match else text

    for line in body.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or ":" not in stripped:
            continue
        key, _, value = stripped.partition(":")
        key = key.strip().lower()
        value = value.strip()

        if key == "model":
            values["model_name"] = value
        elif key == "votingk":
            values["voting_k"] = _parse_int(value, 3, key) or 3
        elif key == "maxdecompositionsteps":
            values["max_steps"] = _parse_int(value, 10, key) or 10
        elif key == "temperature":
            values["temperature"] = _parse_float(value, 0.7, key)
        elif key == "enablebrowsing":
            values["tools_enabled"] = value.lower() == "true"

    if prompt_match:
        prompt = prompt_match.group(1).strip()
        if prompt:
            values["system_prompt"] = prompt

    return values
