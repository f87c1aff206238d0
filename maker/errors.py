"""Error taxonomy for the MAKER pipeline."""

from typing import Optional

from maker.usage import Usage


class MakerError(Exception):
    """Base class for pipeline errors."""

    pass


class Cancelled(MakerError):
    """The session's cancellation token was observed.

    Carries the usage of any call that completed before the token was seen,
    so the orchestrator can still charge it.
    """

    def __init__(self, message: str = "Cancelled", usage: Optional[Usage] = None):
        super().__init__(message)
        self.usage = usage


class SchemaParseFailure(MakerError):
    """Model output did not match the expected structured shape."""

    pass


class ServiceCallFailure(MakerError):
    """The model service could not produce a completion."""

    pass


class InvalidTransition(MakerError):
    """A forbidden session lifecycle move was attempted."""

    pass
