"""Exception hierarchy for the extraction engine.

Shape and pipeline validation failures are recovered inside the extraction
loop and turned into feedback for the model. Only generation failures,
cancellation and turn exhaustion reach the caller.
"""

from __future__ import annotations

import dataclasses


class ExtractError(Exception):
    """Base exception for extraction errors."""


@dataclasses.dataclass(frozen=True, slots=True)
class ValidationErrorDetail:
    """A single schema violation at a JSON-pointer-like path."""

    path: str
    message: str


class SchemaValidationError(ExtractError):
    """Raised when candidate data does not match the target shape."""

    def __init__(
        self, message: str, errors: tuple[ValidationErrorDetail, ...] = ()
    ) -> None:
        """Initialize with a summary message and per-field violations."""
        super().__init__(message)
        self.errors = errors


class CommandValidationError(ExtractError):
    """Raised when an external validator command exits non-zero."""

    def __init__(self, message: str, command: str, exit_code: int) -> None:
        """Initialize with the validator command and its exit code."""
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code


class HttpValidationError(ExtractError):
    """Raised when an HTTP validator responds with a non-2xx status."""

    def __init__(self, message: str, url: str, status_code: int) -> None:
        """Initialize with the validator URL and the response status code."""
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class MaxTurnsError(ExtractError):
    """Raised when every turn was consumed without a valid result."""

    def __init__(
        self, message: str, turns: int, last_error: BaseException | None = None
    ) -> None:
        """Initialize with the turn count and the last validation error seen."""
        super().__init__(message)
        self.turns = turns
        self.last_error = last_error


class AbortError(ExtractError):
    """Raised when an extraction is cancelled."""

    def __init__(self, message: str = "Extraction aborted") -> None:  # noqa: D107
        super().__init__(message)
