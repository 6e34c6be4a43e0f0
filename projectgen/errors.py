"""Error taxonomy for the project-generation pipeline.

Every failure the orchestrator can surface is a ``GenerationError`` carrying a
stable machine-readable ``ErrorKind`` and a ``retryable`` flag, so callers can
tell "try again" apart from "fix your input".
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Machine-readable error kinds returned to callers."""

    VALIDATION = "validation_error"
    RATE_LIMITED = "rate_limited"
    PLANNING = "planning_error"
    BATCH_GENERATION = "batch_generation_error"
    INTEGRATION = "integration_error"
    CACHE_UNAVAILABLE = "cache_unavailable"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    INTERNAL = "internal_error"


_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.PLANNING: 502,
    ErrorKind.BATCH_GENERATION: 502,
    ErrorKind.INTEGRATION: 422,
    ErrorKind.CACHE_UNAVAILABLE: 503,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.CANCELLED: 499,
    ErrorKind.INTERNAL: 500,
}


def status_for_kind(kind: ErrorKind) -> int:
    """Map an error kind to the HTTP status code the calling layer should use."""
    return _STATUS_CODES.get(kind, 500)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class GenerationError(Exception):
    """Base class for every pipeline failure surfaced to callers."""

    kind: ErrorKind = ErrorKind.INTERNAL
    retryable: bool = False

    def __init__(self, message: str, *, retryable: bool | None = None) -> None:
        self.message = message
        if retryable is not None:
            self.retryable = retryable
        super().__init__(message)

    def to_response(self) -> dict[str, Any]:
        """Return the outbound failure body ``{errorKind, message, retryable}``."""
        return {
            "errorKind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
        }

    @property
    def status_code(self) -> int:
        return status_for_kind(self.kind)


class InputValidationError(GenerationError):
    """Malformed or oversized input. Raised before any cost is incurred."""

    kind = ErrorKind.VALIDATION
    retryable = False


class RateLimitedError(GenerationError):
    """The session's quota is exhausted."""

    kind = ErrorKind.RATE_LIMITED
    retryable = True

    def __init__(self, message: str, *, reset_at: float) -> None:
        self.reset_at = reset_at
        self.remaining = 0
        super().__init__(message)

    def to_response(self) -> dict[str, Any]:
        body = super().to_response()
        body["resetAt"] = self.reset_at
        body["remaining"] = self.remaining
        return body


class PlanningError(GenerationError):
    """The architecture output failed to parse or validate."""

    kind = ErrorKind.PLANNING
    retryable = False


class BatchGenerationError(GenerationError):
    """A specific batch's model output failed to parse or validate."""

    kind = ErrorKind.BATCH_GENERATION
    retryable = False

    def __init__(
        self, batch_index: int, message: str, *, retryable: bool | None = None
    ) -> None:
        self.batch_index = batch_index
        super().__init__(f"Batch {batch_index}: {message}", retryable=retryable)

    def to_response(self) -> dict[str, Any]:
        body = super().to_response()
        body["batchIndex"] = self.batch_index
        return body


class IntegrationLoadError(GenerationError):
    """An integration provider is unsupported or its manifest is missing."""

    kind = ErrorKind.INTEGRATION
    retryable = False

    def __init__(self, category: str, provider: str, message: str) -> None:
        self.category = category
        self.provider = provider
        super().__init__(f"{category}/{provider}: {message}")


class CacheUnavailable(GenerationError):
    """The distributed cache tier could not be reached.

    Never surfaced to callers; the cache store logs it and carries on with
    the in-process tier.
    """

    kind = ErrorKind.CACHE_UNAVAILABLE
    retryable = True


class GenerationTimeout(GenerationError):
    """An external call exceeded its deadline."""

    kind = ErrorKind.TIMEOUT
    retryable = True


class GenerationCancelled(GenerationError):
    """The caller cancelled the request."""

    kind = ErrorKind.CANCELLED
    retryable = True
