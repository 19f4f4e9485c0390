from __future__ import annotations

from typing import Any


class TunedupError(Exception):
    """Base exception for all tunedup errors.

    Attributes:
        code: Optional machine-readable error code (e.g. ``"quota_exceeded"``).
        details: Arbitrary key/value context about the error.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}


class ConfigurationError(TunedupError): ...


class ValidationError(TunedupError):
    """Malformed caller input. Resolved before any generator call is made."""


class QuotaExceededError(TunedupError):
    """The user's token quota for the current period is exhausted.

    Reported separately from generation failures so callers can offer an
    upgrade instead of a retry.
    """

    def __init__(self, user_id: str, message: str | None = None) -> None:
        super().__init__(
            message or "You've used all your tokens this month",
            code="quota_exceeded",
            details={"user_id": user_id},
        )
        self.user_id = user_id


class GeneratorError(TunedupError):
    """The generator call failed or returned output that does not match its schema.

    Attributes:
        step: Pipeline stage name when the failure belongs to a stage.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        *,
        step: str | None = None,
    ) -> None:
        super().__init__(message, code=code, details=details)
        self.step = step


class GeneratorTimeoutError(GeneratorError):
    """The generator did not answer within the configured deadline."""


class PersistenceError(TunedupError): ...


class PipelineError(TunedupError):
    """Illegal pipeline state transition."""


class BuildNotFoundError(TunedupError): ...


class BuildLimitError(TunedupError): ...


class ModNotFoundError(TunedupError): ...
