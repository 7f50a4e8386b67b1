"""Typed errors raised by the ingestion pipeline.

Classification-path errors (``ParseError``, ``ClassificationError``,
``ValidationError``) are recovered by :class:`dashboard_ingest.api.IngestionOrchestrator`
into an :class:`~dashboard_ingest.api.IngestionFailure` envelope. Provider errors
and ``InvalidInputError`` propagate to the caller.
"""

from __future__ import annotations

GENERIC_FAILURE_MESSAGE = "Failed to process request. Please try again."


class IngestionError(Exception):
    """Base class for every error raised by ``dashboard_ingest``."""


class InvalidInputError(IngestionError, ValueError):
    """Neither text nor an image was supplied."""


class ProviderError(IngestionError):
    """The language-model provider could not be reached or rejected the request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderQuotaError(ProviderError):
    """The provider reported a rate limit or exhausted quota (HTTP 429)."""


class ParseError(IngestionError, ValueError):
    """The model reply is not valid JSON after fence stripping and brace extraction."""

    def __init__(self, message: str = "malformed model output", *, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class ClassificationError(IngestionError):
    """The model explicitly reported that it could not understand the input."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or GENERIC_FAILURE_MESSAGE)

    @property
    def message(self) -> str:
        return str(self.args[0])


class ValidationError(IngestionError, ValueError):
    """Parsed data failed a schema constraint on ``field``."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.reason = message


__all__ = [
    "GENERIC_FAILURE_MESSAGE",
    "ClassificationError",
    "IngestionError",
    "InvalidInputError",
    "ParseError",
    "ProviderError",
    "ProviderQuotaError",
    "ValidationError",
]
