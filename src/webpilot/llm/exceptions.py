"""LLM client exceptions.

Three fault families are distinguished:

- Transport faults (``LLMUnavailableError``): no response was obtained.
- Service faults (``LLMResponseError``): the service answered with a
  non-success status or an error-shaped body.
- Session faults (``LLMStreamError``): a streaming session failed after it
  started. Sessions are never retried.

The assistant layer catches all of these and converts them into a
``QueryResult``; they never reach its callers.
"""

from __future__ import annotations


class LLMError(Exception):
    """Base exception for LLM client errors."""


class LLMUnavailableError(LLMError):
    """Raised when the model service cannot be reached."""


class LLMTimeoutError(LLMUnavailableError):
    """Raised when an attempt exceeds its deadline."""


class LLMResponseError(LLMError):
    """Raised when the service reports a failure.

    Covers 4xx/5xx statuses and 2xx bodies shaped like ``{"error": ...}``.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_client_error(self) -> bool:
        """True for 4xx statuses (the request itself was rejected)."""
        return self.status_code is not None and 400 <= self.status_code < 500


class LLMRateLimitError(LLMResponseError):
    """Raised when the service rate limits the request."""


class LLMValidationError(LLMResponseError):
    """Raised when a success body is not JSON or fails schema validation."""


class LLMStreamError(LLMError):
    """Raised when a streaming session fails after it has started."""


class LLMConfigurationError(LLMError):
    """Raised when the LLM client is misconfigured."""
