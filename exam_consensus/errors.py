"""
Error types and failure classification for provider calls.

Every provider failure is reduced to an ErrorKind by classify_error(), which
decides whether the invoker retries the same model, skips to the next
candidate model, or gives up on the model straight away.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Optional

import httpx


class ErrorKind(str, Enum):
    MODEL_UNAVAILABLE = "model_unavailable"
    TRANSIENT = "transient"
    UNCONFIGURED = "unconfigured"
    OTHER = "other"


class ProviderError(Exception):
    """Non-2xx answer from a provider API, with the structured fields it returned."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        error_type: Optional[str] = None,
        should_retry: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.error_type = error_type
        self.should_retry = should_retry

    @classmethod
    def from_response(cls, resp: httpx.Response) -> "ProviderError":
        """Build from an error response of the Anthropic, OpenAI or Google APIs."""
        message = resp.text
        code = None
        error_type = None
        try:
            data = resp.json()
        except ValueError:
            data = None

        if isinstance(data, dict):
            err = data.get("error")
            if isinstance(err, dict):
                message = err.get("message") or message
                error_type = err.get("type") or err.get("status")
                raw_code = err.get("code")
                # Google puts the HTTP status in "code"; OpenAI puts a slug there
                if isinstance(raw_code, str):
                    code = raw_code
            elif isinstance(err, str):
                message = err

        should_retry = resp.headers.get("x-should-retry", "").lower() == "true"
        return cls(
            message,
            status_code=resp.status_code,
            code=code,
            error_type=error_type,
            should_retry=should_retry,
        )

    def __repr__(self) -> str:
        return (
            f"ProviderError(status_code={self.status_code!r}, code={self.code!r}, "
            f"error_type={self.error_type!r}, message={self.message!r})"
        )


class ExtractionError(Exception):
    """The vision step produced nothing usable from an image."""


_MODEL_UNAVAILABLE_STATUSES = {404}
_MODEL_UNAVAILABLE_CODES = {"model_not_found", "NOT_FOUND", "not_found_error"}
_TRANSIENT_STATUSES = {429, 529}
_TRANSIENT_CODES = {
    "insufficient_quota",
    "rate_limit_exceeded",
    "rate_limit_error",
    "overloaded_error",
    "RESOURCE_EXHAUSTED",
}

# Last resort when a provider gives no structured signal.
_MODEL_UNAVAILABLE_PHRASES = ("model not found", "does not exist", "not supported")
_TRANSIENT_PHRASES = ("rate limit", "quota", "overloaded")


def is_timeout(exc: BaseException) -> bool:
    return isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException))


def classify_error(exc: BaseException) -> ErrorKind:
    if is_timeout(exc):
        return ErrorKind.TRANSIENT

    if isinstance(exc, ProviderError):
        tags = {exc.code, exc.error_type} - {None}
        if exc.status_code in _MODEL_UNAVAILABLE_STATUSES or tags & _MODEL_UNAVAILABLE_CODES:
            return ErrorKind.MODEL_UNAVAILABLE
        if exc.status_code in _TRANSIENT_STATUSES or tags & _TRANSIENT_CODES or exc.should_retry:
            return ErrorKind.TRANSIENT

    message = str(exc).lower()
    if any(phrase in message for phrase in _MODEL_UNAVAILABLE_PHRASES):
        return ErrorKind.MODEL_UNAVAILABLE
    if any(phrase in message for phrase in _TRANSIENT_PHRASES):
        return ErrorKind.TRANSIENT
    return ErrorKind.OTHER
