"""
Application-level exceptions.

Every error that can cross the HTTP boundary derives from RelayError and
carries a stable code plus the HTTP status it maps to. Fee-policy rejections
are not exceptions; they come back as a ValidationVerdict.
"""

from __future__ import annotations

from typing import Any


class RelayError(Exception):
    """Base class for relay errors surfaced to callers."""

    code = "relay_error"
    http_status = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"error": self.message, "code": self.code}
        out.update({k: v for k, v in self.details.items() if v is not None})
        return out


class DecodeError(RelayError):
    """Wire bytes are not a well-formed transaction."""

    code = "invalid_transaction"
    http_status = 400


class ConfigurationError(RelayError):
    """Custody key, token table or another required setting is not loaded."""

    code = "relay_not_configured"
    http_status = 500


class SigningError(RelayError):
    """The fee-payer signature could not be produced (local or remote custody)."""

    code = "signing_failed"
    http_status = 500


class SubmissionError(RelayError):
    """The network rejected or failed to accept the signed transaction."""

    code = "submission_failed"
    http_status = 500

    def __init__(self, message: str, *, signature: str | None = None, detail: Any = None) -> None:
        super().__init__(message, signature=signature, details=detail)
        self.signature = signature
        self.detail = detail


class RateLimitExceeded(RelayError):
    """Caller used up its request quota for the current window."""

    code = "rate_limited"
    http_status = 429

    def __init__(self, retry_after: int) -> None:
        super().__init__("Rate limit exceeded", retryAfter=retry_after)
        self.retry_after = retry_after
