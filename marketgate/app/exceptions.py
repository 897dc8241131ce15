"""Custom exceptions for the gateway application."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from marketgate.app.services.rate_limit.models import RateDecision


class GatewayException(Exception):
    """Base class for gateway exceptions with HTTP status code.

    All custom exceptions inherit from this class and define their
    status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Gateway error"):
        self.message = message
        super().__init__(message)


class ValidationError(GatewayException):
    """Raised when a required query parameter is missing or malformed.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message)


class QuotaExceededError(GatewayException):
    """Raised when a client has used up its request budget for the window.

    Carries the rate decision so the 429 response can report when the
    window resets. Not retried; the client must wait until ``reset_at``.
    """
    status_code = 429

    def __init__(self, decision: RateDecision, detail: str | None = None):
        self.decision = decision
        super().__init__(
            detail or "Rate limit exceeded. Please wait before making more requests."
        )


class UpstreamTransportError(GatewayException):
    """Upstream answered with a non-2xx status or could not be reached.

    The upstream status is passed through to the caller.
    """

    def __init__(self, status_code: int, status_text: str):
        self.status_code = status_code
        self.status_text = status_text
        super().__init__(f"API request failed: {status_text}")


class InternalError(GatewayException):
    """Unexpected failure anywhere in the pipeline. Maps to HTTP 500."""
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
