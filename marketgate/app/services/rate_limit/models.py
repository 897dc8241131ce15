"""Rate limiting data models."""

from dataclasses import dataclass


@dataclass
class ClientRateState:
    """Fixed-window counter for one client identity.

    ``window_reset_at`` is in epoch milliseconds.
    """
    count: int = 0
    window_reset_at: int = 0

    def is_expired(self, now_ms: int) -> bool:
        return now_ms > self.window_reset_at


@dataclass(frozen=True)
class RateDecision:
    """Result of a rate limit check, threaded through to the response headers."""
    allowed: bool
    remaining: int
    reset_at: int
    limit: int = 0

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }
