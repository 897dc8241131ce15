"""Per-client request budget enforcement."""

from marketgate.app.services.rate_limit.limiter import (
    FixedWindowRateLimiter,
    get_rate_limiter,
    reset_rate_limiter,
    run_cleanup_loop,
)
from marketgate.app.services.rate_limit.models import ClientRateState, RateDecision

__all__ = [
    "ClientRateState",
    "RateDecision",
    "FixedWindowRateLimiter",
    "get_rate_limiter",
    "reset_rate_limiter",
    "run_cleanup_loop",
]
