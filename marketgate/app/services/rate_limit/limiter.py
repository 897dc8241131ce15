"""Fixed-window rate limiter keyed by client identity.

Each client gets a counter that resets at a discrete boundary. This admits a
burst of up to twice the budget across a boundary, which is accepted in
exchange for the simpler bookkeeping.

Concurrency: the check-and-increment for one client runs under that client's
own ``asyncio.Lock``, so two concurrent requests cannot both observe a count
below the budget. Distinct clients never wait on each other.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from marketgate.app.core.config import settings
from marketgate.app.core.logging import get_logger
from marketgate.app.services.rate_limit.models import ClientRateState, RateDecision

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class _ClientSlot:
    state: ClientRateState
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class FixedWindowRateLimiter:
    """In-memory fixed-window limiter for a single gateway instance.

    State is process-local and lost on restart.
    """

    def __init__(
        self,
        requests_per_window: int = 30,
        window_seconds: int = 60,
        clock: Optional[Callable[[], int]] = None,
    ):
        """Initialize the limiter.

        Args:
            requests_per_window: Budget of admitted requests per window
            window_seconds: Window length in seconds
            clock: Returns the current time in epoch milliseconds
        """
        self.requests_per_window = requests_per_window
        self.window_ms = window_seconds * 1000
        self._clock = clock or _now_ms
        self._slots: Dict[str, _ClientSlot] = {}

    def _slot_for(self, client_id: str) -> _ClientSlot:
        # No await between lookup and insert, so creation is atomic on the loop.
        slot = self._slots.get(client_id)
        if slot is None:
            slot = _ClientSlot(state=ClientRateState(window_reset_at=self._clock() + self.window_ms))
            self._slots[client_id] = slot
        return slot

    async def check(self, client_id: str) -> RateDecision:
        """Count one request for ``client_id`` and decide whether to admit it."""
        slot = self._slot_for(client_id)
        async with slot.lock:
            state = slot.state
            now = self._clock()

            if state.is_expired(now):
                state.count = 0
                state.window_reset_at = now + self.window_ms

            if state.count >= self.requests_per_window:
                return RateDecision(
                    allowed=False,
                    remaining=0,
                    reset_at=state.window_reset_at,
                    limit=self.requests_per_window,
                )

            state.count += 1
            return RateDecision(
                allowed=True,
                remaining=self.requests_per_window - state.count,
                reset_at=state.window_reset_at,
                limit=self.requests_per_window,
            )

    async def peek(self, client_id: str) -> Optional[ClientRateState]:
        """Return a copy of the client's state without counting a request."""
        slot = self._slots.get(client_id)
        if slot is None:
            return None
        async with slot.lock:
            return ClientRateState(
                count=slot.state.count,
                window_reset_at=slot.state.window_reset_at,
            )

    def tracked_clients(self) -> int:
        return len(self._slots)

    async def cleanup(self) -> int:
        """Drop entries whose window has expired.

        An expired entry behaves exactly like a missing one, so removing it
        does not change any future decision. Entries currently held by a
        request are skipped.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [
            key for key, slot in self._slots.items()
            if not slot.lock.locked() and slot.state.is_expired(now)
        ]
        for key in expired:
            del self._slots[key]
        if expired:
            logger.debug(f"Removed {len(expired)} expired rate limit entries")
        return len(expired)


_rate_limiter: Optional[FixedWindowRateLimiter] = None


def get_rate_limiter() -> FixedWindowRateLimiter:
    """Get the process-wide limiter configured from settings."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = FixedWindowRateLimiter(
            requests_per_window=settings.rate_limit_requests_per_minute,
            window_seconds=settings.rate_limit_window_seconds,
        )
    return _rate_limiter


def reset_rate_limiter() -> None:
    """Drop the process-wide limiter (used by tests)."""
    global _rate_limiter
    _rate_limiter = None


async def run_cleanup_loop(limiter: FixedWindowRateLimiter, interval_seconds: float) -> None:
    """Periodically sweep expired entries until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        await limiter.cleanup()
