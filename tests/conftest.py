import pytest
from fastapi.testclient import TestClient

from marketgate.app.core.cache import reset_cache
from marketgate.app.core.logging import clear_log_context
from marketgate.app.main import app
from marketgate.app.services.rate_limit import (
    FixedWindowRateLimiter,
    get_rate_limiter,
    reset_rate_limiter,
)

COINGLASS_BASE_URL = "https://open-api-v4.coinglass.com"


class FakeClock:
    """Controllable epoch-millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture(autouse=True)
def _reset_process_state():
    reset_rate_limiter()
    reset_cache()
    clear_log_context()
    yield
    app.dependency_overrides.clear()
    reset_rate_limiter()
    reset_cache()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(requests_per_window=30, window_seconds=60, clock=clock)


@pytest.fixture
def client(limiter):
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    with TestClient(app) as test_client:
        yield test_client
