"""Shared HTTP client management for connection pooling.

A single ``httpx.AsyncClient`` is created in the application lifespan and
reused for every upstream call so connections to CoinGlass are kept alive.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx

from marketgate.app.core.config import settings


_shared_http_client: httpx.AsyncClient | None = None


def _build_timeout() -> httpx.Timeout:
    return httpx.Timeout(
        settings.httpx_timeout,
        connect=settings.httpx_connect_timeout,
        pool=settings.httpx_pool_timeout,
    )


def _build_limits() -> httpx.Limits:
    return httpx.Limits(
        max_connections=settings.httpx_max_connections,
        max_keepalive_connections=settings.httpx_max_keepalive_connections,
        keepalive_expiry=settings.httpx_keepalive_expiry,
    )


def get_http_client() -> httpx.AsyncClient:
    """Get the shared HTTP client instance.

    Raises:
        RuntimeError: If the HTTP client has not been initialized.
    """
    if _shared_http_client is None:
        raise RuntimeError(
            "HTTP client not initialized. Ensure lifespan context is active."
        )
    return _shared_http_client


@asynccontextmanager
async def init_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Initialize and yield the shared HTTP client.

    Intended for the FastAPI lifespan:

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            async with init_http_client():
                yield
    """
    global _shared_http_client

    _shared_http_client = httpx.AsyncClient(timeout=_build_timeout(), limits=_build_limits())

    try:
        yield _shared_http_client
    finally:
        if _shared_http_client is not None:
            await _shared_http_client.aclose()
            _shared_http_client = None

