"""FastAPI application factory for the CoinGlass gateway."""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketgate.app.api.proxy import router as proxy_router
from marketgate.app.core.cache import get_cache
from marketgate.app.core.config import settings
from marketgate.app.core.http_client import init_http_client
from marketgate.app.core.logging import get_logger, setup_logging
from marketgate.app.exceptions import GatewayException, QuotaExceededError
from marketgate.app.middleware.request_id import RequestIdMiddleware, get_request_id
from marketgate.app.services.normalizer import rejected
from marketgate.app.services.rate_limit import get_rate_limiter, run_cleanup_loop


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[dict, None]:
        """Own the shared HTTP client and the rate limit sweeper."""
        async with init_http_client() as http_client:
            sweeper = asyncio.create_task(
                run_cleanup_loop(get_rate_limiter(), settings.rate_limit_cleanup_interval_seconds)
            )
            logger.info(
                "Application startup complete",
                extra={
                    "upstream": settings.coinglass_base_url,
                    "rate_limit": settings.rate_limit_requests_per_minute,
                    "debug_mode": settings.debug,
                },
            )
            if not settings.coinglass_api_key:
                logger.warning("COINGLASS_API_KEY is not set; upstream calls will be rejected")

            yield {"http_client": http_client}

            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="MarketGate",
        description="CoinGlass market-data gateway with per-client rate limiting",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Order matters: last added = first executed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
        max_age=600,
    )
    app.add_middleware(RequestIdMiddleware)

    app.include_router(proxy_router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Gateway status with limiter and cache occupancy."""
        return {
            "status": "ok",
            "components": {
                "rate_limiter": {
                    "status": "ok",
                    "tracked_clients": get_rate_limiter().tracked_clients(),
                    "requests_per_window": settings.rate_limit_requests_per_minute,
                    "window_seconds": settings.rate_limit_window_seconds,
                },
                "cache": {
                    "status": "ok",
                    "entries": await get_cache().size(),
                },
                "upstream": {
                    "base_url": settings.coinglass_base_url,
                    "api_key_configured": bool(settings.coinglass_api_key),
                },
            },
        }

    @app.exception_handler(QuotaExceededError)
    async def quota_exceeded_handler(request: Request, exc: QuotaExceededError) -> JSONResponse:
        """Handle QuotaExceededError and return HTTP 429 response."""
        result = rejected(exc.decision, exc.message)
        return JSONResponse(
            status_code=result.status_code, content=result.body, headers=result.headers
        )

    @app.exception_handler(GatewayException)
    async def gateway_error_handler(request: Request, exc: GatewayException) -> JSONResponse:
        """Render gateway errors as ``{"error": message}`` with their status."""
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Last-resort handler. Never exposes tracebacks or exception text."""
        request_id = get_request_id(request)
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={"exception_type": type(exc).__name__},
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "request_id": request_id},
        )

    return app


# Create the application instance
app = create_app()
