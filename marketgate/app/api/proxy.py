"""CoinGlass proxy endpoint.

Pipeline per request: validate the query, count it against the client's
budget, translate it for the target endpoint family, call upstream and
normalize the outcome. Nothing is retried; every failure ends the request.
"""

import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from marketgate.app.core.logging import bind_log_context, get_logger
from marketgate.app.exceptions import (
    GatewayException,
    InternalError,
    QuotaExceededError,
    UpstreamTransportError,
)
from marketgate.app.services.catalog import list_endpoints
from marketgate.app.services.normalizer import normalize
from marketgate.app.services.rate_limit import FixedWindowRateLimiter, get_rate_limiter
from marketgate.app.services.translator import ProxyRequest, translate
from marketgate.app.services.upstream import (
    TransportFailure,
    UpstreamClient,
    UpstreamOutcome,
    get_upstream_client,
)

router = APIRouter()
logger = get_logger(__name__)

DEFAULT_CLIENT_ID = "default"


def get_client_id(request: Request) -> str:
    """Identify the caller for rate limiting.

    Uses the first X-Forwarded-For hop, then X-Real-IP, then a shared
    default bucket.
    """
    forwarded = request.headers.get("X-Forwarded-For", "")
    client_ip = forwarded.split(",")[0].strip()
    if client_ip:
        return client_ip
    real_ip = request.headers.get("X-Real-IP", "").strip()
    return real_ip or DEFAULT_CLIENT_ID


async def _fetch(upstream: UpstreamClient, proxy_request: ProxyRequest) -> UpstreamOutcome:
    query = translate(proxy_request)
    try:
        return await upstream.fetch(query)
    except UpstreamTransportError as e:
        return TransportFailure(status=e.status_code, status_text=e.status_text)


@router.get("/api/coinglass", response_model=None)
async def coinglass_proxy(
    request: Request,
    endpoint: Optional[str] = None,
    symbol: Optional[str] = None,
    interval: Optional[str] = None,
    limit: Optional[str] = None,
    limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
    upstream: UpstreamClient = Depends(get_upstream_client),
) -> JSONResponse:
    """Proxy a market-data query to CoinGlass.

    Returns the upstream payload on success, a ``fallback: true`` envelope for
    plan limitations, the upstream status for other upstream failures, 400
    without ``endpoint`` and 429 once the client's budget is spent.
    """
    started = time.perf_counter()
    try:
        proxy_request = ProxyRequest.from_query(
            endpoint=endpoint or "", symbol=symbol, interval=interval, limit=limit
        )

        client_id = get_client_id(request)
        bind_log_context(client_id=client_id, endpoint=proxy_request.endpoint)

        decision = await limiter.check(client_id)
        if not decision.allowed:
            logger.warning(
                f"Rate limit exceeded for client, window resets at {decision.reset_at}"
            )
            raise QuotaExceededError(decision)

        outcome = await _fetch(upstream, proxy_request)
        result = normalize(outcome, decision)
    except GatewayException:
        raise
    except Exception as e:
        logger.exception(f"CoinGlass proxy error: {e!r}")
        raise InternalError() from e

    logger.info(
        f"Proxied {proxy_request.endpoint} -> {result.status_code} ({type(outcome).__name__})",
        extra={
            "status_code": result.status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        },
    )
    return JSONResponse(content=result.body, status_code=result.status_code, headers=result.headers)


@router.get("/api/coinglass/endpoints")
async def coinglass_endpoints() -> Dict[str, List[Dict[str, Any]]]:
    """List the CoinGlass endpoints the proxy knows how to translate."""
    return {"endpoints": list_endpoints()}
