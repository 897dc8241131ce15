"""Turn upstream outcomes into the stable client-facing response contract.

Every branch returns the same :class:`NormalizedResponse` shape. Plan
limitations are reported as a soft error (HTTP 200 by default) carrying
``fallback: true`` so browser consumers can render a notice without
special-casing non-2xx statuses.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from marketgate.app.core.config import settings
from marketgate.app.services.rate_limit.models import RateDecision
from marketgate.app.services.upstream import (
    PlanLimited,
    PlanLimitSource,
    Success,
    TransportFailure,
    UpstreamOutcome,
)

PLAN_LIMITED_CODE = "403"
PLAN_LIMITED_MSG = "Hobbyist plan limitations"

# Envelope text per detection source; the shape is the same for both.
_PLAN_LIMITED_TEXT: Dict[PlanLimitSource, Dict[str, str]] = {
    PlanLimitSource.TRANSPORT: {
        "error": "Liquidation and funding rate endpoints require Professional+ plan",
        "message": "This feature requires CoinGlass Professional+ plan",
        "limitation": "HOBBYIST plan supports ≥4h intervals only for basic market data",
        "upgrade": "Consider upgrading to access real-time liquidation and funding rate data",
    },
    PlanLimitSource.BODY: {
        "error": "This endpoint is not available with HOBBYIST plan",
        "message": "This feature requires CoinGlass Professional+ plan",
        "limitation": "HOBBYIST plan has limited access to liquidation and funding rate data",
        "upgrade": "Consider upgrading to access real-time institutional trading data",
    },
}


@dataclass
class NormalizedResponse:
    status_code: int
    body: Any
    headers: Dict[str, str] = field(default_factory=dict)


def success_cache_control(
    max_age: Optional[int] = None,
    stale_while_revalidate: Optional[int] = None,
) -> str:
    max_age = settings.upstream_cache_seconds if max_age is None else max_age
    swr = (
        settings.cache_stale_while_revalidate_seconds
        if stale_while_revalidate is None
        else stale_while_revalidate
    )
    return f"public, s-maxage={max_age}, stale-while-revalidate={swr}"


def plan_limited_envelope(source: PlanLimitSource) -> Dict[str, Any]:
    text = _PLAN_LIMITED_TEXT[source]
    return {
        "code": PLAN_LIMITED_CODE,
        "msg": PLAN_LIMITED_MSG,
        "error": text["error"],
        "fallback": True,
        "data": {
            "message": text["message"],
            "limitation": text["limitation"],
            "upgrade": text["upgrade"],
        },
    }


def normalize(outcome: UpstreamOutcome, decision: RateDecision) -> NormalizedResponse:
    """Map an upstream outcome to status, headers and body."""
    headers = decision.headers()

    if isinstance(outcome, PlanLimited):
        return NormalizedResponse(
            status_code=settings.plan_limited_status_code,
            body=plan_limited_envelope(outcome.source),
            headers=headers,
        )

    if isinstance(outcome, TransportFailure):
        return NormalizedResponse(
            status_code=outcome.status,
            body={"error": f"API request failed: {outcome.status_text}"},
            headers=headers,
        )

    if isinstance(outcome, Success):
        headers["Cache-Control"] = success_cache_control()
        return NormalizedResponse(status_code=200, body=outcome.payload, headers=headers)

    raise TypeError(f"Unknown upstream outcome: {type(outcome).__name__}")


def rejected(decision: RateDecision, message: str) -> NormalizedResponse:
    """429 response for a client over budget. Carries no cache directive."""
    return NormalizedResponse(
        status_code=429,
        body={"error": message},
        headers={
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(decision.reset_at),
        },
    )
