"""Translate the uniform proxy query into CoinGlass endpoint parameters.

CoinGlass endpoint families disagree on which parameters they accept, so the
inbound ``{endpoint, symbol, interval, limit}`` query is classified once into
an :class:`EndpointFamily` and handed to that family's translation function.
Families overlap by string content, so classification order matters:
liquidation history, then funding-rate history, then long/short ratio, then
everything else.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator

from marketgate.app.core.config import settings
from marketgate.app.exceptions import ValidationError

QueryParams = List[Tuple[str, str]]


# Characters that would let an endpoint escape the upstream host or path
_FORBIDDEN_ENDPOINT_TOKENS = ("@", "?", "#", "\\", "//")


def validate_endpoint(endpoint: str) -> str:
    """Ensure ``endpoint`` is a plain path on the upstream host.

    Raises:
        ValidationError: If the endpoint is missing or could redirect the call.
    """
    endpoint = (endpoint or "").strip()
    if not endpoint:
        raise ValidationError("Endpoint is required")
    if not endpoint.startswith("/") or any(t in endpoint for t in _FORBIDDEN_ENDPOINT_TOKENS):
        raise ValidationError("Endpoint must be an upstream API path")
    return endpoint


def _or_default(value: Optional[str], default: str) -> str:
    value = (value or "").strip()
    return value or default


class ProxyRequest(BaseModel):
    """Normalized inbound query. Immutable once parsed."""

    model_config = ConfigDict(frozen=True)

    endpoint: str
    symbol: Optional[str] = None
    interval: Optional[str] = None
    limit: Optional[str] = None

    @field_validator("symbol", "interval", "limit", mode="before")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @classmethod
    def from_query(
        cls,
        endpoint: str,
        symbol: Optional[str] = None,
        interval: Optional[str] = None,
        limit: Optional[str] = None,
    ) -> "ProxyRequest":
        """Build a request applying the configured interval/limit defaults."""
        return cls(
            endpoint=validate_endpoint(endpoint),
            symbol=symbol,
            interval=_or_default(interval, settings.default_interval),
            limit=_or_default(limit, settings.default_limit),
        )


@dataclass(frozen=True)
class UpstreamQuery:
    """Fully resolved upstream call: endpoint path plus ordered parameters."""
    path: str
    params: QueryParams
    family: "EndpointFamily"


class EndpointFamily(str, Enum):
    LIQUIDATION_HISTORY = "liquidation_history"
    FUNDING_RATE_HISTORY = "funding_rate_history"
    LONG_SHORT_RATIO = "long_short_ratio"
    DEFAULT = "default"

    @property
    def plan_gated(self) -> bool:
        """Families that need a higher CoinGlass plan than Hobbyist."""
        return self in (EndpointFamily.LIQUIDATION_HISTORY, EndpointFamily.FUNDING_RATE_HISTORY)


# Evaluated in order, first match wins.
_FAMILY_MARKERS: Tuple[Tuple[str, EndpointFamily], ...] = (
    ("/liquidation/history", EndpointFamily.LIQUIDATION_HISTORY),
    ("/funding-rate/history", EndpointFamily.FUNDING_RATE_HISTORY),
    ("/long-short-ratio", EndpointFamily.LONG_SHORT_RATIO),
)

# This sub-endpoint rejects an interval parameter upstream.
_GLOBAL_ACCOUNT_MARKER = "/global-account"


def classify_endpoint(endpoint: str) -> EndpointFamily:
    for marker, family in _FAMILY_MARKERS:
        if marker in endpoint:
            return family
    return EndpointFamily.DEFAULT


def _append(params: QueryParams, key: str, value: Optional[str]) -> None:
    if value:
        params.append((key, value))


def _upper(symbol: Optional[str]) -> Optional[str]:
    return symbol.upper() if symbol else None


def _liquidation_params(request: ProxyRequest) -> QueryParams:
    params: QueryParams = []
    symbol = _upper(request.symbol)
    if symbol:
        params.append(("instrument", f"{symbol}USDT"))
        params.append(("symbol", symbol))
    params.append(("exchange", settings.upstream_default_exchange))
    _append(params, "interval", request.interval)
    return params


def _funding_rate_params(request: ProxyRequest) -> QueryParams:
    params: QueryParams = []
    _append(params, "symbol", _upper(request.symbol))
    params.append(("exchange", settings.upstream_default_exchange))
    _append(params, "interval", request.interval)
    return params


def _long_short_ratio_params(request: ProxyRequest) -> QueryParams:
    params: QueryParams = []
    _append(params, "symbol", _upper(request.symbol))
    if _GLOBAL_ACCOUNT_MARKER not in request.endpoint:
        _append(params, "interval", request.interval)
    return params


def _default_params(request: ProxyRequest) -> QueryParams:
    params: QueryParams = []
    _append(params, "symbol", _upper(request.symbol))
    _append(params, "interval", request.interval)
    _append(params, "limit", request.limit)
    return params


_TRANSLATORS: Dict[EndpointFamily, Callable[[ProxyRequest], QueryParams]] = {
    EndpointFamily.LIQUIDATION_HISTORY: _liquidation_params,
    EndpointFamily.FUNDING_RATE_HISTORY: _funding_rate_params,
    EndpointFamily.LONG_SHORT_RATIO: _long_short_ratio_params,
    EndpointFamily.DEFAULT: _default_params,
}


def translate(request: ProxyRequest) -> UpstreamQuery:
    """Resolve the upstream path and parameters for ``request``."""
    family = classify_endpoint(request.endpoint)
    return UpstreamQuery(
        path=request.endpoint,
        params=_TRANSLATORS[family](request),
        family=family,
    )
