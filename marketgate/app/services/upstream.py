"""CoinGlass upstream client.

Issues the outbound GET, attaches the API key, serves repeated identical
queries from a short-lived cache and classifies the result into an
:data:`UpstreamOutcome`. CoinGlass reports some plan-tier failures inside a
200 response, so the decoded body is always inspected before a call is
declared successful.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union
from urllib.parse import urlencode

import httpx

from marketgate.app.core.cache import CacheBackend, get_cache
from marketgate.app.core.config import settings
from marketgate.app.core.http_client import get_http_client
from marketgate.app.core.logging import get_log_context, get_logger
from marketgate.app.exceptions import UpstreamTransportError
from marketgate.app.services.translator import UpstreamQuery

logger = get_logger(__name__)

# Body "code" values meaning success
_OK_CODES = ("0", 0)

# Token CoinGlass puts in "msg" when a parameter is outside the current plan
_INSTRUMENT_TOKEN = "instrument"


class PlanLimitSource(str, Enum):
    TRANSPORT = "transport"  # Upstream refused the endpoint with a non-2xx status
    BODY = "body"            # Upstream answered 2xx with an embedded error code


@dataclass(frozen=True)
class TransportFailure:
    status: int
    status_text: str


@dataclass(frozen=True)
class PlanLimited:
    reason: str
    source: PlanLimitSource


@dataclass(frozen=True)
class Success:
    payload: Any
    cached: bool = False


UpstreamOutcome = Union[TransportFailure, PlanLimited, Success]


def build_url(base_url: str, query: UpstreamQuery) -> str:
    """Join the upstream path and params onto ``base_url``.

    Raises:
        ValueError: If the path would move the request off the base host.
    """
    url = f"{base_url.rstrip('/')}{query.path}"
    if query.params:
        url += "?" + urlencode(query.params)
    if httpx.URL(url).netloc != httpx.URL(base_url).netloc:
        raise ValueError(f"Upstream path {query.path!r} leaves the configured host")
    return url


def embedded_error_code(body: Any) -> Any:
    """Return the body's own status code when it signals an error, else None."""
    if isinstance(body, dict) and "code" in body and body["code"] not in _OK_CODES:
        return body["code"]
    return None


def classify_body(body: Any) -> Optional[PlanLimited]:
    """Detect a plan limitation reported inside a 2xx body.

    Unrecognised non-zero codes are not treated as failures here; they are
    passed through to the caller verbatim.
    """
    if embedded_error_code(body) is None:
        return None
    msg = body.get("msg")
    if isinstance(msg, str) and _INSTRUMENT_TOKEN in msg:
        return PlanLimited(
            reason="parameter unsupported on current plan",
            source=PlanLimitSource.BODY,
        )
    return None


class UpstreamClient:
    """Thin async client for the CoinGlass REST API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        cache: Optional[CacheBackend] = None,
        cache_seconds: Optional[int] = None,
        user_agent: Optional[str] = None,
    ):
        """Initialize the client.

        Args:
            http_client: Shared HTTP client, owned by the application lifespan
            base_url: CoinGlass API base URL
            api_key: CoinGlass API key, sent as ``CG-API-KEY``
            cache: Response cache; caching is disabled when omitted
            cache_seconds: How long a successful payload may be reused
            user_agent: User-Agent header for outbound calls
        """
        self._http_client = http_client
        self.base_url = (base_url or settings.coinglass_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.coinglass_api_key
        self._cache = cache
        self.cache_seconds = (
            cache_seconds if cache_seconds is not None else settings.upstream_cache_seconds
        )
        self.headers = self._build_headers(user_agent or settings.coinglass_user_agent)

    def _build_headers(self, user_agent: str) -> Dict[str, str]:
        return {
            "CG-API-KEY": self.api_key,
            "Content-Type": "application/json",
            "User-Agent": user_agent,
        }

    async def _cached(self, url: str) -> Optional[Success]:
        if self._cache is None:
            return None
        raw = await self._cache.get(url)
        if raw is None:
            return None
        return Success(payload=json.loads(raw), cached=True)

    async def _store(self, url: str, payload: Any) -> None:
        if self._cache is None:
            return
        await self._cache.set(url, json.dumps(payload).encode("utf-8"), ttl=self.cache_seconds)

    async def fetch(self, query: UpstreamQuery) -> UpstreamOutcome:
        """Call CoinGlass for ``query`` and classify the result.

        Raises:
            UpstreamTransportError: The upstream could not be reached or timed out.
            ValueError: The upstream body was not valid JSON.
        """
        url = build_url(self.base_url, query)

        cached = await self._cached(url)
        if cached is not None:
            logger.debug(f"Serving cached CoinGlass response for {url}")
            return cached

        logger.info(f"Making CoinGlass API request to: {url}")
        try:
            response = await self._http_client.get(url, headers=self.headers)
        except httpx.TimeoutException as e:
            logger.error(
                f"CoinGlass API timeout: {e!r}",
                extra=get_log_context(endpoint=query.path),
            )
            raise UpstreamTransportError(504, "Gateway Timeout") from e
        except httpx.TransportError as e:
            logger.error(
                f"CoinGlass API unreachable: {e!r}",
                extra=get_log_context(endpoint=query.path),
            )
            raise UpstreamTransportError(502, "Bad Gateway") from e

        if not response.is_success:
            logger.error(
                f"CoinGlass API error: {response.status_code} {response.reason_phrase}",
                extra=get_log_context(endpoint=query.path, upstream_status=response.status_code),
            )
            if query.family.plan_gated:
                return PlanLimited(
                    reason="endpoint unsupported on current plan",
                    source=PlanLimitSource.TRANSPORT,
                )
            return TransportFailure(status=response.status_code, status_text=response.reason_phrase)

        body = response.json()

        error_code = embedded_error_code(body)
        if error_code is None:
            await self._store(url, body)
            return Success(payload=body)

        logger.error(
            f"CoinGlass API returned error: {body.get('msg')}",
            extra=get_log_context(endpoint=query.path, upstream_code=error_code),
        )
        limited = classify_body(body)
        if limited is not None:
            return limited
        # Unrecognised upstream errors go back verbatim and are not cached
        return Success(payload=body)


def get_upstream_client() -> UpstreamClient:
    """Build a client bound to the shared HTTP client and response cache.

    Raises:
        RuntimeError: If the application lifespan has not initialized the HTTP client.
    """
    return UpstreamClient(http_client=get_http_client(), cache=get_cache())
