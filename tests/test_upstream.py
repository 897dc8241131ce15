"""Tests for the CoinGlass upstream client."""

import httpx
import pytest
import respx
from httpx import Response

from marketgate.app.core.cache import InMemoryCache
from marketgate.app.exceptions import UpstreamTransportError
from marketgate.app.services.translator import ProxyRequest, translate
from marketgate.app.services.upstream import (
    PlanLimited,
    PlanLimitSource,
    Success,
    TransportFailure,
    UpstreamClient,
    build_url,
    classify_body,
)

BASE_URL = "https://open-api-v4.coinglass.com"


def _query(endpoint, **kwargs):
    return translate(ProxyRequest.from_query(endpoint=endpoint, **kwargs))


def test_build_url_encodes_params_in_order():
    query = _query("/api/futures/liquidation/history", symbol="btc")
    assert build_url(BASE_URL + "/", query) == (
        f"{BASE_URL}/api/futures/liquidation/history"
        "?instrument=BTCUSDT&symbol=BTC&exchange=binance&interval=4h"
    )


def test_build_url_without_params():
    query = translate(ProxyRequest(endpoint="/api/futures/supported-coins"))
    assert build_url(BASE_URL, query) == f"{BASE_URL}/api/futures/supported-coins"


@pytest.mark.parametrize(
    ("body", "limited"),
    [
        ({"code": "0", "msg": "instrument"}, False),
        ({"code": 0, "msg": "instrument"}, False),
        ({"code": "400", "msg": "instrument"}, True),
        ({"code": 30001, "msg": "invalid instrument for plan"}, True),
        ({"code": "500", "msg": "Server busy"}, False),
        ({"msg": "instrument"}, False),
        ([{"code": "400", "msg": "instrument"}], False),
    ],
)
def test_classify_body(body, limited):
    assert (classify_body(body) is not None) is limited


class TestUpstreamClient:
    @pytest.mark.asyncio
    @respx.mock
    async def test_success_sends_auth_headers(self):
        route = respx.get(f"{BASE_URL}/api/futures/coins-markets").mock(
            return_value=Response(200, json={"code": "0", "data": [{"symbol": "BTC"}]})
        )
        async with httpx.AsyncClient() as http:
            upstream = UpstreamClient(http, base_url=BASE_URL, api_key="test-key")
            outcome = await upstream.fetch(_query("/api/futures/coins-markets", symbol="btc"))

        assert isinstance(outcome, Success)
        assert outcome.payload["data"] == [{"symbol": "BTC"}]
        request = route.calls.last.request
        assert request.headers["CG-API-KEY"] == "test-key"
        assert request.headers["Content-Type"] == "application/json"
        assert request.url.params["symbol"] == "BTC"
        assert request.url.params["limit"] == "100"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "endpoint",
        ["/api/futures/liquidation/history", "/api/futures/funding-rate/history"],
    )
    @respx.mock
    async def test_non_2xx_on_gated_family_is_plan_limited(self, endpoint):
        respx.get(url__startswith=f"{BASE_URL}{endpoint}").mock(return_value=Response(403))
        async with httpx.AsyncClient() as http:
            upstream = UpstreamClient(http, base_url=BASE_URL, api_key="k")
            outcome = await upstream.fetch(_query(endpoint, symbol="btc"))

        assert outcome == PlanLimited(
            reason="endpoint unsupported on current plan",
            source=PlanLimitSource.TRANSPORT,
        )

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_2xx_elsewhere_is_transport_failure(self):
        respx.get(url__startswith=f"{BASE_URL}/api/futures/coins-markets").mock(
            return_value=Response(503)
        )
        async with httpx.AsyncClient() as http:
            upstream = UpstreamClient(http, base_url=BASE_URL, api_key="k")
            outcome = await upstream.fetch(_query("/api/futures/coins-markets"))

        assert outcome == TransportFailure(status=503, status_text="Service Unavailable")

    @pytest.mark.asyncio
    @respx.mock
    async def test_embedded_instrument_error_is_plan_limited(self):
        respx.get(url__startswith=f"{BASE_URL}/api/futures/price-history").mock(
            return_value=Response(200, json={"code": "400", "msg": "instrument"})
        )
        async with httpx.AsyncClient() as http:
            upstream = UpstreamClient(http, base_url=BASE_URL, api_key="k")
            outcome = await upstream.fetch(_query("/api/futures/price-history", symbol="btc"))

        assert isinstance(outcome, PlanLimited)
        assert outcome.source is PlanLimitSource.BODY

    @pytest.mark.asyncio
    @respx.mock
    async def test_unrecognised_embedded_error_passes_through(self):
        body = {"code": "50001", "msg": "Server busy"}
        respx.get(url__startswith=f"{BASE_URL}/api/futures/coins-markets").mock(
            return_value=Response(200, json=body)
        )
        async with httpx.AsyncClient() as http:
            upstream = UpstreamClient(http, base_url=BASE_URL, api_key="k")
            outcome = await upstream.fetch(_query("/api/futures/coins-markets"))

        assert outcome == Success(payload=body)

    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_raises_transport_error(self):
        respx.get(url__startswith=f"{BASE_URL}/api/futures/coins-markets").mock(
            side_effect=httpx.ReadTimeout("timed out")
        )
        async with httpx.AsyncClient() as http:
            upstream = UpstreamClient(http, base_url=BASE_URL, api_key="k")
            with pytest.raises(UpstreamTransportError) as exc_info:
                await upstream.fetch(_query("/api/futures/coins-markets"))

        assert exc_info.value.status_code == 504

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error_raises_transport_error(self):
        respx.get(url__startswith=f"{BASE_URL}/api/futures/coins-markets").mock(
            side_effect=httpx.ConnectError("refused")
        )
        async with httpx.AsyncClient() as http:
            upstream = UpstreamClient(http, base_url=BASE_URL, api_key="k")
            with pytest.raises(UpstreamTransportError) as exc_info:
                await upstream.fetch(_query("/api/futures/coins-markets"))

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "API request failed: Bad Gateway"


class TestUpstreamCaching:
    @pytest.mark.asyncio
    @respx.mock
    async def test_identical_query_served_from_cache(self):
        route = respx.get(url__startswith=f"{BASE_URL}/api/futures/coins-markets").mock(
            return_value=Response(200, json={"code": "0", "data": []})
        )
        async with httpx.AsyncClient() as http:
            upstream = UpstreamClient(http, base_url=BASE_URL, api_key="k", cache=InMemoryCache())
            first = await upstream.fetch(_query("/api/futures/coins-markets"))
            second = await upstream.fetch(_query("/api/futures/coins-markets"))

        assert route.call_count == 1
        assert first.cached is False
        assert second.cached is True
        assert second.payload == first.payload

    @pytest.mark.asyncio
    @respx.mock
    async def test_different_params_not_shared(self):
        route = respx.get(url__startswith=f"{BASE_URL}/api/futures/coins-markets").mock(
            return_value=Response(200, json={"code": "0", "data": []})
        )
        async with httpx.AsyncClient() as http:
            upstream = UpstreamClient(http, base_url=BASE_URL, api_key="k", cache=InMemoryCache())
            await upstream.fetch(_query("/api/futures/coins-markets", symbol="btc"))
            await upstream.fetch(_query("/api/futures/coins-markets", symbol="eth"))

        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_errors_are_not_cached(self):
        route = respx.get(url__startswith=f"{BASE_URL}/api/futures/coins-markets").mock(
            return_value=Response(200, json={"code": "50001", "msg": "Server busy"})
        )
        async with httpx.AsyncClient() as http:
            upstream = UpstreamClient(http, base_url=BASE_URL, api_key="k", cache=InMemoryCache())
            await upstream.fetch(_query("/api/futures/coins-markets"))
            await upstream.fetch(_query("/api/futures/coins-markets"))

        assert route.call_count == 2


def test_build_url_refuses_foreign_host():
    query = translate(ProxyRequest(endpoint="@evil.example/steal"))
    with pytest.raises(ValueError):
        build_url(BASE_URL, query)


@pytest.mark.asyncio
async def test_fetch_never_sends_key_off_host():
    with respx.mock(assert_all_called=False) as mock:
        foreign = mock.get(url__startswith="https://evil.example").mock(
            return_value=Response(200, json={"code": "0"})
        )
        async with httpx.AsyncClient() as http:
            upstream = UpstreamClient(http, base_url=BASE_URL, api_key="SECRET")
            with pytest.raises(ValueError):
                await upstream.fetch(translate(ProxyRequest(endpoint="@evil.example/steal")))

    assert not foreign.called
