"""Tests for endpoint classification and parameter translation."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from marketgate.app.exceptions import ValidationError
from marketgate.app.services.translator import (
    EndpointFamily,
    ProxyRequest,
    classify_endpoint,
    translate,
    validate_endpoint,
)


@pytest.mark.parametrize(
    ("endpoint", "family"),
    [
        ("/api/futures/liquidation/history", EndpointFamily.LIQUIDATION_HISTORY),
        ("/api/futures/funding-rate/history", EndpointFamily.FUNDING_RATE_HISTORY),
        ("/api/futures/long-short-ratio/global-account", EndpointFamily.LONG_SHORT_RATIO),
        ("/api/futures/long-short-ratio/top-account-history", EndpointFamily.LONG_SHORT_RATIO),
        ("/api/futures/liquidation/coin-list", EndpointFamily.DEFAULT),
        ("/api/futures/coins-markets", EndpointFamily.DEFAULT),
    ],
)
def test_classify_endpoint(endpoint, family):
    assert classify_endpoint(endpoint) is family


def test_classification_precedence():
    """Liquidation wins over funding-rate when both markers appear."""
    endpoint = "/liquidation/history/funding-rate/history/long-short-ratio"
    assert classify_endpoint(endpoint) is EndpointFamily.LIQUIDATION_HISTORY
    assert classify_endpoint("/funding-rate/history/long-short-ratio") is EndpointFamily.FUNDING_RATE_HISTORY


def test_plan_gated_families():
    assert EndpointFamily.LIQUIDATION_HISTORY.plan_gated
    assert EndpointFamily.FUNDING_RATE_HISTORY.plan_gated
    assert not EndpointFamily.LONG_SHORT_RATIO.plan_gated
    assert not EndpointFamily.DEFAULT.plan_gated


class TestProxyRequest:
    def test_defaults_applied(self):
        request = ProxyRequest.from_query(endpoint="/api/futures/coins-markets")
        assert request.interval == "4h"
        assert request.limit == "100"
        assert request.symbol is None

    def test_blank_values_take_defaults(self):
        request = ProxyRequest.from_query(
            endpoint="/api/futures/coins-markets", symbol="  ", interval="", limit=""
        )
        assert request.symbol is None
        assert request.interval == "4h"
        assert request.limit == "100"

    def test_is_immutable(self):
        request = ProxyRequest.from_query(endpoint="/x")
        with pytest.raises(PydanticValidationError):
            request.symbol = "btc"


class TestTranslate:
    def test_liquidation_history(self):
        query = translate(ProxyRequest.from_query(
            endpoint="/api/futures/liquidation/history", symbol="btc", limit="500"
        ))
        assert query.path == "/api/futures/liquidation/history"
        assert query.params == [
            ("instrument", "BTCUSDT"),
            ("symbol", "BTC"),
            ("exchange", "binance"),
            ("interval", "4h"),
        ]
        assert "limit" not in dict(query.params)

    def test_liquidation_history_without_symbol(self):
        query = translate(ProxyRequest.from_query(endpoint="/api/futures/liquidation/history"))
        assert query.params == [("exchange", "binance"), ("interval", "4h")]

    def test_funding_rate_history(self):
        query = translate(ProxyRequest.from_query(
            endpoint="/api/futures/funding-rate/history", symbol="eth", interval="8h"
        ))
        assert query.params == [("symbol", "ETH"), ("exchange", "binance"), ("interval", "8h")]

    def test_long_short_global_account_drops_interval(self):
        query = translate(ProxyRequest.from_query(
            endpoint="/api/futures/long-short-ratio/global-account", symbol="sol", interval="1d"
        ))
        assert query.params == [("symbol", "SOL")]

    def test_long_short_other_forwards_interval(self):
        query = translate(ProxyRequest.from_query(
            endpoint="/api/futures/long-short-ratio/other", symbol="sol", interval="1d"
        ))
        assert query.params == [("symbol", "SOL"), ("interval", "1d")]

    def test_default_family(self):
        query = translate(ProxyRequest.from_query(
            endpoint="/api/futures/price-history", symbol="doge", interval="1h", limit="50"
        ))
        assert query.family is EndpointFamily.DEFAULT
        assert query.params == [("symbol", "DOGE"), ("interval", "1h"), ("limit", "50")]

    def test_default_family_without_symbol(self):
        query = translate(ProxyRequest.from_query(endpoint="/api/futures/coins-markets"))
        assert query.params == [("interval", "4h"), ("limit", "100")]

    def test_no_empty_values_emitted(self):
        request = ProxyRequest(endpoint="/api/futures/coins-markets")
        assert translate(request).params == []


@pytest.mark.parametrize(
    "endpoint",
    [
        "@evil.example/steal",
        "api/futures/coins-markets",
        "//evil.example/x",
        "/api/futures/coins-markets?symbol=x",
        "/api/futures/coins-markets#frag",
        "/api/futures/x@evil.example",
        "/api\\futures",
    ],
)
def test_endpoint_outside_upstream_path_rejected(endpoint):
    with pytest.raises(ValidationError) as exc_info:
        ProxyRequest.from_query(endpoint=endpoint)
    assert exc_info.value.status_code == 400


def test_missing_endpoint_rejected():
    with pytest.raises(ValidationError, match="Endpoint is required"):
        validate_endpoint("  ")


def test_valid_endpoint_stripped():
    assert validate_endpoint(" /api/futures/coins-markets ") == "/api/futures/coins-markets"
