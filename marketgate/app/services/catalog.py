"""Known CoinGlass v4 futures endpoints, grouped by category.

Used by the catalogue route so consumers can discover which paths the proxy
understands and how each one is translated.
"""

from typing import Any, Dict, List

from marketgate.app.services.translator import classify_endpoint

ENDPOINT_CATALOG: Dict[str, Dict[str, str]] = {
    "market": {
        "supportedCoins": "/api/futures/supported-coins",
        "supportedExchanges": "/api/futures/supported-exchange-pairs",
        "coinsMarkets": "/api/futures/coins-markets",
        "pairsMarkets": "/api/futures/pairs-markets",
        "coinsPriceChange": "/api/futures/coins-price-change",
        "priceHistory": "/api/futures/price-history",
    },
    "liquidation": {
        "liquidationPairHistory": "/api/futures/liquidation/history",
        "liquidationCoinHistory": "/api/futures/liquidation/coin-history",
        "liquidationCoinList": "/api/futures/liquidation/coin-list",
        "liquidationExchangeList": "/api/futures/liquidation/exchange-list",
    },
    "funding_rate": {
        "fundingRateHistory": "/api/futures/funding-rate/history",
        "fundingRateOIWeight": "/api/futures/funding-rate/oi-weight-history",
        "fundingRateVolWeight": "/api/futures/funding-rate/vol-weight-history",
        "fundingRateExchangeList": "/api/futures/funding-rate/exchange-list",
    },
    "long_short_ratio": {
        "longShortGlobalAccount": "/api/futures/long-short-ratio/global-account",
        "longShortTopAccount": "/api/futures/long-short-ratio/top-account-history",
        "longShortTopPosition": "/api/futures/long-short-ratio/top-position-history",
    },
    "taker_buy_sell": {
        "takerBuySellPairHistory": "/api/futures/taker-buy-sell/pair-history",
        "takerBuySellCoinHistory": "/api/futures/taker-buy-sell/coin-history",
    },
    "open_interest": {
        "openInterestHistory": "/api/futures/open-interest/history",
        "openInterestAggregatedHistory": "/api/futures/open-interest/aggregated-history",
        "openInterestExchangeList": "/api/futures/open-interest/exchange-list",
    },
}


def list_endpoints() -> List[Dict[str, Any]]:
    """Flatten the catalogue, annotating each path with its translation family."""
    entries = []
    for category, endpoints in ENDPOINT_CATALOG.items():
        for name, path in endpoints.items():
            family = classify_endpoint(path)
            entries.append({
                "name": name,
                "category": category,
                "path": path,
                "family": family.value,
                "plan_gated": family.plan_gated,
            })
    return entries
