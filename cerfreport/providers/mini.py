"""Bitcoin and gold spot prices for the mini-market strip."""

from __future__ import annotations

from typing import Any

from cerfreport.core import http
from cerfreport.core.errors import PAYLOAD, ProviderError
from cerfreport.core.normalize import finite_or_none, has_price, normalize_quote
from cerfreport.core.orchestrator import Chain, FetchContext, Provider, RequestIdentity
from cerfreport.providers.quotes import yahoo_quotes

ASSETS: dict[str, dict[str, str]] = {
    "btc": {"ticker": "BTC-USD", "name": "Bitcoin", "link": "https://www.google.com/finance/quote/BTC-USD"},
    "xau": {"ticker": "XAU-USD", "name": "Gold", "link": "https://www.google.com/finance/quote/XAU-USD"},
}


def _yahoo_symbol(symbol: str, asset: str, tag: str):
    def fetch(identity: RequestIdentity, ctx: FetchContext) -> dict[str, Any] | None:
        quotes = yahoo_quotes([symbol], ctx, tag=tag)
        quote = quotes.get(symbol.upper())
        if quote is None:
            return None
        return normalize_quote(ASSETS[asset]["ticker"], ASSETS[asset]["name"], quote["c"], quote["d"], quote["dp"])

    return fetch


def fetch_coingecko_btc(identity: RequestIdentity, ctx: FetchContext) -> dict[str, Any] | None:
    data = http.get_json(
        "https://api.coingecko.com/api/v3/simple/price",
        params={"ids": "bitcoin", "vs_currencies": "usd", "include_24hr_change": "true"},
        timeout=ctx.call_timeout(),
        tag="coingecko",
    )
    coin = data.get("bitcoin") if isinstance(data, dict) else None
    if not isinstance(coin, dict):
        raise ProviderError("coingecko payload has no bitcoin entry", kind=PAYLOAD)
    price = finite_or_none(coin.get("usd"))
    pct = finite_or_none(coin.get("usd_24h_change"))
    change = None
    if price is not None and pct is not None and pct != -100:
        change = price - price / (1 + pct / 100)
    return normalize_quote("BTC-USD", "Bitcoin", price, change, pct)


def fetch_exchangerate_xau(identity: RequestIdentity, ctx: FetchContext) -> dict[str, Any] | None:
    # USD per troy ounce.
    data = http.get_json(
        "https://api.exchangerate.host/convert",
        params={"from": "XAU", "to": "USD"},
        timeout=ctx.call_timeout(),
        tag="exchangerate",
    )
    if not isinstance(data, dict):
        raise ProviderError("exchangerate payload is not an object", kind=PAYLOAD)
    return normalize_quote("XAU-USD", "Gold", data.get("result"))


def normalize_spot(raw: Any, identity: RequestIdentity) -> dict[str, Any] | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ProviderError("spot quote is not an object", kind=PAYLOAD)
    asset = ASSETS[identity.key]
    return normalize_quote(asset["ticker"], asset["name"], raw.get("c"), raw.get("d"), raw.get("dp"))


def count_spot(body: Any) -> int:
    return 1 if has_price(body) else 0


PROVIDERS: dict[str, tuple[Provider, ...]] = {
    "btc": (
        Provider("coingecko", fetch_coingecko_btc),
        Provider("yahoo", _yahoo_symbol("BTC-USD", "btc", "yahoo:BTC-USD")),
    ),
    "xau": (
        Provider("yahoo-spot", _yahoo_symbol("XAUUSD=X", "xau", "yahoo:XAUUSD=X")),
        Provider("yahoo-futures", _yahoo_symbol("GC=F", "xau", "yahoo:GC=F")),
        Provider("exchangerate", fetch_exchangerate_xau),
    ),
}


def spot_chain(asset: str, freshness: float = 0.0) -> Chain:
    return Chain(providers=PROVIDERS[asset], normalize=normalize_spot, count=count_spot, freshness=freshness)
