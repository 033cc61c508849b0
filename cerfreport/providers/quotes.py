"""Equity quote adapters for the market-data endpoint.

Each adapter returns ``{ticker: quote_record}`` for the whole ticker
universe.  Finnhub only offers a per-symbol endpoint, so its lookups
run concurrently, each bounded by the request timeout.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any

import pandas as pd

from cerfreport.core import http
from cerfreport.core.errors import PAYLOAD, ProviderError
from cerfreport.core.normalize import finite_or_none, has_price, normalize_quote, rank_top_movers
from cerfreport.core.orchestrator import Chain, FetchContext, Provider, RequestIdentity

LOG = logging.getLogger(__name__)

MARKET_KEY = "quotes"

# ETFs stand in for the indices (DIA: Dow, SPY: S&P 500, QQQ: NASDAQ).
TICKERS: dict[str, tuple[str, ...]] = {
    "indices": ("DIA", "SPY", "QQQ"),
    "ai": ("NVDA", "MSFT", "GOOG", "AMD"),
    "crypto": ("COIN", "MSTR", "MARA", "RIOT"),
    "energy": ("XOM", "CVX", "SLB", "OXY"),
}
MOVER_GROUPS: tuple[str, ...] = ("ai", "crypto", "energy")

DISPLAY_NAMES: dict[str, str] = {
    "DIA": "Dow Jones",
    "SPY": "S&P 500",
    "QQQ": "NASDAQ",
}


def universe() -> list[str]:
    """Unique tickers across every group, in first-seen order."""
    seen: dict[str, None] = {}
    for group in TICKERS.values():
        for ticker in group:
            seen.setdefault(ticker, None)
    return list(seen)


def _keep(quotes: Iterable[dict[str, Any] | None]) -> dict[str, dict[str, Any]]:
    return {q["ticker"]: q for q in quotes if q}


def finnhub_quote(ticker: str, ctx: FetchContext) -> dict[str, Any] | None:
    data = http.get_json(
        "https://finnhub.io/api/v1/quote",
        params={"symbol": ticker, "token": ctx.credential("FINNHUB_API_KEY")},
        timeout=ctx.call_timeout(),
        tag=f"finnhub:{ticker}",
    )
    if not isinstance(data, dict):
        raise ProviderError(f"finnhub:{ticker} payload is not an object", kind=PAYLOAD)
    # Unknown symbols come back as all zeros.
    price = data.get("c") if data.get("c") else None
    return normalize_quote(ticker, None, price, data.get("d"), data.get("dp"))


def fetch_finnhub_quotes(
    identity: RequestIdentity, ctx: FetchContext, workers: int = 8
) -> dict[str, dict[str, Any]]:
    tickers = universe()
    results: list[dict[str, Any] | None] = []
    last_error: ProviderError | None = None
    with ThreadPoolExecutor(max_workers=max(1, min(workers, len(tickers)))) as pool:
        futures = {ticker: pool.submit(finnhub_quote, ticker, ctx) for ticker in tickers}
        for ticker, future in futures.items():
            try:
                results.append(future.result())
            except ProviderError as exc:
                LOG.debug("finnhub quote failed for %s: %s", ticker, exc)
                last_error = exc
    if not any(results) and last_error is not None:
        raise last_error
    return _keep(results)


def fetch_polygon_quotes(identity: RequestIdentity, ctx: FetchContext) -> dict[str, dict[str, Any]]:
    data = http.get_json(
        "https://api.polygon.io/v2/snapshot/locale/us/markets/stocks/tickers",
        params={"tickers": ",".join(universe()), "apiKey": ctx.credential("POLYGON_API_KEY")},
        timeout=ctx.call_timeout(),
        tag="polygon",
    )
    rows = data.get("tickers") if isinstance(data, dict) else None
    if not isinstance(rows, list):
        raise ProviderError("polygon snapshot has no tickers list", kind=PAYLOAD)
    quotes = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        last = (row.get("lastTrade") or {}).get("p")
        day_close = (row.get("day") or {}).get("c")
        prev_close = (row.get("prevDay") or {}).get("c")
        price = last or day_close or prev_close
        quotes.append(normalize_quote(row.get("ticker"), None, price, row.get("todaysChange"), row.get("todaysChangePerc")))
    return _keep(quotes)


def yahoo_quotes(symbols: Iterable[str], ctx: FetchContext, tag: str = "yahoo") -> dict[str, dict[str, Any]]:
    """Batch quote lookup; keys are the Yahoo symbols as requested."""
    data = http.get_json(
        "https://query1.finance.yahoo.com/v7/finance/quote",
        params={"symbols": ",".join(symbols)},
        timeout=ctx.call_timeout(),
        tag=tag,
    )
    result = ((data or {}).get("quoteResponse") or {}).get("result") if isinstance(data, dict) else None
    if not isinstance(result, list):
        raise ProviderError(f"{tag} quoteResponse.result missing", kind=PAYLOAD)
    return _keep(
        normalize_quote(
            q.get("symbol"),
            q.get("shortName"),
            q.get("regularMarketPrice"),
            q.get("regularMarketChange"),
            q.get("regularMarketChangePercent"),
        )
        for q in result
        if isinstance(q, dict)
    )


def fetch_yahoo_quotes(identity: RequestIdentity, ctx: FetchContext) -> dict[str, dict[str, Any]]:
    return yahoo_quotes(universe(), ctx)


def parse_stooq_csv(text: str) -> dict[str, dict[str, Any]]:
    """Stooq light CSV → quotes; change is measured against the session open."""
    try:
        df = pd.read_csv(io.StringIO(text))
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as exc:
        raise ProviderError(f"stooq CSV unreadable: {exc}", kind=PAYLOAD) from exc
    df.columns = [str(c).strip().title() for c in df.columns]
    if "Symbol" not in df.columns or "Close" not in df.columns:
        raise ProviderError("stooq CSV missing Symbol/Close columns", kind=PAYLOAD)
    for col in ("Open", "Close"):
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    quotes = []
    for row in df.to_dict("records"):
        ticker = str(row.get("Symbol") or "").upper().removesuffix(".US")
        close = finite_or_none(row.get("Close"))
        open_ = finite_or_none(row.get("Open"))
        change = close - open_ if close is not None and open_ else None
        pct = change / open_ * 100 if change is not None and open_ else None
        quotes.append(normalize_quote(ticker, None, close, change, pct))
    return _keep(quotes)


def fetch_stooq_quotes(identity: RequestIdentity, ctx: FetchContext) -> dict[str, dict[str, Any]]:
    symbols = ",".join(f"{t.lower()}.us" for t in universe())
    text = http.get_text(
        f"https://stooq.com/q/l/?s={symbols}&f=sohlc&h&e=csv",
        timeout=ctx.call_timeout(),
        tag="stooq",
    )
    return parse_stooq_csv(text)


def build_market_data(quote_map: dict[str, dict[str, Any]], movers_count: int = 8) -> dict[str, Any]:
    """Arrange quotes into the dashboard shape; missing tickers keep null prices."""

    def pick(ticker: str) -> dict[str, Any]:
        quote = dict(quote_map.get(ticker) or normalize_quote(ticker))
        if ticker in DISPLAY_NAMES:
            quote["name"] = DISPLAY_NAMES[ticker]
        return quote

    arranged = {t: pick(t) for t in universe()}
    movers_universe = [t for g in MOVER_GROUPS for t in TICKERS[g]]
    return {
        "indices": [arranged[t] for t in TICKERS["indices"]],
        "movers": {g: [arranged[t] for t in TICKERS[g]] for g in MOVER_GROUPS},
        "topMovers": rank_top_movers(movers_universe, arranged, movers_count),
    }


def normalize_market(raw: Any, identity: RequestIdentity, movers_count: int = 8) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise ProviderError("quote map is not an object", kind=PAYLOAD)
    wanted = set(universe())
    quote_map = {t: q for t, q in raw.items() if t in wanted and has_price(q)}
    return build_market_data(quote_map, movers_count)


def count_priced(body: dict[str, Any]) -> int:
    quotes = list(body.get("indices") or [])
    for group in (body.get("movers") or {}).values():
        quotes.extend(group)
    return sum(1 for q in quotes if has_price(q))


def market_chain(freshness: float = 0.0, movers_count: int = 8, workers: int = 8) -> Chain:
    return Chain(
        providers=(
            Provider("finnhub", partial(fetch_finnhub_quotes, workers=workers), requires=("FINNHUB_API_KEY",)),
            Provider("polygon", fetch_polygon_quotes, requires=("POLYGON_API_KEY",)),
            Provider("yahoo", fetch_yahoo_quotes),
            Provider("stooq", fetch_stooq_quotes),
        ),
        normalize=partial(normalize_market, movers_count=movers_count),
        count=count_priced,
        freshness=freshness,
    )
