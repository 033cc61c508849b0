"""BTC-USD and XAU-USD strip.

The two assets are independent chains with their own cache entries;
they are fetched side by side and combined into one payload.  The
endpoint only fails when neither asset has live or cached data.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any

from flask import Flask, Response

from cerfreport.core import flags
from cerfreport.core.orchestrator import FetchResult, Orchestrator, RequestIdentity
from cerfreport.core.util import compute_etag
from cerfreport.providers import MINI
from cerfreport.providers.mini import ASSETS
from cerfreport.web.responses import error_response, json_response


def combine(results: dict[str, FetchResult]) -> dict[str, Any]:
    quotes = {asset: (r.body if r.ok else None) for asset, r in results.items()}
    return {
        "btcUSD": (quotes.get("btc") or {}).get("c"),
        "xauUSD": (quotes.get("xau") or {}).get("c"),
        "quotes": quotes,
        "links": {asset: meta["link"] for asset, meta in ASSETS.items()},
    }


def register(server: Flask, orchestrator: Orchestrator) -> None:
    @server.get("/mini-market")
    def mini_market() -> Response:
        with ThreadPoolExecutor(max_workers=len(ASSETS)) as pool:
            futures = {asset: pool.submit(orchestrator.fetch, RequestIdentity.of(MINI, asset)) for asset in ASSETS}
            results = {asset: future.result() for asset, future in futures.items()}

        errors = [e.as_dict() for r in results.values() for e in r.errors]
        if not any(r.ok for r in results.values()):
            return error_response("Market prices are currently unavailable.", 502, errors)

        data = combine(results)
        body: dict[str, Any] = {
            "status": "ok",
            "data": data,
            "source": {asset: r.source for asset, r in results.items()},
        }
        if errors and flags.debug_errors():
            body["errors"] = errors
        return json_response(body, 200, etag=compute_etag(data))
