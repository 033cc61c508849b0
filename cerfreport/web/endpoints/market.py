"""Index and sector quotes endpoint."""

from __future__ import annotations

from flask import Flask, Response

from cerfreport.core.orchestrator import Orchestrator, RequestIdentity
from cerfreport.providers import MARKET
from cerfreport.providers.quotes import MARKET_KEY
from cerfreport.web.responses import respond


def register(server: Flask, orchestrator: Orchestrator) -> None:
    @server.get("/market-data")
    def market_data() -> Response:
        return respond(orchestrator.fetch(RequestIdentity.of(MARKET, MARKET_KEY)), "data")
