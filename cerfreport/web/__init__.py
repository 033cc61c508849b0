"""Flask wiring for the dashboard endpoints."""

from __future__ import annotations

import logging

from flask import Flask, Response, jsonify, request

from cerfreport.core.errors import BadRequest
from cerfreport.core.orchestrator import Orchestrator
from cerfreport.core.security import RateLimiter
from cerfreport.core.settings import Settings
from cerfreport.web.endpoints import links, market, mini_market, news, substack
from cerfreport.web.responses import CORS_HEADERS, error_response

LOG = logging.getLogger(__name__)

HEALTH_ENDPOINT = "healthcheck"


def register(server: Flask, orchestrator: Orchestrator, settings: Settings, limiter: RateLimiter) -> None:
    """Register endpoints, CORS preflight, throttling and error handlers."""

    news.register(server, orchestrator)
    market.register(server, orchestrator)
    mini_market.register(server, orchestrator)
    links.register(server, orchestrator)
    substack.register(server, orchestrator, settings)

    @server.before_request
    def _preflight_and_throttle() -> Response | None:
        if request.method == "OPTIONS":
            resp = Response(status=204)
            resp.headers.update(CORS_HEADERS)
            return resp
        key = RateLimiter.key_for(request.remote_addr, request.endpoint)
        if limiter.allow(key):
            return None
        LOG.info("rate limited %s", key)
        if request.endpoint == HEALTH_ENDPOINT:
            resp = jsonify({"ok": False, "error": "rate_limited"})
            resp.status_code = 429
            return resp
        return error_response("rate limited", 429)

    @server.errorhandler(BadRequest)
    def _bad_request(exc: BadRequest) -> Response:
        LOG.info("bad request %s: %s", request.path, exc)
        return error_response(str(exc), 400)
