"""News sections endpoint."""

from __future__ import annotations

from flask import Flask, Response, request

from cerfreport.core.orchestrator import Orchestrator, RequestIdentity
from cerfreport.providers import NEWS
from cerfreport.providers.news import DEFAULT_SECTION
from cerfreport.web.responses import respond


def register(server: Flask, orchestrator: Orchestrator) -> None:
    """Register ``GET /news?section=...``."""

    @server.get("/news")
    def news() -> Response:
        section = (request.args.get("section") or "").strip() or DEFAULT_SECTION
        result = orchestrator.fetch(RequestIdentity.of(NEWS, section))
        return respond(result, "articles")
