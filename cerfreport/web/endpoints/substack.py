"""Substack posts endpoint."""

from __future__ import annotations

from flask import Flask, Response, request

from cerfreport.core.orchestrator import Orchestrator, RequestIdentity
from cerfreport.core.settings import Settings
from cerfreport.providers import SUBSTACK
from cerfreport.providers.substack import ARCHIVE_MODE, feed_host
from cerfreport.web.responses import respond


def register(server: Flask, orchestrator: Orchestrator, settings: Settings) -> None:
    """Register ``GET /substack?feed=...&mode=auto|archive``.

    Only feeds listed in ``SUBSTACK_FEEDS`` are proxied; any other host
    is rejected by the catalog as a bad request.
    """

    @server.get("/substack")
    def substack() -> Response:
        feed = (request.args.get("feed") or "").strip() or settings.default_feed
        mode = (request.args.get("mode") or "auto").strip().lower()
        modifiers = (ARCHIVE_MODE,) if mode == ARCHIVE_MODE else ()
        result = orchestrator.fetch(RequestIdentity.of(SUBSTACK, feed_host(feed), *modifiers))
        return respond(result, "articles")
