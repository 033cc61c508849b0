"""Curated links endpoint."""

from __future__ import annotations

from flask import Flask, Response

from cerfreport.core.orchestrator import Orchestrator, RequestIdentity
from cerfreport.providers import LINKS
from cerfreport.providers.links import LINKS_KEY
from cerfreport.web.responses import respond


def register(server: Flask, orchestrator: Orchestrator) -> None:
    @server.get("/links")
    def links() -> Response:
        return respond(orchestrator.fetch(RequestIdentity.of(LINKS, LINKS_KEY)), "articles")
