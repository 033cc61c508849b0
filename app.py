"""Flask entry point for the cerfreport dashboard backend."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_caching import Cache

from cerfreport import web
from cerfreport.core.cache import CacheStore, FileCacheStore, build_store
from cerfreport.core.logging import setup_logger
from cerfreport.core.orchestrator import Orchestrator
from cerfreport.core.security import RateLimiter
from cerfreport.core.settings import Settings, load_settings
from cerfreport.core.util import utc_now_iso
from cerfreport.providers import build_catalog

load_dotenv()
setup_logger()


def _make_store(server: Flask, settings: Settings) -> CacheStore:
    if settings.cache_backend != "file":
        return build_store(settings.cache_backend, cache_dir=settings.cache_dir, database_url=settings.database_url)
    cache_dir = Path(settings.cache_dir) / "files"
    cache_dir.mkdir(parents=True, exist_ok=True)
    cache = Cache(
        server,
        config={
            "CACHE_TYPE": "FileSystemCache",
            "CACHE_DIR": str(cache_dir),
            "CACHE_DEFAULT_TIMEOUT": 0,
            "CACHE_THRESHOLD": 0,
        },
    )
    return FileCacheStore(cache)


def create_server(settings: Settings | None = None, store: CacheStore | None = None) -> Flask:
    """Build the Flask app; tests pass their own settings and store."""
    settings = settings or load_settings()
    server = Flask(__name__)
    store = store or _make_store(server, settings)
    orchestrator = Orchestrator(
        build_catalog(settings),
        store,
        credentials=settings.credentials,
        timeout=settings.request_timeout,
        budget=settings.request_budget,
    )
    limiter = RateLimiter(settings.rate_limit, settings.rate_window)
    server.extensions["cerfreport"] = {"orchestrator": orchestrator, "store": store, "limiter": limiter}

    @server.get("/health")
    def healthcheck() -> Any:
        """Return a basic health payload."""
        return jsonify({"ok": True, "time": utc_now_iso()})

    web.register(server, orchestrator, settings, limiter)
    return server


server = create_server()
api_limiter: RateLimiter = server.extensions["cerfreport"]["limiter"]


if __name__ == "__main__":
    server.run(debug=True)
