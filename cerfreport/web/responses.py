"""JSON response helpers: CORS headers, ETag handling and error bodies."""

from __future__ import annotations

from typing import Any

from flask import Response, jsonify, request

from cerfreport.core import flags
from cerfreport.core.orchestrator import FetchResult
from cerfreport.core.util import compute_etag

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, If-None-Match",
    "Access-Control-Expose-Headers": "ETag",
}


def json_response(body: Any, status: int = 200, etag: str | None = None) -> Response:
    """Serialize ``body``; with an ``etag`` a matching If-None-Match yields 304."""
    resp = jsonify(body)
    resp.status_code = status
    resp.headers.update(CORS_HEADERS)
    if etag and status == 200:
        resp.set_etag(etag)
        return resp.make_conditional(request)
    return resp


def error_response(message: str, status: int, errors: list[dict[str, str]] | None = None) -> Response:
    body: dict[str, Any] = {"status": "error", "message": message}
    if errors and flags.debug_errors():
        body["errors"] = errors
    return json_response(body, status)


def respond(result: FetchResult, key: str) -> Response:
    """Envelope an orchestrator result as ``{status, <key>, source}``."""
    errors = [e.as_dict() for e in result.errors]
    if not result.ok:
        return error_response(result.message, result.status_code, errors)
    body: dict[str, Any] = {"status": "ok", key: result.body, "source": result.source}
    if errors and flags.debug_errors():
        body["errors"] = errors
    return json_response(body, 200, etag=result.etag or compute_etag(result.body))
