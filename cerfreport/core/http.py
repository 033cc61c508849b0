"""Outbound HTTP helpers.

Every upstream call goes through ``get_json`` or ``get_text`` so that
timeouts, status handling and error classification are identical for
all providers.  Failures are raised as ``ProviderError`` with a kind the
orchestrator records in its diagnostics.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

import requests

from cerfreport.core.errors import HTTP, NETWORK, PAYLOAD, TIMEOUT, ProviderError
from cerfreport.core.logging import redact

LOG = logging.getLogger(__name__)

USER_AGENT = "cerfreport/1.0 (+https://thecerfreport.com)"
DEFAULT_TIMEOUT = 7.0

_local = threading.local()


def _session() -> requests.Session:
    # requests.Session is not documented as thread-safe; one per worker thread.
    session = getattr(_local, "session", None)
    if session is None:
        session = requests.Session()
        session.headers.update({"User-Agent": USER_AGENT})
        _local.session = session
    return session


def _get(
    url: str,
    *,
    params: dict[str, Any] | None,
    headers: dict[str, str] | None,
    timeout: float | None,
    tag: str,
) -> requests.Response:
    try:
        resp = _session().get(url, params=params, headers=headers, timeout=timeout or DEFAULT_TIMEOUT)
    except requests.Timeout as exc:
        raise ProviderError(f"{tag} timeout after {timeout or DEFAULT_TIMEOUT:g}s", kind=TIMEOUT) from exc
    except requests.RequestException as exc:
        raise ProviderError(f"{tag} {redact(exc)}", kind=NETWORK) from exc
    if not 200 <= resp.status_code < 300:
        raise ProviderError(f"{tag} HTTP {resp.status_code}", kind=HTTP, status=resp.status_code)
    return resp


def get_json(
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: float | None = None,
    tag: str = "request",
) -> Any:
    """GET ``url`` and decode a JSON body."""
    merged = {"Accept": "application/json"}
    merged.update(headers or {})
    resp = _get(url, params=params, headers=merged, timeout=timeout, tag=tag)
    try:
        return resp.json()
    except ValueError as exc:
        ctype = resp.headers.get("content-type", "")
        raise ProviderError(f"{tag} JSON parse error (content-type={ctype!r})", kind=PAYLOAD) from exc


def get_text(
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: float | None = None,
    tag: str = "request",
) -> str:
    """GET ``url`` and return the decoded body text."""
    resp = _get(url, params=params, headers=headers, timeout=timeout, tag=tag)
    if not resp.encoding:
        resp.encoding = "utf-8"
    return resp.text
