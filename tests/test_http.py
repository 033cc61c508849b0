"""Outbound HTTP helpers: timeouts and error classification."""

from __future__ import annotations

from typing import Any

import pytest
import requests

from cerfreport.core import http
from cerfreport.core.errors import HTTP, NETWORK, PAYLOAD, TIMEOUT, ProviderError


class StubResponse:
    def __init__(self, status: int = 200, payload: Any = None, text: str = "", content_type: str = "") -> None:
        self.status_code = status
        self._payload = payload
        self.text = text
        self.headers = {"content-type": content_type}
        self.encoding = None

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class StubSession:
    def __init__(self, response: StubResponse | None = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.requests: list[tuple[str, dict[str, Any]]] = []

    def get(self, url, **kwargs):
        self.requests.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture()
def use_session(monkeypatch):
    def install(session: StubSession) -> StubSession:
        monkeypatch.setattr(http, "_session", lambda: session)
        return session

    return install


def test_timeout_is_classified(use_session) -> None:
    use_session(StubSession(error=requests.Timeout("read timed out")))
    with pytest.raises(ProviderError) as excinfo:
        http.get_json("https://newsapi.org/v2/everything", timeout=2.5, tag="newsapi")
    assert excinfo.value.kind == TIMEOUT
    assert "2.5s" in str(excinfo.value)


def test_connection_error_is_network_and_redacted(use_session) -> None:
    error = requests.ConnectionError(
        "HTTPSConnectionPool(host='newsapi.org'): Max retries exceeded with url: /v2/everything?apiKey=supersecret&q=x"
    )
    use_session(StubSession(error=error))
    with pytest.raises(ProviderError) as excinfo:
        http.get_text("https://newsapi.org/v2/everything", tag="newsapi")
    assert excinfo.value.kind == NETWORK
    assert "supersecret" not in str(excinfo.value)
    assert "apiKey=***" in str(excinfo.value)


def test_non_2xx_status_is_http(use_session) -> None:
    use_session(StubSession(StubResponse(429, {"status": "error"})))
    with pytest.raises(ProviderError) as excinfo:
        http.get_json("https://gnews.io/api/v4/top-headlines", tag="gnews")
    assert excinfo.value.kind == HTTP
    assert excinfo.value.status == 429


def test_unparsable_json_is_payload(use_session) -> None:
    use_session(StubSession(StubResponse(200, None, text="<html>", content_type="text/html")))
    with pytest.raises(ProviderError) as excinfo:
        http.get_json("https://query1.finance.yahoo.com/v7/finance/quote", tag="yahoo")
    assert excinfo.value.kind == PAYLOAD
    assert "text/html" in str(excinfo.value)


def test_get_json_sends_timeout_and_accept_header(use_session) -> None:
    session = use_session(StubSession(StubResponse(200, {"ok": True})))
    assert http.get_json("https://example.com/api", params={"q": "x"}, timeout=3.0) == {"ok": True}
    url, kwargs = session.requests[0]
    assert url == "https://example.com/api"
    assert kwargs["timeout"] == 3.0
    assert kwargs["params"] == {"q": "x"}
    assert kwargs["headers"]["Accept"] == "application/json"


def test_get_text_defaults_to_utf8(use_session) -> None:
    response = StubResponse(200, text="Symbol,Close\nSPY.US,1\n")
    use_session(StubSession(response))
    assert http.get_text("https://stooq.com/q/l/").startswith("Symbol")
    assert response.encoding == "utf-8"
