"""Ensure the health endpoint responds successfully and enforces rate limiting."""

from __future__ import annotations

import importlib
import sys

import pytest


def _load_app():
    module_name = "app"
    if module_name in sys.modules:
        return importlib.reload(sys.modules[module_name])
    return importlib.import_module(module_name)


@pytest.fixture(autouse=True)
def _app_env(monkeypatch, tmp_path):
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("CACHE_BACKEND", "memory")


@pytest.fixture()
def app_module(monkeypatch):
    monkeypatch.setenv("API_RATE_LIMIT", "5")
    monkeypatch.setenv("API_RATE_WINDOW", "60")
    module = _load_app()
    yield module
    sys.modules.pop("app", None)


def test_health_endpoint(app_module) -> None:
    client = app_module.server.test_client()
    response = client.get("/health")
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["ok"] is True
    assert payload["time"].endswith("Z")


def test_health_rate_limit(monkeypatch) -> None:
    monkeypatch.setenv("API_RATE_LIMIT", "1")
    monkeypatch.setenv("API_RATE_WINDOW", "60")
    module = _load_app()
    client = module.server.test_client()
    first = client.get("/health")
    assert first.status_code == 200
    second = client.get("/health")
    assert second.status_code == 429
    assert second.get_json() == {"ok": False, "error": "rate_limited"}
    module.api_limiter.reset()
    sys.modules.pop("app", None)


def test_rate_limit_is_per_endpoint(monkeypatch) -> None:
    monkeypatch.setenv("API_RATE_LIMIT", "1")
    module = _load_app()
    client = module.server.test_client()
    assert client.get("/health").status_code == 200
    rejected = client.get("/news?section=nope")
    # Unknown section is rejected on its own quota, not the health one.
    assert rejected.status_code == 400
    again = client.get("/news?section=nope")
    assert again.status_code == 429
    assert again.get_json()["status"] == "error"
    module.api_limiter.reset()
    sys.modules.pop("app", None)


def test_preflight_returns_cors_headers(app_module) -> None:
    client = app_module.server.test_client()
    response = client.open("/news", method="OPTIONS")
    assert response.status_code == 204
    assert response.headers["Access-Control-Allow-Origin"] == "*"
