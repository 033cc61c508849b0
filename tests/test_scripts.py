"""Operational scripts: cache table init and cache warming."""
from __future__ import annotations

import sqlite3

from cerfreport.core.cache import MemoryCacheStore
from cerfreport.core.errors import ProviderFailure
from cerfreport.core.orchestrator import FetchResult, RequestIdentity
from scripts import cache_init, warm_cache


def test_cache_init_creates_table(tmp_path) -> None:
    db_path = tmp_path / "cache.db"
    dsn = cache_init.init_cache("sqlite:///" + str(db_path))
    assert dsn.endswith("cache.db")
    with sqlite3.connect(db_path) as conn:
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    assert "cache_entries" in tables


class FakeOrchestrator:
    def __init__(self, failing: set[str]) -> None:
        self.failing = failing
        self.calls: list[tuple[str, bool]] = []

    def fetch(self, identity: RequestIdentity, force: bool = False) -> FetchResult:
        self.calls.append((identity.cache_key, force))
        if identity.cache_key in self.failing:
            return FetchResult(identity, errors=[ProviderFailure("x", "http", "HTTP 500")])
        return FetchResult(identity, body=[1], source="live", timestamp=1700000000.0)


def test_warm_counts_failures_and_forces_refresh() -> None:
    identities = [RequestIdentity.of("news", "tech"), RequestIdentity.of("links", "recommended")]
    orchestrator = FakeOrchestrator({"links:recommended"})

    failures = warm_cache.warm(orchestrator, identities)

    assert failures == 1
    assert orchestrator.calls == [("news:tech", True), ("links:recommended", True)]


def test_warm_main_filters_by_category(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    seen: list[str] = []

    def fake_warm(orchestrator, identities):
        seen.extend(i.cache_key for i in identities)
        return 0

    monkeypatch.setattr(warm_cache, "warm", fake_warm)

    assert warm_cache.main(["--category", "mini"], store=MemoryCacheStore()) == 0
    assert sorted(seen) == ["mini:btc", "mini:xau"]
