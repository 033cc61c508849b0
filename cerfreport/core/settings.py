"""Runtime configuration read from the environment and the local ``.env`` file."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import dotenv_values

ENV_PATH = Path(".env")

CREDENTIAL_NAMES: tuple[str, ...] = (
    "NEWSAPI_KEY",
    "GNEWS_API_KEY",
    "NEWSDATA_KEY",
    "FINNHUB_API_KEY",
    "POLYGON_API_KEY",
)


def load_env_file(path: Path | None = None) -> Mapping[str, str]:
    """Load key/value pairs from the local environment file."""
    target = path or ENV_PATH
    if not target.exists():
        return {}
    return {k: v for k, v in dotenv_values(target).items() if v is not None}


def _env_float(key: str, default: float) -> float:
    try:
        return float(os.getenv(key, str(default)))
    except (ValueError, TypeError):
        return default


def _env_int(key: str, default: int) -> int:
    try:
        return int(os.getenv(key, str(default)))
    except (ValueError, TypeError):
        return default


def _credentials() -> dict[str, str]:
    file_values = load_env_file()
    out: dict[str, str] = {}
    for name in CREDENTIAL_NAMES:
        value = (os.getenv(name) or file_values.get(name) or "").strip()
        if value:
            out[name] = value
    return out


@dataclass(frozen=True)
class Settings:
    """Process configuration.

    Values are read when the instance is created, so tests can set
    environment variables with ``monkeypatch`` before building one.
    """

    request_timeout: float = field(default_factory=lambda: _env_float("REQUEST_TIMEOUT_SECONDS", 7.0))
    request_budget: float = field(default_factory=lambda: _env_float("REQUEST_BUDGET_SECONDS", 20.0))

    news_cooldown: float = field(default_factory=lambda: _env_float("NEWS_COOLDOWN_SECONDS", 300.0))
    market_cooldown: float = field(default_factory=lambda: _env_float("MARKET_COOLDOWN_SECONDS", 300.0))
    mini_cooldown: float = field(default_factory=lambda: _env_float("MINI_COOLDOWN_SECONDS", 180.0))
    links_cooldown: float = field(default_factory=lambda: _env_float("LINKS_COOLDOWN_SECONDS", 180.0))
    substack_cooldown: float = field(default_factory=lambda: _env_float("SUBSTACK_COOLDOWN_SECONDS", 600.0))

    movers_count: int = field(default_factory=lambda: _env_int("MOVERS_COUNT", 8))
    quote_workers: int = field(default_factory=lambda: _env_int("QUOTE_WORKERS", 8))

    cache_backend: str = field(default_factory=lambda: os.getenv("CACHE_BACKEND", "file").strip().lower())
    cache_dir: str = field(default_factory=lambda: os.getenv("CACHE_DIR", "/tmp/cerfreport-cache"))
    database_url: str = field(default_factory=lambda: os.getenv("DATABASE_URL", ""), repr=False)

    rate_limit: int = field(default_factory=lambda: _env_int("API_RATE_LIMIT", 120))
    rate_window: int = field(default_factory=lambda: _env_int("API_RATE_WINDOW", 60))

    sheet_csv_url: str = field(default_factory=lambda: os.getenv(
        "SHEET_CSV_URL",
        "https://docs.google.com/spreadsheets/d/e/2PACX-1vRzkojI6qgs3Nyxsv6lXbhVpyxxRi2B62TQolcAML3HpM891nm1WakftcTP6H4HQp6oL0EmG0UT-ZoU/pub?output=csv",
    ))
    substack_feeds: str = field(default_factory=lambda: os.getenv(
        "SUBSTACK_FEEDS", "https://thecerfreport.substack.com/feed"
    ))

    credentials: Mapping[str, str] = field(default_factory=_credentials, repr=False)

    @property
    def allowed_feeds(self) -> list[str]:
        """Substack feed URLs the ``/substack`` endpoint may proxy."""
        return [f.strip() for f in self.substack_feeds.split(",") if f.strip()]

    @property
    def default_feed(self) -> str:
        feeds = self.allowed_feeds
        return feeds[0] if feeds else ""


def load_settings() -> Settings:
    """Return a fresh ``Settings`` snapshot of the current environment."""
    return Settings()
