"""Initialize the SQL table that backs the durable cache store."""
from __future__ import annotations

import os
from pathlib import Path

from cerfreport.core.cache import SqlCacheStore

DEFAULT_DB = Path(os.getenv("CERF_CACHE_DB", "data/cache.db"))


def init_cache(database_url: str | None = None) -> str:
    """Create the ``cache_entries`` table and return the DSN used."""

    dsn = database_url or os.getenv("DATABASE_URL", "")
    if not dsn:
        DEFAULT_DB.parent.mkdir(parents=True, exist_ok=True)
        dsn = "sqlite:///" + str(DEFAULT_DB.resolve())
    SqlCacheStore(dsn).engine.dispose()
    return dsn


def main() -> None:
    dsn = init_cache()
    print(f"[cache] ready: {dsn.split('@')[-1]}")


if __name__ == "__main__":
    main()
