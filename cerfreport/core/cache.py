"""Last-known-good payload storage, one entry per request identity.

All stores share the same contract:

* ``get(key)`` returns a ``CacheEntry`` or ``None``;
* ``set(key, payload)`` replaces the whole entry and never raises; a
  failed write is logged and the request carries on.

Entries never expire.  They are only superseded by the next good fetch,
so once a key has been populated there is always something to serve.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import diskcache
from flask_caching.backends.filesystemcache import FileSystemCache
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from cerfreport.core.util import compute_etag

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    payload: Any
    timestamp: float
    etag: str

    def age(self, now: float | None = None) -> float:
        return (time.time() if now is None else now) - self.timestamp

    def as_dict(self) -> dict[str, Any]:
        return {"payload": self.payload, "timestamp": self.timestamp, "etag": self.etag}

    @classmethod
    def from_dict(cls, raw: Any) -> "CacheEntry | None":
        if not isinstance(raw, dict) or "payload" not in raw:
            return None
        try:
            ts = float(raw.get("timestamp") or 0.0)
        except (TypeError, ValueError):
            ts = 0.0
        payload = raw["payload"]
        return cls(payload=payload, timestamp=ts, etag=str(raw.get("etag") or compute_etag(payload)))


class CacheStore:
    """Base class; subclasses implement ``_read`` and ``_write``."""

    name = "base"

    def _read(self, key: str) -> Any:  # pragma: no cover - interface
        raise NotImplementedError

    def _write(self, key: str, value: dict[str, Any]) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def get(self, key: str) -> CacheEntry | None:
        try:
            raw = self._read(key)
        except Exception as exc:  # noqa: BLE001
            LOG.warning("cache read failed (%s, %s): %s", self.name, key, exc)
            return None
        return CacheEntry.from_dict(raw)

    def set(self, key: str, payload: Any, etag: str | None = None) -> CacheEntry | None:
        entry = CacheEntry(payload=payload, timestamp=time.time(), etag=etag or compute_etag(payload))
        try:
            self._write(key, entry.as_dict())
        except Exception as exc:  # noqa: BLE001
            LOG.warning("cache write failed (%s, %s): %s", self.name, key, exc)
            return None
        return entry


class MemoryCacheStore(CacheStore):
    """Process-local dictionary; used by tests and as a last resort."""

    name = "memory"

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def _read(self, key: str) -> Any:
        with self._lock:
            raw = self._data.get(key)
            return dict(raw) if raw is not None else None

    def _write(self, key: str, value: dict[str, Any]) -> None:
        # Round-trip through JSON so stored payloads behave like the durable stores.
        frozen = json.loads(json.dumps(value))
        with self._lock:
            self._data[key] = frozen


class FileCacheStore(CacheStore):
    """Scratch-directory store backed by flask-caching's filesystem backend.

    Accepts either a ``flask_caching.Cache`` bound to the app or a bare
    backend; both expose ``get``/``set``.
    """

    name = "file"

    def __init__(self, backend: Any) -> None:
        self.backend = backend

    @classmethod
    def at(cls, cache_dir: str | Path) -> "FileCacheStore":
        Path(cache_dir).mkdir(parents=True, exist_ok=True)
        return cls(FileSystemCache(str(cache_dir), threshold=0, default_timeout=0))

    def _read(self, key: str) -> Any:
        return self.backend.get(key)

    def _write(self, key: str, value: dict[str, Any]) -> None:
        if not self.backend.set(key, value, timeout=0):
            raise OSError("filesystem cache rejected the write")


class DiskCacheStore(CacheStore):
    """Durable local store (SQLite-backed ``diskcache``)."""

    name = "disk"

    def __init__(self, directory: str | Path) -> None:
        self._cache = diskcache.Cache(str(directory))

    def _read(self, key: str) -> Any:
        return self._cache.get(key)

    def _write(self, key: str, value: dict[str, Any]) -> None:
        self._cache.set(key, value)

    def close(self) -> None:
        self._cache.close()


CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    ts REAL NOT NULL,
    etag TEXT NOT NULL
)
"""


class SqlCacheStore(CacheStore):
    """Durable external store reached through SQLAlchemy (``DATABASE_URL``)."""

    name = "sql"

    def __init__(self, dsn: str | None = None, engine: Engine | None = None) -> None:
        if engine is None:
            if not dsn:
                raise ValueError("SqlCacheStore needs a DSN or an engine")
            engine = create_engine(dsn, future=True)
        self.engine = engine
        self.init()

    def init(self) -> None:
        """Ensure the cache table exists."""
        with self.engine.begin() as connection:
            connection.execute(text(CREATE_TABLE_SQL))

    def _read(self, key: str) -> Any:
        with self.engine.connect() as connection:
            row = connection.execute(
                text("SELECT payload, ts, etag FROM cache_entries WHERE key = :key"),
                {"key": key},
            ).mappings().first()
        if row is None:
            return None
        return {"payload": json.loads(row["payload"]), "timestamp": row["ts"], "etag": row["etag"]}

    def _write(self, key: str, value: dict[str, Any]) -> None:
        # Whole-row replacement; concurrent writers race and the last one wins.
        with self.engine.begin() as connection:
            connection.execute(text("DELETE FROM cache_entries WHERE key = :key"), {"key": key})
            connection.execute(
                text("INSERT INTO cache_entries(key, payload, ts, etag) VALUES (:key, :payload, :ts, :etag)"),
                {
                    "key": key,
                    "payload": json.dumps(value["payload"]),
                    "ts": value["timestamp"],
                    "etag": value["etag"],
                },
            )


def build_store(backend: str, *, cache_dir: str = "", database_url: str = "") -> CacheStore:
    """Return the store selected by ``CACHE_BACKEND``."""
    backend = (backend or "file").strip().lower()
    if backend == "memory":
        return MemoryCacheStore()
    if backend == "disk":
        return DiskCacheStore(Path(cache_dir) / "disk")
    if backend == "sql":
        if not database_url:
            raise ValueError("CACHE_BACKEND=sql requires DATABASE_URL")
        return SqlCacheStore(database_url)
    if backend == "file":
        return FileCacheStore.at(Path(cache_dir) / "files")
    raise ValueError(f"unknown cache backend: {backend}")
