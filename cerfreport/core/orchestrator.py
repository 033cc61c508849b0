"""Resilient multi-provider fetch with cache fallback.

For one request identity the orchestrator walks a statically ordered
provider chain, normalises the first payload that yields at least one
valid record, stores it as the new last-known-good entry and returns
it tagged with the provider name.  When the whole chain fails it serves
the cached entry of any age (``source: "cache"``); only when nothing was
ever cached does the result carry an error status.

Provider failures never escape ``Orchestrator.fetch``: each one is
recorded as a ``ProviderFailure`` and logged.  The only exception the
caller sees is ``BadRequest`` for an identity outside the catalog.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from cerfreport.core import flags
from cerfreport.core.cache import CacheEntry, CacheStore
from cerfreport.core.errors import (
    CONFIG,
    EMPTY,
    PAYLOAD,
    TIMEOUT,
    BadRequest,
    ExhaustedError,
    ProviderError,
    ProviderFailure,
)
from cerfreport.core.logging import redact
from cerfreport.core.util import compute_etag

LOG = logging.getLogger(__name__)

CACHE_SOURCE = "cache"
ROTATION_PREFIX = "rotation:"
MIN_CALL_TIMEOUT = 0.1


def _canon(value: Any) -> str:
    return str(value or "").strip().lower()


@dataclass(frozen=True)
class RequestIdentity:
    """Canonical ``(category, key, modifiers)`` triple; doubles as the cache key."""

    category: str
    key: str
    modifiers: tuple[str, ...] = ()

    @classmethod
    def of(cls, category: Any, key: Any, *modifiers: Any) -> "RequestIdentity":
        mods = tuple(m for m in (_canon(m) for m in modifiers) if m)
        return cls(_canon(category), _canon(key), mods)

    @property
    def cache_key(self) -> str:
        return ":".join((self.category, self.key) + self.modifiers)

    def has(self, modifier: str) -> bool:
        return _canon(modifier) in self.modifiers


@dataclass(frozen=True)
class FetchContext:
    """What a provider adapter gets besides the identity.

    ``deadline`` is an absolute ``clock()`` value after which the adapter
    must not start another upstream call.  Adapters pass
    ``call_timeout()`` to every request instead of ``timeout`` so that
    several sequential or batched calls together stay inside the budget.
    """

    credentials: Mapping[str, str] = field(default_factory=dict, repr=False)
    timeout: float = 7.0
    deadline: float | None = None
    clock: Callable[[], float] = field(default=time.monotonic, repr=False, compare=False)

    def credential(self, name: str) -> str:
        return self.credentials.get(name, "")

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return self.deadline - self.clock()

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def call_timeout(self) -> float:
        """Timeout for the next upstream call; raises once the deadline has passed."""
        remaining = self.remaining()
        if remaining is None:
            return self.timeout
        if remaining <= 0:
            raise ProviderError("request budget exhausted", kind=TIMEOUT)
        return max(MIN_CALL_TIMEOUT, min(self.timeout, remaining))


@dataclass(frozen=True)
class Provider:
    """One upstream integration.

    ``fetch`` returns the raw upstream result or raises ``ProviderError``.
    ``requires`` lists credential names that must be configured.
    """

    name: str
    fetch: Callable[[RequestIdentity, FetchContext], Any]
    requires: tuple[str, ...] = ()


@dataclass(frozen=True)
class Chain:
    """Declarative configuration of one logical request."""

    providers: tuple[Provider, ...]
    normalize: Callable[[Any, RequestIdentity], Any]
    count: Callable[[Any], int] = len
    freshness: float = 0.0
    rotate: bool = False

    @property
    def provider_names(self) -> list[str]:
        return [p.name for p in self.providers]


class Catalog:
    """Whitelist of known identities mapped to their provider chains."""

    def __init__(self) -> None:
        self._chains: dict[tuple[str, str], Chain] = {}

    def register(self, category: str, key: str, chain: Chain) -> None:
        self._chains[(_canon(category), _canon(key))] = chain

    def resolve(self, identity: RequestIdentity) -> Chain:
        chain = self._chains.get((identity.category, identity.key))
        if chain is None:
            raise BadRequest(f"unknown request: {identity.category}/{identity.key}")
        return chain

    def keys(self, category: str) -> list[str]:
        cat = _canon(category)
        return [k for (c, k) in self._chains if c == cat]

    def identities(self) -> Iterable[RequestIdentity]:
        for category, key in self._chains:
            yield RequestIdentity(category, key)


@dataclass
class FetchResult:
    identity: RequestIdentity
    body: Any = None
    source: str | None = None
    etag: str | None = None
    timestamp: float | None = None
    errors: list[ProviderFailure] = field(default_factory=list)
    fresh: bool = False

    @property
    def ok(self) -> bool:
        return self.source is not None

    @property
    def status_code(self) -> int:
        return 200 if self.ok else 502

    @property
    def message(self) -> str:
        if self.ok:
            return ""
        return "All sources are currently unavailable."

    def raise_for_status(self) -> None:
        if not self.ok:
            raise ExhaustedError(f"{self.identity.cache_key}: {self.message}")

    @classmethod
    def from_cache(
        cls,
        identity: RequestIdentity,
        entry: CacheEntry,
        errors: list[ProviderFailure] | None = None,
        fresh: bool = False,
    ) -> "FetchResult":
        return cls(
            identity=identity,
            body=entry.payload,
            source=CACHE_SOURCE,
            etag=entry.etag,
            timestamp=entry.timestamp,
            errors=list(errors or []),
            fresh=fresh,
        )


class Orchestrator:
    """Runs provider chains for identities in a ``Catalog``."""

    def __init__(
        self,
        catalog: Catalog,
        store: CacheStore,
        *,
        credentials: Mapping[str, str] | None = None,
        timeout: float = 7.0,
        budget: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.catalog = catalog
        self.store = store
        self.credentials = dict(credentials or {})
        self.timeout = timeout
        self.budget = budget
        self.clock = clock

    def fetch(self, identity: RequestIdentity, force: bool = False) -> FetchResult:
        """Run the chain for ``identity``; ``force`` ignores the cooldown window."""
        chain = self.catalog.resolve(identity)
        key = identity.cache_key

        if chain.freshness > 0 and not force:
            entry = self.store.get(key)
            if entry is not None and 0 <= entry.age() <= chain.freshness:
                LOG.info("%s served from cache (age %.0fs within cooldown)", key, entry.age())
                return FetchResult.from_cache(identity, entry, fresh=True)

        started = self.clock()
        errors: list[ProviderFailure] = []
        for position, provider in self._ordered(chain, key):
            failure = self._precondition(provider, key, started)
            if failure is not None:
                errors.append(failure)
                continue

            ctx = FetchContext(
                credentials=self.credentials,
                timeout=self._call_timeout(started),
                deadline=None if self.budget is None else started + self.budget,
                clock=self.clock,
            )
            try:
                body = chain.normalize(provider.fetch(identity, ctx), identity)
            except ProviderError as exc:
                errors.append(self._record(key, provider.name, exc.kind, str(exc)))
                continue
            except Exception as exc:  # noqa: BLE001 - adapter bug or unexpected payload shape
                errors.append(self._record(key, provider.name, PAYLOAD, f"{type(exc).__name__}: {exc}"))
                continue

            if chain.count(body) <= 0:
                errors.append(self._record(key, provider.name, EMPTY, "no valid records"))
                continue

            entry = self.store.set(key, body)
            if chain.rotate:
                self._save_rotation(key, (position + 1) % len(chain.providers))
            LOG.info("%s served by %s (%d records)", key, provider.name, chain.count(body))
            return FetchResult(
                identity=identity,
                body=body,
                source=provider.name,
                etag=entry.etag if entry else compute_etag(body),
                timestamp=entry.timestamp if entry else time.time(),
                errors=errors,
            )

        entry = self.store.get(key)
        if entry is not None:
            LOG.warning("%s: all providers failed; serving cache (age %.0fs)", key, entry.age())
            return FetchResult.from_cache(identity, entry, errors=errors)

        LOG.error("%s: all providers failed and no cache exists", key)
        return FetchResult(identity=identity, errors=errors)

    def _record(self, key: str, provider: str, kind: str, message: str) -> ProviderFailure:
        message = redact(message)
        if kind == CONFIG:
            LOG.info("[provider:%s] skipped for %s: %s", provider, key, message)
        else:
            LOG.warning("[provider:%s] failed for %s (%s): %s", provider, key, kind, message)
        return ProviderFailure(provider=provider, kind=kind, message=message)

    def _precondition(self, provider: Provider, key: str, started: float) -> ProviderFailure | None:
        if flags.provider_disabled(provider.name):
            return self._record(key, provider.name, CONFIG, "disabled")
        missing = [name for name in provider.requires if not self.credentials.get(name)]
        if missing:
            return self._record(key, provider.name, CONFIG, f"{', '.join(missing)} missing")
        if self.budget is not None and self.clock() - started >= self.budget:
            return self._record(key, provider.name, TIMEOUT, "request budget exhausted")
        return None

    def _call_timeout(self, started: float) -> float:
        if self.budget is None:
            return self.timeout
        remaining = self.budget - (self.clock() - started)
        return max(MIN_CALL_TIMEOUT, min(self.timeout, remaining))

    def _ordered(self, chain: Chain, key: str) -> list[tuple[int, Provider]]:
        indexed = list(enumerate(chain.providers))
        if not chain.rotate or not indexed:
            return indexed
        offset = self._load_rotation(key) % len(indexed)
        return indexed[offset:] + indexed[:offset]

    def _load_rotation(self, key: str) -> int:
        entry = self.store.get(ROTATION_PREFIX + key)
        if entry is None or not isinstance(entry.payload, dict):
            return 0
        try:
            return int(entry.payload.get("offset", 0))
        except (TypeError, ValueError):
            return 0

    def _save_rotation(self, key: str, offset: int) -> None:
        self.store.set(ROTATION_PREFIX + key, {"offset": offset})
