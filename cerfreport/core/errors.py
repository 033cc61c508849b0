"""Error taxonomy shared by the orchestrator, providers and endpoints."""

from __future__ import annotations

from dataclasses import dataclass

# Kinds recorded for a failed provider attempt.
CONFIG = "config"
TIMEOUT = "timeout"
NETWORK = "network"
HTTP = "http"
PAYLOAD = "payload"
EMPTY = "empty"

ERROR_KINDS: frozenset[str] = frozenset({CONFIG, TIMEOUT, NETWORK, HTTP, PAYLOAD, EMPTY})


class CerfError(Exception):
    """Base error for the dashboard backend."""


class BadRequest(CerfError):
    """Unknown category or identity; raised before any provider is contacted."""


class ProviderError(CerfError):
    """A single provider call failed in a recoverable way."""

    def __init__(self, message: str, *, kind: str = PAYLOAD, status: int | None = None) -> None:
        if kind not in ERROR_KINDS:
            raise ValueError(f"unknown error kind: {kind}")
        self.kind = kind
        self.status = status
        super().__init__(message)


class ConfigError(ProviderError):
    """A provider's required credential is missing."""

    def __init__(self, message: str) -> None:
        super().__init__(message, kind=CONFIG)


class ExhaustedError(CerfError):
    """Every provider failed and no cache entry exists."""


@dataclass(frozen=True)
class ProviderFailure:
    """One entry of the per-request diagnostics list."""

    provider: str
    kind: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"provider": self.provider, "kind": self.kind, "message": self.message}
