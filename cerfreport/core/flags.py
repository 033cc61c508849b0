"""Feature flag helpers for runtime toggles."""

from __future__ import annotations

import os

_ON_VALUES = {"1", "true", "yes", "y", "on"}


def flag(name: str, default: str = "0") -> bool:
    """Return True when the environment variable resolves to an on-value."""
    return (os.getenv(name, default) or "").strip().lower() in _ON_VALUES


def debug_errors() -> bool:
    """Expose per-provider failures in endpoint responses."""
    return flag("DEBUG_ERRORS", "0")


def provider_disabled(name: str) -> bool:
    """Operators can switch a provider off with ``PROVIDER_<NAME>_DISABLED=1``."""
    env_name = "PROVIDER_" + name.upper().replace("-", "_").replace(".", "_") + "_DISABLED"
    return flag(env_name, "0")
