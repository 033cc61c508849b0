"""Core functionality for the dashboard backend."""

from . import cache, errors, flags, http, normalize, orchestrator, security, settings, util

__all__ = [
    "cache",
    "errors",
    "flags",
    "http",
    "normalize",
    "orchestrator",
    "security",
    "settings",
    "util",
]
