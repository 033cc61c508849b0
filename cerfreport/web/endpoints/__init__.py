"""Endpoint registry exports."""

from . import links, market, mini_market, news, substack  # noqa: F401

__all__ = [
    "links",
    "market",
    "mini_market",
    "news",
    "substack",
]
