"""Normalisation: provider payload fields → canonical article and quote records.

Article record::

    {"title", "url", "description", "publishedAt", "source"}

Quote record::

    {"ticker", "name", "c", "d", "dp"}

Everything here is pure; the orchestrator and the provider adapters
call these functions and tests exercise them directly.
"""

from __future__ import annotations

import calendar
import html
import logging
import math
import re
import time
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlsplit

from dateutil import parser as dtparser

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")

# Epoch values above this are milliseconds (year 5138 in seconds).
_MILLIS_THRESHOLD = 1e11


def _format_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _now_iso() -> str:
    return _format_iso(datetime.now(tz=timezone.utc))


def to_iso(ts: Any) -> str:
    """Parse ``ts`` into an ISO-8601 UTC string; unparsable → now.

    Accepts epoch seconds or milliseconds, ``datetime``, ``time.struct_time``
    (as produced by feedparser) and free-form date strings (ISO-8601,
    RFC-822 and friends via dateutil).  Naive values are taken as UTC.
    """
    if ts is None or ts == "" or isinstance(ts, bool):
        return _now_iso()
    try:
        if isinstance(ts, datetime):
            return _format_iso(ts)
        if isinstance(ts, time.struct_time):
            return _format_iso(datetime.fromtimestamp(calendar.timegm(ts), tz=timezone.utc))
        if isinstance(ts, (int, float)):
            if not math.isfinite(ts) or ts <= 0:
                return _now_iso()
            seconds = ts / 1000.0 if ts > _MILLIS_THRESHOLD else float(ts)
            return _format_iso(datetime.fromtimestamp(seconds, tz=timezone.utc))
        return _format_iso(dtparser.parse(str(ts).strip()))
    except (ValueError, OverflowError, OSError, TypeError):
        logger.debug("Unparseable timestamp %r; using now.", str(ts)[:80])
        return _now_iso()


def _iso_sort_key(value: str) -> float:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
    except (ValueError, AttributeError):
        return 0.0


def host(url: str) -> str:
    """Hostname of ``url`` without a leading ``www.``; empty when unparsable."""
    try:
        name = urlsplit(str(url).strip()).hostname or ""
    except ValueError:
        return ""
    return name[4:] if name.startswith("www.") else name


def is_absolute_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def absolutize(url: str, site_host: str) -> str:
    """Resolve a feed-relative link against ``site_host`` (https assumed)."""
    url = (url or "").strip()
    if not url:
        return ""
    if re.match(r"^https?://", url, re.IGNORECASE):
        return url
    if url.startswith("//"):
        return "https:" + url
    if url.startswith("/"):
        return f"https://{site_host}{url}"
    return f"https://{site_host}/{url}"


def strip_html(text: Any) -> str:
    """Drop tags, decode entities and collapse whitespace."""
    if not text:
        return ""
    s = html.unescape(_TAG_RE.sub(" ", str(text)))
    return _WS_RE.sub(" ", s).strip()


def fallback_title(title: str, description: str) -> str:
    """Always produce a usable headline for feeds that omit titles."""
    t = (title or "").strip()
    if t:
        return t
    d = (description or "").strip()
    if d:
        return d if len(d) <= 90 else d[:87] + "…"
    return "Untitled"


def url_key(url: str) -> str:
    """Dedup key: the URL with any fragment removed."""
    return (url or "").split("#", 1)[0]


def finite_or_none(value: Any) -> float | None:
    """Coerce to a finite float; anything else becomes ``None``."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def normalize_article(
    title: Any,
    url: Any,
    source: Any = None,
    summary: Any = None,
    timestamp: Any = None,
) -> dict[str, str] | None:
    """Build an article record, or ``None`` when title/url are missing."""
    clean_title = str(title).strip() if title is not None else ""
    clean_url = str(url).strip() if url is not None else ""
    if not clean_title or not clean_url or not is_absolute_url(clean_url):
        return None
    clean_source = str(source).strip() if source else ""
    return {
        "title": clean_title,
        "url": clean_url,
        "source": clean_source or host(clean_url),
        "description": str(summary or "").strip(),
        "publishedAt": to_iso(timestamp),
    }


def sanitize_article_list(records: Iterable[Any] | None) -> list[dict[str, str]]:
    """Filter invalid records, dedupe by URL (fragment-insensitive), sort newest-first.

    Idempotent: sanitising an already sanitised list returns it unchanged.
    """
    seen: set[str] = set()
    unique: list[dict[str, str]] = []
    for rec in records or []:
        if not rec or not isinstance(rec, Mapping):
            continue
        article = normalize_article(
            rec.get("title"),
            rec.get("url"),
            rec.get("source"),
            rec.get("description"),
            rec.get("publishedAt"),
        )
        if article is None:
            continue
        key = url_key(article["url"])
        if key in seen:
            continue
        seen.add(key)
        unique.append(article)
    unique.sort(key=lambda a: _iso_sort_key(a["publishedAt"]), reverse=True)
    return unique


def normalize_quote(
    ticker: Any,
    name: Any = None,
    price: Any = None,
    change: Any = None,
    change_percent: Any = None,
) -> dict[str, Any] | None:
    """Build a quote record, or ``None`` when the ticker is missing."""
    symbol = str(ticker).strip().upper() if ticker is not None else ""
    if not symbol:
        return None
    label = str(name).strip() if name else ""
    return {
        "ticker": symbol,
        "name": label or symbol,
        "c": finite_or_none(price),
        "d": finite_or_none(change),
        "dp": finite_or_none(change_percent),
    }


def has_price(quote: Mapping[str, Any] | None) -> bool:
    return bool(quote) and finite_or_none(quote.get("c")) is not None


def rank_top_movers(
    universe: Iterable[str],
    quote_map: Mapping[str, Mapping[str, Any]],
    count: int,
) -> list[Mapping[str, Any]]:
    """Quotes with a finite ``dp`` ordered by ``|dp|`` descending, at most ``count``."""
    picked: list[Mapping[str, Any]] = []
    seen: set[str] = set()
    for ticker in universe:
        if ticker in seen:
            continue
        seen.add(ticker)
        quote = quote_map.get(ticker)
        if not quote or finite_or_none(quote.get("dp")) is None:
            continue
        picked.append(quote)
    picked.sort(key=lambda q: abs(float(q["dp"])), reverse=True)
    return picked[: max(0, count)]
