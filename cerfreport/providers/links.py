"""Curated links published from a Google Sheet as CSV."""

from __future__ import annotations

import io
from functools import partial
from typing import Any

import pandas as pd

from cerfreport.core import http
from cerfreport.core.errors import PAYLOAD, ProviderError
from cerfreport.core.normalize import is_absolute_url
from cerfreport.core.orchestrator import Chain, FetchContext, Provider, RequestIdentity

LINKS_KEY = "recommended"
SHEET_TIMEOUT = 5.5

TITLE_COLUMNS = ("title", "name", "headline")
URL_COLUMNS = ("url", "link", "href")
DESCRIPTION_COLUMNS = ("description", "summary", "note")


def _first(row: dict[str, str], columns: tuple[str, ...]) -> str:
    for col in columns:
        value = (row.get(col) or "").replace("\r", "").strip()
        if value:
            return value
    return ""


def parse_links_csv(text: str) -> list[dict[str, str]]:
    """Sheet CSV → link records, newest (last) row first."""
    if not (text or "").strip():
        return []
    try:
        df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False, skip_blank_lines=True)
    except pd.errors.EmptyDataError:
        return []
    except pd.errors.ParserError as exc:
        raise ProviderError(f"sheet CSV unreadable: {exc}", kind=PAYLOAD) from exc
    df.columns = [str(c).lstrip("\ufeff").strip().lower() for c in df.columns]

    out: list[dict[str, str]] = []
    for row in df.to_dict("records"):
        title = _first(row, TITLE_COLUMNS)
        url = _first(row, URL_COLUMNS)
        if title and url and is_absolute_url(url):
            out.append({"title": title, "url": url, "description": _first(row, DESCRIPTION_COLUMNS)})
    out.reverse()
    return out


def fetch_sheet(identity: RequestIdentity, ctx: FetchContext, url: str = "") -> str:
    return http.get_text(
        url,
        headers={"Accept": "text/csv, */*;q=0.8", "Cache-Control": "no-store"},
        timeout=min(ctx.call_timeout(), SHEET_TIMEOUT),
        tag="sheet",
    )


def normalize_links(raw: Any, identity: RequestIdentity) -> list[dict[str, str]]:
    if not isinstance(raw, str):
        raise ProviderError("sheet body is not text", kind=PAYLOAD)
    return parse_links_csv(raw)


def links_chain(sheet_url: str, freshness: float = 0.0) -> Chain:
    return Chain(
        providers=(Provider("sheet", partial(fetch_sheet, url=sheet_url)),),
        normalize=normalize_links,
        freshness=freshness,
    )
