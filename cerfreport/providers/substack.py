"""Substack posts: RSS feed first, archive JSON as the fallback."""

from __future__ import annotations

from functools import partial
from typing import Any
from urllib.parse import urlsplit

import feedparser

from cerfreport.core import http
from cerfreport.core.errors import PAYLOAD, ConfigError, ProviderError
from cerfreport.core.normalize import absolutize, fallback_title, normalize_article, sanitize_article_list, strip_html
from cerfreport.core.orchestrator import Chain, FetchContext, Provider, RequestIdentity

ARCHIVE_MODE = "archive"
ARCHIVE_LIMIT = 10

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120 Safari/537.36"
    ),
}


def feed_host(feed_url: str) -> str:
    return (urlsplit(feed_url).netloc or "").lower()


def parse_substack_feed(text: str, site_host: str) -> list[dict[str, str] | None]:
    feed = feedparser.parse(text)
    items: list[dict[str, str] | None] = []
    for entry in feed.entries:
        description = strip_html(entry.get("summary") or entry.get("description") or "")
        title = fallback_title(strip_html(entry.get("title")), description)
        link = absolutize(strip_html(entry.get("link") or entry.get("id") or ""), site_host)
        published = entry.get("published_parsed") or entry.get("published") or entry.get("updated")
        items.append(normalize_article(title, link, None, description, published))
    return items


def fetch_rss(identity: RequestIdentity, ctx: FetchContext, feed_url: str = "") -> list[dict[str, str] | None]:
    if identity.has(ARCHIVE_MODE):
        raise ConfigError("rss skipped in archive mode")
    site_host = feed_host(feed_url)
    headers = dict(BROWSER_HEADERS)
    headers.update({
        "Accept": "application/rss+xml, application/xml;q=0.9, */*;q=0.8",
        "Cache-Control": "no-cache",
        "Referer": f"https://{site_host}/",
    })
    text = http.get_text(feed_url, headers=headers, timeout=ctx.call_timeout(), tag="substack-rss")
    return parse_substack_feed(text, site_host)


def parse_archive(posts: Any, site_host: str) -> list[dict[str, str] | None]:
    if not isinstance(posts, list):
        raise ProviderError("substack archive is not a list", kind=PAYLOAD)
    items: list[dict[str, str] | None] = []
    for post in posts[:ARCHIVE_LIMIT]:
        if not isinstance(post, dict):
            continue
        raw_title = post.get("title") or post.get("headline") or post.get("subject_line") or post.get("name") or ""
        description = strip_html(post.get("subtitle") or post.get("description") or "")
        link = post.get("canonical_url") or (f"/p/{post['slug']}" if post.get("slug") else "")
        items.append(
            normalize_article(
                fallback_title(strip_html(raw_title), description),
                absolutize(link, site_host),
                None,
                description,
                post.get("post_date") or post.get("published_at"),
            )
        )
    return items


def fetch_archive(identity: RequestIdentity, ctx: FetchContext, feed_url: str = "") -> list[dict[str, str] | None]:
    site_host = feed_host(feed_url)
    headers = dict(BROWSER_HEADERS)
    posts = http.get_json(
        f"https://{site_host}/api/v1/archive",
        params={"sort": "new"},
        headers=headers,
        timeout=ctx.call_timeout(),
        tag="substack-archive",
    )
    return parse_archive(posts, site_host)


def normalize_posts(raw: Any, identity: RequestIdentity) -> list[dict[str, str]]:
    return sanitize_article_list(raw)


def substack_chain(feed_url: str, freshness: float = 0.0) -> Chain:
    return Chain(
        providers=(
            Provider("substack-rss", partial(fetch_rss, feed_url=feed_url)),
            Provider("substack-archive", partial(fetch_archive, feed_url=feed_url)),
        ),
        normalize=normalize_posts,
        freshness=freshness,
    )
