"""News provider adapters and the per-section provider chains.

Sections map to an ordered list of providers.  Every adapter returns a
list of article records built with ``normalize_article``; the chain's
normaliser (``sanitize_article_list``) drops invalid rows, dedupes and
sorts.
"""

from __future__ import annotations

import logging
from typing import Any

import feedparser

from cerfreport.core import http
from cerfreport.core.errors import PAYLOAD, TIMEOUT, ProviderError
from cerfreport.core.normalize import normalize_article, sanitize_article_list, strip_html
from cerfreport.core.orchestrator import Chain, FetchContext, Provider, RequestIdentity

LOG = logging.getLogger(__name__)

DEFAULT_SECTION = "frontpage"

PROVIDERS: dict[str, tuple[str, ...]] = {
    "frontpage": ("newsapi", "gnews", "newsdata", "rss"),
    "world": ("newsapi", "gnews", "newsdata", "rss"),
    "tech": ("newsapi", "gnews", "newsdata", "rss"),
    "finance": ("newsapi", "gnews", "newsdata", "finnhub"),
}
SECTIONS: frozenset[str] = frozenset(PROVIDERS)

NEWSAPI_CONFIG: dict[str, dict[str, Any]] = {
    "world": {
        "endpoint": "top-headlines",
        "params": {"language": "en", "pageSize": 15, "sources": "associated-press,reuters,bbc-news"},
    },
    "tech": {
        "endpoint": "top-headlines",
        "params": {"language": "en", "pageSize": 12, "sources": "techcrunch,the-verge,engadget,axios,ars-technica"},
    },
    "finance": {
        "endpoint": "everything",
        "params": {
            "language": "en",
            "sortBy": "publishedAt",
            "pageSize": 12,
            "q": "(stocks OR markets OR bonds OR inflation OR fed OR earnings)",
            "domains": "reuters.com,cnbc.com,marketwatch.com,barrons.com,wsj.com,fortune.com,financialpost.com",
        },
    },
    "frontpage": {
        "endpoint": "everything",
        "params": {
            "language": "en",
            "sortBy": "publishedAt",
            "pageSize": 18,
            "q": "(election OR border OR crime OR war OR trade OR tariffs OR immigration OR protest OR courts)",
            "domains": (
                "reuters.com,apnews.com,bbc.com,cnbc.com,nypost.com,wsj.com,"
                "abcnews.go.com,nbcnews.com,foxnews.com,newsweek.com"
            ),
        },
    },
}

GNEWS_CATEGORY = {"world": "world", "tech": "technology", "finance": "business", "frontpage": "general"}
NEWSDATA_CATEGORY = {"world": "world", "tech": "technology", "finance": "business", "frontpage": "top"}

RSS_FEEDS: dict[str, tuple[str, ...]] = {
    "frontpage": (
        "https://feeds.bbci.co.uk/news/rss.xml",
        "https://www.reuters.com/world/rss",
        "https://apnews.com/hub/ap-top-news?utm_source=apnews.com&utm_medium=referral&utm_campaign=ap-rss",
    ),
    "world": ("https://feeds.bbci.co.uk/news/world/rss.xml", "https://www.reuters.com/world/rss"),
    "tech": ("https://techcrunch.com/feed/", "https://www.theverge.com/rss/index.xml", "https://arstechnica.com/feed/"),
    "finance": ("https://www.reuters.com/markets/rss", "https://www.cnbc.com/id/10000664/device/rss/rss.html"),
}

SUMMARY_LIMIT = 280


def _records(items: Any, field: str) -> list[dict[str, Any]]:
    if not isinstance(items, list):
        raise ProviderError(f"{field} is not a list", kind=PAYLOAD)
    return [it for it in items if isinstance(it, dict)]


def _source_name(item: dict[str, Any]) -> Any:
    src = item.get("source")
    return src.get("name") if isinstance(src, dict) else src


def fetch_newsapi(identity: RequestIdentity, ctx: FetchContext) -> list[dict[str, str] | None]:
    cfg = NEWSAPI_CONFIG.get(identity.key, NEWSAPI_CONFIG["world"])
    params = {k: v for k, v in cfg["params"].items() if v}
    params["apiKey"] = ctx.credential("NEWSAPI_KEY")
    data = http.get_json(
        f"https://newsapi.org/v2/{cfg['endpoint']}", params=params, timeout=ctx.call_timeout(), tag="newsapi"
    )
    if not isinstance(data, dict) or data.get("status") != "ok":
        message = data.get("message") if isinstance(data, dict) else None
        raise ProviderError(f"newsapi status not ok: {message or 'unknown'}", kind=PAYLOAD)
    return [
        normalize_article(a.get("title"), a.get("url"), _source_name(a), a.get("description"), a.get("publishedAt"))
        for a in _records(data.get("articles"), "newsapi articles")
    ]


def fetch_gnews(identity: RequestIdentity, ctx: FetchContext) -> list[dict[str, str] | None]:
    params = {
        "category": GNEWS_CATEGORY.get(identity.key, "general"),
        "lang": "en",
        "max": 15,
        "apikey": ctx.credential("GNEWS_API_KEY"),
    }
    data = http.get_json("https://gnews.io/api/v4/top-headlines", params=params, timeout=ctx.call_timeout(), tag="gnews")
    if not isinstance(data, dict):
        raise ProviderError("gnews payload is not an object", kind=PAYLOAD)
    return [
        normalize_article(a.get("title"), a.get("url"), _source_name(a), a.get("description"), a.get("publishedAt"))
        for a in _records(data.get("articles"), "gnews articles")
    ]


def fetch_newsdata(identity: RequestIdentity, ctx: FetchContext) -> list[dict[str, str] | None]:
    params = {
        "apikey": ctx.credential("NEWSDATA_KEY"),
        "language": "en",
        "category": NEWSDATA_CATEGORY.get(identity.key, "top"),
    }
    data = http.get_json("https://newsdata.io/api/1/news", params=params, timeout=ctx.call_timeout(), tag="newsdata")
    if not isinstance(data, dict) or data.get("status") != "success":
        raise ProviderError("newsdata status not success", kind=PAYLOAD)
    return [
        normalize_article(a.get("title"), a.get("link"), a.get("source_id"), a.get("description"), a.get("pubDate"))
        for a in _records(data.get("results"), "newsdata results")
    ]


def fetch_finnhub_news(identity: RequestIdentity, ctx: FetchContext) -> list[dict[str, str] | None]:
    params = {"category": "general", "token": ctx.credential("FINNHUB_API_KEY")}
    data = http.get_json("https://finnhub.io/api/v1/news", params=params, timeout=ctx.call_timeout(), tag="finnhub")
    return [
        normalize_article(a.get("headline"), a.get("url"), a.get("source"), a.get("summary"), a.get("datetime"))
        for a in _records(data, "finnhub news")[:15]
    ]


def parse_feed(text: str) -> list[dict[str, str]]:
    """RSS/Atom text → article records (feedparser does the XML work)."""
    feed = feedparser.parse(text)
    out: list[dict[str, str]] = []
    for entry in feed.entries:
        link = entry.get("link") or ""
        summary = strip_html(entry.get("summary") or entry.get("description") or "")[:SUMMARY_LIMIT]
        published = entry.get("published_parsed") or entry.get("updated_parsed") or entry.get("published")
        article = normalize_article(strip_html(entry.get("title")), link, None, summary, published)
        if article is not None:
            out.append(article)
    return out


def fetch_rss(identity: RequestIdentity, ctx: FetchContext) -> list[dict[str, str]]:
    items: list[dict[str, str]] = []
    last_error: ProviderError | None = None
    fetched = 0
    for url in RSS_FEEDS.get(identity.key, RSS_FEEDS[DEFAULT_SECTION]):
        if ctx.expired():
            LOG.warning("[rss] request budget exhausted before %s", url)
            last_error = ProviderError("rss request budget exhausted", kind=TIMEOUT)
            break
        try:
            text = http.get_text(url, timeout=ctx.call_timeout(), tag=f"rss:{url}")
        except ProviderError as exc:
            LOG.warning("[rss] failed %s: %s", url, exc)
            last_error = exc
            continue
        fetched += 1
        items.extend(parse_feed(text))
    if not fetched and last_error is not None:
        raise last_error
    return items


NEWS_PROVIDERS: dict[str, Provider] = {
    "newsapi": Provider("newsapi", fetch_newsapi, requires=("NEWSAPI_KEY",)),
    "gnews": Provider("gnews", fetch_gnews, requires=("GNEWS_API_KEY",)),
    "newsdata": Provider("newsdata", fetch_newsdata, requires=("NEWSDATA_KEY",)),
    "finnhub": Provider("finnhub", fetch_finnhub_news, requires=("FINNHUB_API_KEY",)),
    "rss": Provider("rss", fetch_rss),
}


def normalize_news(raw: Any, identity: RequestIdentity) -> list[dict[str, str]]:
    return sanitize_article_list(raw)


def section_chain(section: str, freshness: float = 0.0) -> Chain:
    names = PROVIDERS.get(section, PROVIDERS[DEFAULT_SECTION])
    return Chain(
        providers=tuple(NEWS_PROVIDERS[name] for name in names),
        normalize=normalize_news,
        freshness=freshness,
    )
