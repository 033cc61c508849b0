"""Provider adapters and the catalog of known request identities."""

from __future__ import annotations

from cerfreport.core.orchestrator import Catalog
from cerfreport.core.settings import Settings

from . import links, mini, news, quotes, substack

NEWS = "news"
MARKET = "market"
MINI = "mini"
LINKS = "links"
SUBSTACK = "substack"


def build_catalog(settings: Settings) -> Catalog:
    """Register every whitelisted identity with its provider chain."""
    catalog = Catalog()
    for section in sorted(news.SECTIONS):
        catalog.register(NEWS, section, news.section_chain(section, freshness=settings.news_cooldown))
    catalog.register(
        MARKET,
        quotes.MARKET_KEY,
        quotes.market_chain(
            freshness=settings.market_cooldown,
            movers_count=settings.movers_count,
            workers=settings.quote_workers,
        ),
    )
    for asset in mini.ASSETS:
        catalog.register(MINI, asset, mini.spot_chain(asset, freshness=settings.mini_cooldown))
    catalog.register(LINKS, links.LINKS_KEY, links.links_chain(settings.sheet_csv_url, freshness=settings.links_cooldown))
    for feed_url in settings.allowed_feeds:
        catalog.register(
            SUBSTACK,
            substack.feed_host(feed_url),
            substack.substack_chain(feed_url, freshness=settings.substack_cooldown),
        )
    return catalog


__all__ = [
    "LINKS",
    "MARKET",
    "MINI",
    "NEWS",
    "SUBSTACK",
    "build_catalog",
    "links",
    "mini",
    "news",
    "quotes",
    "substack",
]
