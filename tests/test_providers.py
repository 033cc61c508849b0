"""Provider adapters and payload parsers."""

from __future__ import annotations

import pytest

from cerfreport.core import http
from cerfreport.core.errors import CONFIG, HTTP, PAYLOAD, BadRequest, ProviderError
from cerfreport.core.orchestrator import FetchContext, RequestIdentity
from cerfreport.core.settings import Settings
from cerfreport.providers import build_catalog, links, mini, news, quotes, substack

CTX = FetchContext(credentials={"NEWSAPI_KEY": "n", "GNEWS_API_KEY": "g", "FINNHUB_API_KEY": "f"}, timeout=3.0)

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>Feed</title>
<item>
  <title>First &amp; foremost</title>
  <link>https://www.bbc.co.uk/news/1</link>
  <description>&lt;p&gt;Body one&lt;/p&gt;</description>
  <pubDate>Tue, 14 Nov 2023 22:13:20 GMT</pubDate>
</item>
<item>
  <title></title>
  <link>https://www.bbc.co.uk/news/2</link>
</item>
</channel></rss>
"""


def test_newsapi_maps_articles(monkeypatch) -> None:
    seen = {}

    def fake_get_json(url, **kwargs):
        seen["url"] = url
        seen["params"] = kwargs["params"]
        return {
            "status": "ok",
            "articles": [
                {
                    "title": "Fed holds",
                    "url": "https://www.reuters.com/markets/fed",
                    "source": {"name": "Reuters"},
                    "description": "Rates unchanged",
                    "publishedAt": "2024-03-20T18:00:00Z",
                },
                {"title": None, "url": "https://x.com"},
            ],
        }

    monkeypatch.setattr(http, "get_json", fake_get_json)
    records = news.fetch_newsapi(RequestIdentity.of("news", "finance"), CTX)

    assert seen["url"] == "https://newsapi.org/v2/everything"
    assert seen["params"]["apiKey"] == "n"
    assert records[0]["source"] == "Reuters"
    assert records[0]["publishedAt"] == "2024-03-20T18:00:00.000Z"
    assert records[1] is None
    assert news.normalize_news(records, None)[0]["title"] == "Fed holds"


def test_newsapi_error_status_is_a_payload_failure(monkeypatch) -> None:
    monkeypatch.setattr(http, "get_json", lambda url, **kw: {"status": "error", "message": "rateLimited"})
    with pytest.raises(ProviderError) as excinfo:
        news.fetch_newsapi(RequestIdentity.of("news", "tech"), CTX)
    assert excinfo.value.kind == PAYLOAD
    assert "rateLimited" in str(excinfo.value)


def test_gnews_and_newsdata_field_mapping(monkeypatch) -> None:
    payloads = {
        "gnews": {
            "articles": [
                {"title": "G", "url": "https://g.example.com/1", "source": {"name": "GSrc"}, "publishedAt": 1700000000}
            ]
        },
        "newsdata": {
            "status": "success",
            "results": [
                {
                    "title": "N",
                    "link": "https://n.example.com/1",
                    "source_id": "nsrc",
                    "pubDate": "2023-11-14 22:13:20",
                }
            ],
        },
    }
    monkeypatch.setattr(http, "get_json", lambda url, **kw: payloads[kw["tag"]])
    identity = RequestIdentity.of("news", "world")

    gnews = news.fetch_gnews(identity, CTX)
    newsdata = news.fetch_newsdata(identity, CTX)

    assert gnews[0]["source"] == "GSrc"
    assert newsdata[0] == {
        "title": "N",
        "url": "https://n.example.com/1",
        "source": "nsrc",
        "description": "",
        "publishedAt": "2023-11-14T22:13:20.000Z",
    }


def test_finnhub_news_uses_epoch_seconds(monkeypatch) -> None:
    items = [
        {"headline": f"H{i}", "url": f"https://f.example.com/{i}", "source": "CNBC", "datetime": 1700000000}
        for i in range(20)
    ]
    monkeypatch.setattr(http, "get_json", lambda url, **kw: items)
    records = news.fetch_finnhub_news(RequestIdentity.of("news", "finance"), CTX)
    assert len(records) == 15
    assert records[0]["publishedAt"] == "2023-11-14T22:13:20.000Z"


def test_parse_feed() -> None:
    records = news.parse_feed(RSS)
    assert len(records) == 1
    first = records[0]
    assert first["title"] == "First & foremost"
    assert first["source"] == "bbc.co.uk"
    assert first["description"] == "Body one"
    assert first["publishedAt"] == "2023-11-14T22:13:20.000Z"


def test_rss_survives_one_bad_feed(monkeypatch) -> None:
    def fake_get_text(url, **kw):
        if "reuters" in url:
            raise ProviderError("rss HTTP 403", kind=HTTP, status=403)
        return RSS

    monkeypatch.setattr(http, "get_text", fake_get_text)
    records = news.fetch_rss(RequestIdentity.of("news", "world"), CTX)
    assert [r["title"] for r in records] == ["First & foremost"]


def test_rss_raises_when_every_feed_fails(monkeypatch) -> None:
    def fake_get_text(url, **kw):
        raise ProviderError("rss timeout", kind=HTTP)

    monkeypatch.setattr(http, "get_text", fake_get_text)
    with pytest.raises(ProviderError):
        news.fetch_rss(RequestIdentity.of("news", "tech"), CTX)


def test_finnhub_quotes_tolerate_single_symbol_failures(monkeypatch) -> None:
    def fake_get_json(url, **kw):
        symbol = kw["params"]["symbol"]
        if symbol == "AMD":
            raise ProviderError("finnhub:AMD HTTP 500", kind=HTTP)
        if symbol == "RIOT":
            return {"c": 0, "d": None, "dp": None}
        return {"c": 100.0, "d": 1.0, "dp": 1.0}

    monkeypatch.setattr(http, "get_json", fake_get_json)
    quote_map = quotes.fetch_finnhub_quotes(RequestIdentity.of("market", "quotes"), CTX, workers=4)

    assert "AMD" not in quote_map
    assert quote_map["RIOT"]["c"] is None
    assert quote_map["SPY"]["c"] == 100.0


def test_finnhub_quotes_share_the_request_deadline(monkeypatch) -> None:
    now = [0.0]
    timeouts: list[float] = []

    def slow_quote(url, **kw):
        timeouts.append(kw["timeout"])
        now[0] += 4
        return {"c": 100.0, "d": 1.0, "dp": 1.0}

    monkeypatch.setattr(http, "get_json", slow_quote)
    ctx = FetchContext(credentials={"FINNHUB_API_KEY": "f"}, timeout=7.0, deadline=10.0, clock=lambda: now[0])

    quote_map = quotes.fetch_finnhub_quotes(RequestIdentity.of("market", "quotes"), ctx, workers=1)

    assert timeouts == [7.0, 6.0, 2.0]
    assert list(quote_map) == quotes.universe()[:3]


def test_polygon_price_fallbacks(monkeypatch) -> None:
    snapshot = {
        "tickers": [
            {"ticker": "SPY", "lastTrade": {"p": 501.0}, "todaysChange": 2.0, "todaysChangePerc": 0.4},
            {"ticker": "DIA", "day": {"c": 0}, "prevDay": {"c": 390.0}},
            "junk",
        ]
    }
    monkeypatch.setattr(http, "get_json", lambda url, **kw: snapshot)
    quote_map = quotes.fetch_polygon_quotes(RequestIdentity.of("market", "quotes"), CTX)
    assert quote_map["SPY"]["c"] == 501.0
    assert quote_map["SPY"]["dp"] == 0.4
    assert quote_map["DIA"]["c"] == 390.0


def test_yahoo_quotes_requires_result_list(monkeypatch) -> None:
    monkeypatch.setattr(http, "get_json", lambda url, **kw: {"quoteResponse": {"error": "x"}})
    with pytest.raises(ProviderError):
        quotes.yahoo_quotes(["SPY"], CTX)


def test_parse_stooq_csv() -> None:
    text = "Symbol,Open,High,Low,Close\nSPY.US,500,505,499,505\nQQQ.US,N/D,N/D,N/D,N/D\n"
    quote_map = quotes.parse_stooq_csv(text)
    assert quote_map["SPY"]["c"] == 505.0
    assert quote_map["SPY"]["d"] == 5.0
    assert quote_map["SPY"]["dp"] == pytest.approx(1.0)
    assert quote_map["QQQ"]["c"] is None


def test_normalize_market_shapes_dashboard_data() -> None:
    raw = {
        "SPY": {"ticker": "SPY", "name": "SPY", "c": 500.0, "d": 1.0, "dp": 0.2},
        "NVDA": {"ticker": "NVDA", "name": "NVDA", "c": 900.0, "d": 40.0, "dp": 4.5},
        "XOM": {"ticker": "XOM", "name": "XOM", "c": 110.0, "d": -3.0, "dp": -2.6},
        "MARA": {"ticker": "MARA", "name": "MARA", "c": None, "d": None, "dp": 9.9},
        "ZZZZ": {"ticker": "ZZZZ", "name": "ZZZZ", "c": 1.0, "d": 1.0, "dp": 50.0},
    }
    body = quotes.normalize_market(raw, RequestIdentity.of("market", "quotes"), movers_count=8)

    assert [q["name"] for q in body["indices"]] == ["Dow Jones", "S&P 500", "NASDAQ"]
    assert body["indices"][0]["c"] is None
    assert set(body["movers"]) == {"ai", "crypto", "energy"}
    assert [q["ticker"] for q in body["topMovers"]] == ["NVDA", "XOM"]
    assert quotes.count_priced(body) == 3


def test_coingecko_change_is_derived_from_percent(monkeypatch) -> None:
    monkeypatch.setattr(
        http, "get_json", lambda url, **kw: {"bitcoin": {"usd": 110.0, "usd_24h_change": 10.0}}
    )
    quote = mini.fetch_coingecko_btc(RequestIdentity.of("mini", "btc"), CTX)
    assert quote["ticker"] == "BTC-USD"
    assert quote["d"] == pytest.approx(10.0)
    assert mini.count_spot(quote) == 1
    assert mini.count_spot(None) == 0


def test_parse_links_csv() -> None:
    text = (
        "\ufeffTitle,Link,Note\n"
        "Old pick,https://example.com/old,first\n"
        "No link,,\n"
        "Relative,/x,\n"
        '"New, pick",https://example.com/new,"quoted, note"\n'
    )
    rows = links.parse_links_csv(text)
    assert rows == [
        {"title": "New, pick", "url": "https://example.com/new", "description": "quoted, note"},
        {"title": "Old pick", "url": "https://example.com/old", "description": "first"},
    ]
    assert links.parse_links_csv("") == []


def test_substack_archive_parsing() -> None:
    posts = [
        {"title": "Issue 12", "slug": "issue-12", "subtitle": "<b>Weekly</b>", "post_date": "2024-05-01T12:00:00Z"},
        {"title": "", "canonical_url": "https://cerf.substack.com/p/untitled", "description": "Only a summary"},
        {"title": "No link"},
        "junk",
    ]
    records = substack.normalize_posts(substack.parse_archive(posts, "cerf.substack.com"), None)
    by_url = {r["url"]: r for r in records}
    assert by_url["https://cerf.substack.com/p/issue-12"]["description"] == "Weekly"
    assert by_url["https://cerf.substack.com/p/untitled"]["title"] == "Only a summary"
    assert len(records) == 2


def test_substack_rss_is_skipped_in_archive_mode() -> None:
    with pytest.raises(ProviderError) as excinfo:
        substack.fetch_rss(RequestIdentity.of("substack", "cerf.substack.com", "archive"), CTX, feed_url="https://x")
    assert excinfo.value.kind == CONFIG


def test_catalog_whitelists_known_identities() -> None:
    settings = Settings(substack_feeds="https://cerf.substack.com/feed", credentials={})
    catalog = build_catalog(settings)
    assert sorted(catalog.keys("news")) == ["finance", "frontpage", "tech", "world"]
    assert catalog.keys("substack") == ["cerf.substack.com"]
    assert catalog.resolve(RequestIdentity.of("news", "finance")).provider_names == [
        "newsapi",
        "gnews",
        "newsdata",
        "finnhub",
    ]
    with pytest.raises(BadRequest):
        catalog.resolve(RequestIdentity.of("news", "sports"))
