from __future__ import annotations

import json
from datetime import UTC, datetime

import allure
import httpx
import pytest

from pharmacentral.config import FetchSettings
from pharmacentral.errors import FetchExhausted
from pharmacentral.ingestion.fetcher import FeedFetcher, RelayCascade
from pharmacentral.ingestion.models import Relay, ResponseShape, Source
from pharmacentral.ingestion.parser import FeedParser

pytestmark = [
    allure.epic("Feed Ingestion"),
    allure.feature("Relay Cascade"),
]

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)
SOURCE = Source(name="Source A", url="https://feeds.example.com/a.xml", category="Pharma News")

RELAY_ONE = Relay("https://relay-one.test/api?rss_url={url}", ResponseShape.STRUCTURED, "Relay One")
RELAY_TWO = Relay("https://relay-two.test/api?rss_url={url}", ResponseShape.STRUCTURED, "Relay Two")
RELAY_RAW = Relay("https://relay-raw.test/?url={url}", ResponseShape.RAW, "Raw Relay")
RELAY_ENVELOPE = Relay(
    "https://relay-envelope.test/get?url={url}",
    ResponseShape.RAW,
    "Envelope Relay",
    envelope_field="contents",
)

_RSS_XML = """<?xml version="1.0"?>
<rss version="2.0">
  <channel>
    <title>Source A</title>
    <item>
      <title>Direct item</title>
      <link>https://example.com/direct</link>
      <description>Fetched without any relay in between.</description>
    </item>
  </channel>
</rss>
"""


def _structured_body() -> dict[str, object]:
    return {
        "status": "ok",
        "feed": {"title": "Source A"},
        "items": [
            {
                "title": "Drug approved",
                "link": "https://example.com/approved",
                "description": "Regulators approved the drug after a priority review.",
                "pubDate": "2026-10-18 08:00:00",
            },
            {
                "title": "",
                "link": "https://example.com/untitled",
                "description": "This entry has no title and must be skipped.",
            },
        ],
    }


class _Router:
    """Routes requests by host and counts calls per host."""

    def __init__(self, handlers: dict[str, object]) -> None:
        self._handlers = handlers
        self.calls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        self.calls.append(host)
        handler = self._handlers.get(host)
        if handler is None:
            return httpx.Response(404, text="not found", request=request)
        return handler(request)


def _timeout(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadTimeout("timed out", request=request)


def _json(payload: object):
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=payload, request=request)

    return _handler


def _text(body: str, status_code: int = 200):
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, text=body, request=request)

    return _handler


def _fetcher(router: _Router, relays: list[Relay], fake_sleep) -> FeedFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(router))
    return FeedFetcher(
        client=client,
        relays=RelayCascade(relays),
        parser=FeedParser(clock=lambda: NOW),
        settings=FetchSettings(),
        sleep=fake_sleep,
    )


@pytest.mark.asyncio
async def test_relay_timeouts_fall_through_to_next_relay(fake_sleep) -> None:
    router = _Router(
        {
            "relay-one.test": _timeout,
            "relay-two.test": _json(_structured_body()),
        },
    )
    fetcher = _fetcher(router, [RELAY_ONE, RELAY_TWO], fake_sleep)

    articles = await fetcher.fetch_source(SOURCE)

    assert [article.title for article in articles] == ["Drug approved"]
    assert router.calls == ["relay-one.test"] * 3 + ["relay-two.test"]
    assert fake_sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_relay_url_carries_encoded_feed_address(fake_sleep) -> None:
    seen: list[httpx.Request] = []

    def _capture(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_structured_body(), request=request)

    fetcher = _fetcher(_Router({"relay-one.test": _capture}), [RELAY_ONE], fake_sleep)

    await fetcher.fetch_source(SOURCE)

    assert seen[0].url.params["rss_url"] == SOURCE.url
    assert seen[0].headers["Accept"] == "application/json"


@pytest.mark.asyncio
async def test_structured_relay_error_status_is_an_attempt_failure(fake_sleep) -> None:
    error_body = {"status": "error", "message": "Feed could not be loaded from the upstream url"}
    router = _Router(
        {
            "relay-one.test": _json(error_body),
            "relay-raw.test": _text(_RSS_XML),
        },
    )
    fetcher = _fetcher(router, [RELAY_ONE, RELAY_RAW], fake_sleep)

    articles = await fetcher.fetch_source(SOURCE)

    assert [article.title for article in articles] == ["Direct item"]
    assert router.calls.count("relay-one.test") == 3


@pytest.mark.asyncio
async def test_envelope_relay_unwraps_raw_body(fake_sleep) -> None:
    router = _Router({"relay-envelope.test": _json({"contents": _RSS_XML, "status": {}})})
    fetcher = _fetcher(router, [RELAY_ENVELOPE], fake_sleep)

    articles = await fetcher.fetch_source(SOURCE)

    assert [article.source_url for article in articles] == ["https://example.com/direct"]
    assert fake_sleep.delays == []


@pytest.mark.asyncio
async def test_short_body_is_rejected_and_retried(fake_sleep) -> None:
    responses = iter([_text("<rss/>"), _text(_RSS_XML)])

    def _flaky(request: httpx.Request) -> httpx.Response:
        return next(responses)(request)

    router = _Router({"relay-raw.test": _flaky})
    fetcher = _fetcher(router, [RELAY_RAW], fake_sleep)

    articles = await fetcher.fetch_source(SOURCE)

    assert len(articles) == 1
    assert router.calls == ["relay-raw.test", "relay-raw.test"]
    assert fake_sleep.delays == [1.0]


@pytest.mark.asyncio
async def test_direct_fetch_is_last_resort(fake_sleep) -> None:
    router = _Router(
        {
            "relay-one.test": _text("upstream failure", status_code=502),
            "feeds.example.com": _text(_RSS_XML),
        },
    )
    fetcher = _fetcher(router, [RELAY_ONE], fake_sleep)

    articles = await fetcher.fetch_source(SOURCE)

    assert [article.title for article in articles] == ["Direct item"]
    assert router.calls == ["relay-one.test"] * 3 + ["feeds.example.com"]


@pytest.mark.asyncio
async def test_all_methods_failing_raises_fetch_exhausted(fake_sleep) -> None:
    router = _Router({"feeds.example.com": _text("gone", status_code=410)})
    fetcher = _fetcher(router, [RELAY_ONE, RELAY_RAW], fake_sleep)

    with pytest.raises(FetchExhausted) as error_info:
        await fetcher.fetch_source(SOURCE)

    assert error_info.value.source_name == "Source A"
    assert error_info.value.last_error == "HTTP 410"
    assert "All fetch methods failed for Source A" in str(error_info.value)
    assert len(router.calls) == 7
    assert fake_sleep.delays == [1.0, 2.0, 1.0, 2.0]


@pytest.mark.asyncio
async def test_feed_without_articles_counts_as_failure(fake_sleep) -> None:
    empty_feed = json.dumps({"status": "ok", "items": [], "feed": {"title": "x" * 120}})
    router = _Router({"relay-one.test": _text(empty_feed)})
    fetcher = _fetcher(router, [RELAY_ONE], fake_sleep)

    with pytest.raises(FetchExhausted):
        await fetcher.fetch_source(SOURCE)
