from __future__ import annotations

import asyncio

import allure
import httpx
import pytest

from pharmacentral.config import TranslationSettings
from pharmacentral.errors import ProviderUnavailable, RateLimited
from pharmacentral.translation.cache import TranslationCache, cache_key
from pharmacentral.translation.providers import (
    GoogleProvider,
    LingvaProvider,
    MyMemoryProvider,
    ProviderChain,
    build_providers,
)

pytestmark = [
    allure.epic("Translation"),
    allure.feature("Provider Chain"),
]

ARABIC = "تمت الموافقة على عقار جديد"


class _StaticProvider:
    def __init__(self, name: str, result: str | Exception, *, delay: float = 0.0) -> None:
        self.name = name
        self.timeout_seconds = 0.05
        self._result = result
        self._delay = delay
        self.calls = 0

    async def translate(self, text: str, source: str, target: str) -> str:
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if isinstance(self._result, Exception):
            raise self._result
        return self._result


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_empty_result_falls_through_and_winner_is_cached(kv_store, clock) -> None:
    cache = TranslationCache(kv_store, clock=clock)
    first = _StaticProvider("first", "")
    second = _StaticProvider("second", ARABIC)
    chain = ProviderChain([first, second], cache=cache)

    result = await chain.translate("New drug approved", "en", "ar")

    assert result == ARABIC
    assert (first.calls, second.calls) == (1, 1)
    assert cache.get("New drug approved") == ARABIC
    assert kv_store.get_json(cache_key("New drug approved"))["translation"] == ARABIC


@pytest.mark.asyncio
async def test_echoed_input_and_errors_are_skipped(kv_store, clock) -> None:
    echo = _StaticProvider("echo", "New drug approved")
    broken = _StaticProvider("broken", ProviderUnavailable(message="bad shape", provider="broken"))
    limited = _StaticProvider("limited", RateLimited(message="quota", provider="limited"))
    slow = _StaticProvider("slow", ARABIC, delay=1.0)
    cache = TranslationCache(kv_store, clock=clock)
    chain = ProviderChain([echo, broken, limited, slow], cache=cache)

    result = await chain.translate("New drug approved", "en", "ar")

    assert result is None
    assert [p.calls for p in (echo, broken, limited, slow)] == [1, 1, 1, 1]
    assert cache.get("New drug approved") is None


@pytest.mark.asyncio
async def test_lingva_provider_reads_translation_field() -> None:
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"translation": ARABIC}, request=request)

    provider = LingvaProvider(_client(_handler))

    assert await provider.translate("New drug approved", "en", "ar") == ARABIC
    assert seen[0].url.host == "lingva.ml"
    assert seen[0].url.raw_path.decode() == "/api/v1/en/ar/New%20drug%20approved"


@pytest.mark.asyncio
async def test_lingva_provider_rejects_missing_field() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"error": "nope"}, request=request)

    with pytest.raises(ProviderUnavailable):
        await LingvaProvider(_client(_handler)).translate("text", "en", "ar")


@pytest.mark.asyncio
async def test_google_provider_joins_segments() -> None:
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        segments = [["تمت الموافقة ", "New drug ", None], ["على عقار جديد", "approved", None]]
        body = [segments, None, "en"]
        return httpx.Response(200, json=body, request=request)

    provider = GoogleProvider(_client(_handler))

    assert await provider.translate("New drug \u2014 approved", "en", "ar") == ARABIC
    params = seen[0].url.params
    assert (params["client"], params["sl"], params["tl"], params["dt"]) == ("gtx", "en", "ar", "t")
    assert params["q"] == "New drug - approved"


@pytest.mark.asyncio
async def test_google_provider_retries_through_relay_on_network_error() -> None:
    hosts: list[str] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        hosts.append(request.url.host)
        if request.url.host == "translate.googleapis.com":
            raise httpx.ConnectError("blocked", request=request)
        assert "translate.googleapis.com" in request.url.params["url"]
        return httpx.Response(200, json=[[["مرحبا", "hello"]]], request=request)

    provider = GoogleProvider(_client(_handler))

    assert await provider.translate("hello", "en", "ar") == "مرحبا"
    assert hosts == ["translate.googleapis.com", "api.allorigins.win"]


@pytest.mark.asyncio
async def test_mymemory_provider_truncates_query_and_reads_response() -> None:
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        payload = {"responseData": {"translatedText": ARABIC}, "responseStatus": 200}
        return httpx.Response(200, json=payload, request=request)

    provider = MyMemoryProvider(_client(_handler))

    assert await provider.translate("x" * 600, "en", "ar") == ARABIC
    assert len(seen[0].url.params["q"]) == 500
    assert seen[0].url.params["langpair"] == "en|ar"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(429, text="Too Many Requests"),
        httpx.Response(200, json={"responseData": {"translatedText": ""}, "responseStatus": 429}),
    ],
)
async def test_mymemory_provider_signals_rate_limit(response: httpx.Response) -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        return response

    with pytest.raises(RateLimited):
        await MyMemoryProvider(_client(_handler)).translate("text", "en", "ar")


def test_build_providers_follows_configured_order() -> None:
    settings = TranslationSettings(providers=("mymemory", "lingva", "mymemory"))
    client = httpx.AsyncClient()

    providers = build_providers(settings, client)

    assert [provider.name for provider in providers] == ["mymemory", "lingva"]
    assert all(provider.timeout_seconds == 8.0 for provider in providers)


def test_chain_reports_provider_order() -> None:
    settings = TranslationSettings(providers=("google", "lingva"))
    chain = ProviderChain(build_providers(settings, httpx.AsyncClient()))

    assert chain.provider_names == ["google", "lingva"]
