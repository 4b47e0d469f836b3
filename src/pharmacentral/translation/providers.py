"""Machine translation providers and the ordered fallback chain."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from typing import Protocol
from urllib.parse import quote

import httpx

from pharmacentral.config import TranslationSettings
from pharmacentral.errors import ProviderUnavailable, RateLimited
from pharmacentral.translation.cache import TranslationCache

logger = logging.getLogger(__name__)

LINGVA_URL = "https://lingva.ml/api/v1/{source}/{target}/{text}"
GOOGLE_URL = "https://translate.googleapis.com/translate_a/single"
GOOGLE_RELAY_URL = "https://api.allorigins.win/raw"
MYMEMORY_URL = "https://api.mymemory.translated.net/get"
MYMEMORY_MAX_CHARS = 500
GOOGLE_TIMEOUT_SECONDS = 10.0
HTTP_TOO_MANY_REQUESTS = 429

# Typographic punctuation the Google endpoint handles poorly.
_GOOGLE_REPLACEMENTS = {"\u2019": "'", "\u2018": "'", "\u2014": "-", "\u201c": '"', "\u201d": '"'}


class TranslationProvider(Protocol):
    """One external translation endpoint."""

    name: str
    timeout_seconds: float

    async def translate(self, text: str, source: str, target: str) -> str:
        """Return translated text or raise ProviderUnavailable."""
        raise NotImplementedError


class LingvaProvider:
    name = "lingva"

    def __init__(self, client: httpx.AsyncClient, *, timeout_seconds: float = 8.0) -> None:
        self._client = client
        self.timeout_seconds = timeout_seconds

    async def translate(self, text: str, source: str, target: str) -> str:
        url = LINGVA_URL.format(source=source, target=target, text=quote(text, safe=""))
        response = await self._client.get(url)
        response.raise_for_status()
        data = response.json()
        translation = data.get("translation") if isinstance(data, dict) else None
        if not isinstance(translation, str):
            raise ProviderUnavailable(
                message="Lingva response has no translation",
                provider=self.name,
            )
        return translation


class GoogleProvider:
    """Public ``translate_a/single`` endpoint, retried once through a relay on network errors."""

    name = "google"

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        timeout_seconds: float = GOOGLE_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client
        self.timeout_seconds = timeout_seconds

    async def translate(self, text: str, source: str, target: str) -> str:
        cleaned = text
        for old, new in _GOOGLE_REPLACEMENTS.items():
            cleaned = cleaned.replace(old, new)
        params = {"client": "gtx", "sl": source, "tl": target, "dt": "t", "q": cleaned}
        try:
            response = await self._client.get(GOOGLE_URL, params=params)
        except httpx.TransportError as error:
            logger.info("Google endpoint unreachable (%s), retrying through relay", error)
            direct_url = str(httpx.URL(GOOGLE_URL, params=params))
            response = await self._client.get(GOOGLE_RELAY_URL, params={"url": direct_url})
        response.raise_for_status()
        return _join_google_segments(response.json())


class MyMemoryProvider:
    name = "mymemory"

    def __init__(self, client: httpx.AsyncClient, *, timeout_seconds: float = 8.0) -> None:
        self._client = client
        self.timeout_seconds = timeout_seconds

    async def translate(self, text: str, source: str, target: str) -> str:
        params = {"q": text[:MYMEMORY_MAX_CHARS], "langpair": f"{source}|{target}"}
        response = await self._client.get(MYMEMORY_URL, params=params)
        if response.status_code == HTTP_TOO_MANY_REQUESTS:
            raise RateLimited(message="MyMemory API limit reached", provider=self.name)
        response.raise_for_status()
        data = response.json()
        if isinstance(data, dict) and data.get("responseStatus") == HTTP_TOO_MANY_REQUESTS:
            raise RateLimited(message="MyMemory API limit reached", provider=self.name)
        payload = data.get("responseData") if isinstance(data, dict) else None
        translated = payload.get("translatedText") if isinstance(payload, dict) else None
        if not isinstance(translated, str):
            raise ProviderUnavailable(
                message="MyMemory response has no translatedText",
                provider=self.name,
            )
        return translated


def _join_google_segments(data: object) -> str:
    if not isinstance(data, list) or not data or not isinstance(data[0], list):
        raise ProviderUnavailable(message="Unexpected Google response shape", provider="google")
    parts: list[str] = []
    for segment in data[0]:
        if isinstance(segment, list) and segment and isinstance(segment[0], str):
            parts.append(segment[0])
    return "".join(parts)


_PROVIDER_ERRORS = (ProviderUnavailable, httpx.HTTPError, TimeoutError, ValueError)


class ProviderChain:
    """Tries providers in order; the first usable result wins and is cached."""

    def __init__(
        self,
        providers: Sequence[TranslationProvider],
        *,
        cache: TranslationCache | None = None,
    ) -> None:
        self._providers = tuple(providers)
        self._cache = cache

    @property
    def provider_names(self) -> list[str]:
        return [provider.name for provider in self._providers]

    async def translate(self, text: str, source: str, target: str) -> str | None:
        """Return the first non-empty result that differs from ``text``, else None."""

        for provider in self._providers:
            try:
                translation = await asyncio.wait_for(
                    provider.translate(text, source, target),
                    timeout=provider.timeout_seconds,
                )
            except RateLimited as error:
                logger.warning("%s rate limited: %s", provider.name, error)
                continue
            except _PROVIDER_ERRORS as error:
                logger.info("%s failed, trying next provider: %s", provider.name, _describe(error))
                continue
            translation = translation.strip()
            if not translation or translation == text:
                logger.info("%s returned no usable translation", provider.name)
                continue
            if self._cache is not None:
                self._cache.put(text, translation)
            logger.info("Translated via %s", provider.name)
            return translation
        logger.warning("All translation services unavailable")
        return None


def build_providers(
    settings: TranslationSettings,
    client: httpx.AsyncClient,
) -> list[TranslationProvider]:
    """Instantiate configured providers in declared order."""

    timeout = settings.provider_timeout_seconds
    factories = {
        "lingva": lambda: LingvaProvider(client, timeout_seconds=timeout),
        "google": lambda: GoogleProvider(
            client,
            timeout_seconds=max(timeout, GOOGLE_TIMEOUT_SECONDS),
        ),
        "mymemory": lambda: MyMemoryProvider(client, timeout_seconds=timeout),
    }
    return [factories[name]() for name in _unique(settings.providers)]


def _describe(error: BaseException) -> str:
    if isinstance(error, httpx.HTTPStatusError):
        return f"HTTP {error.response.status_code}"
    return str(error) or error.__class__.__name__


def _unique(names: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return seen
