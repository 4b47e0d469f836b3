"""Resilient per-source feed fetching over a relay cascade."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Iterable, Iterator

import httpx

from pharmacentral.config import FetchSettings
from pharmacentral.errors import FetchExhausted, ParseError
from pharmacentral.http.client import JSON_ACCEPT, XML_ACCEPT
from pharmacentral.ingestion.models import Article, FeedPayload, Relay, ResponseShape, Source
from pharmacentral.ingestion.parser import FeedParser

logger = logging.getLogger(__name__)

STRUCTURED_STATUS_OK = "ok"
DIRECT_VIA = "direct"

# Any of these fails one attempt and moves the cascade forward.
_ATTEMPT_ERRORS = (httpx.HTTPError, TimeoutError, ParseError, json.JSONDecodeError)


class RelayCascade:
    """Ordered relays; order defines trial precedence."""

    def __init__(self, relays: Iterable[Relay]) -> None:
        self._relays = tuple(relays)

    def __iter__(self) -> Iterator[Relay]:
        return iter(self._relays)

    def __len__(self) -> int:
        return len(self._relays)


class FeedFetcher:
    """Fetches one source through relays with retry, then directly as a last resort."""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        relays: RelayCascade,
        parser: FeedParser,
        settings: FetchSettings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._relays = relays
        self._parser = parser
        self._settings = settings or FetchSettings()
        self._sleep = sleep

    async def fetch_source(self, source: Source) -> list[Article]:
        """Return a non-empty article list or raise FetchExhausted."""

        attempts = self._settings.retry_attempts
        for relay_index, relay in enumerate(self._relays, start=1):
            for attempt in range(1, attempts + 1):
                logger.info(
                    "Fetching %s via %s (attempt %d/%d)",
                    source.name,
                    relay.description,
                    attempt,
                    attempts,
                )
                try:
                    payload = await self._fetch_via_relay(relay, source)
                    return self._parse(payload, source)
                except _ATTEMPT_ERRORS as exc:
                    logger.warning(
                        "Failed to fetch %s with relay %d (%s): %s",
                        source.name,
                        relay_index,
                        relay.description,
                        _describe(exc),
                    )
                if attempt < attempts:
                    await self._sleep(self._settings.retry_delay_seconds * attempt)

        logger.info("All relays failed for %s, trying direct fetch", source.name)
        try:
            payload = await self._fetch_direct(source)
            return self._parse(payload, source)
        except _ATTEMPT_ERRORS as exc:
            last_error = _describe(exc)
            logger.error("Direct fetch failed for %s: %s", source.name, last_error)
            raise FetchExhausted(
                message=f"All fetch methods failed for {source.name}: {last_error}",
                source_name=source.name,
                last_error=last_error,
            ) from exc

    async def _fetch_via_relay(self, relay: Relay, source: Source) -> FeedPayload:
        accept = JSON_ACCEPT if relay.shape is ResponseShape.STRUCTURED else XML_ACCEPT
        if relay.envelope_field:
            accept = JSON_ACCEPT
        response = await self._get(relay.build_url(source.url), accept=accept)

        if relay.shape is ResponseShape.STRUCTURED:
            self._require_body(response.text, source)
            return FeedPayload(
                kind=ResponseShape.STRUCTURED,
                body=_structured_items(response.json(), relay),
                via=relay.description,
            )

        if relay.envelope_field:
            envelope = response.json()
            raw = envelope.get(relay.envelope_field) if isinstance(envelope, dict) else None
            if not isinstance(raw, str):
                raise ParseError(
                    message=f"{relay.description} response has no {relay.envelope_field!r} body",
                    code="invalid_response",
                )
        else:
            raw = response.text
        self._require_body(raw, source)
        return FeedPayload(kind=ResponseShape.RAW, body=raw, via=relay.description)

    async def _fetch_direct(self, source: Source) -> FeedPayload:
        response = await self._get(source.url, accept=XML_ACCEPT)
        self._require_body(response.text, source)
        return FeedPayload(kind=ResponseShape.RAW, body=response.text, via=DIRECT_VIA)

    async def _get(self, url: str, *, accept: str) -> httpx.Response:
        response = await asyncio.wait_for(
            self._client.get(url, headers={"Accept": accept}),
            timeout=self._settings.request_timeout_seconds,
        )
        response.raise_for_status()
        return response

    def _require_body(self, body: str, source: Source) -> None:
        if len(body) < self._settings.min_body_chars:
            raise ParseError(
                message=f"Empty or invalid RSS response for {source.name}",
                code="invalid_response",
            )

    def _parse(self, payload: FeedPayload, source: Source) -> list[Article]:
        articles = self._parser.parse(payload, source)
        if not articles:
            raise ParseError(message=f"No articles in feed {source.name}", code="empty_feed")
        logger.info(
            "Loaded %d articles from %s via %s",
            len(articles),
            source.name,
            payload.via,
        )
        return articles


def _structured_items(data: object, relay: Relay) -> list[dict[str, object]]:
    if not isinstance(data, dict) or data.get("status") != STRUCTURED_STATUS_OK:
        message = data.get("message") if isinstance(data, dict) else None
        raise ParseError(
            message=f"{relay.description} error: {message or 'Unknown error'}",
            code="relay_error",
        )
    items = data.get("items")
    if not isinstance(items, list):
        return []
    return items


def _describe(exc: BaseException) -> str:
    if isinstance(exc, TimeoutError):
        return "timeout"
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code}"
    return str(exc) or exc.__class__.__name__
