"""Shared async HTTP client construction."""

from __future__ import annotations

import httpx

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; PharmaCentralBot/1.0)"
XML_ACCEPT = "application/rss+xml, application/xml, text/xml"
JSON_ACCEPT = "application/json"


def build_async_client(
    *,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    user_agent: str = DEFAULT_USER_AGENT,
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Build the client shared by feed fetches and translation providers.

    Retries are owned by the callers, so the transport never retries on its own.
    """

    base_headers = {"User-Agent": user_agent}
    if headers:
        base_headers.update(headers)
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_seconds),
        headers=base_headers,
        transport=transport,
        follow_redirects=True,
    )
