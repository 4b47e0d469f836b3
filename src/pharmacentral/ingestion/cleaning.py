"""HTML to text cleaning and excerpt normalization utilities."""

from __future__ import annotations

import html
import re

EXCERPT_MAX_CHARS = 200
ELLIPSIS = "..."
EMPTY_EXCERPT = "No description available."

_SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")


def html_to_text(raw_html: str) -> str:
    """Convert HTML markup into normalized plain text."""

    if not raw_html:
        return ""
    no_scripts = _SCRIPT_STYLE_RE.sub(" ", raw_html)
    stripped = _TAG_RE.sub(" ", no_scripts)
    unescaped = html.unescape(stripped)
    return normalize_whitespace(unescaped)


def normalize_whitespace(text: str) -> str:
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()


def build_excerpt(description_html: str, *, max_chars: int = EXCERPT_MAX_CHARS) -> str:
    """Strip markup and truncate to ``max_chars`` including the ellipsis."""

    text = html_to_text(description_html)
    if len(text) > max_chars:
        text = text[: max_chars - len(ELLIPSIS)] + ELLIPSIS
    return text or EMPTY_EXCERPT
