"""Format-agnostic feed parsing into normalized articles."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Protocol

from defusedxml import DefusedXmlException, ElementTree

from pharmacentral.errors import ParseError
from pharmacentral.ingestion.cleaning import build_excerpt, normalize_whitespace
from pharmacentral.ingestion.models import Article, FeedPayload, ResponseShape, Source

logger = logging.getLogger(__name__)

_RAW_DESCRIPTION_FIELDS = ("description", "summary", "content", "encoded")
_RAW_DATE_FIELDS = ("pubDate", "published", "updated", "date")
_STRUCTURED_LINK_FIELDS = ("link", "url")
_STRUCTURED_DESCRIPTION_FIELDS = ("description", "content", "summary")
_STRUCTURED_DATE_FIELDS = ("pubDate", "published", "date")
_STRUCTURED_TAG_FIELDS = ("categories", "tags")


@dataclass(slots=True)
class EntryFields:
    """Semantic fields of one feed entry before normalization."""

    title: str
    link: str
    description: str
    published: str
    categories: list[str]


class PayloadParser(Protocol):
    """Parser for one payload shape."""

    def entries(self, body: object, source: Source) -> list[EntryFields | ParseError]:
        """Extract entry fields; malformed entries are returned as ParseError values."""
        raise NotImplementedError


class StructuredPayloadParser:
    """Reads pre-parsed item mappings returned by structured relays."""

    def entries(self, body: object, source: Source) -> list[EntryFields | ParseError]:
        if not isinstance(body, list):
            raise ParseError(message=f"Structured payload for {source.name} is not an item list")
        results: list[EntryFields | ParseError] = []
        for index, item in enumerate(body):
            if not isinstance(item, Mapping):
                results.append(ParseError(message=f"Item {index} is not an object"))
                continue
            results.append(
                EntryFields(
                    title=_first_string(item, ("title",)),
                    link=_first_string(item, _STRUCTURED_LINK_FIELDS),
                    description=_first_string(item, _STRUCTURED_DESCRIPTION_FIELDS),
                    published=_first_string(item, _STRUCTURED_DATE_FIELDS),
                    categories=_structured_categories(item),
                ),
            )
        return results


class RawPayloadParser:
    """Parses RSS/Atom markup; ``item`` elements first, ``entry`` as fallback."""

    def entries(self, body: object, source: Source) -> list[EntryFields | ParseError]:
        if not isinstance(body, str):
            raise ParseError(message=f"Raw payload for {source.name} is not text")
        try:
            root = ElementTree.fromstring(body)
        except (ElementTree.ParseError, DefusedXmlException) as error:
            raise ParseError(message=f"Invalid RSS/Atom XML from {source.name}: {error}") from error

        elements = [element for element in root.iter() if _local_name(element.tag) == "item"]
        if not elements:
            elements = [element for element in root.iter() if _local_name(element.tag) == "entry"]
        if not elements:
            logger.warning("No items found in XML feed: %s", source.name)
        return [
            EntryFields(
                title=_child_text(element, "title") or "",
                link=_raw_link(element),
                description=_first_child_text(element, _RAW_DESCRIPTION_FIELDS),
                published=_first_child_text(element, _RAW_DATE_FIELDS),
                categories=_raw_categories(element),
            )
            for element in elements
        ]


class FeedParser:
    """Converts tagged payloads into articles, skipping malformed entries."""

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._parsers: dict[ResponseShape, PayloadParser] = {
            ResponseShape.STRUCTURED: StructuredPayloadParser(),
            ResponseShape.RAW: RawPayloadParser(),
        }

    def parse(self, payload: FeedPayload, source: Source) -> list[Article]:
        """Raise ParseError only when the payload as a whole is unusable."""

        ingested_at = self._clock()
        stamp = int(ingested_at.timestamp() * 1000)
        articles: list[Article] = []
        for index, entry in enumerate(self._parsers[payload.kind].entries(payload.body, source)):
            if isinstance(entry, ParseError):
                logger.warning("Skipping malformed entry from %s: %s", source.name, entry)
                continue
            title = normalize_whitespace(entry.title)
            if not title:
                logger.warning("Article from %s missing title, skipping", source.name)
                continue
            articles.append(
                Article(
                    id=f"{source.name}_{index}_{stamp}",
                    title=title,
                    excerpt=build_excerpt(entry.description),
                    source=source.name,
                    source_url=entry.link.strip(),
                    category=source.category,
                    localized_category=source.localized_category or source.category,
                    publish_date=parse_datetime(entry.published, fallback=ingested_at),
                    tags=entry.categories or [source.category],
                ),
            )
        logger.info(
            "Parsed %d articles from %s feed: %s",
            len(articles),
            payload.kind.value,
            source.name,
        )
        return articles


def parse_datetime(raw_value: str | None, *, fallback: datetime) -> datetime:
    """Parse RFC 2822 or ISO-8601 dates, returning ``fallback`` when invalid."""

    value = (raw_value or "").strip()
    if not value:
        return fallback

    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        parsed = None
    if parsed is None:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return fallback
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _first_string(item: Mapping[str, object], names: tuple[str, ...]) -> str:
    for name in names:
        value = item.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _structured_categories(item: Mapping[str, object]) -> list[str]:
    for name in _STRUCTURED_TAG_FIELDS:
        value = item.get(name)
        if not value:
            continue
        values = value if isinstance(value, list) else [value]
        labels = [normalize_whitespace(str(label)) for label in values if label]
        return [label for label in labels if label]
    return []


def _raw_link(element: ElementTree.Element) -> str:
    text = _child_text(element, "link")
    if text:
        return text
    href = _alternate_link(element)
    if href:
        return href
    return _child_text(element, "guid") or _child_text(element, "id") or ""


def _alternate_link(element: ElementTree.Element) -> str | None:
    first_href: str | None = None
    for child in element:
        if _local_name(child.tag) != "link":
            continue
        href = child.attrib.get("href", "").strip()
        if not href:
            continue
        rel = child.attrib.get("rel", "").strip().lower()
        if not rel or rel == "alternate":
            return href
        first_href = first_href or href
    return first_href


def _raw_categories(element: ElementTree.Element) -> list[str]:
    labels: list[str] = []
    for child in element:
        if _local_name(child.tag) != "category":
            continue
        label = normalize_whitespace("".join(child.itertext())) or child.attrib.get("term", "")
        label = label.strip()
        if label:
            labels.append(label)
    return labels


def _first_child_text(element: ElementTree.Element, names: tuple[str, ...]) -> str:
    for name in names:
        value = _child_text(element, name)
        if value:
            return value
    return ""


def _child_text(element: ElementTree.Element, name: str) -> str | None:
    target = name.lower()
    for child in element:
        if _local_name(child.tag) != target:
            continue
        if child.text and child.text.strip():
            return child.text.strip()
        full_text = "".join(child.itertext()).strip()
        if full_text:
            return full_text
    return None


def _local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    if "}" in tag:
        return tag.rsplit("}", 1)[1].lower()
    return tag.lower()
