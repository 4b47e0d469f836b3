"""Domain models for feed ingestion and the article store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from urllib.parse import quote


class ResponseShape(str, Enum):
    """Declared response shape of a relay."""

    STRUCTURED = "structured"
    RAW = "raw"


@dataclass(frozen=True, slots=True)
class Source:
    """Configured upstream origin of articles."""

    name: str
    url: str
    category: str
    localized_name: str = ""
    localized_category: str = ""


@dataclass(frozen=True, slots=True)
class Relay:
    """Intermediary endpoint used to reach a source.

    ``url_template`` carries a ``{url}`` placeholder for the URL-encoded feed
    address. ``envelope_field`` names the JSON property that wraps the raw
    body for relays that return markup inside a JSON document.
    """

    url_template: str
    shape: ResponseShape
    description: str
    envelope_field: str | None = None

    def build_url(self, feed_url: str) -> str:
        return self.url_template.format(url=quote(feed_url, safe=""))


@dataclass(frozen=True, slots=True)
class FeedPayload:
    """Fetched payload tagged with its shape, resolved once at fetch time.

    ``body`` is a list of item mappings for structured payloads and markup
    text for raw ones.
    """

    kind: ResponseShape
    body: list[dict[str, object]] | str
    via: str


@dataclass(slots=True)
class Article:
    """Normalized article.

    Only ``localized_title`` and ``localized_excerpt`` are ever assigned after
    creation, through :meth:`localize`.
    """

    id: str
    title: str
    excerpt: str
    source: str
    source_url: str
    category: str
    localized_category: str
    publish_date: datetime
    tags: list[str] = field(default_factory=list)
    localized_title: str | None = None
    localized_excerpt: str | None = None

    @property
    def is_localized(self) -> bool:
        return bool(self.localized_title) and bool(self.localized_excerpt)

    def localize(self, *, title: str, excerpt: str) -> None:
        self.localized_title = title
        self.localized_excerpt = excerpt

    def to_record(self) -> dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "excerpt": self.excerpt,
            "source": self.source,
            "source_url": self.source_url,
            "category": self.category,
            "category_ar": self.localized_category,
            "publish_date": self.publish_date.isoformat(),
            "tags": list(self.tags),
            "title_ar": self.localized_title,
            "excerpt_ar": self.localized_excerpt,
        }

    @classmethod
    def from_record(cls, raw: dict[str, object]) -> Article:
        tags = raw.get("tags")
        return cls(
            id=str(raw["id"]),
            title=str(raw["title"]),
            excerpt=str(raw.get("excerpt") or ""),
            source=str(raw.get("source") or ""),
            source_url=str(raw.get("source_url") or ""),
            category=str(raw.get("category") or ""),
            localized_category=str(raw.get("category_ar") or raw.get("category") or ""),
            publish_date=datetime.fromisoformat(str(raw["publish_date"])),
            tags=[str(tag) for tag in tags] if isinstance(tags, list) else [],
            localized_title=_nullable_string(raw.get("title_ar")),
            localized_excerpt=_nullable_string(raw.get("excerpt_ar")),
        )


@dataclass(slots=True)
class SourceOutcome:
    """Result of one source fetch inside a full refresh."""

    source: Source
    articles: list[Article]
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class RefreshSummary:
    """Result of one full ingestion pass."""

    refreshed_at: datetime
    success_count: int
    fail_count: int
    article_count: int
    retained_count: int = 0
    failures: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class CategoryCount:
    """Article count per category."""

    name: str
    localized_name: str
    count: int


@dataclass(slots=True)
class SourceCount:
    """Article count per source."""

    name: str
    localized_name: str
    url: str
    count: int


def _nullable_string(value: object) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text or None
