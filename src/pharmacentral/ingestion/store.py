"""Article store: concurrent refresh, persistence and aggregate views."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime, timedelta

from pharmacentral.config import StoreSettings
from pharmacentral.errors import CacheIOError
from pharmacentral.events import (
    EventSink,
    LoggingEventSink,
    Notification,
    NotificationLevel,
    RefreshProgress,
    feed_status_text,
)
from pharmacentral.ingestion.fetcher import FeedFetcher
from pharmacentral.ingestion.models import (
    Article,
    CategoryCount,
    RefreshSummary,
    Source,
    SourceCount,
    SourceOutcome,
)
from pharmacentral.ingestion.registry import DEFAULT_SOURCES
from pharmacentral.storage.common import from_iso
from pharmacentral.storage.kv import KeyValueStore
from pharmacentral.translation.cache import TranslationCache

logger = logging.getLogger(__name__)

ARTICLES_KEY = "pharma_news_cache"
UNKNOWN_SOURCE_URL = "#"


class ArticleStore:
    """Authoritative in-memory article collection backed by a persisted snapshot."""

    def __init__(
        self,
        *,
        fetcher: FeedFetcher,
        storage: KeyValueStore,
        translation_cache: TranslationCache | None = None,
        sources: Sequence[Source] = DEFAULT_SOURCES,
        settings: StoreSettings | None = None,
        sink: EventSink | None = None,
        clock: Callable[[], datetime] | None = None,
        message_language: Callable[[], str] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._fetcher = fetcher
        self._storage = storage
        self._translation_cache = translation_cache
        self._sources = tuple(sources)
        self._settings = settings or StoreSettings()
        self._sink = sink or LoggingEventSink()
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._message_language = message_language or (lambda: "en")
        self._sleep = sleep
        self._articles: list[Article] = []
        self._last_update: datetime | None = None
        self._refresh_lock = asyncio.Lock()
        self._refresh_task: asyncio.Task[None] | None = None

    @property
    def sources(self) -> tuple[Source, ...]:
        return self._sources

    @property
    def last_update(self) -> datetime | None:
        return self._last_update

    def get_articles(self) -> list[Article]:
        return list(self._articles)

    async def refresh_all(self) -> RefreshSummary:
        """Fetch every source concurrently and replace the collection once all settle."""

        async with self._refresh_lock:
            logger.info("Starting feed refresh for %d sources", len(self._sources))
            results = await asyncio.gather(
                *(self._fetcher.fetch_source(source) for source in self._sources),
                return_exceptions=True,
            )
            outcomes = [
                _outcome(source, result)
                for source, result in zip(self._sources, results, strict=True)
            ]
            summary = self._merge(outcomes)

        self._sink.emit(
            RefreshProgress(
                success_count=summary.success_count,
                fail_count=summary.fail_count,
                total=len(self._sources),
                article_count=summary.article_count,
            ),
        )
        level = NotificationLevel.SUCCESS if summary.fail_count == 0 else NotificationLevel.WARNING
        self._sink.emit(
            Notification(
                level=level,
                message=feed_status_text(
                    success=summary.success_count,
                    failed=summary.fail_count,
                    total=len(self._sources),
                    language=self._message_language(),
                ),
            ),
        )
        return summary

    def _merge(self, outcomes: list[SourceOutcome]) -> RefreshSummary:
        previous: dict[str, list[Article]] = {}
        for article in self._articles:
            previous.setdefault(article.source, []).append(article)

        merged: list[Article] = []
        failures: dict[str, str] = {}
        retained = 0
        for outcome in outcomes:
            name = outcome.source.name
            if outcome.succeeded:
                logger.info("Loaded %d articles from %s", len(outcome.articles), name)
                _carry_localization(outcome.articles, previous.get(name, []))
                merged.extend(outcome.articles)
                continue
            failures[name] = outcome.error or "unknown error"
            logger.error("Failed to fetch %s: %s", name, outcome.error)
            if self._settings.retain_failed_sources and name in previous:
                kept = previous[name]
                logger.info("Keeping %d previous articles from %s", len(kept), name)
                merged.extend(kept)
                retained += len(kept)

        self._articles = merged
        self._last_update = self._clock()
        self.save()
        success_count = len(outcomes) - len(failures)
        logger.info(
            "Feed status: %d successful, %d failed, %d articles",
            success_count,
            len(failures),
            len(merged),
        )
        return RefreshSummary(
            refreshed_at=self._last_update,
            success_count=success_count,
            fail_count=len(failures),
            article_count=len(merged),
            retained_count=retained,
            failures=failures,
        )

    def load(self) -> bool:
        """Restore a snapshot younger than the expiry window; False when none applies."""

        try:
            raw = self._storage.get_json(ARTICLES_KEY)
        except CacheIOError as error:
            logger.warning("Failed to load article snapshot: %s", error)
            return False
        if not isinstance(raw, dict) or not isinstance(raw.get("articles"), list):
            return False
        try:
            saved_at = from_iso(str(raw["timestamp"]))
            age = self._clock() - saved_at
            if age >= timedelta(hours=self._settings.cache_expiry_hours):
                logger.info("Article snapshot expired (saved %s)", saved_at.isoformat())
                return False
            records = raw["articles"]
            if not all(isinstance(record, dict) for record in records):
                raise TypeError("article snapshot holds a non-object record")
            articles = [Article.from_record(record) for record in records]
            last_update = from_iso(str(raw.get("lastUpdate") or raw["timestamp"]))
        except (KeyError, TypeError, ValueError) as error:
            logger.warning("Discarding unreadable article snapshot: %s", error)
            return False

        if self._translation_cache is not None:
            translations = self._translation_cache.import_map()
            for article in articles:
                fields = translations.get(article.id, {})
                if article.is_localized or not fields.get("title") or not fields.get("excerpt"):
                    continue
                article.localize(title=fields["title"], excerpt=fields["excerpt"])
            logger.info("Loaded %d translations from cache", len(translations))
        self._articles = articles
        self._last_update = last_update
        logger.info("Loaded %d articles from cache", len(articles))
        return True

    def save(self) -> None:
        record = {
            "articles": [article.to_record() for article in self._articles],
            "lastUpdate": self._last_update.isoformat() if self._last_update else None,
            "timestamp": self._clock().isoformat(),
        }
        try:
            self._storage.set_json(ARTICLES_KEY, record)
        except CacheIOError as error:
            logger.warning("Failed to save article snapshot: %s", error)
            return
        if self._translation_cache is not None:
            self._translation_cache.export_map(
                {
                    article.id: {
                        "title": article.localized_title or "",
                        "excerpt": article.localized_excerpt or "",
                    }
                    for article in self._articles
                    if article.is_localized
                },
            )

    def get_categories(self) -> list[CategoryCount]:
        counts = Counter(article.category for article in self._articles)
        localized: dict[str, str] = {}
        for article in self._articles:
            localized.setdefault(article.category, article.localized_category or article.category)
        return [
            CategoryCount(name=name, localized_name=localized[name], count=count)
            for name, count in counts.most_common()
        ]

    def get_sources(self) -> list[SourceCount]:
        counts = Counter(article.source for article in self._articles)
        configured = {source.name: source for source in self._sources}
        result: list[SourceCount] = []
        for name, count in counts.most_common():
            source = configured.get(name)
            result.append(
                SourceCount(
                    name=name,
                    localized_name=(source.localized_name or name) if source else name,
                    url=source.url if source else UNKNOWN_SOURCE_URL,
                    count=count,
                ),
            )
        return result

    def start_background_refresh(self) -> asyncio.Task[None]:
        """Refresh on a fixed interval until stopped; one task at most."""

        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._refresh_forever())
        return self._refresh_task

    async def stop_background_refresh(self) -> None:
        task, self._refresh_task = self._refresh_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.info("Background refresh stopped")

    async def _refresh_forever(self) -> None:
        interval = self._settings.refresh_interval_minutes * 60
        while True:
            await self._sleep(interval)
            logger.info("Auto-refreshing feeds")
            await self.refresh_all()


def _outcome(source: Source, result: list[Article] | BaseException) -> SourceOutcome:
    if isinstance(result, BaseException):
        if not isinstance(result, Exception):
            raise result
        return SourceOutcome(source=source, articles=[], error=str(result) or type(result).__name__)
    return SourceOutcome(source=source, articles=result)


def _carry_localization(fresh: list[Article], previous: list[Article]) -> None:
    localized = {
        (article.title, article.source_url): article for article in previous if article.is_localized
    }
    for article in fresh:
        match = localized.get((article.title, article.source_url))
        if match is not None and match.localized_title and match.localized_excerpt:
            article.localize(title=match.localized_title, excerpt=match.localized_excerpt)
