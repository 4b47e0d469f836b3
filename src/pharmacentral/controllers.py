"""Controllers for PharmaCentral CLI commands."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from pharmacentral.config import Settings
from pharmacentral.errors import CacheIOError
from pharmacentral.events import (
    Event,
    Notification,
    TranslationProgress,
    feed_status_text,
    localized_message,
)
from pharmacentral.http.client import build_async_client
from pharmacentral.ingestion.fetcher import FeedFetcher, RelayCascade
from pharmacentral.ingestion.models import Article
from pharmacentral.ingestion.parser import FeedParser
from pharmacentral.ingestion.registry import DEFAULT_RELAYS
from pharmacentral.ingestion.store import ArticleStore
from pharmacentral.session import DateRange, SessionContext, SortOrder
from pharmacentral.storage.kv import KeyValueStore
from pharmacentral.translation.articles import ArticleTranslator
from pharmacentral.translation.cache import TranslationCache
from pharmacentral.translation.providers import ProviderChain, build_providers
from pharmacentral.translation.quality import QualityEvaluator
from pharmacentral.translation.queue import TranslationQueue

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RefreshCommand:
    """CLI inputs for one ingestion pass."""

    db_path: Path | None
    language: str


@dataclass(slots=True)
class ArticlesCommand:
    """CLI inputs for article listing."""

    db_path: Path | None
    categories: tuple[str, ...]
    sources: tuple[str, ...]
    search: str | None
    since: DateRange
    sort: SortOrder
    limit: int
    language: str


@dataclass(slots=True)
class AggregateCommand:
    """CLI inputs for category and source listings."""

    db_path: Path | None
    language: str


@dataclass(slots=True)
class TranslateCommand:
    """CLI inputs for translating one text."""

    db_path: Path | None
    text: str
    source_language: str | None
    target_language: str | None


@dataclass(slots=True)
class LocalizeCommand:
    """CLI inputs for article localization."""

    db_path: Path | None
    mode: str
    pages: int


@dataclass(slots=True)
class WatchCommand:
    """CLI inputs for periodic refresh."""

    db_path: Path | None
    language: str


@dataclass(slots=True)
class CacheCommand:
    """CLI inputs for translation cache maintenance."""

    db_path: Path | None
    language: str


class CollectingEventSink:
    """Keeps events in memory so commands can print them."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    def emit(self, event: Event) -> None:
        self.events.append(event)
        if isinstance(event, TranslationProgress):
            logger.info("Translation progress: %d/%d", event.processed, event.total)

    def lines(self) -> list[str]:
        lines: list[str] = []
        for event in self.events:
            if isinstance(event, Notification):
                lines.append(f"[{event.level.value}] {event.message}")
            elif isinstance(event, TranslationProgress):
                lines.append(f"Progress ({event.mode.value}): {event.processed}/{event.total}")
        return lines


@dataclass(slots=True)
class _Runtime:
    settings: Settings
    session: SessionContext
    sink: CollectingEventSink
    storage: KeyValueStore
    store: ArticleStore
    cache: TranslationCache
    queue: TranslationQueue
    translator: ArticleTranslator


class PharmaCliController:
    """Coordinates CLI command execution."""

    def refresh(self, command: RefreshCommand) -> list[str]:
        return asyncio.run(self._refresh(command))

    async def _refresh(self, command: RefreshCommand) -> list[str]:
        async with _runtime(command.db_path, language=command.language) as runtime:
            summary = await runtime.store.refresh_all()
        lines = [
            "Refresh completed: "
            f"sources_ok={summary.success_count} "
            f"sources_failed={summary.fail_count} "
            f"articles={summary.article_count} "
            f"retained={summary.retained_count}",
        ]
        for name, error in sorted(summary.failures.items()):
            lines.append(f"  failed source={name} error={error}")
        lines.append(
            feed_status_text(
                success=summary.success_count,
                failed=summary.fail_count,
                total=summary.success_count + summary.fail_count,
                language=command.language,
            ),
        )
        return lines

    def articles(self, command: ArticlesCommand) -> list[str]:
        return asyncio.run(self._articles(command))

    async def _articles(self, command: ArticlesCommand) -> list[str]:
        async with _runtime(command.db_path, language=command.language) as runtime:
            await _ensure_loaded(runtime)
            session = runtime.session
            session.filters.categories = set(command.categories)
            session.filters.sources = set(command.sources)
            session.filters.date_range = command.since
            session.filters.sort_by = command.sort
            if command.search:
                session.set_search_query(command.search)
            selected = session.select(runtime.store.get_articles(), now=datetime.now(tz=UTC))

        shown = selected[: command.limit]
        lines = [f"Articles: showing={len(shown)} matched={len(selected)}"]
        lines.extend(_article_line(article, session) for article in shown)
        return lines

    def categories(self, command: AggregateCommand) -> list[str]:
        return asyncio.run(self._categories(command))

    async def _categories(self, command: AggregateCommand) -> list[str]:
        async with _runtime(command.db_path, language=command.language) as runtime:
            await _ensure_loaded(runtime)
            categories = runtime.store.get_categories()
        localized = runtime.session.is_target_language
        return [
            f"{category.localized_name if localized else category.name}: {category.count}"
            for category in categories
        ]

    def sources(self, command: AggregateCommand) -> list[str]:
        return asyncio.run(self._sources(command))

    async def _sources(self, command: AggregateCommand) -> list[str]:
        async with _runtime(command.db_path, language=command.language) as runtime:
            await _ensure_loaded(runtime)
            sources = runtime.store.get_sources()
        localized = runtime.session.is_target_language
        return [
            f"{source.localized_name if localized else source.name}: {source.count} ({source.url})"
            for source in sources
        ]

    def translate(self, command: TranslateCommand) -> list[str]:
        return asyncio.run(self._translate(command))

    async def _translate(self, command: TranslateCommand) -> list[str]:
        async with _runtime(command.db_path) as runtime:
            result = await runtime.queue.translate(
                command.text,
                source_language=command.source_language,
                target_language=command.target_language,
            )
            stats = runtime.queue.stats
        return [
            result,
            "Translation stats: "
            f"total={stats.total} successful={stats.successful} "
            f"failed={stats.failed} cached={stats.cached}",
        ]

    def localize(self, command: LocalizeCommand) -> list[str]:
        return asyncio.run(self._localize(command))

    async def _localize(self, command: LocalizeCommand) -> list[str]:
        async with _runtime(command.db_path) as runtime:
            await _ensure_loaded(runtime)
            session = runtime.session
            session.set_language(runtime.settings.translation.target_language)
            if command.mode == "all":
                count = await runtime.translator.translate_all()
            else:
                for _ in range(1, command.pages):
                    session.next_page()
                selected = session.select(runtime.store.get_articles(), now=datetime.now(tz=UTC))
                count = await runtime.translator.translate_visible(session.visible(selected))
            stats = runtime.queue.stats
        lines = [
            f"Localized articles: mode={command.mode} translated={count} "
            f"successful={stats.successful} failed={stats.failed} cached={stats.cached}",
        ]
        lines.extend(runtime.sink.lines())
        return lines

    def watch(self, command: WatchCommand) -> list[str]:
        try:
            return asyncio.run(self._watch(command))
        except KeyboardInterrupt:
            return ["Watch stopped."]

    async def _watch(self, command: WatchCommand) -> list[str]:
        async with _runtime(command.db_path, language=command.language) as runtime:
            if not runtime.store.load():
                await runtime.store.refresh_all()
            task = runtime.store.start_background_refresh()
            logger.info(
                "Refreshing every %d minutes",
                runtime.settings.store.refresh_interval_minutes,
            )
            try:
                await task
            finally:
                await runtime.store.stop_background_refresh()
        return [
            event.message
            for event in runtime.sink.events
            if isinstance(event, Notification)
        ]

    def cache_clear(self, command: CacheCommand) -> list[str]:
        return asyncio.run(self._cache_clear(command))

    async def _cache_clear(self, command: CacheCommand) -> list[str]:
        async with _runtime(command.db_path, language=command.language) as runtime:
            try:
                deleted = runtime.cache.clear()
            except CacheIOError as error:
                logger.error("Failed to clear translation cache: %s", error)
                return [localized_message("cache_clear_failed", command.language)]
        return [
            localized_message("cache_cleared", command.language),
            f"Deleted entries: {deleted}",
        ]

    def cache_stats(self, command: CacheCommand) -> list[str]:
        return asyncio.run(self._cache_stats(command))

    async def _cache_stats(self, command: CacheCommand) -> list[str]:
        async with _runtime(command.db_path, language=command.language) as runtime:
            purged = runtime.cache.purge_expired()
            count = runtime.cache.count()
            loaded = runtime.store.load()
            localized = sum(1 for article in runtime.store.get_articles() if article.is_localized)
        return [
            f"Translation cache: entries={count} purged_expired={purged}",
            f"Article snapshot: loaded={'yes' if loaded else 'no'} "
            f"articles={len(runtime.store.get_articles())} localized={localized}",
        ]


@asynccontextmanager
async def _runtime(db_path: Path | None, *, language: str = "en") -> AsyncIterator[_Runtime]:
    settings = Settings.from_env(db_path=db_path)
    settings.validate()
    translation = settings.translation
    session = SessionContext(
        language=language,
        base_language=translation.source_language,
        target_language=translation.target_language,
    )
    sink = CollectingEventSink()
    storage = KeyValueStore(settings.db_path)
    storage.init_schema()
    try:
        async with build_async_client(
            timeout_seconds=settings.fetch.request_timeout_seconds,
        ) as client:
            cache = TranslationCache(storage, ttl_days=translation.cache_ttl_days)
            store = ArticleStore(
                fetcher=FeedFetcher(
                    client=client,
                    relays=RelayCascade(DEFAULT_RELAYS),
                    parser=FeedParser(),
                    settings=settings.fetch,
                ),
                storage=storage,
                translation_cache=cache,
                settings=settings.store,
                sink=sink,
                message_language=lambda: session.language,
            )
            queue = TranslationQueue(
                ProviderChain(build_providers(translation, client), cache=cache),
                cache=cache,
                evaluator=QualityEvaluator(
                    target_language=translation.target_language,
                    threshold=translation.quality_threshold,
                ),
                settings=translation,
                sink=sink,
                message_language=lambda: session.language,
            )
            yield _Runtime(
                settings=settings,
                session=session,
                sink=sink,
                storage=storage,
                store=store,
                cache=cache,
                queue=queue,
                translator=ArticleTranslator(queue, store),
            )
            await queue.wait_idle()
    finally:
        storage.close()


async def _ensure_loaded(runtime: _Runtime) -> None:
    if runtime.store.load():
        return
    logger.info("No cached articles, fetching fresh feeds")
    await runtime.store.refresh_all()


def _article_line(article: Article, session: SessionContext) -> str:
    if session.is_target_language:
        title = article.localized_title or article.title
        category = article.localized_category or article.category
    else:
        title = article.title
        category = article.category
    return (
        f"  {article.publish_date.date().isoformat()} [{article.source}] "
        f"({category}) {title} {article.source_url}"
    )
