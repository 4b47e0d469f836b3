"""Rate-limited translation queue with batch and sequential dispatch."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from pharmacentral.config import TranslationSettings
from pharmacentral.errors import QualityRejected
from pharmacentral.events import (
    EventSink,
    LoggingEventSink,
    Notification,
    NotificationLevel,
    TranslationMode,
    TranslationProgress,
    localized_message,
)
from pharmacentral.ingestion.cleaning import normalize_whitespace
from pharmacentral.translation.cache import TranslationCache
from pharmacentral.translation.providers import ProviderChain
from pharmacentral.translation.quality import QualityEvaluator

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(slots=True)
class PipelineStats:
    """Outcome counters of translation requests."""

    total: int = 0
    successful: int = 0
    failed: int = 0
    cached: int = 0

    def reset(self) -> None:
        self.total = 0
        self.successful = 0
        self.failed = 0
        self.cached = 0


@dataclass(slots=True)
class QueueItem:
    """Pending translation request resolved by the drain task."""

    text: str
    source_language: str
    target_language: str
    future: asyncio.Future[str]


class TranslationQueue:
    """Resolves every request to a translation or to the original text.

    Uncached requests are drained in fixed-size concurrent batches separated
    by a delay. Only one drain task runs at a time.
    """

    def __init__(
        self,
        chain: ProviderChain,
        *,
        cache: TranslationCache,
        evaluator: QualityEvaluator,
        settings: TranslationSettings | None = None,
        stats: PipelineStats | None = None,
        sink: EventSink | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        message_language: Callable[[], str] | None = None,
    ) -> None:
        self._chain = chain
        self._cache = cache
        self._evaluator = evaluator
        self._settings = settings or TranslationSettings()
        self.stats = stats or PipelineStats()
        self._sink = sink or LoggingEventSink()
        self._sleep = sleep
        self._message_language = message_language or (lambda: self._settings.source_language)
        self._pending: deque[QueueItem] = deque()
        self._drain_task: asyncio.Task[None] | None = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def is_processing(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    async def translate(
        self,
        text: str,
        *,
        source_language: str | None = None,
        target_language: str | None = None,
    ) -> str:
        """Translate through the cache, then the batch queue; never raises for provider failures."""

        clean = normalize_whitespace(text)
        if not clean:
            return ""
        cached = self._cached(clean)
        if cached:
            return cached

        future: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self._pending.append(
            QueueItem(
                text=clean,
                source_language=source_language or self._settings.source_language,
                target_language=target_language or self._settings.target_language,
                future=future,
            ),
        )
        if not self.is_processing:
            self._drain_task = asyncio.create_task(self._drain())
        return await future

    async def translate_direct(self, text: str) -> str:
        """Translate one text immediately, bypassing the batch queue."""

        clean = normalize_whitespace(text)
        if not clean:
            return ""
        cached = self._cached(clean)
        if cached:
            return cached
        return await self._resolve(
            clean,
            self._settings.source_language,
            self._settings.target_language,
        )

    async def translate_many(self, texts: Iterable[str]) -> list[str]:
        """Enqueue all texts at once; results keep input order."""

        return list(await asyncio.gather(*(self.translate(text) for text in texts)))

    async def translate_sequential(self, texts: Sequence[str]) -> list[str]:
        return await self.run_sequential(texts, self.translate_direct)

    async def run_sequential(
        self,
        items: Sequence[T],
        handler: Callable[[T], Awaitable[R]],
    ) -> list[R]:
        """Process items one at a time with a delay between them and progress after each."""

        total = len(items)
        results: list[R] = []
        for index, item in enumerate(items, start=1):
            results.append(await handler(item))
            self._sink.emit(
                TranslationProgress(processed=index, total=total, mode=TranslationMode.SEQUENTIAL),
            )
            if index < total:
                await self._sleep(self._settings.item_delay_seconds)
        return results

    async def wait_idle(self) -> None:
        if self._drain_task is not None:
            await self._drain_task

    async def _drain(self) -> None:
        processed = 0
        total = len(self._pending)
        batch_size = self._settings.batch_size
        while self._pending:
            batch = [self._pending.popleft() for _ in range(min(batch_size, len(self._pending)))]
            logger.info("Processing translation batch of %d items", len(batch))
            await asyncio.gather(*(self._process(item) for item in batch))
            processed += len(batch)
            total = max(total, processed + len(self._pending))
            self._sink.emit(
                TranslationProgress(processed=processed, total=total, mode=TranslationMode.BATCH),
            )
            if self._pending:
                await self._sleep(self._settings.batch_delay_seconds)

        self._sink.emit(
            Notification(
                level=NotificationLevel.SUCCESS,
                message=localized_message(
                    "translation_complete",
                    self._message_language(),
                    successful=self.stats.successful,
                    total=self.stats.total,
                ),
            ),
        )

    def _cached(self, clean: str) -> str | None:
        cached = self._cache.get(clean)
        if cached:
            self.stats.cached += 1
        return cached

    async def _process(self, item: QueueItem) -> None:
        result = await self._resolve(item.text, item.source_language, item.target_language)
        if not item.future.done():
            item.future.set_result(result)

    async def _resolve(self, text: str, source_language: str, target_language: str) -> str:
        self.stats.total += 1
        try:
            return await self._translate_checked(text, source_language, target_language)
        except Exception:
            logger.exception("Translation failed for %r", text[:50])
            self.stats.failed += 1
            return text

    async def _translate_checked(
        self,
        text: str,
        source_language: str,
        target_language: str,
    ) -> str:
        translation = await self._chain.translate(text, source_language, target_language)
        if translation is None:
            self.stats.failed += 1
            return text
        score = self._evaluator.score(text, translation, target_language)
        if score < self._evaluator.threshold:
            rejected = QualityRejected(
                message=f"Low translation quality: {round(score * 100)}%",
                score=score,
            )
            logger.warning("%s, using original text", rejected)
            self.stats.failed += 1
            return text
        logger.info("Translation quality: %d%%", round(score * 100))
        self.stats.successful += 1
        return translation
