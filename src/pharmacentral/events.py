"""Progress events and notifications produced for presentation collaborators."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

logger = logging.getLogger(__name__)


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class TranslationMode(str, Enum):
    BATCH = "batch"
    SEQUENTIAL = "sequential"


@dataclass(frozen=True, slots=True)
class RefreshProgress:
    """Outcome counts of one full ingestion pass."""

    success_count: int
    fail_count: int
    total: int
    article_count: int


@dataclass(frozen=True, slots=True)
class TranslationProgress:
    """Translation progress after a batch or a single sequential item."""

    processed: int
    total: int
    mode: TranslationMode

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.processed)


@dataclass(frozen=True, slots=True)
class Notification:
    level: NotificationLevel
    message: str


Event = RefreshProgress | TranslationProgress | Notification


class EventSink(Protocol):
    """Receiver of pipeline events."""

    def emit(self, event: Event) -> None:
        raise NotImplementedError


class LoggingEventSink:
    """Default sink writing every event to the module logger."""

    def emit(self, event: Event) -> None:
        if isinstance(event, RefreshProgress):
            logger.info(
                "Feed status: %d successful, %d failed (%d articles)",
                event.success_count,
                event.fail_count,
                event.article_count,
            )
        elif isinstance(event, TranslationProgress):
            logger.info(
                "Translation progress (%s): %d/%d",
                event.mode.value,
                event.processed,
                event.total,
            )
        elif event.level in {NotificationLevel.WARNING, NotificationLevel.ERROR}:
            logger.warning("%s", event.message)
        else:
            logger.info("%s", event.message)


_MESSAGES: dict[str, dict[str, str]] = {
    "translation_complete": {
        "en": "Translation complete! Success: {successful}/{total}",
        "ar": "اكتملت الترجمة! نجح: {successful}/{total}",
    },
    "translation_failed": {
        "en": "Translation failed. Showing original text.",
        "ar": "فشل في الترجمة. سيتم عرض النص الأصلي.",
    },
    "cache_cleared": {
        "en": "Translation cache cleared successfully!",
        "ar": "تم مسح ذاكرة الترجمة بنجاح!",
    },
    "cache_clear_failed": {
        "en": "Failed to clear translation cache",
        "ar": "فشل في مسح ذاكرة الترجمة",
    },
    "feeds_loaded": {
        "en": "{success} of {total} feeds loaded successfully",
        "ar": "تم تحميل {success} من {total} مصدر بنجاح",
    },
    "feeds_failed_suffix": {
        "en": ", {failed} failed",
        "ar": "، فشل {failed} مصدر",
    },
    "feed_failed": {
        "en": "Failed to load {name}.",
        "ar": "فشل في تحميل {name}.",
    },
}


def localized_message(key: str, language: str, **values: object) -> str:
    """Render a notification text, falling back to English."""

    templates = _MESSAGES[key]
    template = templates.get(language, templates["en"])
    return template.format(**values)


def feed_status_text(*, success: int, failed: int, total: int, language: str) -> str:
    text = localized_message("feeds_loaded", language, success=success, total=total)
    if failed > 0:
        text += localized_message("feeds_failed_suffix", language, failed=failed)
    return text
