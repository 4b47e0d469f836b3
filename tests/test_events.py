from __future__ import annotations

import logging

import allure

from pharmacentral.events import (
    LoggingEventSink,
    Notification,
    NotificationLevel,
    RefreshProgress,
    TranslationMode,
    TranslationProgress,
    feed_status_text,
    localized_message,
)

pytestmark = [
    allure.epic("Presentation Contract"),
    allure.feature("Events & Notifications"),
]


def test_feed_status_text_in_both_languages() -> None:
    assert (
        feed_status_text(success=9, failed=0, total=9, language="en")
        == "9 of 9 feeds loaded successfully"
    )
    assert (
        feed_status_text(success=7, failed=2, total=9, language="ar")
        == "تم تحميل 7 من 9 مصدر بنجاح، فشل 2 مصدر"
    )


def test_unknown_language_falls_back_to_english() -> None:
    assert localized_message("cache_cleared", "fr") == "Translation cache cleared successfully!"


def test_translation_progress_remaining() -> None:
    progress = TranslationProgress(processed=3, total=7, mode=TranslationMode.BATCH)

    assert progress.remaining == 4


def test_logging_sink_writes_every_event(caplog) -> None:
    sink = LoggingEventSink()

    with caplog.at_level(logging.INFO, logger="pharmacentral.events"):
        sink.emit(RefreshProgress(success_count=8, fail_count=1, total=9, article_count=120))
        sink.emit(TranslationProgress(processed=1, total=2, mode=TranslationMode.SEQUENTIAL))
        sink.emit(Notification(level=NotificationLevel.ERROR, message="Failed to load X."))

    messages = [record.getMessage() for record in caplog.records]
    assert "Feed status: 8 successful, 1 failed (120 articles)" in messages
    assert "Translation progress (sequential): 1/2" in messages
    assert caplog.records[-1].levelno == logging.WARNING
