from __future__ import annotations

from pathlib import Path

import allure
import pytest

from pharmacentral.config import (
    KNOWN_PROVIDERS,
    Settings,
    StoreSettings,
    TranslationSettings,
)

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Environment Settings"),
]


def test_defaults_follow_documented_policy() -> None:
    settings = Settings()

    assert settings.fetch.retry_attempts == 3
    assert settings.fetch.retry_delay_seconds == 1.0
    assert settings.fetch.min_body_chars == 100
    assert settings.store.cache_expiry_hours == 24
    assert settings.store.refresh_interval_minutes == 30
    assert settings.translation.batch_size == 3
    assert settings.translation.batch_delay_seconds == 2.0
    assert settings.translation.item_delay_seconds == 1.5
    assert settings.translation.quality_threshold == 0.7
    assert settings.translation.cache_ttl_days == 7
    assert settings.translation.providers == KNOWN_PROVIDERS
    settings.validate()


def test_from_env_reads_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PHARMACENTRAL_DB_PATH", str(tmp_path / "env.db"))
    monkeypatch.setenv("PHARMACENTRAL_FETCH_RETRY_ATTEMPTS", "5")
    monkeypatch.setenv("PHARMACENTRAL_TRANSLATION_BATCH_SIZE", "4")
    monkeypatch.setenv("PHARMACENTRAL_TRANSLATION_PROVIDERS", "MyMemory, lingva, mymemory")
    monkeypatch.setenv("PHARMACENTRAL_RETAIN_FAILED_SOURCES", "no")

    settings = Settings.from_env()

    assert settings.db_path == tmp_path / "env.db"
    assert settings.fetch.retry_attempts == 5
    assert settings.translation.batch_size == 4
    assert settings.translation.providers == ("mymemory", "lingva")
    assert settings.store.retain_failed_sources is False


def test_from_env_explicit_db_path_wins(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PHARMACENTRAL_DB_PATH", str(tmp_path / "env.db"))

    settings = Settings.from_env(db_path=tmp_path / "cli.db")

    assert settings.db_path == tmp_path / "cli.db"


def test_from_env_rejects_invalid_boolean(monkeypatch) -> None:
    monkeypatch.setenv("PHARMACENTRAL_RETAIN_FAILED_SOURCES", "maybe")

    with pytest.raises(ValueError, match="Invalid boolean value"):
        Settings.from_env()


def test_validate_rejects_unknown_provider() -> None:
    settings = Settings(translation=TranslationSettings(providers=("deepl",)))

    with pytest.raises(ValueError, match="Unknown translation provider"):
        settings.validate()


def test_validate_requires_provider() -> None:
    settings = Settings(translation=TranslationSettings(providers=()))

    with pytest.raises(ValueError, match="At least one translation provider is required"):
        settings.validate()


def test_validate_rejects_non_positive_batch_size() -> None:
    settings = Settings(translation=TranslationSettings(batch_size=0))

    with pytest.raises(ValueError, match="PHARMACENTRAL_TRANSLATION_BATCH_SIZE"):
        settings.validate()


def test_validate_rejects_threshold_outside_unit_interval() -> None:
    settings = Settings(translation=TranslationSettings(quality_threshold=1.5))

    with pytest.raises(ValueError, match="PHARMACENTRAL_QUALITY_THRESHOLD"):
        settings.validate()


def test_validate_rejects_non_positive_refresh_interval() -> None:
    settings = Settings(store=StoreSettings(refresh_interval_minutes=0))

    with pytest.raises(ValueError, match="PHARMACENTRAL_REFRESH_INTERVAL_MINUTES"):
        settings.validate()
