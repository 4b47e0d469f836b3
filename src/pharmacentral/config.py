"""Runtime configuration for ingestion and translation pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

KNOWN_PROVIDERS = ("lingva", "google", "mymemory")


@dataclass(slots=True)
class FetchSettings:
    """Relay cascade and feed fetch settings."""

    retry_attempts: int = 3
    retry_delay_seconds: float = 1.0
    request_timeout_seconds: float = 10.0
    min_body_chars: int = 100


@dataclass(slots=True)
class StoreSettings:
    """Article store lifecycle settings."""

    cache_expiry_hours: int = 24
    refresh_interval_minutes: int = 30
    retain_failed_sources: bool = True


@dataclass(slots=True)
class TranslationSettings:
    """Translation queue, provider chain and cache settings."""

    source_language: str = "en"
    target_language: str = "ar"
    batch_size: int = 3
    batch_delay_seconds: float = 2.0
    item_delay_seconds: float = 1.5
    provider_timeout_seconds: float = 8.0
    quality_threshold: float = 0.7
    cache_ttl_days: int = 7
    providers: tuple[str, ...] = KNOWN_PROVIDERS


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".pharmacentral.db")
    fetch: FetchSettings = field(default_factory=FetchSettings)
    store: StoreSettings = field(default_factory=StoreSettings)
    translation: TranslationSettings = field(default_factory=TranslationSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            db_path=db_path or Path(os.getenv("PHARMACENTRAL_DB_PATH", ".pharmacentral.db")),
            fetch=FetchSettings(
                retry_attempts=int(os.getenv("PHARMACENTRAL_FETCH_RETRY_ATTEMPTS", "3")),
                retry_delay_seconds=float(
                    os.getenv("PHARMACENTRAL_FETCH_RETRY_DELAY_SECONDS", "1.0"),
                ),
                request_timeout_seconds=float(
                    os.getenv("PHARMACENTRAL_FETCH_TIMEOUT_SECONDS", "10.0"),
                ),
                min_body_chars=int(os.getenv("PHARMACENTRAL_FETCH_MIN_BODY_CHARS", "100")),
            ),
            store=StoreSettings(
                cache_expiry_hours=int(os.getenv("PHARMACENTRAL_CACHE_EXPIRY_HOURS", "24")),
                refresh_interval_minutes=int(
                    os.getenv("PHARMACENTRAL_REFRESH_INTERVAL_MINUTES", "30"),
                ),
                retain_failed_sources=_env_bool(
                    "PHARMACENTRAL_RETAIN_FAILED_SOURCES",
                    default=True,
                ),
            ),
            translation=TranslationSettings(
                source_language=os.getenv("PHARMACENTRAL_SOURCE_LANGUAGE", "en").strip(),
                target_language=os.getenv("PHARMACENTRAL_TARGET_LANGUAGE", "ar").strip(),
                batch_size=int(os.getenv("PHARMACENTRAL_TRANSLATION_BATCH_SIZE", "3")),
                batch_delay_seconds=float(
                    os.getenv("PHARMACENTRAL_TRANSLATION_BATCH_DELAY_SECONDS", "2.0"),
                ),
                item_delay_seconds=float(
                    os.getenv("PHARMACENTRAL_TRANSLATION_ITEM_DELAY_SECONDS", "1.5"),
                ),
                provider_timeout_seconds=float(
                    os.getenv("PHARMACENTRAL_PROVIDER_TIMEOUT_SECONDS", "8.0"),
                ),
                quality_threshold=float(os.getenv("PHARMACENTRAL_QUALITY_THRESHOLD", "0.7")),
                cache_ttl_days=int(os.getenv("PHARMACENTRAL_TRANSLATION_CACHE_TTL_DAYS", "7")),
                providers=_collect_providers(),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for out-of-range values."""

        if self.fetch.retry_attempts <= 0:
            raise ValueError("PHARMACENTRAL_FETCH_RETRY_ATTEMPTS must be > 0.")
        if self.fetch.retry_delay_seconds < 0:
            raise ValueError("PHARMACENTRAL_FETCH_RETRY_DELAY_SECONDS must be >= 0.")
        if self.fetch.request_timeout_seconds <= 0:
            raise ValueError("PHARMACENTRAL_FETCH_TIMEOUT_SECONDS must be > 0.")
        if self.store.cache_expiry_hours <= 0:
            raise ValueError("PHARMACENTRAL_CACHE_EXPIRY_HOURS must be > 0.")
        if self.store.refresh_interval_minutes <= 0:
            raise ValueError("PHARMACENTRAL_REFRESH_INTERVAL_MINUTES must be > 0.")

        translation = self.translation
        if translation.batch_size <= 0:
            raise ValueError("PHARMACENTRAL_TRANSLATION_BATCH_SIZE must be > 0.")
        if translation.batch_delay_seconds < 0 or translation.item_delay_seconds < 0:
            raise ValueError("Translation delays must be >= 0.")
        if translation.provider_timeout_seconds <= 0:
            raise ValueError("PHARMACENTRAL_PROVIDER_TIMEOUT_SECONDS must be > 0.")
        if not 0.0 <= translation.quality_threshold <= 1.0:
            raise ValueError("PHARMACENTRAL_QUALITY_THRESHOLD must be within [0, 1].")
        if translation.cache_ttl_days <= 0:
            raise ValueError("PHARMACENTRAL_TRANSLATION_CACHE_TTL_DAYS must be > 0.")
        if not translation.providers:
            raise ValueError("At least one translation provider is required.")
        for name in translation.providers:
            if name not in KNOWN_PROVIDERS:
                raise ValueError(
                    f"Unknown translation provider: {name!r}. "
                    f"Expected one of: {', '.join(KNOWN_PROVIDERS)}.",
                )


def _collect_providers() -> tuple[str, ...]:
    raw = os.getenv("PHARMACENTRAL_TRANSLATION_PROVIDERS", "").strip()
    if not raw:
        return KNOWN_PROVIDERS
    values: list[str] = []
    for part in raw.split(","):
        name = part.strip().lower()
        if name and name not in values:
            values.append(name)
    return tuple(values)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
