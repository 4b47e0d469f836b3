"""Persistent translation cache keyed by normalized source text."""

from __future__ import annotations

import base64
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from pharmacentral.errors import CacheIOError
from pharmacentral.ingestion.cleaning import normalize_whitespace
from pharmacentral.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "translation_"
MAP_KEY = "translation_cache"
KEY_PREVIEW_CHARS = 100


@dataclass(slots=True)
class CachedTranslation:
    """Stored translation with the original text preview it was made for."""

    original: str
    translation: str
    timestamp: datetime

    def to_record(self) -> dict[str, object]:
        return {
            "original": self.original,
            "translation": self.translation,
            "timestamp": int(self.timestamp.timestamp() * 1000),
        }

    @classmethod
    def from_record(cls, raw: Mapping[str, object]) -> CachedTranslation:
        stamp = raw.get("timestamp")
        if not isinstance(stamp, int | float):
            raise ValueError("Cached translation has no timestamp")
        try:
            timestamp = datetime.fromtimestamp(stamp / 1000, tz=UTC)
        except (OverflowError, OSError) as error:
            raise ValueError(f"Cached translation timestamp out of range: {stamp}") from error
        return cls(
            original=str(raw.get("original") or ""),
            translation=str(raw.get("translation") or ""),
            timestamp=timestamp,
        )


def cache_key(text: str) -> str:
    """Derive a stable key from the first characters of the normalized text."""

    preview = normalize_whitespace(text)[:KEY_PREVIEW_CHARS]
    try:
        encoded = preview.encode("utf-8")
    except UnicodeEncodeError:
        return KEY_PREFIX + _rolling_hash(preview)
    return KEY_PREFIX + base64.b64encode(encoded).decode("ascii")


def _rolling_hash(text: str) -> str:
    value = 0
    for char in text:
        value = ((value << 5) - value + ord(char)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return _base36(abs(value))


def _base36(number: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if number == 0:
        return "0"
    out = []
    while number:
        number, remainder = divmod(number, 36)
        out.append(digits[remainder])
    return "".join(reversed(out))


class TranslationCache:
    """Translations persisted per key, expired lazily on read.

    Storage failures never propagate: a failed read is a miss and a failed
    write is logged and dropped.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        *,
        ttl_days: int = 7,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._storage = storage
        self._ttl = timedelta(days=ttl_days)
        self._clock = clock or (lambda: datetime.now(tz=UTC))

    def get(self, text: str) -> str | None:
        key = cache_key(text)
        try:
            raw = self._storage.get_json(key)
        except CacheIOError as error:
            logger.warning("Translation cache read failed: %s", error)
            return None
        if not isinstance(raw, Mapping):
            return None
        try:
            entry = CachedTranslation.from_record(raw)
        except ValueError:
            self._discard(key)
            return None
        if self._clock() - entry.timestamp >= self._ttl:
            self._discard(key)
            return None
        return entry.translation or None

    def put(self, text: str, translation: str) -> None:
        entry = CachedTranslation(
            original=normalize_whitespace(text)[:KEY_PREVIEW_CHARS],
            translation=translation,
            timestamp=self._clock(),
        )
        try:
            self._storage.set_json(cache_key(text), entry.to_record())
        except CacheIOError as error:
            logger.warning("Translation cache write failed: %s", error)

    def clear(self) -> int:
        """Delete every cached translation and the persisted translation map."""

        deleted = self._storage.delete_prefix(KEY_PREFIX)
        logger.info("Cleared %d translation cache entries", deleted)
        return deleted

    def purge_expired(self) -> int:
        purged = 0
        now = self._clock()
        for key in self._storage.keys(KEY_PREFIX):
            if key == MAP_KEY:
                continue
            raw = self._storage.get_json(key)
            try:
                expired = not isinstance(raw, Mapping) or (
                    now - CachedTranslation.from_record(raw).timestamp >= self._ttl
                )
            except ValueError:
                expired = True
            if expired and self._storage.delete(key):
                purged += 1
        if purged:
            logger.info("Purged %d expired translations", purged)
        return purged

    def count(self) -> int:
        return len([key for key in self._storage.keys(KEY_PREFIX) if key != MAP_KEY])

    def export_map(self, translations: Mapping[str, Mapping[str, str]]) -> None:
        """Persist per-article translations alongside the article snapshot."""

        payload = {article_id: dict(fields) for article_id, fields in translations.items()}
        try:
            self._storage.set_json(MAP_KEY, payload)
        except CacheIOError as error:
            logger.warning("Translation map write failed: %s", error)

    def import_map(self) -> dict[str, dict[str, str]]:
        try:
            raw = self._storage.get_json(MAP_KEY)
        except CacheIOError as error:
            logger.warning("Translation map read failed: %s", error)
            return {}
        if not isinstance(raw, Mapping):
            return {}
        result: dict[str, dict[str, str]] = {}
        for article_id, value in raw.items():
            if isinstance(value, Mapping):
                result[str(article_id)] = {
                    str(field): str(text) for field, text in value.items() if text
                }
        return result

    def _discard(self, key: str) -> None:
        try:
            self._storage.delete(key)
        except CacheIOError as error:
            logger.warning("Failed to drop expired translation %s: %s", key, error)
