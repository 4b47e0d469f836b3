"""Shared test fixtures."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from pharmacentral.storage.kv import KeyValueStore

FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


class FakeSleep:
    """Records requested delays without suspending."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeClock:
    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[object] = []

    def emit(self, event: object) -> None:
        self.events.append(event)

    def of_type(self, kind: type) -> list:
        return [event for event in self.events if isinstance(event, kind)]


@pytest.fixture()
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def kv_store(tmp_path: Path):
    store = KeyValueStore(tmp_path / "pharmacentral.db")
    store.init_schema()
    yield store
    store.close()
