"""SQLite engine policy and timestamp helpers shared by the key-value store."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqlmodel import create_engine


def sqlite_url(db_path: Path) -> str:
    return f"sqlite:///{db_path}"


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def from_iso(value: str) -> datetime:
    """Parse a stored ISO-8601 timestamp; naive values are read as UTC."""

    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def build_sqlite_engine(*, db_path: Path, busy_timeout_ms: int = 5_000) -> Engine:
    """Engine for one local database file shared by CLI runs and the watch loop.

    Connections are not pooled, so each storage call opens its own connection
    with WAL journaling and the busy timeout applied.
    """

    engine = create_engine(
        sqlite_url(db_path),
        connect_args={
            "check_same_thread": False,
            "timeout": max(1.0, busy_timeout_ms / 1000.0),
        },
        poolclass=NullPool,
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: sqlite3.Connection, _record: object) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode = WAL")
        cursor.execute(f"PRAGMA busy_timeout = {max(1, busy_timeout_ms)}")
        cursor.close()

    return engine
