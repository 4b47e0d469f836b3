"""SQLModel-backed key-value storage for article snapshots and translations."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, delete, select

from pharmacentral.errors import CacheIOError
from pharmacentral.storage.alembic_runner import upgrade_head
from pharmacentral.storage.common import build_sqlite_engine, utc_now
from pharmacentral.storage.sqlmodel_models import StorageEntry

logger = logging.getLogger(__name__)


class KeyValueStore:
    """JSON values under string keys; every failure surfaces as CacheIOError."""

    def __init__(self, db_path: Path, *, busy_timeout_ms: int = 5_000) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=busy_timeout_ms)

    def init_schema(self) -> None:
        upgrade_head(self.db_path)

    def close(self) -> None:
        self.engine.dispose()

    def __enter__(self) -> KeyValueStore:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def get_json(self, key: str) -> object | None:
        try:
            with Session(self.engine) as session:
                row = session.get(StorageEntry, key)
                raw = None if row is None else row.value
        except SQLAlchemyError as error:
            raise CacheIOError(message=f"Failed to read {key!r}: {error}") from error
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as error:
            raise CacheIOError(message=f"Corrupt JSON stored under {key!r}") from error

    def set_json(self, key: str, value: object) -> None:
        try:
            payload = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as error:
            raise CacheIOError(message=f"Value for {key!r} is not JSON serializable") from error
        try:
            with Session(self.engine) as session:
                row = session.get(StorageEntry, key)
                if row is None:
                    row = StorageEntry(key=key, value=payload, updated_at=utc_now())
                else:
                    row.value = payload
                    row.updated_at = utc_now()
                session.add(row)
                session.commit()
        except SQLAlchemyError as error:
            raise CacheIOError(message=f"Failed to write {key!r}: {error}") from error

    def delete(self, key: str) -> bool:
        try:
            with Session(self.engine) as session:
                row = session.get(StorageEntry, key)
                if row is None:
                    return False
                session.delete(row)
                session.commit()
                return True
        except SQLAlchemyError as error:
            raise CacheIOError(message=f"Failed to delete {key!r}: {error}") from error

    def keys(self, prefix: str = "") -> list[str]:
        try:
            with Session(self.engine) as session:
                statement = select(StorageEntry.key)
                if prefix:
                    statement = statement.where(
                        col(StorageEntry.key).startswith(prefix, autoescape=True),
                    )
                return sorted(session.exec(statement).all())
        except SQLAlchemyError as error:
            raise CacheIOError(message=f"Failed to list keys with prefix {prefix!r}") from error

    def delete_prefix(self, prefix: str) -> int:
        try:
            with Session(self.engine) as session:
                statement = select(StorageEntry.key).where(
                    col(StorageEntry.key).startswith(prefix, autoescape=True),
                )
                deleted = len(session.exec(statement).all())
                session.exec(
                    delete(StorageEntry).where(
                        col(StorageEntry.key).startswith(prefix, autoescape=True),
                    ),
                )
                session.commit()
        except SQLAlchemyError as error:
            raise CacheIOError(message=f"Failed to delete keys with prefix {prefix!r}") from error
        logger.info("Deleted %d storage entries with prefix %s", deleted, prefix)
        return deleted
