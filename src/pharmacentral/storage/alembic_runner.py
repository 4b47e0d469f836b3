"""Programmatic Alembic upgrade for the key-value storage schema."""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config

from pharmacentral.storage.common import sqlite_url

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[3]


def upgrade_head(db_path: Path) -> None:
    """Create the database directory if needed and migrate ``storage_entries`` to head."""

    db_path.parent.mkdir(parents=True, exist_ok=True)
    config = Config(str(PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    config.set_main_option("sqlalchemy.url", sqlite_url(db_path))
    logger.debug("Upgrading storage schema at %s", db_path)
    command.upgrade(config, "head")
