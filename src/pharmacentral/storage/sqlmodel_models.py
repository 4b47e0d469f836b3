"""SQLModel ORM tables for persisted pipeline state."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Text
from sqlmodel import Field, SQLModel


class StorageEntry(SQLModel, table=True):
    __tablename__ = "storage_entries"  # type: ignore[bad-override]

    key: str = Field(primary_key=True)
    value: str = Field(sa_column=Column(Text, nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
