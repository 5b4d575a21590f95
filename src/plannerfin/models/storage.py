"""Key-value rows for the local fallback store."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar

from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel

from ._time import utcnow


class StorageItem(SQLModel, table=True):
    """Durable key-value storage; values are opaque strings."""

    __tablename__: ClassVar[str] = "local_storage"

    key: str = Field(primary_key=True, max_length=255)
    value: str = Field(sa_column=Column(Text, nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)
