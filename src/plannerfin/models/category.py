"""Category definitions scoped to a single user."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

from ._time import utcnow


class CategoryRecord(SQLModel, table=True):
    __tablename__: ClassVar[str] = "categories"

    id: str = Field(primary_key=True, max_length=64)
    name: str = Field(nullable=False, index=True, max_length=64)
    type: str = Field(default="expense", nullable=False, max_length=16)
    color: str = Field(default="", max_length=16)
    icon: str = Field(default="", max_length=16)
    description: Optional[str] = Field(default=None, max_length=255)
    user_id: str = Field(foreign_key="user_profiles.id", nullable=False, index=True, max_length=64)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)
