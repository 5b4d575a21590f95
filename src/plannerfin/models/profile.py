"""User profile rows in the hosted store."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

from ._time import utcnow


class UserProfileRecord(SQLModel, table=True):
    """One row per authenticated identity; budgets and categories hang off it."""

    __tablename__: ClassVar[str] = "user_profiles"

    id: str = Field(primary_key=True, max_length=64)
    email: str = Field(nullable=False, index=True, max_length=255)
    name: str = Field(default="", nullable=False, max_length=128)
    bio: Optional[str] = Field(default=None, max_length=500)
    phone: Optional[str] = Field(default=None, max_length=32)
    location: Optional[str] = Field(default=None, max_length=128)
    avatar: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)
