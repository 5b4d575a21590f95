"""Identity provider accounts."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

from ._time import utcnow


class AuthUserRecord(SQLModel, table=True):
    """Credentials for an identity; the profile row shares its id."""

    __tablename__: ClassVar[str] = "auth_users"

    id: str = Field(primary_key=True, max_length=64)
    email: str = Field(nullable=False, unique=True, index=True, max_length=255)
    password_hash: str = Field(nullable=False, max_length=255)
    name: str = Field(default="", max_length=128)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    last_sign_in_at: Optional[datetime] = Field(default=None)
