"""Budget and budget entry tables."""

from __future__ import annotations

import datetime as dt
from typing import ClassVar

from sqlalchemy import JSON, Column
from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

from ._time import utcnow


class BudgetRecord(SQLModel, table=True):
    """A shareable ledger owned by one profile."""

    __tablename__: ClassVar[str] = "budgets"

    id: str = Field(primary_key=True, max_length=64)
    name: str = Field(nullable=False, max_length=128)
    code: str = Field(nullable=False, unique=True, index=True, max_length=8)
    owner_id: str = Field(foreign_key="user_profiles.id", nullable=False, index=True, max_length=64)
    collaborators: list[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False, default=list),
    )
    created_at: dt.datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: dt.datetime = Field(default_factory=utcnow, nullable=False)

    entries: list["BudgetEntryRecord"] = Relationship(
        back_populates="budget",
        sa_relationship=relationship("BudgetEntryRecord", back_populates="budget"),
    )


class BudgetEntryRecord(SQLModel, table=True):
    """Income or expense line; ``category`` holds the category name."""

    __tablename__: ClassVar[str] = "budget_entries"

    id: str = Field(primary_key=True, max_length=64)
    date: dt.date = Field(nullable=False, index=True)
    description: str = Field(default="", max_length=255)
    category: str = Field(nullable=False, max_length=64)
    amount: float = Field(nullable=False, description="Negative for expenses, positive for income")
    type: str = Field(nullable=False, max_length=16)
    user_id: str = Field(nullable=False, index=True, max_length=64)
    budget_id: str = Field(foreign_key="budgets.id", nullable=False, index=True, max_length=64)
    created_at: dt.datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: dt.datetime = Field(default_factory=utcnow, nullable=False)

    budget: "BudgetRecord" = Relationship(
        back_populates="entries",
        sa_relationship=relationship("BudgetRecord", back_populates="entries"),
    )
