"""In-memory domain objects shared by the context, stores and services.

Every object is immutable; changes produce new instances through
``dataclasses.replace`` so the context can swap its profile wholesale.
The dict form uses the camelCase keys of the persisted JSON document.
"""

from __future__ import annotations

import base64
import math
import secrets
import string
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from .errors import PlannerFinError

INCOME = "income"
EXPENSE = "expense"
ENTRY_TYPES = (INCOME, EXPENSE)

BUDGET_CODE_PREFIX = "PF"
BUDGET_CODE_LENGTH = 6
_CODE_ALPHABET = string.ascii_uppercase + string.digits

PROFILE_DETAIL_FIELDS = ("bio", "phone", "location", "avatar")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_id() -> str:
    """Return a fresh random identifier."""

    return str(uuid.uuid4())


def generate_budget_code(existing: Iterable[str] = ()) -> str:
    """Return a share code like ``PF7K2M9Q`` not present in ``existing``."""

    taken = set(existing)
    while True:
        suffix = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(BUDGET_CODE_LENGTH))
        code = f"{BUDGET_CODE_PREFIX}{suffix}"
        if code not in taken:
            return code


def derive_user_id(email: str) -> str:
    """Deterministic user id for sessions without a remote identity."""

    normalized = email.strip().lower()
    if not normalized:
        raise ValueError("Email is required to derive a user id")
    return base64.b64encode(normalized.encode("utf-8")).decode("ascii")


def validate_entry_type(entry_type: str) -> str:
    if entry_type not in ENTRY_TYPES:
        raise ValueError(f"Invalid entry type: {entry_type!r}")
    return entry_type


def normalize_amount(amount: float, entry_type: str) -> float:
    """Expenses are stored as negative magnitudes, income as positive."""

    validate_entry_type(entry_type)
    magnitude = abs(float(amount))
    if magnitude == 0 or not math.isfinite(magnitude):
        raise PlannerFinError(f"Amount must be a non-zero number, got {amount!r}")
    return -magnitude if entry_type == EXPENSE else magnitude


@dataclass(frozen=True, slots=True)
class BudgetEntry:
    """A single income or expense line inside a budget."""

    id: str
    date: str
    description: str
    category: str
    amount: float
    type: str
    user_id: str
    budget_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "description": self.description,
            "category": self.category,
            "amount": self.amount,
            "type": self.type,
            "userId": self.user_id,
            "budgetId": self.budget_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BudgetEntry":
        return cls(
            id=str(data["id"]),
            date=str(data["date"]),
            description=str(data.get("description", "")),
            category=str(data["category"]),
            amount=float(data["amount"]),
            type=validate_entry_type(data["type"]),
            user_id=str(data["userId"]),
            budget_id=str(data["budgetId"]),
        )


@dataclass(frozen=True, slots=True)
class Category:
    """User-scoped category; entries reference it by name."""

    id: str
    name: str
    type: str
    color: str
    icon: str
    user_id: str
    description: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "color": self.color,
            "icon": self.icon,
            "userId": self.user_id,
        }
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Category":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            type=validate_entry_type(data["type"]),
            color=str(data.get("color", "")),
            icon=str(data.get("icon", "")),
            user_id=str(data["userId"]),
            description=data.get("description"),
        )


@dataclass(frozen=True, slots=True)
class Budget:
    """A named ledger with a share code, owned by one profile."""

    id: str
    name: str
    code: str
    owner_id: str
    collaborators: tuple[str, ...] = ()
    entries: tuple[BudgetEntry, ...] = ()
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def has_access(self, user_id: str) -> bool:
        """Owner or listed collaborator."""
        return user_id == self.owner_id or user_id in self.collaborators

    def find_entry(self, entry_id: str) -> Optional[BudgetEntry]:
        return next((entry for entry in self.entries if entry.id == entry_id), None)

    def with_entries(self, entries: Iterable[BudgetEntry]) -> "Budget":
        return replace(self, entries=tuple(entries), updated_at=utc_now_iso())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "ownerId": self.owner_id,
            "collaborators": list(self.collaborators),
            "entries": [entry.to_dict() for entry in self.entries],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Budget":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            code=str(data["code"]),
            owner_id=str(data["ownerId"]),
            collaborators=tuple(str(c) for c in data.get("collaborators") or ()),
            entries=tuple(BudgetEntry.from_dict(e) for e in data.get("entries") or ()),
            created_at=str(data.get("createdAt") or utc_now_iso()),
            updated_at=str(data.get("updatedAt") or utc_now_iso()),
        )


@dataclass(frozen=True, slots=True)
class UserProfile:
    """Full denormalized document for one user: budgets, categories, selection."""

    id: str
    email: str
    name: str
    budgets: tuple[Budget, ...] = ()
    categories: tuple[Category, ...] = ()
    active_budget_id: str = ""
    bio: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None
    avatar: Optional[str] = None

    @property
    def active_budget(self) -> Optional[Budget]:
        return self.find_budget(self.active_budget_id)

    def find_budget(self, budget_id: str) -> Optional[Budget]:
        return next((budget for budget in self.budgets if budget.id == budget_id), None)

    def find_category(self, category_id: str) -> Optional[Category]:
        return next((cat for cat in self.categories if cat.id == category_id), None)

    def replace_budget(self, budget: Budget) -> "UserProfile":
        budgets = tuple(budget if b.id == budget.id else b for b in self.budgets)
        return replace(self, budgets=budgets)

    def to_dict(self) -> dict[str, Any]:
        data = {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "budgets": [budget.to_dict() for budget in self.budgets],
            "categories": [category.to_dict() for category in self.categories],
            "activeBudgetId": self.active_budget_id,
        }
        for key in PROFILE_DETAIL_FIELDS:
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UserProfile":
        return cls(
            id=str(data["id"]),
            email=str(data["email"]),
            name=str(data.get("name", "")),
            budgets=tuple(Budget.from_dict(b) for b in data.get("budgets") or ()),
            categories=tuple(Category.from_dict(c) for c in data.get("categories") or ()),
            active_budget_id=str(data.get("activeBudgetId") or ""),
            **{key: str(data[key]) for key in PROFILE_DETAIL_FIELDS if data.get(key) is not None},
        )


@dataclass(frozen=True, slots=True)
class AuthUser:
    id: str
    email: str
    name: str = ""


@dataclass(frozen=True, slots=True)
class AuthSession:
    """Identity provider session as seen by the client."""

    user: AuthUser
    access_token: str
    issued_at: datetime


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


class CollaborationStatus(str, Enum):
    NOT_IMPLEMENTED = "not_implemented"


@dataclass(frozen=True, slots=True)
class CollaborationResult:
    """Outcome of a share-code operation."""

    status: CollaborationStatus

    @classmethod
    def not_implemented(cls) -> "CollaborationResult":
        return cls(status=CollaborationStatus.NOT_IMPLEMENTED)
