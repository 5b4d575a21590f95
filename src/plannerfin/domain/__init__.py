"""Domain objects, errors and repository protocols."""

from .entities import (
    AuthEvent,
    AuthSession,
    AuthUser,
    Budget,
    BudgetEntry,
    Category,
    CollaborationResult,
    CollaborationStatus,
    UserProfile,
)
from .errors import (
    AuthError,
    BudgetError,
    CategoryInUseError,
    NoActiveUserError,
    PlannerFinError,
)

__all__ = [
    "AuthError",
    "AuthEvent",
    "AuthSession",
    "AuthUser",
    "Budget",
    "BudgetEntry",
    "BudgetError",
    "Category",
    "CategoryInUseError",
    "CollaborationResult",
    "CollaborationStatus",
    "NoActiveUserError",
    "PlannerFinError",
    "UserProfile",
]
