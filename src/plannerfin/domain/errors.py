"""Domain errors surfaced to callers of the user data context."""

from __future__ import annotations


class PlannerFinError(ValueError):
    """Base class for rule violations the UI is expected to display."""


class NoActiveUserError(PlannerFinError):
    """Raised when an operation needs a loaded profile and none is set."""


class BudgetError(PlannerFinError):
    """Raised when a budget operation breaks a budget rule."""


class CategoryInUseError(PlannerFinError):
    """Raised when deleting a category still referenced by entries."""

    def __init__(self, category_name: str, usage_count: int):
        super().__init__(
            f"Category '{category_name}' is used by {usage_count} entr"
            f"{'y' if usage_count == 1 else 'ies'} in the active budget"
        )
        self.category_name = category_name
        self.usage_count = usage_count


class AuthError(PlannerFinError):
    """Raised by the identity provider for rejected sign-ups."""
