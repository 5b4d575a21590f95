"""Profile store protocol: one contract for remote and local persistence."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Protocol

from ..entities import Budget, BudgetEntry, UserProfile


class ProfileStore(Protocol):
    """Where the context sends profile, budget and entry writes.

    Write methods return a falsy value on failure; the context reacts by
    switching to the local store for the rest of the session.
    """

    is_remote: bool

    async def load_profile(
        self,
        user_id: str,
        on_budgets_resolved: Optional[Callable[[list[Budget]], None]] = None,
    ) -> Optional[UserProfile]:
        """Return the stored profile or None."""
        ...

    async def bootstrap_profile(self, profile: UserProfile) -> bool:
        """Persist a freshly created default profile."""
        ...

    async def update_profile(self, user_id: str, updates: Mapping[str, Any]) -> bool:
        ...

    async def create_budget(self, budget: Budget) -> bool:
        ...

    async def update_budget(self, budget_id: str, updates: Mapping[str, Any]) -> bool:
        ...

    async def delete_budget(self, budget_id: str) -> bool:
        ...

    async def create_entry(self, entry: BudgetEntry) -> Optional[str]:
        """Persist an entry; return the id the store assigned, or None."""
        ...

    async def update_entry(self, entry_id: str, updates: Mapping[str, Any]) -> bool:
        ...

    async def delete_entry(self, entry_id: str) -> bool:
        ...

    async def sign_out(self) -> None:
        ...
