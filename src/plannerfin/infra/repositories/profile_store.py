"""Remote and local implementations of the profile store."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

from ...domain.entities import Budget, BudgetEntry, UserProfile
from ...logging_config import get_logger
from ...services.local_store import LocalFallbackStore
from ...services.remote_data import RemoteDataService

logger = get_logger(__name__)


class RemoteProfileStore:
    """Delegates to the hosted store through the remote data service."""

    is_remote = True

    def __init__(self, service: RemoteDataService):
        self.service = service

    async def load_profile(
        self,
        user_id: str,
        on_budgets_resolved: Optional[Callable[[list[Budget]], None]] = None,
    ) -> Optional[UserProfile]:
        return await self.service.get_user_profile(user_id, on_budgets_resolved)

    async def bootstrap_profile(self, profile: UserProfile) -> bool:
        """Write the profile row first, then its budgets and categories."""
        if not await self.service.create_user_profile(profile):
            return False
        ok = True
        for budget in profile.budgets:
            ok = await self.service.create_budget(budget) and ok
        for category in profile.categories:
            ok = await self.service.create_category(category) is not None and ok
        return ok

    async def update_profile(self, user_id: str, updates: Mapping[str, Any]) -> bool:
        return await self.service.update_user_profile(user_id, updates)

    async def create_budget(self, budget: Budget) -> bool:
        return await self.service.create_budget(budget)

    async def update_budget(self, budget_id: str, updates: Mapping[str, Any]) -> bool:
        return await self.service.update_budget(budget_id, updates)

    async def delete_budget(self, budget_id: str) -> bool:
        return await self.service.delete_budget(budget_id)

    async def create_entry(self, entry: BudgetEntry) -> Optional[str]:
        return await self.service.create_budget_entry(entry)

    async def update_entry(self, entry_id: str, updates: Mapping[str, Any]) -> bool:
        return await self.service.update_budget_entry(entry_id, updates)

    async def delete_entry(self, entry_id: str) -> bool:
        return await self.service.delete_budget_entry(entry_id)

    async def sign_out(self) -> None:
        await self.service.sign_out()


class LocalProfileStore:
    """Local-only mode: the in-memory profile is authoritative.

    Writes are accepted as-is; the context's write-behind hook persists the
    whole document after every change.
    """

    is_remote = False

    def __init__(self, local_store: LocalFallbackStore):
        self.local_store = local_store

    async def load_profile(
        self,
        user_id: str,
        on_budgets_resolved: Optional[Callable[[list[Budget]], None]] = None,
    ) -> Optional[UserProfile]:
        return self.local_store.load(user_id)

    async def bootstrap_profile(self, profile: UserProfile) -> bool:
        return True

    async def update_profile(self, user_id: str, updates: Mapping[str, Any]) -> bool:
        return True

    async def create_budget(self, budget: Budget) -> bool:
        return True

    async def update_budget(self, budget_id: str, updates: Mapping[str, Any]) -> bool:
        return True

    async def delete_budget(self, budget_id: str) -> bool:
        return True

    async def create_entry(self, entry: BudgetEntry) -> Optional[str]:
        return entry.id

    async def update_entry(self, entry_id: str, updates: Mapping[str, Any]) -> bool:
        return True

    async def delete_entry(self, entry_id: str) -> bool:
        return True

    async def sign_out(self) -> None:
        logger.debug("Local mode has no remote session to sign out of")
