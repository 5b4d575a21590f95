"""Client adapter for the hosted relational store.

Every public coroutine catches failures, logs them and returns a falsy
sentinel (False, None or an empty list). Callers read a falsy result as
"use local mode". Writes to budgets and entries are gated on a client-side
ownership/collaborator check before any statement is issued.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import time
from typing import Any, Callable, Coroutine, Iterable, Mapping, Optional

from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from ..config import BaseConfig
from ..domain.entities import (
    AuthSession,
    Budget,
    BudgetEntry,
    Category,
    UserProfile,
    generate_id,
)
from ..infra.database import SessionFactory
from ..logging_config import get_logger
from ..models._time import utcnow
from ..models.budget import BudgetEntryRecord, BudgetRecord
from ..models.category import CategoryRecord
from ..models.profile import UserProfileRecord
from .auth import IdentityProvider

logger = get_logger(__name__)

BudgetsCallback = Callable[[list[Budget]], None]

PROFILE_FIELDS = frozenset({"name", "email", "bio", "phone", "location", "avatar"})
BUDGET_FIELDS = frozenset({"name", "collaborators"})
ENTRY_FIELDS = frozenset({"date", "description", "category", "amount", "type"})
CATEGORY_FIELDS = frozenset({"name", "type", "color", "icon", "description"})


def _entry_from_record(record: BudgetEntryRecord) -> BudgetEntry:
    return BudgetEntry(
        id=record.id,
        date=record.date.isoformat(),
        description=record.description,
        category=record.category,
        amount=record.amount,
        type=record.type,
        user_id=record.user_id,
        budget_id=record.budget_id,
    )


def _budget_from_record(record: BudgetRecord) -> Budget:
    entries = sorted(record.entries, key=lambda e: (e.date, e.created_at))
    return Budget(
        id=record.id,
        name=record.name,
        code=record.code,
        owner_id=record.owner_id,
        collaborators=tuple(record.collaborators or ()),
        entries=tuple(_entry_from_record(e) for e in entries),
        created_at=record.created_at.isoformat(),
        updated_at=record.updated_at.isoformat(),
    )


def _category_from_record(record: CategoryRecord) -> Category:
    return Category(
        id=record.id,
        name=record.name,
        type=record.type,
        color=record.color,
        icon=record.icon,
        description=record.description,
        user_id=record.user_id,
    )


def _apply_updates(record: Any, updates: Mapping[str, Any], allowed: frozenset[str]) -> None:
    for key, value in updates.items():
        if key not in allowed:
            continue
        if key == "date" and isinstance(value, str):
            value = dt.date.fromisoformat(value)
        elif key == "collaborators":
            value = list(value)
        setattr(record, key, value)
    record.updated_at = utcnow()


class RemoteDataService:
    """Translate profile/budget/category/entry operations into store calls.

    Availability and session caches are per instance; construct a fresh
    service to get fresh caches.
    """

    def __init__(
        self,
        *,
        session_factory: Optional[SessionFactory],
        identity: IdentityProvider,
        config: BaseConfig,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session_factory = session_factory
        self.identity = identity
        self.session_ttl = config.SESSION_TTL_SECONDS
        self._clock = clock
        self._available: Optional[bool] = None
        self._probe_task: Optional[asyncio.Future[bool]] = None
        self._cached_session: Optional[tuple[AuthSession, float]] = None
        self._background: set[asyncio.Future[Any]] = set()

    # ==================== AVAILABILITY ====================

    @property
    def configured(self) -> bool:
        return self.session_factory is not None

    async def check_availability(self) -> bool:
        """Probe the store once; concurrent callers share the in-flight probe."""
        if self._available is not None:
            return self._available
        if not self.configured:
            self._available = False
            return False
        if self._probe_task is None:
            self._probe_task = asyncio.ensure_future(self._probe_once())
        return await asyncio.shield(self._probe_task)

    async def _probe_once(self) -> bool:
        try:
            await asyncio.to_thread(self._probe)
            available = True
        except Exception as exc:
            logger.warning(f"Remote store unavailable: {exc}")
            available = False
        self._available = available
        logger.info("Remote availability probed", extra={"available": available})
        return available

    def _probe(self) -> None:
        with self.session_factory() as session:
            session.exec(select(UserProfileRecord.id).limit(1)).first()

    # ==================== SESSION ====================

    async def get_session(self) -> Optional[AuthSession]:
        """Return the cached session while younger than the TTL."""
        now = self._clock()
        if self._cached_session is not None:
            session, fetched_at = self._cached_session
            if now - fetched_at < self.session_ttl:
                return session
        try:
            session = await self.identity.get_session()
        except Exception as exc:
            logger.warning(f"Session lookup failed: {exc}")
            self._cached_session = None
            return None
        self._cached_session = (session, now) if session is not None else None
        return session

    def invalidate_session(self) -> None:
        self._cached_session = None

    async def _session_user_id(self, action: str) -> Optional[str]:
        session = await self.get_session()
        if session is None:
            logger.warning(f"No valid session; skipping {action}")
            return None
        return session.user.id

    async def sign_out(self) -> bool:
        self.invalidate_session()
        try:
            await self.identity.sign_out()
            return True
        except Exception as exc:
            logger.warning(f"Sign-out failed: {exc}")
            return False

    # ==================== BACKGROUND WORK ====================

    def _schedule(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def wait_for_background(self) -> None:
        """Await pending background lookups (collaborator budget resolution)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def cancel_background(self) -> None:
        """Cancel pending background lookups; their results are never delivered."""
        for task in list(self._background):
            task.cancel()

    # ==================== USER PROFILES ====================

    def _upsert_profile(self, user_id: str, email: str, name: str) -> None:
        with self.session_factory() as session:
            record = session.get(UserProfileRecord, user_id)
            if record is None:
                record = UserProfileRecord(id=user_id, email=email, name=name)
            else:
                record.email = email
                record.name = name
                record.updated_at = utcnow()
            session.add(record)
            session.commit()

    async def create_user_profile(self, profile: UserProfile) -> bool:
        """Insert the profile row, or update name/email when it exists."""
        if await self._session_user_id("profile upsert") is None:
            return False
        try:
            await asyncio.to_thread(self._upsert_profile, profile.id, profile.email, profile.name)
            logger.info("User profile upserted", extra={"user_id": profile.id})
            return True
        except Exception as exc:
            logger.error(f"Error creating user profile: {exc}", exc_info=True)
            return False

    def _fetch_profile_row(self, user_id: str) -> Optional[dict[str, Any]]:
        with self.session_factory() as session:
            record = session.get(UserProfileRecord, user_id)
            if record is None:
                return None
            return {
                "id": record.id,
                "email": record.email,
                "name": record.name,
                "bio": record.bio,
                "phone": record.phone,
                "location": record.location,
                "avatar": record.avatar,
            }

    def _fetch_owned_budgets(self, user_id: str) -> list[Budget]:
        with self.session_factory() as session:
            statement = (
                select(BudgetRecord)
                .where(BudgetRecord.owner_id == user_id)
                .options(selectinload(BudgetRecord.entries))
                .order_by(BudgetRecord.created_at)
            )
            return [_budget_from_record(r) for r in session.exec(statement).all()]

    def _fetch_shared_budgets(self, user_id: str) -> list[Budget]:
        with self.session_factory() as session:
            statement = (
                select(BudgetRecord)
                .where(BudgetRecord.owner_id != user_id)
                .options(selectinload(BudgetRecord.entries))
                .order_by(BudgetRecord.created_at)
            )
            return [
                _budget_from_record(r)
                for r in session.exec(statement).all()
                if user_id in (r.collaborators or ())
            ]

    def _fetch_categories(self, user_id: str) -> list[Category]:
        with self.session_factory() as session:
            statement = (
                select(CategoryRecord)
                .where(CategoryRecord.user_id == user_id)
                .order_by(CategoryRecord.created_at)
            )
            return [_category_from_record(r) for r in session.exec(statement).all()]

    async def get_user_profile(
        self,
        user_id: str,
        on_budgets_resolved: Optional[BudgetsCallback] = None,
    ) -> Optional[UserProfile]:
        """Assemble a profile from its row, owned budgets and categories.

        A user owning no budgets gets an empty budget list back right away;
        budgets shared with them are looked up in the background and handed
        to ``on_budgets_resolved`` if any exist.
        """
        try:
            row = await asyncio.to_thread(self._fetch_profile_row, user_id)
            if row is None:
                logger.info("No remote profile found", extra={"user_id": user_id})
                return None
            budgets, categories = await asyncio.gather(
                asyncio.to_thread(self._fetch_owned_budgets, user_id),
                asyncio.to_thread(self._fetch_categories, user_id),
            )
        except Exception as exc:
            logger.error(f"Error getting user profile: {exc}", exc_info=True)
            return None

        if not budgets:
            self._schedule(self._resolve_shared_budgets(user_id, on_budgets_resolved))
        return UserProfile(
            **row,
            budgets=tuple(budgets),
            categories=tuple(categories),
            active_budget_id=budgets[0].id if budgets else "",
        )

    async def _resolve_shared_budgets(
        self, user_id: str, callback: Optional[BudgetsCallback]
    ) -> list[Budget]:
        try:
            budgets = await asyncio.to_thread(self._fetch_shared_budgets, user_id)
        except Exception as exc:
            logger.warning(f"Collaborator budget lookup failed: {exc}")
            return []
        if budgets and callback is not None:
            try:
                callback(budgets)
            except Exception:
                logger.exception("Collaborator budget callback failed")
        return budgets

    def _update_profile_row(self, user_id: str, updates: Mapping[str, Any]) -> bool:
        with self.session_factory() as session:
            record = session.get(UserProfileRecord, user_id)
            if record is None:
                return False
            _apply_updates(record, updates, PROFILE_FIELDS)
            session.add(record)
            session.commit()
            return True

    async def update_user_profile(self, user_id: str, updates: Mapping[str, Any]) -> bool:
        if await self._session_user_id("profile update") is None:
            return False
        try:
            return await asyncio.to_thread(self._update_profile_row, user_id, dict(updates))
        except Exception as exc:
            logger.error(f"Error updating user profile: {exc}", exc_info=True)
            return False

    # ==================== BUDGETS ====================

    def _insert_budget(self, budget: Budget) -> None:
        with self.session_factory() as session:
            session.add(
                BudgetRecord(
                    id=budget.id,
                    name=budget.name,
                    code=budget.code,
                    owner_id=budget.owner_id,
                    collaborators=list(budget.collaborators),
                )
            )
            session.commit()

    async def create_budget(self, budget: Budget) -> bool:
        """Insert a budget owned by the session user; other owners are refused."""
        user_id = await self._session_user_id("budget create")
        if user_id is None:
            return False
        if budget.owner_id != user_id:
            logger.warning(
                "Refusing to create budget for a different owner",
                extra={"budget_id": budget.id, "owner_id": budget.owner_id},
            )
            return False
        try:
            await asyncio.to_thread(self._insert_budget, budget)
            return True
        except Exception as exc:
            logger.error(f"Error creating budget: {exc}", exc_info=True)
            return False

    def _owner_of(self, budget_id: str) -> Optional[str]:
        with self.session_factory() as session:
            record = session.get(BudgetRecord, budget_id)
            return record.owner_id if record else None

    def _update_budget_row(self, budget_id: str, updates: Mapping[str, Any]) -> bool:
        with self.session_factory() as session:
            record = session.get(BudgetRecord, budget_id)
            if record is None:
                return False
            _apply_updates(record, updates, BUDGET_FIELDS)
            session.add(record)
            session.commit()
            return True

    def _delete_budget_rows(self, budget_id: str) -> bool:
        with self.session_factory() as session:
            record = session.get(BudgetRecord, budget_id)
            if record is None:
                return False
            for entry in session.exec(
                select(BudgetEntryRecord).where(BudgetEntryRecord.budget_id == budget_id)
            ).all():
                session.delete(entry)
            session.flush()
            session.delete(record)
            session.commit()
            return True

    async def _require_owner(self, budget_id: str, action: str) -> bool:
        user_id = await self._session_user_id(action)
        if user_id is None:
            return False
        owner_id = await asyncio.to_thread(self._owner_of, budget_id)
        if owner_id != user_id:
            logger.warning(f"Only the owner may {action}", extra={"budget_id": budget_id})
            return False
        return True

    async def update_budget(self, budget_id: str, updates: Mapping[str, Any]) -> bool:
        try:
            if not await self._require_owner(budget_id, "update a budget"):
                return False
            return await asyncio.to_thread(self._update_budget_row, budget_id, dict(updates))
        except Exception as exc:
            logger.error(f"Error updating budget: {exc}", exc_info=True)
            return False

    async def delete_budget(self, budget_id: str) -> bool:
        """Delete a budget and its entries (owner only)."""
        try:
            if not await self._require_owner(budget_id, "delete a budget"):
                return False
            return await asyncio.to_thread(self._delete_budget_rows, budget_id)
        except Exception as exc:
            logger.error(f"Error deleting budget: {exc}", exc_info=True)
            return False

    def _fetch_budget_by_code(self, code: str) -> Optional[Budget]:
        with self.session_factory() as session:
            record = session.exec(
                select(BudgetRecord)
                .where(BudgetRecord.code == code)
                .options(selectinload(BudgetRecord.entries))
            ).first()
            return _budget_from_record(record) if record else None

    async def find_budget_by_code(self, code: str) -> Optional[Budget]:
        try:
            return await asyncio.to_thread(self._fetch_budget_by_code, code.strip().upper())
        except Exception as exc:
            logger.error(f"Error finding budget by code: {exc}", exc_info=True)
            return None

    # ==================== ACCESS ====================

    def _fetch_budget_header(self, budget_id: str) -> Optional[Budget]:
        with self.session_factory() as session:
            record = session.get(BudgetRecord, budget_id)
            if record is None:
                return None
            return Budget(
                id=record.id,
                name=record.name,
                code=record.code,
                owner_id=record.owner_id,
                collaborators=tuple(record.collaborators or ()),
            )

    async def verify_budget_access(self, budget_id: str, user_id: str) -> bool:
        """Owner or collaborator may write; any lookup failure denies."""
        try:
            budget = await asyncio.to_thread(self._fetch_budget_header, budget_id)
        except Exception as exc:
            logger.warning(f"Access check failed for budget {budget_id}: {exc}")
            return False
        return budget is not None and budget.has_access(user_id)

    async def _gate(self, budget_id: str, action: str) -> Optional[str]:
        user_id = await self._session_user_id(action)
        if user_id is None:
            return None
        if not await self.verify_budget_access(budget_id, user_id):
            logger.warning(
                f"Access denied: cannot {action}",
                extra={"budget_id": budget_id, "user_id": user_id},
            )
            return None
        return user_id

    # ==================== BUDGET ENTRIES ====================

    def _insert_entry(self, entry_id: str, entry: BudgetEntry, user_id: str) -> None:
        with self.session_factory() as session:
            session.add(
                BudgetEntryRecord(
                    id=entry_id,
                    date=dt.date.fromisoformat(entry.date),
                    description=entry.description,
                    category=entry.category,
                    amount=entry.amount,
                    type=entry.type,
                    user_id=user_id,
                    budget_id=entry.budget_id,
                )
            )
            session.commit()

    async def create_budget_entry(self, entry: BudgetEntry) -> Optional[str]:
        """Insert an entry and return the id the store assigned to it."""
        try:
            user_id = await self._gate(entry.budget_id, "add an entry")
            if user_id is None:
                return None
            entry_id = generate_id()
            await asyncio.to_thread(self._insert_entry, entry_id, entry, user_id)
            return entry_id
        except Exception as exc:
            logger.error(f"Error creating budget entry: {exc}", exc_info=True)
            return None

    def _entry_budget_id(self, entry_id: str) -> Optional[str]:
        with self.session_factory() as session:
            record = session.get(BudgetEntryRecord, entry_id)
            return record.budget_id if record else None

    def _update_entry_row(self, entry_id: str, updates: Mapping[str, Any]) -> bool:
        with self.session_factory() as session:
            record = session.get(BudgetEntryRecord, entry_id)
            if record is None:
                return False
            _apply_updates(record, updates, ENTRY_FIELDS)
            session.add(record)
            session.commit()
            return True

    def _delete_entry_row(self, entry_id: str) -> bool:
        with self.session_factory() as session:
            record = session.get(BudgetEntryRecord, entry_id)
            if record is None:
                return False
            session.delete(record)
            session.commit()
            return True

    async def update_budget_entry(self, entry_id: str, updates: Mapping[str, Any]) -> bool:
        try:
            budget_id = await asyncio.to_thread(self._entry_budget_id, entry_id)
            if budget_id is None or await self._gate(budget_id, "update an entry") is None:
                return False
            return await asyncio.to_thread(self._update_entry_row, entry_id, dict(updates))
        except Exception as exc:
            logger.error(f"Error updating budget entry: {exc}", exc_info=True)
            return False

    async def delete_budget_entry(self, entry_id: str) -> bool:
        try:
            budget_id = await asyncio.to_thread(self._entry_budget_id, entry_id)
            if budget_id is None or await self._gate(budget_id, "delete an entry") is None:
                return False
            return await asyncio.to_thread(self._delete_entry_row, entry_id)
        except Exception as exc:
            logger.error(f"Error deleting budget entry: {exc}", exc_info=True)
            return False

    # ==================== CATEGORIES ====================

    def _insert_category(self, category_id: str, category: Category, user_id: str) -> None:
        with self.session_factory() as session:
            session.add(
                CategoryRecord(
                    id=category_id,
                    name=category.name,
                    type=category.type,
                    color=category.color,
                    icon=category.icon,
                    description=category.description,
                    user_id=user_id,
                )
            )
            session.commit()

    async def create_category(self, category: Category) -> Optional[str]:
        try:
            user_id = await self._session_user_id("category create")
            if user_id is None:
                return None
            category_id = category.id or generate_id()
            await asyncio.to_thread(self._insert_category, category_id, category, user_id)
            return category_id
        except Exception as exc:
            logger.error(f"Error creating category: {exc}", exc_info=True)
            return None

    def _owned_category(self, session: Session, category_id: str, user_id: str) -> Optional[CategoryRecord]:
        record = session.get(CategoryRecord, category_id)
        if record is None or record.user_id != user_id:
            return None
        return record

    def _update_category_row(self, category_id: str, user_id: str, updates: Mapping[str, Any]) -> bool:
        with self.session_factory() as session:
            record = self._owned_category(session, category_id, user_id)
            if record is None:
                return False
            _apply_updates(record, updates, CATEGORY_FIELDS)
            session.add(record)
            session.commit()
            return True

    def _delete_category_row(self, category_id: str, user_id: str) -> bool:
        with self.session_factory() as session:
            record = self._owned_category(session, category_id, user_id)
            if record is None:
                return False
            session.delete(record)
            session.commit()
            return True

    async def update_category(self, category_id: str, updates: Mapping[str, Any]) -> bool:
        try:
            user_id = await self._session_user_id("category update")
            if user_id is None:
                return False
            return await asyncio.to_thread(
                self._update_category_row, category_id, user_id, dict(updates)
            )
        except Exception as exc:
            logger.error(f"Error updating category: {exc}", exc_info=True)
            return False

    async def delete_category(self, category_id: str) -> bool:
        try:
            user_id = await self._session_user_id("category delete")
            if user_id is None:
                return False
            return await asyncio.to_thread(self._delete_category_row, category_id, user_id)
        except Exception as exc:
            logger.error(f"Error deleting category: {exc}", exc_info=True)
            return False

    # ==================== MIGRATION ====================

    async def migrate_from_local(self, profile: UserProfile) -> bool:
        """Push a locally kept profile to the store, step by step.

        Not atomic: a failure part way leaves what was written so far.
        """
        if not await self.create_user_profile(profile):
            return False
        ok = True
        for category in profile.categories:
            ok = await self.create_category(category) is not None and ok
        for budget in _owned(profile.budgets, profile.id):
            if not await self.create_budget(budget):
                ok = False
                continue
            for entry in budget.entries:
                ok = await self.create_budget_entry(entry) is not None and ok
        logger.info("Local profile migrated", extra={"user_id": profile.id, "complete": ok})
        return ok


def _owned(budgets: Iterable[Budget], user_id: str) -> list[Budget]:
    return [budget for budget in budgets if budget.owner_id == user_id]
