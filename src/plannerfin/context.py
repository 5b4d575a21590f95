"""User data context: the single owner of the signed-in user's profile.

The context decides between the hosted store and local-only mode, exposes
every profile/budget/entry/category operation, and mirrors each new
profile into the local fallback store through one state hook.
"""

from __future__ import annotations

import datetime as dt
import functools
import json
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Optional, Union

from .config import BaseConfig
from .constants.categories import DEFAULT_BUDGET_NAME, starter_categories
from .domain.entities import (
    AuthEvent,
    AuthSession,
    Budget,
    BudgetEntry,
    Category,
    CollaborationResult,
    UserProfile,
    derive_user_id,
    generate_budget_code,
    generate_id,
    normalize_amount,
    validate_entry_type,
)
from .domain.errors import BudgetError, CategoryInUseError, NoActiveUserError, PlannerFinError
from .domain.repositories import ProfileStore
from .infra.database import (
    create_local_engine,
    create_remote_engine,
    create_session_factory,
    init_identity_schema,
    init_local_schema,
    init_remote_schema,
)
from .infra.repositories import LocalProfileStore, RemoteProfileStore, SQLModelKeyValueStorage
from .logging_config import get_logger, setup_logging
from .services.auth import IdentityProvider, SQLModelIdentityProvider
from .services.local_store import LocalFallbackStore
from .services.remote_data import RemoteDataService

logger = get_logger(__name__)

ProfileListener = Callable[[Optional[UserProfile]], None]
DateLike = Union[str, dt.date]

ENTRY_UPDATE_FIELDS = frozenset({"date", "description", "category", "amount", "type"})
CATEGORY_UPDATE_FIELDS = frozenset({"name", "type", "color", "icon", "description"})
PROFILE_UPDATE_FIELDS = frozenset({"name", "bio", "phone", "location", "avatar"})


class ContextState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


def _iso_date(value: Optional[DateLike]) -> str:
    if value is None:
        return dt.date.today().isoformat()
    if isinstance(value, dt.date):
        return value.isoformat()
    return dt.date.fromisoformat(value).isoformat()


def _same_email(left: str, right: str) -> bool:
    return (left or "").strip().lower() == (right or "").strip().lower()


def build_default_profile(user_id: str, email: str, name: str) -> UserProfile:
    """One "Main Budget" plus the starter category set."""
    budget = Budget(
        id=generate_id(),
        name=DEFAULT_BUDGET_NAME,
        code=generate_budget_code(),
        owner_id=user_id,
    )
    categories = tuple(
        Category(
            id=generate_id(),
            name=template["name"],
            type=template["type"],
            color=template["color"],
            icon=template["icon"],
            description=template.get("description"),
            user_id=user_id,
        )
        for template in starter_categories()
    )
    return UserProfile(
        id=user_id,
        email=email,
        name=name,
        budgets=(budget,),
        categories=categories,
        active_budget_id=budget.id,
    )


class UserDataContext:
    """Holds ``current_user`` and routes every change through ``_commit``.

    Mode selection happens in ``initialize``/``set_user``; after a failed
    remote write the context stays in local mode until the next
    ``set_user``. Concurrent calls of the same mutation are not
    deduplicated; callers should gate on ``is_loading``.
    """

    def __init__(
        self,
        *,
        config: BaseConfig,
        remote: RemoteDataService,
        local_store: LocalFallbackStore,
        identity: IdentityProvider,
    ):
        self.config = config
        self.remote = remote
        self.local_store = local_store
        self.identity = identity
        self._remote_store: ProfileStore = RemoteProfileStore(remote)
        self._local_profiles: ProfileStore = LocalProfileStore(local_store)
        self._store: ProfileStore = self._local_profiles

        self.current_user: Optional[UserProfile] = None
        self.state = ContextState.UNINITIALIZED
        self.is_loading = False

        self._mounted = True
        self._clearing = False
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._listeners: list[ProfileListener] = []

    # -- derived state --------------------------------------------------

    @property
    def use_remote(self) -> bool:
        return self._store.is_remote

    @property
    def is_initialized(self) -> bool:
        return self.state is ContextState.READY

    @property
    def active_budget(self) -> Optional[Budget]:
        return self.current_user.active_budget if self.current_user else None

    @property
    def categories(self) -> tuple[Category, ...]:
        return self.current_user.categories if self.current_user else ()

    @property
    def entries(self) -> tuple[BudgetEntry, ...]:
        budget = self.active_budget
        return budget.entries if budget else ()

    # -- lifecycle ------------------------------------------------------

    async def initialize(self) -> bool:
        """Probe the hosted store, subscribe to auth events, restore a remembered user.

        Returns True when the context starts in remote mode.
        """
        if self.state is ContextState.READY:
            return self.use_remote
        self.state = ContextState.INITIALIZING
        self.is_loading = True
        if self._unsubscribe is None:
            self._unsubscribe = self.identity.on_auth_state_change(self._on_auth_event)
        try:
            available = await self.remote.check_availability()
        finally:
            self.is_loading = False
        if not self._mounted:
            return False

        self._store = self._remote_store if available else self._local_profiles
        self.state = ContextState.READY
        logger.info("User data context ready", extra={"remote": available})

        remembered = self.local_store.remembered_user()
        if remembered and self.current_user is None:
            await self.set_user(remembered["email"], remembered["name"])
        return self.use_remote

    def close(self) -> None:
        """Unsubscribe from auth events; later state updates are discarded."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._mounted = False

    def subscribe(self, listener: ProfileListener) -> Callable[[], None]:
        """Call ``listener`` with the new profile after every state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _on_auth_event(self, event: AuthEvent, session: Optional[AuthSession]) -> None:
        if event is AuthEvent.SIGNED_OUT:
            if not self._clearing:
                logger.info("Signed out by identity provider; resetting user data")
                self._teardown()
            return
        self.remote.invalidate_session()

    # -- state hook -----------------------------------------------------

    def _commit(self, profile: Optional[UserProfile]) -> None:
        """Replace ``current_user`` and mirror it to the local store."""
        if not self._mounted:
            logger.debug("Context closed; discarding state update")
            return
        self.current_user = profile
        if profile is not None:
            self.local_store.save(profile.id, profile)
        for listener in list(self._listeners):
            try:
                listener(profile)
            except Exception:
                logger.exception("Profile listener failed")

    def _require_user(self) -> UserProfile:
        if self.current_user is None:
            raise NoActiveUserError("No user is signed in")
        return self.current_user

    def _require_active_budget(self) -> tuple[UserProfile, Budget]:
        user = self._require_user()
        budget = user.active_budget
        if budget is None:
            raise BudgetError("No active budget selected")
        return user, budget

    def _demote(self, action: str) -> None:
        if self._store.is_remote:
            logger.warning(f"Remote {action} failed; continuing in local mode")
            self._store = self._local_profiles

    # -- user -----------------------------------------------------------

    async def set_user(self, email: str, name: str = "") -> UserProfile:
        """Load the profile for ``email`` from remote, then local, else create one."""
        email = (email or "").strip()
        if not email:
            raise PlannerFinError("Email is required")
        name = (name or "").strip()

        self.is_loading = True
        try:
            available = await self.remote.check_availability()
            session = await self.remote.get_session() if available else None
            if session is not None and not _same_email(session.user.email, email):
                logger.warning(
                    "Signed-in account does not match the requested email; using local mode",
                    extra={"session_user_id": session.user.id},
                )
                session = None
            if session is not None:
                user_id = session.user.id
                self._store = self._remote_store
            else:
                user_id = derive_user_id(email)
                self._store = self._local_profiles
            profile = await self._load_or_create(user_id, email, name)
        finally:
            self.is_loading = False

        self.state = ContextState.READY
        self.local_store.remember_user(email, name)
        self._commit(profile)
        return profile

    async def _load_or_create(self, user_id: str, email: str, name: str) -> UserProfile:
        profile = await self._store.load_profile(
            user_id, functools.partial(self._adopt_shared_budgets, user_id)
        )
        if profile is not None:
            logger.info("Profile loaded", extra={"user_id": user_id, "remote": self.use_remote})
            return profile

        profile = self.local_store.load(user_id)
        if profile is not None:
            logger.info("Profile loaded from local fallback", extra={"user_id": user_id})
            return profile

        profile = build_default_profile(user_id, email, name)
        logger.info("Created default profile", extra={"user_id": user_id})
        if not await self._store.bootstrap_profile(profile):
            self._demote("profile bootstrap")
        return profile

    def _adopt_shared_budgets(self, user_id: str, budgets: list[Budget]) -> None:
        user = self.current_user
        if user is None or user.id != user_id:
            logger.info("Discarding shared budgets resolved for a previous user")
            return
        if user.budgets or not budgets:
            return
        logger.info("Adopting budgets shared with this user", extra={"count": len(budgets)})
        self._commit(replace(user, budgets=tuple(budgets), active_budget_id=budgets[0].id))

    async def update_profile(self, **updates: Any) -> bool:
        unknown = set(updates) - PROFILE_UPDATE_FIELDS
        if unknown:
            raise PlannerFinError(f"Unknown profile fields: {', '.join(sorted(unknown))}")
        user = self._require_user()
        changes = {
            key: value if value is None else str(value).strip() for key, value in updates.items()
        }
        if changes:
            self._commit(replace(user, **changes))
        if not await self._store.update_profile(user.id, changes):
            self._demote("profile update")
        return True

    async def clear_user(self) -> None:
        """Sign out, wipe application storage and reset state.

        Safe to call repeatedly; never raises.
        """
        self._clearing = True
        try:
            # A session may outlive a demotion to local mode.
            await self._remote_store.sign_out()
        except Exception as exc:
            logger.warning(f"Sign-out during clear failed: {exc}")
        finally:
            self._clearing = False
            self._teardown()

    def _teardown(self) -> None:
        self.remote.cancel_background()
        self.local_store.clear_namespace()
        self.remote.invalidate_session()
        self._store = self._local_profiles
        self.state = ContextState.UNINITIALIZED
        self.is_loading = False
        if self.current_user is not None:
            self.current_user = None
            for listener in list(self._listeners):
                try:
                    listener(None)
                except Exception:
                    logger.exception("Profile listener failed")

    # -- budgets --------------------------------------------------------

    async def create_budget(self, name: str) -> str:
        """Append a new budget, make it active and return its id."""
        user = self._require_user()
        name = (name or "").strip()
        if not name:
            raise BudgetError("Budget name is required")
        budget = Budget(
            id=generate_id(),
            name=name,
            code=generate_budget_code(b.code for b in user.budgets),
            owner_id=user.id,
        )
        self._commit(replace(user, budgets=user.budgets + (budget,), active_budget_id=budget.id))
        if not await self._store.create_budget(budget):
            self._demote("budget create")
        return budget.id

    def switch_budget(self, budget_id: str) -> None:
        # The id is not checked against the budget list.
        user = self._require_user()
        self._commit(replace(user, active_budget_id=budget_id))

    async def rename_budget(self, budget_id: str, name: str) -> bool:
        user = self._require_user()
        budget = user.find_budget(budget_id)
        name = (name or "").strip()
        if budget is None or not name:
            return False
        self._commit(user.replace_budget(replace(budget, name=name)))
        if not await self._store.update_budget(budget_id, {"name": name}):
            self._demote("budget rename")
        return True

    async def delete_budget(self, budget_id: str) -> bool:
        """Remove a budget unless it is the last one or the active one."""
        user = self._require_user()
        if len(user.budgets) <= 1:
            logger.info("Refusing to delete the last budget")
            return False
        if budget_id == user.active_budget_id:
            logger.info("Refusing to delete the active budget")
            return False
        if user.find_budget(budget_id) is None:
            return False
        self._commit(replace(user, budgets=tuple(b for b in user.budgets if b.id != budget_id)))
        if not await self._store.delete_budget(budget_id):
            self._demote("budget delete")
        return True

    # -- entries --------------------------------------------------------

    async def add_entry(
        self,
        *,
        description: str,
        category: str,
        amount: float,
        type: str,
        date: Optional[DateLike] = None,
    ) -> BudgetEntry:
        """Add an entry to the active budget; expenses are stored negative."""
        user, budget = self._require_active_budget()
        entry = BudgetEntry(
            id=generate_id(),
            date=_iso_date(date),
            description=(description or "").strip(),
            category=category,
            amount=normalize_amount(amount, type),
            type=type,
            user_id=user.id,
            budget_id=budget.id,
        )

        stored_id = await self._store.create_entry(entry)
        if stored_id is None:
            self._demote("entry create")
        elif stored_id != entry.id:
            entry = replace(entry, id=stored_id)

        # State may have moved on while the write was in flight.
        user = self._require_user()
        budget = user.find_budget(entry.budget_id)
        if budget is None:
            logger.warning("Budget disappeared before entry was added", extra={"budget_id": entry.budget_id})
            return entry
        self._commit(user.replace_budget(budget.with_entries(budget.entries + (entry,))))
        return entry

    async def update_entry(self, entry_id: str, **updates: Any) -> bool:
        unknown = set(updates) - ENTRY_UPDATE_FIELDS
        if unknown:
            raise PlannerFinError(f"Unknown entry fields: {', '.join(sorted(unknown))}")
        user, budget = self._require_active_budget()
        entry = budget.find_entry(entry_id)
        if entry is None:
            return False

        changes = dict(updates)
        if "date" in changes:
            changes["date"] = _iso_date(changes["date"])
        entry_type = validate_entry_type(changes.get("type", entry.type))
        changes["type"] = entry_type
        changes["amount"] = normalize_amount(changes.get("amount", entry.amount), entry_type)

        updated = replace(entry, **changes)
        entries = tuple(updated if e.id == entry_id else e for e in budget.entries)
        self._commit(user.replace_budget(budget.with_entries(entries)))
        if not await self._store.update_entry(entry_id, changes):
            self._demote("entry update")
        return True

    async def delete_entry(self, entry_id: str) -> bool:
        user, budget = self._require_active_budget()
        if budget.find_entry(entry_id) is None:
            return False
        entries = tuple(e for e in budget.entries if e.id != entry_id)
        self._commit(user.replace_budget(budget.with_entries(entries)))
        if not await self._store.delete_entry(entry_id):
            self._demote("entry delete")
        return True

    # -- categories (local only) ----------------------------------------

    def add_category(
        self,
        *,
        name: str,
        type: str,
        color: str = "",
        icon: str = "",
        description: Optional[str] = None,
    ) -> Category:
        user = self._require_user()
        name = (name or "").strip()
        if not name:
            raise PlannerFinError("Category name is required")
        if any(c.name.lower() == name.lower() for c in user.categories):
            raise PlannerFinError(f"Category '{name}' already exists")
        category = Category(
            id=generate_id(),
            name=name,
            type=validate_entry_type(type),
            color=color,
            icon=icon,
            description=description,
            user_id=user.id,
        )
        self._commit(replace(user, categories=user.categories + (category,)))
        return category

    def update_category(self, category_id: str, **updates: Any) -> bool:
        """Update category fields. Renaming does not rewrite existing entries."""
        unknown = set(updates) - CATEGORY_UPDATE_FIELDS
        if unknown:
            raise PlannerFinError(f"Unknown category fields: {', '.join(sorted(unknown))}")
        user = self._require_user()
        category = user.find_category(category_id)
        if category is None:
            return False
        if "name" in updates:
            name = (updates["name"] or "").strip()
            if not name:
                raise PlannerFinError("Category name is required")
            if any(c.id != category_id and c.name.lower() == name.lower() for c in user.categories):
                raise PlannerFinError(f"Category '{name}' already exists")
            updates = {**updates, "name": name}
        if "type" in updates:
            validate_entry_type(updates["type"])
        updated = replace(category, **updates)
        categories = tuple(updated if c.id == category_id else c for c in user.categories)
        self._commit(replace(user, categories=categories))
        return True

    def delete_category(self, category_id: str) -> bool:
        """Delete a category unless the active budget still uses its name.

        Entries in other budgets are not checked.
        """
        user = self._require_user()
        category = user.find_category(category_id)
        if category is None:
            return False
        budget = user.active_budget
        in_use = sum(1 for e in budget.entries if e.category == category.name) if budget else 0
        if in_use:
            raise CategoryInUseError(category.name, in_use)
        self._commit(replace(user, categories=tuple(c for c in user.categories if c.id != category_id)))
        return True

    # -- import / export ------------------------------------------------

    def export_user_data(self) -> str:
        return json.dumps(self._require_user().to_dict(), indent=2, ensure_ascii=False)

    def import_user_data(self, payload: str) -> bool:
        """Replace the in-memory profile with an exported document."""
        try:
            profile = UserProfile.from_dict(json.loads(payload))
        except (ValueError, TypeError, KeyError) as exc:
            logger.warning(f"Rejected user data import: {exc}")
            return False
        self._commit(profile)
        return True

    async def migrate_to_remote(self) -> bool:
        """Push the current profile to the hosted store (remote mode only)."""
        user = self._require_user()
        if not self.use_remote:
            return False
        return await self.remote.migrate_from_local(user)

    # -- collaboration (not built yet) ----------------------------------

    async def join_budget_by_code(self, code: str) -> CollaborationResult:
        return CollaborationResult.not_implemented()

    async def find_budget_by_code(self, code: str) -> CollaborationResult:
        return CollaborationResult.not_implemented()

    async def leave_budget_as_collaborator(self, budget_id: str) -> CollaborationResult:
        return CollaborationResult.not_implemented()


def create_user_data_context(
    config: Optional[BaseConfig] = None,
    *,
    create_schema: bool = False,
) -> UserDataContext:
    """Wire engines, identity provider, services and the context.

    ``create_schema`` creates hosted-store tables; use it for local
    development and tests, not against a managed deployment.
    """
    if config is None:
        config = BaseConfig()
    setup_logging(config)

    local_engine = create_local_engine(config)
    init_local_schema(local_engine)
    storage = SQLModelKeyValueStorage(create_session_factory(local_engine))

    remote_engine = create_remote_engine(config)
    remote_factory = None
    if remote_engine is not None:
        if create_schema:
            init_remote_schema(remote_engine)
        remote_factory = create_session_factory(remote_engine)

    # Under demo credentials identities live next to the local store.
    identity = SQLModelIdentityProvider(remote_factory or create_session_factory(local_engine))
    if remote_factory is None:
        init_identity_schema(local_engine)

    remote = RemoteDataService(session_factory=remote_factory, identity=identity, config=config)
    return UserDataContext(
        config=config,
        remote=remote,
        local_store=LocalFallbackStore(storage, config),
        identity=identity,
    )
