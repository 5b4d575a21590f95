"""Pytest configuration and shared fixtures for PlannerFin tests.

Every test gets its own temporary data directory with two SQLite files: one
standing in for the hosted store and one backing local storage. Nothing
touches the real application database.
"""

from __future__ import annotations

import datetime as dt
from typing import Optional

import pytest
from sqlmodel import select

from plannerfin.config import BaseConfig
from plannerfin.context import UserDataContext, build_default_profile
from plannerfin.domain.entities import BudgetEntry, generate_id, normalize_amount
from plannerfin.infra.database import (
    create_local_engine,
    create_remote_engine,
    create_session_factory,
    init_local_schema,
    init_remote_schema,
)
from plannerfin.infra.repositories import SQLModelKeyValueStorage
from plannerfin.models import BudgetEntryRecord
from plannerfin.services.auth import SQLModelIdentityProvider
from plannerfin.services.local_store import LocalFallbackStore
from plannerfin.services.remote_data import RemoteDataService

# =============================================================================
# Configuration
# =============================================================================


@pytest.fixture
def config(tmp_path, monkeypatch) -> BaseConfig:
    """Config pointing both databases at files under ``tmp_path``."""
    monkeypatch.setenv("PLANNERFIN_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("PLANNERFIN_DATABASE_URL", f"sqlite:///{tmp_path / 'remote.db'}")
    monkeypatch.setenv("PLANNERFIN_LOCAL_DB_URL", f"sqlite:///{tmp_path / 'local.db'}")
    monkeypatch.delenv("PLANNERFIN_SESSION_TTL", raising=False)
    return BaseConfig()


@pytest.fixture
def demo_config(tmp_path, monkeypatch) -> BaseConfig:
    """Config without hosted-store credentials."""
    monkeypatch.setenv("PLANNERFIN_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("PLANNERFIN_DATABASE_URL", "")
    monkeypatch.setenv("PLANNERFIN_LOCAL_DB_URL", f"sqlite:///{tmp_path / 'local.db'}")
    return BaseConfig()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def remote_engine(config):
    engine = create_remote_engine(config)
    init_remote_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def local_engine(config):
    engine = create_local_engine(config)
    init_local_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def remote_factory(remote_engine):
    return create_session_factory(remote_engine)


@pytest.fixture
def storage(local_engine) -> SQLModelKeyValueStorage:
    return SQLModelKeyValueStorage(create_session_factory(local_engine))


@pytest.fixture
def local_store(storage, config) -> LocalFallbackStore:
    return LocalFallbackStore(storage, config)


@pytest.fixture
def identity(remote_factory) -> SQLModelIdentityProvider:
    return SQLModelIdentityProvider(remote_factory)


@pytest.fixture
def remote_service(remote_factory, identity, config) -> RemoteDataService:
    return RemoteDataService(session_factory=remote_factory, identity=identity, config=config)


@pytest.fixture
def offline_service(identity, config) -> RemoteDataService:
    """Service with no hosted store configured."""
    return RemoteDataService(session_factory=None, identity=identity, config=config)


@pytest.fixture
def context(remote_service, local_store, identity, config) -> UserDataContext:
    ctx = UserDataContext(
        config=config,
        remote=remote_service,
        local_store=local_store,
        identity=identity,
    )
    yield ctx
    ctx.close()


@pytest.fixture
def local_context(offline_service, local_store, identity, config) -> UserDataContext:
    """Context whose hosted store is not configured; always local mode."""
    ctx = UserDataContext(
        config=config,
        remote=offline_service,
        local_store=local_store,
        identity=identity,
    )
    yield ctx
    ctx.close()


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def profile_factory():
    """Factory for default profiles built the way a first sign-in builds them."""

    def _create_profile(
        user_id: str = "user-1",
        email: str = "alice@example.com",
        name: str = "Alice",
    ):
        return build_default_profile(user_id, email, name)

    return _create_profile


@pytest.fixture
def entry_factory():
    """Factory for budget entries with the stored sign convention applied."""

    def _create_entry(
        budget_id: str,
        user_id: str = "user-1",
        amount: float = 50.0,
        entry_type: str = "expense",
        category: str = "Alimentação",
        description: str = "Mercado",
        date: Optional[str] = None,
    ) -> BudgetEntry:
        return BudgetEntry(
            id=generate_id(),
            date=date or dt.date.today().isoformat(),
            description=description,
            category=category,
            amount=normalize_amount(amount, entry_type),
            type=entry_type,
            user_id=user_id,
            budget_id=budget_id,
        )

    return _create_entry


@pytest.fixture
def count_entries(remote_factory):
    """Return the number of entry rows in the hosted store."""

    def _count(budget_id: Optional[str] = None) -> int:
        with remote_factory() as session:
            statement = select(BudgetEntryRecord)
            if budget_id is not None:
                statement = statement.where(BudgetEntryRecord.budget_id == budget_id)
            return len(session.exec(statement).all())

    return _count
