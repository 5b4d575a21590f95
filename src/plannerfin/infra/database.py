"""Engines and session factories for the hosted and local databases."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, ContextManager, Iterator, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from ..config import BaseConfig

SessionFactory = Callable[[], ContextManager[Session]]


def create_remote_engine(config: BaseConfig) -> Optional[Engine]:
    """Engine for the hosted store, or None under demo credentials."""
    if config.using_demo_credentials:
        return None
    return create_engine(config.DATABASE_URL, **config.remote_engine_options())


def create_local_engine(config: BaseConfig) -> Engine:
    """Engine for the local key-value store."""
    return create_engine(config.LOCAL_DB_URL, **config.local_engine_options())


def init_remote_schema(engine: Engine) -> None:
    """Create hosted-store tables. Deploy-time only; never called per request."""
    from ..models import REMOTE_TABLES

    SQLModel.metadata.create_all(engine, tables=REMOTE_TABLES)


def init_local_schema(engine: Engine) -> None:
    from ..models import LOCAL_TABLES

    SQLModel.metadata.create_all(engine, tables=LOCAL_TABLES)


def init_identity_schema(engine: Engine) -> None:
    """Create only the identity table, for demo mode on the local database."""
    from ..models import AuthUserRecord

    SQLModel.metadata.create_all(engine, tables=[AuthUserRecord.__table__])


@contextmanager
def session_scope(engine: Engine) -> Iterator[Session]:
    """Provide a transactional scope around operations."""
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_session_factory(engine: Engine) -> SessionFactory:
    """Create a session factory function."""

    def factory() -> ContextManager[Session]:
        return session_scope(engine)

    return factory
