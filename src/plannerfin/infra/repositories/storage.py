"""SQLModel implementation of the key-value storage."""

from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy import delete, or_
from sqlmodel import col, select

from ...domain.repositories.storage import Namespace
from ...models._time import utcnow
from ...models.storage import StorageItem
from ..database import SessionFactory


class SQLModelKeyValueStorage:
    """Durable keys live in the ``local_storage`` table, transient keys in memory."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory
        self._transient: dict[str, str] = {}

    def get_item(self, key: str, *, namespace: Namespace = Namespace.DURABLE) -> Optional[str]:
        if namespace is Namespace.TRANSIENT:
            return self._transient.get(key)
        with self.session_factory() as session:
            item = session.get(StorageItem, key)
            return item.value if item else None

    def set_item(self, key: str, value: str, *, namespace: Namespace = Namespace.DURABLE) -> None:
        if namespace is Namespace.TRANSIENT:
            self._transient[key] = value
            return
        with self.session_factory() as session:
            item = session.get(StorageItem, key)
            if item is None:
                item = StorageItem(key=key, value=value)
            else:
                item.value = value
                item.updated_at = utcnow()
            session.add(item)
            session.commit()

    def remove_item(self, key: str, *, namespace: Namespace = Namespace.DURABLE) -> None:
        if namespace is Namespace.TRANSIENT:
            self._transient.pop(key, None)
            return
        with self.session_factory() as session:
            item = session.get(StorageItem, key)
            if item is not None:
                session.delete(item)
                session.commit()

    def keys(self, *, namespace: Namespace = Namespace.DURABLE) -> list[str]:
        if namespace is Namespace.TRANSIENT:
            return sorted(self._transient)
        with self.session_factory() as session:
            return list(session.exec(select(StorageItem.key).order_by(StorageItem.key)).all())

    def clear(
        self,
        *,
        prefixes: Optional[Iterable[str]] = None,
        namespace: Optional[Namespace] = None,
    ) -> int:
        """Remove matching keys from one namespace, or from both when None."""
        prefix_list = list(prefixes) if prefixes is not None else None
        removed = 0

        if namespace in (None, Namespace.TRANSIENT):
            doomed = [
                key
                for key in self._transient
                if prefix_list is None or any(key.startswith(p) for p in prefix_list)
            ]
            for key in doomed:
                del self._transient[key]
            removed += len(doomed)

        if namespace in (None, Namespace.DURABLE):
            statement = delete(StorageItem)
            if prefix_list is not None:
                if not prefix_list:
                    return removed
                statement = statement.where(
                    or_(*(col(StorageItem.key).startswith(p, autoescape=True) for p in prefix_list))
                )
            with self.session_factory() as session:
                result = session.execute(statement)
                session.commit()
                removed += result.rowcount or 0

        return removed
