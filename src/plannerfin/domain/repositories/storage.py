"""Key-value storage protocol."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional, Protocol


class Namespace(str, Enum):
    """Durable survives restarts; transient lives as long as the process."""

    DURABLE = "durable"
    TRANSIENT = "transient"


class KeyValueStorage(Protocol):
    """Synchronous namespaced string storage."""

    def get_item(self, key: str, *, namespace: Namespace = Namespace.DURABLE) -> Optional[str]:
        """Return the stored value or None."""
        ...

    def set_item(self, key: str, value: str, *, namespace: Namespace = Namespace.DURABLE) -> None:
        """Store a value, replacing any previous one."""
        ...

    def remove_item(self, key: str, *, namespace: Namespace = Namespace.DURABLE) -> None:
        """Remove a key if present."""
        ...

    def keys(self, *, namespace: Namespace = Namespace.DURABLE) -> list[str]:
        """List stored keys."""
        ...

    def clear(
        self,
        *,
        prefixes: Optional[Iterable[str]] = None,
        namespace: Optional[Namespace] = None,
    ) -> int:
        """Remove keys matching any prefix (all keys when None) and return the count."""
        ...
