"""Repository protocol definitions for domain layer."""

from .profile_store import ProfileStore
from .storage import KeyValueStorage, Namespace

__all__ = ["KeyValueStorage", "Namespace", "ProfileStore"]
