"""Concrete repository implementations."""

from .profile_store import LocalProfileStore, RemoteProfileStore
from .storage import SQLModelKeyValueStorage

__all__ = [
    "LocalProfileStore",
    "RemoteProfileStore",
    "SQLModelKeyValueStorage",
]
