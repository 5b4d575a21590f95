"""Service layer: hosted store adapter, identity, local fallback, settings, exports."""

from .auth import IdentityProvider, SQLModelIdentityProvider
from .local_store import LocalFallbackStore
from .remote_data import RemoteDataService
from .settings import SettingsStore, UserSettings

__all__ = [
    "IdentityProvider",
    "LocalFallbackStore",
    "RemoteDataService",
    "SQLModelIdentityProvider",
    "SettingsStore",
    "UserSettings",
]
