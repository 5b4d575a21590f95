"""PlannerFin client data core."""

from .config import BaseConfig, DevConfig
from .context import ContextState, UserDataContext, build_default_profile, create_user_data_context

__all__ = [
    "BaseConfig",
    "ContextState",
    "DevConfig",
    "UserDataContext",
    "build_default_profile",
    "create_user_data_context",
]
