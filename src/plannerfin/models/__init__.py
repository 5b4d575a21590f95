"""SQLModel table exports."""

from .auth import AuthUserRecord
from .budget import BudgetEntryRecord, BudgetRecord
from .category import CategoryRecord
from .profile import UserProfileRecord
from .storage import StorageItem

# Tables living in the hosted store; StorageItem belongs to the local database.
REMOTE_TABLES = [
    UserProfileRecord.__table__,
    AuthUserRecord.__table__,
    BudgetRecord.__table__,
    BudgetEntryRecord.__table__,
    CategoryRecord.__table__,
]
LOCAL_TABLES = [StorageItem.__table__]

__all__ = [
    "AuthUserRecord",
    "BudgetEntryRecord",
    "BudgetRecord",
    "CategoryRecord",
    "LOCAL_TABLES",
    "REMOTE_TABLES",
    "StorageItem",
    "UserProfileRecord",
]
