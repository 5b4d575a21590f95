"""Local fallback persistence of whole user profile documents."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Optional

from ..config import BaseConfig
from ..domain.entities import UserProfile
from ..domain.repositories.storage import KeyValueStorage, Namespace
from ..logging_config import get_logger

logger = get_logger(__name__)

_SCHEMA_KEY = "_schemaVersion"
_SAVED_AT_KEY = "_lastSaved"


class LocalFallbackStore:
    """Stores one JSON document per user under ``STORAGE_PREFIX + user_id``.

    Every save replaces the whole document. Nothing here raises past the
    public methods: failures are logged and reported as False/None.
    """

    def __init__(self, storage: KeyValueStorage, config: BaseConfig):
        self.storage = storage
        self.config = config

    def _key(self, user_id: str) -> str:
        return f"{self.config.STORAGE_PREFIX}{user_id}"

    def save(self, user_id: str, profile: UserProfile) -> bool:
        try:
            document = profile.to_dict()
            document[_SCHEMA_KEY] = self.config.SCHEMA_VERSION
            document[_SAVED_AT_KEY] = datetime.now(timezone.utc).isoformat()
            self.storage.set_item(self._key(user_id), json.dumps(document, ensure_ascii=False))
            return True
        except Exception as exc:
            logger.error(f"Failed to save profile locally for {user_id}: {exc}", exc_info=True)
            return False

    def load(self, user_id: str) -> Optional[UserProfile]:
        try:
            raw = self.storage.get_item(self._key(user_id))
        except Exception as exc:
            logger.error(f"Failed to read local profile for {user_id}: {exc}", exc_info=True)
            return None
        if raw is None:
            return None
        try:
            document = json.loads(raw)
            if not isinstance(document, dict):
                raise TypeError("profile document is not an object")
            document.pop(_SCHEMA_KEY, None)
            document.pop(_SAVED_AT_KEY, None)
            return UserProfile.from_dict(document)
        except (ValueError, TypeError, KeyError) as exc:
            logger.warning(f"Ignoring corrupt local profile for {user_id}: {exc}")
            return None

    def remove(self, user_id: str) -> None:
        try:
            self.storage.remove_item(self._key(user_id))
        except Exception as exc:
            logger.error(f"Failed to remove local profile for {user_id}: {exc}")

    def remember_user(self, email: str, name: str) -> None:
        """Keep the signed-in identity in transient storage for this process."""
        payload = json.dumps({"email": email, "name": name, "authenticated": True})
        try:
            self.storage.set_item(self.config.AUTH_USER_KEY, payload, namespace=Namespace.TRANSIENT)
        except Exception as exc:
            logger.error(f"Failed to remember signed-in user: {exc}")

    def remembered_user(self) -> Optional[dict[str, str]]:
        try:
            raw = self.storage.get_item(self.config.AUTH_USER_KEY, namespace=Namespace.TRANSIENT)
            if raw is None:
                return None
            data = json.loads(raw)
        except Exception as exc:
            logger.warning(f"Unreadable remembered user: {exc}")
            return None
        if not isinstance(data, dict) or not data.get("authenticated") or not data.get("email"):
            return None
        return {"email": str(data["email"]), "name": str(data.get("name", ""))}

    def record_backup(self, when: Optional[datetime] = None) -> bool:
        """Stamp the backup metadata key with the last-backup timestamp."""
        stamp = (when or datetime.now(timezone.utc)).isoformat()
        try:
            self.storage.set_item(
                self.config.BACKUP_META_KEY, json.dumps({"lastBackup": stamp})
            )
            return True
        except Exception as exc:
            logger.error(f"Failed to record backup timestamp: {exc}")
            return False

    def last_backup(self) -> Optional[datetime]:
        try:
            raw = self.storage.get_item(self.config.BACKUP_META_KEY)
            if raw is None:
                return None
            return datetime.fromisoformat(json.loads(raw)["lastBackup"])
        except Exception as exc:
            logger.warning(f"Unreadable backup metadata: {exc}")
            return None

    def clear_namespace(self) -> int:
        """Wipe every application key in both durable and transient storage."""
        removed = 0
        for namespace in (Namespace.TRANSIENT, Namespace.DURABLE):
            try:
                removed += self.storage.clear(
                    prefixes=self.config.storage_namespace, namespace=namespace
                )
            except Exception as exc:
                logger.error(f"Failed to clear {namespace.value} storage: {exc}", exc_info=True)
        return removed
