"""User interface preferences kept as one JSON document in local storage."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields, replace
from typing import Any

from ..config import BaseConfig
from ..domain.repositories.storage import KeyValueStorage
from ..logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class UserSettings:
    theme: str = "light"
    primaryColor: str = "blue"
    font: str = "inter"
    fontSize: int = 16
    layout: str = "default"
    highContrast: bool = False
    reducedMotion: bool = False
    emailNotifications: bool = True
    collaborationNotifications: bool = True
    reminderNotifications: bool = False
    marketingEmails: bool = False
    pushNotifications: bool = True
    twoFactorAuth: bool = False
    dataSharing: bool = False
    analyticsTracking: bool = True
    sessionTimeout: int = 30
    screenReader: bool = False
    keyboardNavigation: bool = True
    voiceAnnouncements: bool = False
    largeButtons: bool = False
    language: str = "pt-BR"
    currency: str = "BRL"
    timezone: str = "America/Sao_Paulo"
    dateFormat: str = "DD/MM/YYYY"
    numberFormat: str = "1.234,56"

    @classmethod
    def field_names(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls))

    @classmethod
    def merged(cls, overrides: dict[str, Any]) -> "UserSettings":
        """Defaults overlaid with ``overrides``; unknown keys are dropped."""
        known = cls.field_names()
        return cls(**{k: v for k, v in overrides.items() if k in known})


class SettingsStore:
    """Load, change and persist ``UserSettings`` under ``SETTINGS_KEY``."""

    def __init__(self, storage: KeyValueStorage, config: BaseConfig):
        self.storage = storage
        self.config = config
        self.settings = UserSettings()

    def load(self) -> UserSettings:
        raw = self.storage.get_item(self.config.SETTINGS_KEY)
        if raw is None:
            self.settings = UserSettings()
            return self.settings
        try:
            stored = json.loads(raw)
            if not isinstance(stored, dict):
                raise TypeError("settings document is not an object")
            self.settings = UserSettings.merged(stored)
        except (ValueError, TypeError) as exc:
            logger.warning(f"Error loading settings, using defaults: {exc}")
            self.settings = UserSettings()
        return self.settings

    def _save(self) -> None:
        self.storage.set_item(self.config.SETTINGS_KEY, json.dumps(asdict(self.settings)))

    def update(self, key: str, value: Any) -> UserSettings:
        if key not in UserSettings.field_names():
            raise KeyError(key)
        self.settings = replace(self.settings, **{key: value})
        self._save()
        return self.settings

    def reset(self) -> UserSettings:
        self.settings = UserSettings()
        self.storage.remove_item(self.config.SETTINGS_KEY)
        return self.settings

    def export(self) -> str:
        return json.dumps(asdict(self.settings), indent=2, ensure_ascii=False)

    def import_(self, payload: str) -> bool:
        """Replace settings from an exported document; False if it does not parse."""
        try:
            imported = json.loads(payload)
            if not isinstance(imported, dict):
                raise TypeError("settings document is not an object")
        except (ValueError, TypeError) as exc:
            logger.error(f"Error importing settings: {exc}")
            return False
        self.settings = UserSettings.merged(imported)
        self._save()
        return True
