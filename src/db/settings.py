from __future__ import annotations

import logging
import sqlite3

from core.models import PersistedSettings
from db.codec import PersistenceCodec
from db.database import KeyValueStore

logger = logging.getLogger(__name__)

SETTINGS_KEY = "player_settings"


class SettingsRepository:
    """
    Reads and writes the single settings blob.

    Neither direction raises: a failed read yields defaults and a failed write
    returns False, leaving the in-memory session authoritative.
    """

    def __init__(self, storage: KeyValueStore, codec: PersistenceCodec | None = None, key: str = SETTINGS_KEY):
        self.storage = storage
        self.codec = codec or PersistenceCodec()
        self.key = key

    def load(self) -> PersistedSettings:
        try:
            blob = self.storage.get(self.key)
        except (sqlite3.Error, OSError):
            logger.exception("Failed to read settings; starting from defaults")
            return self.codec.defaults()
        return self.codec.deserialize(blob)

    def save(self, settings: PersistedSettings) -> bool:
        blob = self.codec.serialize(settings)
        try:
            self.storage.set(self.key, blob)
        except (sqlite3.Error, OSError):
            logger.exception("Failed to save settings")
            return False
        logger.debug("Saved settings (%d bytes, %d playlists)", len(blob), len(settings.playlists))
        return True
