from __future__ import annotations

import logging
import os
import sqlite3
from typing import Optional, Protocol

from db.schema import SCHEMA_V1_SQL, SCHEMA_V2_SQL

logger = logging.getLogger(__name__)

CURRENT_DB_VERSION = 2
DB_FILE_NAME = "db.sqlite3"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, blob: str) -> None: ...


def initialize_database(app_data_dir: str) -> sqlite3.Connection:
    os.makedirs(app_data_dir, exist_ok=True)
    sqlite_path = os.path.join(app_data_dir, DB_FILE_NAME)
    logger.info("Database file path: %s", sqlite_path)
    return connect(sqlite_path)


def connect(sqlite_path: str) -> sqlite3.Connection:
    db = sqlite3.connect(sqlite_path)
    db.row_factory = sqlite3.Row

    existing_version = int(db.execute("PRAGMA user_version").fetchone()[0])
    upgrade_database_if_needed(db, existing_version)
    return db


def upgrade_database_if_needed(db: sqlite3.Connection, existing_version: int) -> None:
    logger.debug("Existing database version: %s", existing_version)

    if existing_version >= CURRENT_DB_VERSION:
        return

    # v1
    if existing_version <= 0:
        logger.info("Migrate database version 1...")
        db.execute("PRAGMA journal_mode=WAL")
        db.execute("PRAGMA user_version=1")
        db.executescript(SCHEMA_V1_SQL)
        db.commit()

    # v2
    if existing_version <= 1:
        logger.info("Migrate database version 2...")
        db.execute("PRAGMA user_version=2")
        db.executescript(SCHEMA_V2_SQL)
        db.commit()


def table_info(db: sqlite3.Connection, table: str) -> list[tuple[str, str]]:
    cur = db.execute(f"PRAGMA table_info({table})")
    return [(row[1], row[2]) for row in cur.fetchall()]


# -------------------------------
# KEY/VALUE
# -------------------------------
def kv_get(db: sqlite3.Connection, key: str) -> Optional[str]:
    row = db.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
    return row["value"] if row else None


def kv_set(db: sqlite3.Connection, key: str, value: str) -> None:
    db.execute(
        """
        INSERT INTO kv_store (key, value, updated_at)
        VALUES (?, ?, datetime('now'))
        ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
        """,
        (key, value),
    )
    db.commit()


class SqliteKeyValueStore:
    """The durable blob store: one row per key in `kv_store`."""

    def __init__(self, db: sqlite3.Connection):
        self.db = db

    def get(self, key: str) -> Optional[str]:
        return kv_get(self.db, key)

    def set(self, key: str, blob: str) -> None:
        kv_set(self.db, key, blob)

    def close(self) -> None:
        self.db.close()
