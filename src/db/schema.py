from __future__ import annotations

# v1 schema kept in one place for readability.
SCHEMA_V1_SQL = """
CREATE TABLE kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

# v2: remember when each key was last written (debugging stale saves).
SCHEMA_V2_SQL = """
ALTER TABLE kv_store ADD COLUMN updated_at TEXT;
"""
