"""
Tests for the SQLite key/value store and the settings repository on top of it.
"""

import sqlite3
from unittest import mock

from core.models import PersistedSettings, Playlist
from db.database import CURRENT_DB_VERSION, SqliteKeyValueStore, connect, initialize_database, table_info
from db.settings import SETTINGS_KEY


class TestKeyValueStore:
    def test_get_missing(self, kv_store):
        assert kv_store.get("nope") is None

    def test_set_overwrites(self, kv_store):
        kv_store.set("k", "one")
        kv_store.set("k", "two")
        assert kv_store.get("k") == "two"
        rows = kv_store.db.execute("SELECT COUNT(*) FROM kv_store").fetchone()[0]
        assert rows == 1

    def test_schema_version(self, kv_store):
        assert kv_store.db.execute("PRAGMA user_version").fetchone()[0] == CURRENT_DB_VERSION
        columns = [name for name, _ in table_info(kv_store.db, "kv_store")]
        assert columns == ["key", "value", "updated_at"]

    def test_persists_across_connections(self, tmp_path):
        db = initialize_database(str(tmp_path / "data"))
        SqliteKeyValueStore(db).set("k", "v")
        db.close()

        store = SqliteKeyValueStore(connect(str(tmp_path / "data" / "db.sqlite3")))
        try:
            assert store.get("k") == "v"
        finally:
            store.close()


class TestSettingsRepository:
    def test_load_empty_gives_defaults(self, settings_repo):
        assert settings_repo.load() == settings_repo.codec.defaults()

    def test_save_and_load(self, settings_repo, track_factory):
        s = PersistedSettings(
            schema_version=1,
            playlists=(Playlist(id="p1", name="Mix", tracks=(track_factory(),)),),
            volume_percent=20,
        )
        assert settings_repo.save(s) is True
        assert settings_repo.load() == s
        assert settings_repo.storage.get(SETTINGS_KEY) is not None

    def test_corrupt_blob_gives_defaults(self, settings_repo):
        settings_repo.storage.set(SETTINGS_KEY, "{{{")
        assert settings_repo.load() == settings_repo.codec.defaults()

    def test_save_failure_returns_false(self, settings_repo):
        with mock.patch.object(settings_repo.storage, "set", side_effect=sqlite3.OperationalError("disk full")):
            assert settings_repo.save(settings_repo.codec.defaults()) is False

    def test_read_failure_gives_defaults(self, settings_repo):
        with mock.patch.object(settings_repo.storage, "get", side_effect=OSError("gone")):
            assert settings_repo.load() == settings_repo.codec.defaults()
