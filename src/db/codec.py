"""
Versioned text encoding of PersistedSettings.

The blob is a JSON object tagged with `schema_version`. Reading never fails:
a missing blob gives defaults, an unreadable one gives defaults plus a
warning, and damaged fields or playlists fall back one at a time. Older
layouts are brought forward through MIGRATIONS, one version step at a time.
"""
from __future__ import annotations

import json
import logging
import math
from datetime import datetime
from typing import Any, Callable, Optional, Union

from core.errors import InvalidArgument, PersistenceCorrupt
from core.models import (
    DEFAULT_VOLUME,
    UNKNOWN_ARTIST,
    PersistedSettings,
    Playlist,
    RepeatMode,
    ThemePreference,
    Track,
    utc_now,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


# -------------------------------
# MIGRATIONS
# -------------------------------
def _list_or_empty(value: Any) -> list:
    return value if isinstance(value, list) else []


def _migrate_v0_track(t: dict) -> dict:
    return {
        "id": str(t.get("id", "")),
        "title": t.get("title") or "",
        "artist": t.get("artist") or UNKNOWN_ARTIST,
        "source_locator": t.get("url") or "",
        "duration_seconds": t.get("duration") or 0,
        "cover_locator": t.get("cover"),
    }


def _migrate_v0(data: dict) -> dict:
    """
    v0 is the layout written before settings were versioned:
    {playlists, volume, theme, repeatMode, isShuffled} with tracks shaped
    {id, title, artist, url, duration, cover} and playlists {.., createdAt}.
    """
    playlists = []
    for p in _list_or_empty(data.get("playlists")):
        if not isinstance(p, dict):
            continue
        playlists.append({
            "id": str(p.get("id", "")),
            "name": p.get("name") or "",
            "created_at": p.get("createdAt"),
            "tracks": [_migrate_v0_track(t) for t in _list_or_empty(p.get("tracks")) if isinstance(t, dict)],
        })

    return {
        "schema_version": 1,
        "playlists": playlists,
        "volume_percent": data.get("volume", DEFAULT_VOLUME),
        "theme": data.get("theme", ThemePreference.AUTO.value),
        "repeat_mode": data.get("repeatMode", RepeatMode.OFF.value),
        "shuffle_enabled": data.get("isShuffled", False),
    }


# source version -> function producing the next version's dict
MIGRATIONS: dict[int, Callable[[dict], dict]] = {
    0: _migrate_v0,
}


# -------------------------------
# FIELD HELPERS
# -------------------------------
def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, str) and value:
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
    return utc_now()


def _is_number(value: Any) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # JSON integers are unbounded; anything past float range is not a usable number
        return False


def _enum_or_default(enum_cls, value: Any, default):
    try:
        return enum_cls(value)
    except (ValueError, TypeError):
        logger.warning("Unknown %s %r in stored settings; using %s", enum_cls.__name__, value, default.value)
        return default


class PersistenceCodec:
    def __init__(self, schema_version: int = SCHEMA_VERSION):
        self.schema_version = schema_version

    def defaults(self) -> PersistedSettings:
        return PersistedSettings(schema_version=self.schema_version)

    # ----------------------------
    # Encode
    # ----------------------------

    def serialize(self, settings: PersistedSettings) -> str:
        data = {
            "schema_version": self.schema_version,
            "playlists": [self._playlist_to_dict(p) for p in settings.playlists],
            "volume_percent": int(settings.volume_percent),
            "theme": settings.theme.value,
            "repeat_mode": settings.repeat_mode.value,
            "shuffle_enabled": bool(settings.shuffle_enabled),
        }
        return json.dumps(data, sort_keys=True, ensure_ascii=False)

    @staticmethod
    def _track_to_dict(t: Track) -> dict:
        return {
            "id": t.id,
            "title": t.title,
            "artist": t.artist,
            "source_locator": t.source_locator,
            "duration_seconds": float(t.duration_seconds),
            "cover_locator": t.cover_locator,
        }

    def _playlist_to_dict(self, p: Playlist) -> dict:
        return {
            "id": p.id,
            "name": p.name,
            "created_at": p.created_at.isoformat(),
            "tracks": [self._track_to_dict(t) for t in p.tracks],
        }

    # ----------------------------
    # Decode
    # ----------------------------

    def deserialize(self, blob: Optional[Union[str, bytes]]) -> PersistedSettings:
        if not blob:
            return self.defaults()
        try:
            data = self._parse(blob)
        except PersistenceCorrupt as e:
            logger.warning("Stored settings are unreadable, starting from defaults: %s", e)
            return self.defaults()
        return self._build(data)

    def _parse(self, blob: Union[str, bytes]) -> dict:
        try:
            data = json.loads(blob)
        except (ValueError, TypeError, RecursionError) as e:
            raise PersistenceCorrupt(f"not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceCorrupt(f"expected an object, got {type(data).__name__}")

        version = data.get("schema_version", 0)
        if not isinstance(version, int) or isinstance(version, bool) or version < 0:
            raise PersistenceCorrupt(f"bad schema_version {version!r}")

        if version > self.schema_version:
            logger.warning(
                "Settings were written by a newer version (schema %s > %s); reading what we understand",
                version, self.schema_version,
            )
            return data

        while version < self.schema_version:
            migrate = MIGRATIONS.get(version)
            if migrate is None:
                raise PersistenceCorrupt(f"no migration from schema {version}")
            logger.info("Migrating stored settings from schema %s to %s", version, version + 1)
            try:
                data = migrate(data)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise PersistenceCorrupt(f"migration from schema {version} failed: {e}") from e
            version += 1
        return data

    def _build(self, data: dict) -> PersistedSettings:
        volume = data.get("volume_percent", DEFAULT_VOLUME)
        if not _is_number(volume):
            logger.warning("Bad stored volume %r; using %s", volume, DEFAULT_VOLUME)
            volume = DEFAULT_VOLUME
        volume = min(100, max(0, int(round(volume))))

        shuffle = data.get("shuffle_enabled", False)
        if not isinstance(shuffle, bool):
            shuffle = False

        return PersistedSettings(
            schema_version=self.schema_version,
            playlists=self._build_playlists(data.get("playlists")),
            volume_percent=volume,
            theme=_enum_or_default(ThemePreference, data.get("theme", "auto"), ThemePreference.AUTO),
            repeat_mode=_enum_or_default(RepeatMode, data.get("repeat_mode", "off"), RepeatMode.OFF),
            shuffle_enabled=shuffle,
        )

    def _build_playlists(self, raw: Any) -> tuple[Playlist, ...]:
        if not isinstance(raw, list):
            return ()

        playlists: list[Playlist] = []
        seen: set[str] = set()
        for i, item in enumerate(raw):
            try:
                playlist = self._playlist_from_dict(item)
            except (KeyError, TypeError, ValueError, AttributeError, InvalidArgument) as e:
                logger.warning("Skipping stored playlist #%s: %s", i, e)
                continue
            if playlist.id in seen:
                logger.warning("Skipping stored playlist #%s: duplicate id %s", i, playlist.id)
                continue
            seen.add(playlist.id)
            playlists.append(playlist)
        return tuple(playlists)

    def _playlist_from_dict(self, d: dict) -> Playlist:
        tracks: list[Track] = []
        for j, t in enumerate(d.get("tracks") or []):
            try:
                tracks.append(self._track_from_dict(t))
            except (KeyError, TypeError, ValueError, AttributeError, InvalidArgument) as e:
                logger.warning("Skipping track #%s of playlist %r: %s", j, d.get("name"), e)

        return Playlist(
            id=str(d["id"]),
            name=str(d["name"]),
            tracks=tracks,
            created_at=_parse_datetime(d.get("created_at")),
        )

    @staticmethod
    def _track_from_dict(t: dict) -> Track:
        duration = t.get("duration_seconds", 0.0)
        cover = t.get("cover_locator")
        return Track(
            id=str(t["id"]),
            title=str(t.get("title", "")),
            artist=str(t.get("artist", "")),
            source_locator=t["source_locator"],
            duration_seconds=float(duration) if _is_number(duration) and duration > 0 else 0.0,
            cover_locator=None if cover is None else str(cover),
        )
