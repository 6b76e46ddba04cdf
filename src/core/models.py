# core/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from core.errors import InvalidArgument

UNKNOWN_ARTIST = "Unknown Artist"
DEFAULT_VOLUME = 70


class RepeatMode(Enum):
    OFF = "off"
    ONE = "one"
    ALL = "all"


class ThemePreference(Enum):
    AUTO = "auto"
    LIGHT = "light"
    DARK = "dark"


class PlaybackState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"
    ERROR = "error"


class Direction(Enum):
    NEXT = "next"
    PREVIOUS = "previous"


class NextAction(Enum):
    REPEAT_SAME_TRACK = "repeat_same_track"
    ADVANCE_TO_NEXT = "advance_to_next"
    STOP = "stop"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Track:
    id: str
    title: str
    artist: str
    source_locator: str
    duration_seconds: float = 0.0   # 0 = unknown
    cover_locator: str | None = None

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id:
            raise InvalidArgument("Track id must be a non-empty string")
        if not isinstance(self.source_locator, str) or not self.source_locator.strip():
            raise InvalidArgument(f"Track {self.id!r} has no source locator")
        if self.duration_seconds < 0:
            raise InvalidArgument(f"Track {self.id!r} has a negative duration")


@dataclass(frozen=True)
class Playlist:
    id: str
    name: str
    tracks: tuple[Track, ...] = ()
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id:
            raise InvalidArgument("Playlist id must be a non-empty string")
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidArgument("Playlist name must not be empty")
        # accept any sequence, store a tuple so the value stays immutable
        object.__setattr__(self, "tracks", tuple(self.tracks))


@dataclass(frozen=True)
class SearchResult:
    track: Track
    playlist_id: str | None = None
    playlist_name: str | None = None


@dataclass(frozen=True)
class PersistedSettings:
    schema_version: int
    playlists: tuple[Playlist, ...] = ()
    volume_percent: int = DEFAULT_VOLUME
    theme: ThemePreference = ThemePreference.AUTO
    repeat_mode: RepeatMode = RepeatMode.OFF
    shuffle_enabled: bool = False

    def __post_init__(self):
        object.__setattr__(self, "playlists", tuple(self.playlists))


@dataclass(frozen=True)
class PlaybackSession:
    current_track: Track | None = None
    playback_state: PlaybackState = PlaybackState.IDLE
    position_seconds: float = 0.0
    duration_seconds: float = 0.0
    volume_percent: int = DEFAULT_VOLUME
