# core/playlist_store.py
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Iterable, Optional

from PySide6.QtCore import QObject, Signal

from core.errors import InvalidArgument, InvalidIndex, NotFound
from core.models import Playlist, Track
from core.utils import new_id

logger = logging.getLogger(__name__)


class PlaylistStore(QObject):
    """
    Owns the user's playlists.

    Playlists are frozen values; every mutation swaps in a new value at the
    same position, so a Playlist handed out earlier never changes under the
    caller. `changed` fires after each successful mutation; persisting is
    left to whoever listens.
    """

    changed = Signal()

    def __init__(self, playlists: Iterable[Playlist] = (), id_factory: Callable[[], str] = new_id):
        super().__init__()
        self._id_factory = id_factory
        self._playlists: list[Playlist] = []
        self.replace_all(playlists)

    # ----------------------------
    # Queries
    # ----------------------------

    def __len__(self) -> int:
        return len(self._playlists)

    def get(self, playlist_id: str) -> Optional[Playlist]:
        for p in self._playlists:
            if p.id == playlist_id:
                return p
        return None

    def all(self) -> list[Playlist]:
        return list(self._playlists)

    # ----------------------------
    # Mutations
    # ----------------------------

    def create(self, name: str | None = None) -> Playlist:
        clean = name.strip() if name else ""
        if not clean:
            clean = f"Playlist {len(self._playlists) + 1}"

        playlist = Playlist(id=self._unique_id(), name=clean)
        self._playlists.append(playlist)
        logger.debug("Created playlist %s (%s)", playlist.id, playlist.name)
        self.changed.emit()
        return playlist

    def delete(self, playlist_id: str) -> None:
        before = len(self._playlists)
        self._playlists = [p for p in self._playlists if p.id != playlist_id]
        if len(self._playlists) != before:
            self.changed.emit()

    def rename(self, playlist_id: str, new_name: str) -> Playlist:
        clean = (new_name or "").strip()
        if not clean:
            raise InvalidArgument("Playlist name must not be empty")
        pos = self._position(playlist_id)
        return self._put(pos, replace(self._playlists[pos], name=clean))

    def add_track(self, playlist_id: str, track: Track) -> Playlist:
        pos = self._position(playlist_id)
        playlist = self._playlists[pos]
        return self._put(pos, replace(playlist, tracks=playlist.tracks + (track,)))

    def remove_track_at(self, playlist_id: str, index: int) -> Track:
        pos = self._position(playlist_id)
        playlist = self._playlists[pos]
        self._check_index(playlist, index)

        tracks = list(playlist.tracks)
        removed = tracks.pop(index)
        self._put(pos, replace(playlist, tracks=tracks))
        return removed

    def move_track(self, playlist_id: str, from_index: int, to_index: int) -> Playlist:
        pos = self._position(playlist_id)
        playlist = self._playlists[pos]
        self._check_index(playlist, from_index)
        self._check_index(playlist, to_index)

        tracks = list(playlist.tracks)
        tracks.insert(to_index, tracks.pop(from_index))
        return self._put(pos, replace(playlist, tracks=tracks))

    def replace_all(self, playlists: Iterable[Playlist]) -> None:
        """Swap in a whole collection (startup load). Does not emit `changed`."""
        seen: set[str] = set()
        kept: list[Playlist] = []
        for p in playlists:
            if p.id in seen:
                logger.warning("Dropping playlist %r with duplicate id %s", p.name, p.id)
                continue
            seen.add(p.id)
            kept.append(p)
        self._playlists = kept

    def clear(self) -> None:
        if self._playlists:
            self._playlists = []
            self.changed.emit()

    # ----------------------------
    # Helpers
    # ----------------------------

    def _unique_id(self) -> str:
        pid = self._id_factory()
        while self.get(pid) is not None:
            pid = self._id_factory()
        return pid

    def _position(self, playlist_id: str) -> int:
        for i, p in enumerate(self._playlists):
            if p.id == playlist_id:
                return i
        raise NotFound(f"Playlist not found: {playlist_id}")

    @staticmethod
    def _check_index(playlist: Playlist, index: int) -> None:
        if not 0 <= index < len(playlist.tracks):
            raise InvalidIndex(
                f"Track index {index} out of range for playlist {playlist.id} "
                f"({len(playlist.tracks)} tracks)"
            )

    def _put(self, pos: int, playlist: Playlist) -> Playlist:
        self._playlists[pos] = playlist
        self.changed.emit()
        return playlist
