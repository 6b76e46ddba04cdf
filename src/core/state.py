from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from PySide6.QtCore import QObject, Signal, Slot

from core.errors import EmptyQueue, InvalidArgument, NotFound
from core.models import (
    Direction,
    PersistedSettings,
    PlaybackState,
    RepeatMode,
    SearchResult,
    ThemePreference,
    Track,
)
from core.playlist_store import PlaylistStore
from core.search import SearchEngine, SearchProvider, SearchType
from db.settings import SettingsRepository
from library.ingest import track_from_bytes, track_from_file
from player.controller import PlaybackController
from player.engine import AudioEngine
from player.queue_model import QueueModel, UniformShuffle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notify:
    message: str
    notify_type: str = "info"   # info/success/warning/error


class AppState(QObject):
    """
    Application context: owns the store, queue and controller, restores them
    from saved settings, and saves once after every successful mutation.

    UI code talks to this object (or the components it exposes) and listens
    to `notification` for user-facing messages.
    """

    notification = Signal(object)   # emits Notify
    themeChanged = Signal(object)   # emits ThemePreference

    def __init__(
        self,
        engine: AudioEngine,
        settings_repo: SettingsRepository,
        *,
        shuffle_policy: UniformShuffle | None = None,
        remote_search: SearchProvider | None = None,
        blob_dir: Optional[str] = None,
    ):
        super().__init__()
        self.settings_repo = settings_repo
        self.blob_dir = blob_dir

        settings = settings_repo.load()

        self.store = PlaylistStore(settings.playlists)
        self.queue = QueueModel(shuffle_policy)
        self.queue.set_shuffle(settings.shuffle_enabled)
        self.queue.set_repeat_mode(settings.repeat_mode)
        self.controller = PlaybackController(engine, self.queue, settings.volume_percent)
        self.search_engine = SearchEngine(self.store, remote_search)
        self.theme = settings.theme

        # autosave is wired after restoring so startup does not write back
        self.store.changed.connect(self.save)
        self.queue.modeChanged.connect(self.save)
        self.controller.volumeChanged.connect(self._on_volume_changed)
        self.controller.errorOccurred.connect(self._on_playback_error)

        logger.info(
            "Restored %d playlists (volume %d%%, repeat %s, shuffle %s)",
            len(self.store), self.controller.volume_percent,
            self.queue.repeat_mode.value, self.queue.shuffle_enabled,
        )

    # ----------------------------
    # Notifications
    # ----------------------------

    @Slot(str, str)
    def notify(self, message: str, notify_type: str = "info"):
        self.notification.emit(Notify(message=message, notify_type=notify_type))

    def _on_playback_error(self, message: str) -> None:
        self.notify(message, "error")

    # ----------------------------
    # Persistence
    # ----------------------------

    def settings(self) -> PersistedSettings:
        return PersistedSettings(
            schema_version=self.settings_repo.codec.schema_version,
            playlists=self.store.all(),
            volume_percent=self.controller.volume_percent,
            theme=self.theme,
            repeat_mode=self.queue.repeat_mode,
            shuffle_enabled=self.queue.shuffle_enabled,
        )

    @Slot()
    def save(self) -> bool:
        ok = self.settings_repo.save(self.settings())
        if not ok:
            self.notify("Could not save your data; changes are kept for this session.", "error")
        return ok

    def _on_volume_changed(self, _percent: int) -> None:
        self.save()

    # ----------------------------
    # Playback
    # ----------------------------

    def _start(self, track: Track) -> None:
        self.controller.load_track(track)
        self.controller.play()

    def play_index(self, index: int) -> Track:
        track = self.queue.jump_to(index)
        self._start(track)
        return track

    def play_playlist(self, playlist_id: str, start_index: int = 0) -> Track:
        playlist = self.store.get(playlist_id)
        if playlist is None:
            raise NotFound(f"Playlist not found: {playlist_id}")
        track = self.queue.load(playlist.tracks, start_index)
        self._start(track)
        return track

    def play_search_results(self, results: Sequence[SearchResult], index: int) -> Track:
        track = self.queue.load([r.track for r in results], index)
        self._start(track)
        return track

    def play_pause(self) -> None:
        if self.controller.current_track is None:
            if self.queue.is_empty():
                raise EmptyQueue("No tracks to play")
            self.play_index(self.queue.cursor_index or 0)
            return
        self.controller.toggle_play_pause()

    def play_next(self) -> Track:
        track = self.queue.advance(Direction.NEXT)
        self._start(track)
        return track

    def play_previous(self) -> Track:
        track = self.queue.advance(Direction.PREVIOUS)
        self._start(track)
        return track

    def seek(self, seconds: float) -> None:
        self.controller.seek(seconds)

    def set_volume(self, percent: int) -> None:
        self.controller.set_volume(percent)

    @property
    def is_playing(self) -> bool:
        return self.controller.state is PlaybackState.PLAYING

    # ----------------------------
    # Modes / preferences
    # ----------------------------

    def toggle_shuffle(self) -> bool:
        self.queue.set_shuffle(not self.queue.shuffle_enabled)
        self.notify("Shuffle on" if self.queue.shuffle_enabled else "Shuffle off", "info")
        return self.queue.shuffle_enabled

    def cycle_repeat(self) -> RepeatMode:
        return self.queue.cycle_repeat_mode()

    def set_theme(self, theme: ThemePreference | str) -> None:
        try:
            theme = ThemePreference(theme)
        except ValueError as e:
            raise InvalidArgument(f"Unknown theme: {theme!r}") from e
        if theme is self.theme:
            return
        self.theme = theme
        self.themeChanged.emit(theme)
        self.save()

    # ----------------------------
    # Queue contents
    # ----------------------------

    def enqueue(self, track: Track) -> None:
        self.queue.append(track)
        self.notify(f"Added {track.title!r} to the queue", "success")

    def import_files(self, paths: Sequence[str]) -> list[Track]:
        imported: list[Track] = []
        for path in paths:
            try:
                track = track_from_file(path)
            except InvalidArgument as e:
                logger.warning("Skipping %s: %s", path, e)
                self.notify(f"Could not import {path}: {e}", "error")
                continue
            self.queue.append(track)
            imported.append(track)

        if imported:
            self.notify(f"Imported {len(imported)} track(s)", "success")
        return imported

    def import_bytes(self, data: bytes, filename: str) -> Track:
        if not self.blob_dir:
            raise InvalidArgument("No blob directory configured for uploads")
        track = track_from_bytes(data, filename, self.blob_dir)
        self.enqueue(track)
        return track

    # ----------------------------
    # Search
    # ----------------------------

    def perform_search(self, query: str, search_type: SearchType | str = SearchType.LOCAL) -> list[SearchResult]:
        query = (query or "").strip()
        if not query:
            raise InvalidArgument("Enter a search query")
        try:
            search_type = SearchType(search_type)
        except ValueError as e:
            raise InvalidArgument(f"Unknown search type: {search_type!r}") from e
        return self.search_engine.search(query, search_type)

    # ----------------------------
    # Reset
    # ----------------------------

    def clear_all_data(self) -> None:
        """Drop playlists and the queue; volume, theme and modes are kept."""
        self.controller.stop()
        self.queue.clear()

        self.store.blockSignals(True)
        try:
            self.store.clear()
        finally:
            self.store.blockSignals(False)

        self.save()
        self.notify("All data deleted", "success")
