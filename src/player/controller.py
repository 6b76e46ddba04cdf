# player/controller.py
from __future__ import annotations

import logging
import math
from typing import Optional

from PySide6.QtCore import QObject, Signal

from core.errors import EmptyQueue, PlaybackFailed, PlayerError, TrackUnavailable
from core.models import (
    DEFAULT_VOLUME,
    Direction,
    NextAction,
    PlaybackSession,
    PlaybackState,
    Track,
)
from player.engine import AudioEngine, EngineError
from player.queue_model import QueueModel

logger = logging.getLogger(__name__)

RESUMABLE = (PlaybackState.LOADING, PlaybackState.PAUSED, PlaybackState.ENDED, PlaybackState.IDLE)


class PlaybackController(QObject):
    """
    Playback state machine sitting between the queue and the audio engine.

      idle -> loading -> playing <-> paused
      loading/playing -> error
      playing -> ended -> loading (next / same track) | idle (stop)

    Engine events are matched against the token of the most recent load;
    anything else is a leftover from a superseded load and is dropped.
    """

    stateChanged = Signal(object)     # PlaybackState
    trackChanged = Signal(object)     # Track | None
    positionChanged = Signal(float)   # seconds
    durationChanged = Signal(float)   # seconds
    volumeChanged = Signal(int)       # percent
    errorOccurred = Signal(str)       # user-facing message, once per failure

    def __init__(self, engine: AudioEngine, queue: QueueModel, volume_percent: int = DEFAULT_VOLUME):
        super().__init__()
        self.engine = engine
        self.queue = queue

        self._state = PlaybackState.IDLE
        self._track: Optional[Track] = None
        self._position = 0.0
        self._duration = 0.0
        self._volume = DEFAULT_VOLUME

        self._generation = 0
        self._token = ""
        self._reported_token: Optional[str] = None

        engine.metadataReady.connect(self._on_metadata_ready)
        engine.positionChanged.connect(self._on_position_changed)
        engine.ended.connect(self._on_ended)
        engine.error.connect(self._on_error)
        engine.started.connect(self._on_started)
        engine.paused.connect(self._on_paused)

        self.set_volume(volume_percent)

    # ----------------------------
    # Session
    # ----------------------------

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def current_track(self) -> Optional[Track]:
        return self._track

    @property
    def position_seconds(self) -> float:
        return self._position

    @property
    def duration_seconds(self) -> float:
        return self._duration

    @property
    def volume_percent(self) -> int:
        return self._volume

    def session(self) -> PlaybackSession:
        return PlaybackSession(
            current_track=self._track,
            playback_state=self._state,
            position_seconds=self._position,
            duration_seconds=self._duration,
            volume_percent=self._volume,
        )

    # ----------------------------
    # Commands
    # ----------------------------

    def load_track(self, track: Optional[Track]) -> None:
        self._generation += 1
        self._token = f"{track.id if track else ''}#{self._generation}"

        self._track = track
        self._position = 0.0
        self._duration = track.duration_seconds if track else 0.0
        self.trackChanged.emit(track)
        self.positionChanged.emit(0.0)
        self.durationChanged.emit(self._duration)

        if track is None or not track.source_locator.strip():
            self._set_state(PlaybackState.ERROR)
            raise TrackUnavailable("Track not found" if track is None else f"No source for {track.title!r}")

        self._set_state(PlaybackState.LOADING)
        logger.info("Loading %s - %s", track.artist, track.title)
        self.engine.load(track.source_locator, self._token)

    def play(self) -> None:
        if self._track is None:
            raise TrackUnavailable("No track loaded")
        if self._state is PlaybackState.PLAYING:
            return
        if self._state is PlaybackState.ERROR:
            # explicit user retry: rebind the engine first
            self.load_track(self._track)

        try:
            self.engine.play()
        except EngineError as e:
            self._fail(f"Could not play {self._track.title!r}: {e}")
            raise PlaybackFailed(str(e)) from e

    def pause(self) -> None:
        if self._state is not PlaybackState.PLAYING:
            return
        self.engine.pause()
        self._set_state(PlaybackState.PAUSED)

    def toggle_play_pause(self) -> None:
        if self._state is PlaybackState.PLAYING:
            self.pause()
        else:
            self.play()

    def stop(self) -> None:
        # drop interest in anything the engine still has in flight
        self._generation += 1
        self._token = f"#{self._generation}"

        if self._track is not None:
            self.engine.pause()
            self.engine.set_position(0.0)

        self._track = None
        self._position = 0.0
        self._duration = 0.0
        self.trackChanged.emit(None)
        self._set_state(PlaybackState.IDLE)

    def seek(self, seconds: float) -> None:
        if self._state is PlaybackState.ERROR:
            logger.debug("Ignoring seek while in error state")
            return

        target = max(0.0, float(seconds))
        if self._duration > 0:
            target = min(target, self._duration)

        self._position = target
        self.engine.set_position(target)
        self.positionChanged.emit(target)

    def set_volume(self, percent: int) -> None:
        if math.isnan(percent):
            logger.warning("Ignoring volume %r", percent)
            return
        v = int(round(min(100.0, max(0.0, float(percent)))))
        self.engine.set_volume(v / 100.0)
        if v != self._volume:
            self._volume = v
            self.volumeChanged.emit(v)

    # ----------------------------
    # Engine events
    # ----------------------------

    def _stale(self, token: str) -> bool:
        if token != self._token:
            logger.debug("Dropping stale engine event for %s (current %s)", token, self._token)
            return True
        return False

    def _on_started(self, token: str) -> None:
        if self._stale(token):
            return
        if self._state in RESUMABLE:
            self._set_state(PlaybackState.PLAYING)

    def _on_paused(self, token: str) -> None:
        if self._stale(token):
            return
        if self._state is PlaybackState.PLAYING:
            self._set_state(PlaybackState.PAUSED)

    def _on_metadata_ready(self, token: str, duration: float) -> None:
        if self._stale(token):
            return
        self._duration = max(0.0, float(duration))
        self.durationChanged.emit(self._duration)

    def _on_position_changed(self, token: str, seconds: float) -> None:
        if self._stale(token):
            return
        self._position = max(0.0, float(seconds))
        self.positionChanged.emit(self._position)

    def _on_error(self, token: str, detail: str) -> None:
        if self._stale(token):
            return
        title = self._track.title if self._track else "track"
        self._fail(f"Playback error for {title!r}: {detail}")

    def _on_ended(self, token: str) -> None:
        if self._stale(token):
            return
        self._set_state(PlaybackState.ENDED)

        try:
            action = self.queue.on_track_ended()
        except EmptyQueue:
            action = NextAction.STOP

        try:
            if action is NextAction.REPEAT_SAME_TRACK:
                self.seek(0.0)
                self.play()
            elif action is NextAction.ADVANCE_TO_NEXT:
                self.load_track(self.queue.advance(Direction.NEXT))
                self.play()
            else:
                # keep current_track so the last track stays on display
                self._set_state(PlaybackState.IDLE)
        except PlayerError as e:
            self._fail(str(e))

    # ----------------------------
    # Helpers
    # ----------------------------

    def _set_state(self, state: PlaybackState) -> None:
        if state is not self._state:
            logger.debug("Playback state %s -> %s", self._state.value, state.value)
            self._state = state
            self.stateChanged.emit(state)

    def _fail(self, message: str) -> None:
        self._set_state(PlaybackState.ERROR)
        if self._reported_token == self._token:
            return
        self._reported_token = self._token
        logger.error("%s", message)
        self.errorOccurred.emit(message)
