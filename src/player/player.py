# src/player/player.py
from __future__ import annotations

import logging
from typing import Any, Optional

from PySide6.QtCore import QTimer, QUrl
from PySide6.QtMultimedia import QAudioOutput, QMediaPlayer

from .engine import AudioEngine, EngineError
from .mpv_ipc import MpvBackendConfig, MpvIpcBackend

logger = logging.getLogger(__name__)


def _to_url(locator: str) -> QUrl:
    url = QUrl(locator)
    if url.scheme() and len(url.scheme()) > 1:   # skip Windows drive letters
        return url
    return QUrl.fromLocalFile(locator)


class Player(AudioEngine):
    """
    Concrete audio engine.

    Prefers mpv (fast, exact seeking) and falls back to QMediaPlayer when mpv
    is missing or dies. Both backends report through the AudioEngine signals,
    tagged with the token of the current load.
    """

    def __init__(self, mpv_path: Optional[str] = None, poll_interval_ms: int = 30):
        super().__init__()

        self._token = ""
        self._locator: Optional[str] = None
        self._volume_0_to_1 = 0.7

        # --- Backend selection ---
        self._use_mpv = False
        self._mpv: Optional[MpvIpcBackend] = None

        # Qt fallback backend
        self.audio = QAudioOutput()
        self.media = QMediaPlayer()
        self.media.setAudioOutput(self.audio)
        self.audio.setVolume(self._volume_0_to_1)

        self.media.positionChanged.connect(self._on_qt_position)
        self.media.durationChanged.connect(self._on_qt_duration)
        self.media.playbackStateChanged.connect(self._on_qt_state_changed)
        self.media.mediaStatusChanged.connect(self._on_qt_media_status)
        self.media.errorOccurred.connect(self._on_qt_error)

        # mpv pump: drains IPC messages on this (the GUI/event-loop) thread
        self._poll_timer = QTimer(self)
        self._poll_timer.setInterval(poll_interval_ms)
        self._poll_timer.timeout.connect(self._poll)

        self._last_pos_s = -1.0
        self._mpv_paused = True
        self._mpv_eof = False

        self._try_init_mpv(mpv_path)

    # ----------------------------
    # Backend init
    # ----------------------------

    def _try_init_mpv(self, mpv_path: Optional[str]) -> None:
        try:
            backend = MpvIpcBackend(MpvBackendConfig(mpv_path=mpv_path))
            backend.start()
        except (OSError, TimeoutError) as e:
            logger.info("mpv unavailable (%s); using QtMultimedia", e)
            return

        backend.set_volume_0_to_1(self._volume_0_to_1)
        backend.observe_property("pause", self._on_mpv_pause)
        backend.observe_property("eof-reached", self._on_mpv_eof_reached)
        backend.observe_property("duration", self._on_mpv_duration)
        backend.on_event("end-file", self._on_mpv_end_file)

        self._mpv = backend
        self._use_mpv = True
        self._poll_timer.start()

    def backend_name(self) -> str:
        return "mpv-ipc" if (self._use_mpv and self._mpv) else "qt-multimedia"

    def shutdown(self) -> None:
        self._poll_timer.stop()
        if self._mpv is not None:
            self._mpv.stop()
            self._mpv = None
        self._use_mpv = False
        self.media.stop()

    def _drop_mpv(self, reason: Any) -> None:
        logger.warning("mpv backend lost (%s); falling back to QtMultimedia", reason)
        self._poll_timer.stop()
        self._use_mpv = False
        self._mpv = None

    # ----------------------------
    # AudioEngine commands
    # ----------------------------

    def load(self, locator: str, token: str) -> None:
        self._token = token
        self._locator = locator
        self._last_pos_s = -1.0
        self._mpv_eof = False

        if self._use_mpv and self._mpv:
            try:
                self._mpv.load(locator, start_playing=False)
                self._mpv_paused = True
                return
            except (OSError, ConnectionError) as e:
                self._drop_mpv(e)

        self.media.setSource(_to_url(locator))

    def play(self) -> None:
        if not self._locator:
            raise EngineError("nothing loaded")

        if self._use_mpv and self._mpv:
            try:
                if self._mpv_eof:
                    self._mpv.seek_seconds(0.0)
                    self._mpv_eof = False
                self._mpv.play()
                # "pause" is only reported on change; a pause/unpause pair around a
                # reload can collapse to no event at all
                self._mpv_paused = False
                self.started.emit(self._token)
                return
            except (OSError, ConnectionError) as e:
                self._drop_mpv(e)
                # resume on Qt from the start of the same source
                self.media.setSource(_to_url(self._locator))

        self.media.play()

    def pause(self) -> None:
        if self._use_mpv and self._mpv:
            try:
                self._mpv.pause()
                self._mpv_paused = True
                return
            except (OSError, ConnectionError) as e:
                self._drop_mpv(e)
        self.media.pause()

    def set_position(self, seconds: float) -> None:
        seconds = max(0.0, float(seconds))
        if self._use_mpv and self._mpv:
            try:
                self._mpv.seek_seconds(seconds, exact=True)
                self._mpv_eof = False
                return
            except (OSError, ConnectionError) as e:
                self._drop_mpv(e)
        self.media.setPosition(int(seconds * 1000))

    def set_volume(self, fraction: float) -> None:
        v = min(1.0, max(0.0, float(fraction)))
        self._volume_0_to_1 = v
        if self._use_mpv and self._mpv:
            try:
                self._mpv.set_volume_0_to_1(v)
                return
            except (OSError, ConnectionError) as e:
                self._drop_mpv(e)
        self.audio.setVolume(v)

    # ----------------------------
    # mpv handlers (run inside _poll)
    # ----------------------------

    def _poll(self) -> None:
        if not self._use_mpv or not self._mpv:
            return
        if not self._mpv.is_running():
            self._drop_mpv("process exited")
            return

        self._mpv.process_messages(max_messages=500)

        if not self._locator:
            return
        pos = self._mpv.position_s()
        if abs(pos - self._last_pos_s) >= 0.05:
            self._last_pos_s = pos
            self.positionChanged.emit(self._token, pos)

    def _on_mpv_pause(self, value: Any) -> None:
        paused = bool(value)
        if paused == self._mpv_paused or not self._locator:
            self._mpv_paused = paused
            return
        self._mpv_paused = paused
        if paused:
            self.paused.emit(self._token)
        else:
            self.started.emit(self._token)

    def _on_mpv_duration(self, value: Any) -> None:
        if self._locator and isinstance(value, (int, float)) and value > 0:
            self.metadataReady.emit(self._token, float(value))

    def _on_mpv_eof_reached(self, value: Any) -> None:
        # eof-reached flips true once at the end (keep-open=yes); emit on the rising edge
        if value is True and not self._mpv_eof and self._locator:
            self._mpv_eof = True
            self.ended.emit(self._token)

    def _on_mpv_end_file(self, msg: dict[str, Any]) -> None:
        if msg.get("reason") == "error" and self._locator:
            detail = msg.get("file_error") or "mpv could not open the file"
            self.error.emit(self._token, str(detail))

    # ----------------------------
    # Qt backend handlers
    # ----------------------------

    def _on_qt_position(self, ms: int) -> None:
        if not self._use_mpv:
            self.positionChanged.emit(self._token, ms / 1000.0)

    def _on_qt_duration(self, ms: int) -> None:
        if not self._use_mpv and ms > 0:
            self.metadataReady.emit(self._token, ms / 1000.0)

    def _on_qt_state_changed(self, state: QMediaPlayer.PlaybackState) -> None:
        if self._use_mpv:
            return
        if state == QMediaPlayer.PlaybackState.PlayingState:
            self.started.emit(self._token)
        elif state == QMediaPlayer.PlaybackState.PausedState:
            self.paused.emit(self._token)

    def _on_qt_media_status(self, status: QMediaPlayer.MediaStatus) -> None:
        if self._use_mpv:
            return
        if status == QMediaPlayer.MediaStatus.EndOfMedia:
            self.ended.emit(self._token)
        elif status == QMediaPlayer.MediaStatus.InvalidMedia:
            self.error.emit(self._token, "invalid media")

    def _on_qt_error(self, error: QMediaPlayer.Error, message: str = "") -> None:
        if self._use_mpv or error == QMediaPlayer.Error.NoError:
            return
        self.error.emit(self._token, message or str(error))
