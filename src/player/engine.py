# player/engine.py
from __future__ import annotations

from PySide6.QtCore import QObject, Signal


class EngineError(Exception):
    """The engine refused a command outright (as opposed to failing later via `error`)."""


class AudioEngine(QObject):
    """
    Boundary to whatever actually decodes and outputs audio.

    Every event carries the token passed to the `load()` call it belongs to,
    so the consumer can tell a late event from an old track apart from one
    for the track it is waiting on. Events must be emitted on the thread that
    owns the engine (the Qt main thread).
    """

    metadataReady = Signal(str, float)     # token, duration seconds
    positionChanged = Signal(str, float)   # token, position seconds
    ended = Signal(str)                    # token
    error = Signal(str, str)               # token, detail
    started = Signal(str)                  # token
    paused = Signal(str)                   # token

    def load(self, locator: str, token: str) -> None:
        raise NotImplementedError

    def play(self) -> None:
        raise NotImplementedError

    def pause(self) -> None:
        raise NotImplementedError

    def set_position(self, seconds: float) -> None:
        raise NotImplementedError

    def set_volume(self, fraction: float) -> None:
        raise NotImplementedError

    def backend_name(self) -> str:
        return type(self).__name__
