# player/queue_model.py
from __future__ import annotations

import logging
import random
from typing import Optional, Sequence

from PySide6.QtCore import QObject, Signal

from core.errors import EmptyQueue, InvalidIndex
from core.models import Direction, NextAction, RepeatMode, Track

logger = logging.getLogger(__name__)

REPEAT_CYCLE = (RepeatMode.OFF, RepeatMode.ONE, RepeatMode.ALL)


# ----------------------------
# Shuffle policies
# ----------------------------

class UniformShuffle:
    """
    Any index in [0, length) with equal probability, the current one included.
    Immediate repeats are possible; this is the default behaviour.
    """

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    def pick(self, length: int, current: Optional[int]) -> int:
        return self.rng.randrange(length)


class NoRepeatShuffle(UniformShuffle):
    """Like UniformShuffle, but never picks the current index when there is a choice."""

    def pick(self, length: int, current: Optional[int]) -> int:
        if length < 2 or current is None:
            return self.rng.randrange(length)
        # draw from length-1 slots and skip over the current one
        idx = self.rng.randrange(length - 1)
        return idx + 1 if idx >= current else idx


class QueueModel(QObject):
    """
    The active playback queue: a snapshot of tracks plus a cursor, and the
    shuffle/repeat modes that decide where the cursor goes next.
    """

    changed = Signal()        # tracks or cursor
    modeChanged = Signal()    # shuffle or repeat

    def __init__(self, shuffle_policy: UniformShuffle | None = None):
        super().__init__()
        self.shuffle_policy = shuffle_policy or UniformShuffle()

        self._tracks: list[Track] = []
        self._cursor: Optional[int] = None
        self._shuffle = False
        self._repeat = RepeatMode.OFF

    # ----------------------------
    # State
    # ----------------------------

    @property
    def tracks(self) -> tuple[Track, ...]:
        return tuple(self._tracks)

    @property
    def cursor_index(self) -> Optional[int]:
        return self._cursor

    @property
    def shuffle_enabled(self) -> bool:
        return self._shuffle

    @property
    def repeat_mode(self) -> RepeatMode:
        return self._repeat

    def __len__(self) -> int:
        return len(self._tracks)

    def is_empty(self) -> bool:
        return not self._tracks

    def current(self) -> Optional[Track]:
        if self._cursor is None or not self._tracks:
            return None
        return self._tracks[self._cursor]

    # ----------------------------
    # Contents
    # ----------------------------

    def load(self, tracks: Sequence[Track], start_index: int = 0) -> Track:
        # copy, never alias the caller's sequence
        snapshot = list(tracks)
        if not snapshot:
            raise EmptyQueue("Nothing to play")
        if not 0 <= start_index < len(snapshot):
            raise InvalidIndex(f"Start index {start_index} out of range ({len(snapshot)} tracks)")

        self._tracks = snapshot
        self._cursor = start_index
        self.changed.emit()
        return self._tracks[start_index]

    def clear(self) -> None:
        self._tracks = []
        self._cursor = None
        self.changed.emit()

    def append(self, track: Track) -> None:
        self._tracks.append(track)
        self.changed.emit()

    def jump_to(self, index: int) -> Track:
        if not self._tracks:
            raise EmptyQueue("Queue is empty")
        if not 0 <= index < len(self._tracks):
            raise InvalidIndex(f"Queue index {index} out of range ({len(self._tracks)} tracks)")
        self._cursor = index
        self.changed.emit()
        return self._tracks[index]

    # ----------------------------
    # Navigation
    # ----------------------------

    def advance(self, direction: Direction) -> Track:
        length = len(self._tracks)
        if length == 0:
            raise EmptyQueue("Queue is empty")

        cur = self._cursor
        if direction is Direction.PREVIOUS:
            nxt = cur - 1 if cur is not None and cur > 0 else length - 1
        elif self._shuffle:
            nxt = self.shuffle_policy.pick(length, cur)
        else:
            nxt = 0 if cur is None else (cur + 1) % length

        self._cursor = nxt
        self.changed.emit()
        return self._tracks[nxt]

    def on_track_ended(self) -> NextAction:
        if not self._tracks:
            raise EmptyQueue("Queue is empty")

        if self._repeat is RepeatMode.ONE:
            return NextAction.REPEAT_SAME_TRACK
        if self._repeat is RepeatMode.ALL:
            return NextAction.ADVANCE_TO_NEXT

        cur = self._cursor if self._cursor is not None else -1
        if cur < len(self._tracks) - 1:
            return NextAction.ADVANCE_TO_NEXT
        return NextAction.STOP

    # ----------------------------
    # Modes
    # ----------------------------

    def set_shuffle(self, enabled: bool) -> None:
        enabled = bool(enabled)
        if enabled != self._shuffle:
            self._shuffle = enabled
            logger.debug("Shuffle %s", "on" if enabled else "off")
            self.modeChanged.emit()

    def set_repeat_mode(self, mode: RepeatMode) -> None:
        mode = RepeatMode(mode)
        if mode is not self._repeat:
            self._repeat = mode
            logger.debug("Repeat mode -> %s", mode.value)
            self.modeChanged.emit()

    def cycle_repeat_mode(self) -> RepeatMode:
        i = REPEAT_CYCLE.index(self._repeat)
        self.set_repeat_mode(REPEAT_CYCLE[(i + 1) % len(REPEAT_CYCLE)])
        return self._repeat
