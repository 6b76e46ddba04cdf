from __future__ import annotations


class PlayerError(Exception):
    """Base class for every failure the player reports to its callers."""


class EmptyQueue(PlayerError):
    pass


class InvalidIndex(PlayerError):
    pass


class NotFound(PlayerError):
    pass


class InvalidArgument(PlayerError):
    pass


class TrackUnavailable(PlayerError):
    pass


class PlaybackFailed(PlayerError):
    pass


class PersistenceCorrupt(PlayerError):
    # Raised and recovered inside the codec; never reaches the session.
    pass
