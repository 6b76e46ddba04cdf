"""
Shared fixtures: a Qt core application for signal delivery, a scripted
audio engine, and track/playlist factories.
"""

from itertools import count

import pytest
from PySide6.QtCore import QCoreApplication

from core.models import Track
from db.database import SqliteKeyValueStore, connect
from db.settings import SettingsRepository
from player.engine import AudioEngine, EngineError
from player.queue_model import QueueModel


@pytest.fixture(scope="session", autouse=True)
def qt_app():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


class FakeEngine(AudioEngine):
    """Records commands; emits `started` on play() unless told otherwise."""

    def __init__(self):
        super().__init__()
        self.calls = []
        self.locator = None
        self.token = ""
        self.volume = None
        self.position = None
        self.fail_play = False
        self.auto_start = True

    def load(self, locator, token):
        self.calls.append(("load", locator))
        self.locator = locator
        self.token = token

    def play(self):
        self.calls.append(("play",))
        if self.fail_play:
            raise EngineError("output device busy")
        if self.auto_start:
            self.started.emit(self.token)

    def pause(self):
        self.calls.append(("pause",))

    def set_position(self, seconds):
        self.calls.append(("seek", seconds))
        self.position = seconds

    def set_volume(self, fraction):
        self.volume = fraction

    # --- scripted events ---

    def finish(self, token=None):
        self.ended.emit(self.token if token is None else token)

    def fail(self, detail="decode error", token=None):
        self.error.emit(self.token if token is None else token, detail)

    def loaded_locators(self):
        return [c[1] for c in self.calls if c[0] == "load"]


_ids = count(1)


def make_track(title="Song", artist="Artist", **kwargs):
    n = next(_ids)
    kwargs.setdefault("id", f"t{n}")
    kwargs.setdefault("source_locator", f"/music/{kwargs['id']}.mp3")
    return Track(title=title, artist=artist, **kwargs)


@pytest.fixture
def track_factory():
    return make_track


@pytest.fixture
def three_tracks():
    return [make_track(f"Track {i}") for i in range(1, 4)]


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def queue():
    return QueueModel()


@pytest.fixture
def kv_store():
    store = SqliteKeyValueStore(connect(":memory:"))
    yield store
    store.close()


@pytest.fixture
def settings_repo(kv_store):
    return SettingsRepository(kv_store)
