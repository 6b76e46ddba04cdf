"""
Tests for the concrete Player on its mpv path, with a scripted backend in
place of the mpv process and mocks for the Qt multimedia objects.
"""

from unittest.mock import MagicMock

import pytest

import player.player as player_module
from core.models import PlaybackState
from player.controller import PlaybackController
from player.player import Player


class FakeMpv:
    def __init__(self, config=None):
        self.calls = []
        self.observers = {}
        self.listeners = {}
        self.paused = True

    def start(self):
        pass

    def stop(self):
        self.calls.append(("stop",))

    def is_running(self):
        return True

    def process_messages(self, max_messages=200):
        return 0

    def position_s(self):
        return 0.0

    def observe_property(self, name, callback):
        self.observers[name] = callback

    def on_event(self, name, callback):
        self.listeners[name] = callback

    def load(self, path, *, start_playing=False):
        self.calls.append(("load", path))
        self.paused = not start_playing

    def play(self):
        self.calls.append(("play",))
        self.paused = False

    def pause(self):
        self.calls.append(("pause",))
        self.paused = True

    def seek_seconds(self, seconds, exact=True):
        self.calls.append(("seek", seconds))

    def set_volume_0_to_1(self, v):
        self.calls.append(("volume", v))

    # mpv only reports a property when its value differs from the last report
    def report(self, name, value):
        self.observers[name](value)


@pytest.fixture
def mpv(monkeypatch):
    backend = FakeMpv()
    monkeypatch.setattr(player_module, "MpvIpcBackend", lambda config=None: backend)
    monkeypatch.setattr(player_module, "QMediaPlayer", MagicMock())
    monkeypatch.setattr(player_module, "QAudioOutput", MagicMock())
    return backend


@pytest.fixture
def audio(mpv):
    p = Player()
    yield p
    p.shutdown()


@pytest.fixture
def events(audio):
    seen = []
    audio.started.connect(lambda token: seen.append(("started", token)))
    audio.paused.connect(lambda token: seen.append(("paused", token)))
    audio.ended.connect(lambda token: seen.append(("ended", token)))
    audio.error.connect(lambda token, detail: seen.append(("error", token, detail)))
    return seen


def test_uses_mpv_when_available(audio, mpv):
    assert audio.backend_name() == "mpv-ipc"
    assert set(mpv.observers) == {"pause", "eof-reached", "duration"}
    assert "end-file" in mpv.listeners


def test_started_on_every_play_across_reloads(audio, mpv, events):
    audio.load("/music/a.mp3", "a#1")
    audio.play()
    mpv.report("pause", False)

    # the next file loads paused and plays at once; mpv coalesces the pair
    audio.load("/music/b.mp3", "b#2")
    audio.play()
    mpv.report("pause", False)

    assert events == [("started", "a#1"), ("started", "b#2")]


def test_pause_reported_once(audio, mpv, events):
    audio.load("/music/a.mp3", "a#1")
    audio.play()
    audio.pause()
    mpv.report("pause", True)
    assert events == [("started", "a#1")]

    # pause from mpv itself (e.g. a keyboard shortcut in its window)
    audio.play()
    mpv.report("pause", False)
    mpv.report("pause", True)
    assert events[-1] == ("paused", "a#1")


def test_eof_emits_ended_once(audio, mpv, events):
    audio.load("/music/a.mp3", "a#1")
    audio.play()
    mpv.report("eof-reached", True)
    mpv.report("eof-reached", True)
    assert events.count(("ended", "a#1")) == 1

    # replay after the end rewinds first
    audio.play()
    assert ("seek", 0.0) in mpv.calls


def test_end_file_error(audio, mpv, events):
    audio.load("/music/broken.mp3", "x#1")
    mpv.listeners["end-file"]({"event": "end-file", "reason": "error", "file_error": "unrecognized file format"})
    mpv.listeners["end-file"]({"event": "end-file", "reason": "stop"})
    assert events == [("error", "x#1", "unrecognized file format")]


def test_duration_reported(audio, mpv):
    seen = []
    audio.metadataReady.connect(lambda token, d: seen.append((token, d)))
    audio.load("/music/a.mp3", "a#1")
    mpv.report("duration", None)
    mpv.report("duration", 201.5)
    assert seen == [("a#1", 201.5)]


def test_controller_plays_through_queue(audio, mpv, queue, three_tracks):
    controller = PlaybackController(audio, queue)
    controller.load_track(queue.load(three_tracks, 0))
    controller.play()
    mpv.report("pause", False)
    assert controller.state is PlaybackState.PLAYING

    mpv.report("eof-reached", True)
    mpv.report("eof-reached", False)

    assert controller.current_track == three_tracks[1]
    assert controller.state is PlaybackState.PLAYING
    assert [c[1] for c in mpv.calls if c[0] == "load"] == [t.source_locator for t in three_tracks[:2]]
