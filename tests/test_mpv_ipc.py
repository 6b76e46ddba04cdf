"""
Tests for the mpv JSON IPC message pump, using an in-memory transport
instead of a real mpv process.
"""

import pytest

import player.mpv_ipc as mpv_ipc
from player.mpv_ipc import MpvBackendConfig, MpvIpcBackend


class FakeTransport:
    def __init__(self):
        self.sent = []
        self.inbox = []
        self.closed = False

    def send(self, payload):
        self.sent.append(payload)

    def next_message(self):
        return self.inbox.pop(0) if self.inbox else None

    def close(self):
        self.closed = True


@pytest.fixture
def backend(monkeypatch):
    monkeypatch.setattr(mpv_ipc, "find_mpv_binary", lambda preferred=None: "/usr/bin/mpv")
    b = MpvIpcBackend(MpvBackendConfig(ipc_endpoint="/tmp/test-mpv.sock"))
    b._transport = FakeTransport()
    return b


def test_missing_binary(monkeypatch):
    monkeypatch.setattr(mpv_ipc, "find_mpv_binary", lambda preferred=None: None)
    with pytest.raises(FileNotFoundError):
        MpvIpcBackend()


def test_find_mpv_prefers_explicit_path(tmp_path):
    exe = tmp_path / "mpv"
    exe.write_text("")
    assert mpv_ipc.find_mpv_binary(str(exe)) == str(exe)


def test_property_change_dispatch(backend):
    seen = []
    backend.observe_property("volume", seen.append)
    backend.observe_property("volume", lambda v: seen.append(("again", v)))

    observe_cmds = [p for p in backend._transport.sent if p["command"][0] == "observe_property"]
    assert len(observe_cmds) == 1

    backend._transport.inbox += [
        {"event": "property-change", "name": "volume", "data": 50},
        {"event": "property-change", "name": "other", "data": 1},
    ]
    assert backend.process_messages() == 2
    assert seen == [50, ("again", 50)]


def test_event_dispatch(backend):
    ended = []
    backend.on_event("end-file", ended.append)
    msg = {"event": "end-file", "reason": "error", "file_error": "unrecognized file format"}
    backend._transport.inbox += [msg, {"event": "file-loaded"}]

    backend.process_messages()

    assert ended == [msg]


def test_max_messages(backend):
    backend._transport.inbox += [{"event": "idle"}] * 5
    assert backend.process_messages(max_messages=3) == 3
    assert len(backend._transport.inbox) == 2


def test_controls_send_commands(backend):
    backend.load("/music/a.mp3")
    backend.seek_seconds(-4)
    backend.set_volume_0_to_1(1.7)
    assert backend._transport.sent == [
        {"command": ["loadfile", "/music/a.mp3", "replace"]},
        {"command": ["set_property", "pause", True]},
        {"command": ["seek", 0.0, "absolute+exact"]},
        {"command": ["set_property", "volume", 100.0]},
    ]


def test_position_follows_time_pos(backend):
    backend.observe_property("time-pos", backend._on_time_pos)
    backend._transport.inbox += [
        {"event": "property-change", "name": "time-pos", "data": 3.25},
        {"event": "property-change", "name": "time-pos", "data": None},
    ]
    backend.process_messages(max_messages=1)
    assert backend.position_s() == 3.25
    backend.process_messages()
    assert backend.position_s() == 0.0


def test_command_replies_are_consumed(backend):
    seen = []
    backend.on_event("end-file", seen.append)
    backend._transport.inbox += [
        {"request_id": 0, "error": "success", "data": None},
        {"request_id": 0, "error": "property not found"},
    ]
    assert backend.process_messages() == 2
    assert seen == []


def test_observe_ids_are_distinct(backend):
    backend.observe_property("time-pos", lambda v: None)
    backend.observe_property("eof-reached", lambda v: None)
    ids = [p["command"][1] for p in backend._transport.sent]
    assert ids == [1, 2]
