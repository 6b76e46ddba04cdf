from __future__ import annotations

import json
import logging
import os
import platform
import queue
import shutil
import socket
import subprocess
import tempfile
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Message = dict[str, Any]


def _is_windows() -> bool:
    return os.name == "nt"


def _default_ipc_endpoint(name: str = "queueplay-mpv") -> str:
    # one endpoint per process so two players never share a socket
    tag = f"{name}-{os.getpid()}"
    if _is_windows():
        return rf"\\.\pipe\{tag}"
    return os.path.join(tempfile.gettempdir(), tag + ".sock")


def _clear_stale_socket(path: str) -> None:
    if _is_windows() or not os.path.exists(path):
        return
    try:
        os.remove(path)
    except OSError as e:
        logger.warning("Could not remove stale mpv socket %s: %s", path, e)


def find_mpv_binary(preferred_path: Optional[str] = None) -> Optional[str]:
    """Explicit path first, then a copy bundled under ./third_party/mpv, then PATH."""
    exe = "mpv.exe" if _is_windows() else "mpv"
    platform_dir = {"windows": "windows", "darwin": "macos"}.get(platform.system().lower(), "linux")
    bundled = os.path.join(os.getcwd(), "third_party", "mpv")

    for candidate in (preferred_path, os.path.join(bundled, platform_dir, exe), os.path.join(bundled, exe)):
        if candidate and os.path.isfile(candidate):
            return candidate
    return shutil.which(exe)


# -----------------------------
# Transport
# -----------------------------

class _IpcChannel:
    """
    A JSON-lines connection to mpv over a unix socket or a Windows named pipe.

    A daemon thread splits incoming bytes into messages and queues them; the
    owner drains them with next_message() on its own thread.
    """

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        self._inbox: "queue.Queue[Message]" = queue.Queue()
        self._write_lock = threading.Lock()
        self._closed = threading.Event()
        self._sock: Optional[socket.socket] = None
        self._pipe = None
        self._reader: Optional[threading.Thread] = None

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def connect(self, timeout_s: float = 3.0) -> None:
        # mpv creates the endpoint shortly after it starts; keep trying until the deadline
        deadline = time.monotonic() + timeout_s
        while True:
            try:
                self._open()
                break
            except OSError as e:
                if self.closed or time.monotonic() >= deadline:
                    raise OSError(f"mpv IPC at {self.endpoint} not reachable: {e}") from e
                time.sleep(0.05)

        self._reader = threading.Thread(target=self._read_loop, name="mpv-ipc-reader", daemon=True)
        self._reader.start()

    def _open(self) -> None:
        if _is_windows():
            self._pipe = open(self.endpoint, "r+b", buffering=0)
            return
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(self.endpoint)
        except OSError:
            sock.close()
            raise
        self._sock = sock

    def close(self) -> None:
        self._closed.set()
        sock, self._sock = self._sock, None
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass  # already disconnected
            sock.close()
        pipe, self._pipe = self._pipe, None
        if pipe is not None:
            try:
                pipe.close()
            except OSError:
                pass

    def send(self, payload: Message) -> None:
        data = json.dumps(payload).encode("utf-8") + b"\n"
        with self._write_lock:
            if self._sock is not None:
                self._sock.sendall(data)
            elif self._pipe is not None:
                self._pipe.write(data)
                self._pipe.flush()
            else:
                raise ConnectionError("mpv IPC not connected")

    def next_message(self) -> Optional[Message]:
        try:
            return self._inbox.get_nowait()
        except queue.Empty:
            return None

    def _read(self) -> bytes:
        if self._sock is not None:
            return self._sock.recv(4096)
        if self._pipe is not None:
            return self._pipe.read(4096)
        return b""

    def _read_loop(self) -> None:
        pending = b""
        try:
            while not self.closed:
                try:
                    chunk = self._read()
                except OSError:
                    return
                if not chunk:
                    return
                *lines, pending = (pending + chunk).split(b"\n")
                for line in lines:
                    self._queue_line(line)
        finally:
            self._closed.set()

    def _queue_line(self, line: bytes) -> None:
        line = line.strip()
        if not line:
            return
        try:
            msg = json.loads(line)
        except ValueError:
            logger.debug("Ignoring malformed mpv line: %r", line[:200])
            return
        if isinstance(msg, dict):
            self._inbox.put(msg)


# -----------------------------
# Backend
# -----------------------------

@dataclass
class MpvBackendConfig:
    mpv_path: Optional[str] = None
    ipc_endpoint: Optional[str] = None
    start_paused: bool = True
    audio_only: bool = True
    # keep the file loaded at EOF so "ended" can be followed by seek(0) + play
    keep_open: bool = True
    cwd: Optional[str] = None


class MpvIpcBackend:
    """
    mpv driven through its JSON IPC.

    The owner pumps process_messages() from a QTimer; property observers and
    event listeners run inside that call, i.e. on the owner's thread.
    """

    def __init__(self, config: Optional[MpvBackendConfig] = None):
        self.config = config or MpvBackendConfig()

        self._mpv_bin = find_mpv_binary(self.config.mpv_path)
        if not self._mpv_bin:
            raise FileNotFoundError("mpv binary not found (bundled or on PATH).")

        self.ipc = self.config.ipc_endpoint or _default_ipc_endpoint()
        self._proc: Optional[subprocess.Popen] = None
        self._transport = _IpcChannel(self.ipc)

        self._observe_id = 0
        self._observers: dict[str, list[Callable[[Any], None]]] = {}
        self._listeners: dict[str, list[Callable[[Message], None]]] = {}

        self._time_pos_s = 0.0

    # ---- lifecycle ----

    def _command_line(self) -> list[str]:
        cfg = self.config
        flags = {
            "idle": "yes",
            "keep-open": "yes" if cfg.keep_open else "no",
            "input-ipc-server": self.ipc,
            "terminal": "no",
            "msg-level": "all=warn",
        }
        if cfg.audio_only:
            flags.update({"video": "no", "audio-display": "no"})
        if cfg.start_paused:
            flags["pause"] = "yes"
        return [self._mpv_bin] + [f"--{k}={v}" for k, v in flags.items()]

    def start(self) -> None:
        if self._proc is not None:
            return

        _clear_stale_socket(self.ipc)
        args = self._command_line()
        logger.info("Starting mpv: %s", " ".join(args))
        self._proc = subprocess.Popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            cwd=self.config.cwd or None,
            creationflags=getattr(subprocess, "CREATE_NO_WINDOW", 0),
        )

        try:
            self._transport.connect(timeout_s=3.0)
        except OSError:
            self.stop()
            raise

        self.observe_property("time-pos", self._on_time_pos)

    def stop(self) -> None:
        """Ask mpv to quit, close the channel and make sure the process is gone."""
        if not self._transport.closed:
            try:
                self.command("quit")
            except (OSError, ConnectionError) as e:
                logger.debug("mpv quit command failed: %s", e)
        self._transport.close()

        proc, self._proc = self._proc, None
        if proc is not None:
            proc.terminate()

    def is_running(self) -> bool:
        return self._proc is not None and self._proc.poll() is None and not self._transport.closed

    # ---- protocol ----

    def command(self, *args: Any) -> None:
        """Fire-and-forget command; mpv's reply arrives later through process_messages()."""
        self._transport.send({"command": list(args)})

    def set_property(self, name: str, value: Any) -> None:
        self.command("set_property", name, value)

    def observe_property(self, name: str, on_change: Callable[[Any], None]) -> None:
        if name not in self._observers:
            self._observers[name] = []
            self._observe_id += 1
            self.command("observe_property", self._observe_id, name)
        self._observers[name].append(on_change)

    def on_event(self, event: str, callback: Callable[[Message], None]) -> None:
        """Listen for an mpv event such as "file-loaded" or "end-file"."""
        self._listeners.setdefault(event, []).append(callback)

    def process_messages(self, max_messages: int = 200) -> int:
        """
        Drain pending messages: property changes, events and command replies.
        Returns the number of messages handled.
        """
        handled = 0
        for _ in range(max_messages):
            msg = self._transport.next_message()
            if msg is None:
                break
            handled += 1

            event = msg.get("event")
            if event == "property-change":
                for cb in list(self._observers.get(msg.get("name"), ())):
                    cb(msg.get("data"))
            elif isinstance(event, str):
                for cb in list(self._listeners.get(event, ())):
                    cb(msg)
            elif msg.get("error", "success") != "success":
                logger.debug("mpv rejected a command: %s", msg.get("error"))
        return handled

    def _on_time_pos(self, value: Any) -> None:
        self._time_pos_s = float(value) if isinstance(value, (int, float)) else 0.0

    # ---- high-level controls ----

    def load(self, path: str, *, start_playing: bool = False) -> None:
        self.command("loadfile", path, "replace")
        self.set_paused(not start_playing)

    def set_paused(self, paused: bool) -> None:
        self.set_property("pause", bool(paused))

    def pause(self) -> None:
        self.set_paused(True)

    def play(self) -> None:
        self.set_paused(False)

    def seek_seconds(self, sec: float, *, exact: bool = True) -> None:
        mode = "absolute+exact" if exact else "absolute"
        self.command("seek", max(0.0, float(sec)), mode)

    def set_volume_0_to_1(self, volume: float) -> None:
        v = min(1.0, max(0.0, float(volume)))
        self.set_property("volume", v * 100.0)   # mpv volume is 0..100

    def position_s(self) -> float:
        return self._time_pos_s
