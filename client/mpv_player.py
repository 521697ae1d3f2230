"""RoomSync playback facade over mpv's JSON IPC socket."""
from __future__ import annotations
import asyncio
import json
import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional

from client.errors import PlayOperationRejected
from client.player import PlayerEvent, PlayerEvents, Unsubscribe

logger = logging.getLogger("roomsync.client.mpv")

_REQUEST_ID = 0

# observe_property ids
_OBS_PAUSE = 1
_OBS_TIME_POS = 2
_OBS_IDLE = 3


def _next_id() -> int:
    global _REQUEST_ID
    _REQUEST_ID += 1
    return _REQUEST_ID


class MpvPlayer:
    """
    Drives an mpv subprocess and mirrors its transport state.

    Position and pause state are kept current through observed properties,
    so current_position and is_playing can be read synchronously. pause()
    and seek_to() are fire-and-forget; play() waits for mpv to answer.
    """

    def __init__(self, media_root: str = "."):
        self.media_root = Path(media_root)
        self._proc: Optional[subprocess.Popen] = None
        self._socket_path = str(Path(tempfile.gettempdir()) / f"roomsync_mpv_{os.getpid()}.sock")
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._pending: dict[int, asyncio.Future] = {}
        self._fire_tasks: set[asyncio.Task] = set()
        self._running = False
        self._connected = False
        self._read_task: Optional[asyncio.Task] = None
        self._events = PlayerEvents()
        self._position = 0.0
        self._paused: Optional[bool] = None
        self._idle = True
        self._seek_pending = False

    # ---- facade ----

    @property
    def current_position(self) -> float:
        return self._position

    @property
    def is_playing(self) -> bool:
        return self._paused is False and not self._idle

    def subscribe(self, event: PlayerEvent, handler: Callable[[], None]) -> Unsubscribe:
        return self._events.subscribe(event, handler)

    async def play(self) -> None:
        if not self._connected:
            raise PlayOperationRejected("mpv is not running")
        if self._idle:
            raise PlayOperationRejected("no media loaded")
        result = await self._command("set_property", "pause", False)
        if result is None or result.get("error") != "success":
            reason = result.get("error") if result else "no reply"
            raise PlayOperationRejected(f"mpv refused play: {reason}")

    def pause(self) -> None:
        self._fire("set_property", "pause", True)

    def seek_to(self, position: float) -> None:
        self._position = max(0.0, position)
        self._fire("seek", self._position, "absolute")

    # ---- process / IPC ----

    async def start(self) -> bool:
        """Start mpv subprocess."""
        # Clean up old socket
        if os.path.exists(self._socket_path):
            os.unlink(self._socket_path)

        cmd = [
            "mpv",
            "--no-config",
            "--idle=yes",
            "--force-window=yes",
            "--no-terminal",
            f"--input-ipc-server={self._socket_path}",
            "--keep-open=yes",
        ]
        try:
            self._proc = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            logger.info("mpv started (pid=%d)", self._proc.pid)
        except FileNotFoundError:
            logger.error("mpv not found; install mpv to use client playback")
            return False

        # Wait for socket to appear
        for _ in range(50):
            await asyncio.sleep(0.1)
            if os.path.exists(self._socket_path):
                break
        else:
            logger.error("mpv IPC socket did not appear")
            return False

        await self._connect_socket()
        if self._connected:
            await self._command("observe_property", _OBS_PAUSE, "pause")
            await self._command("observe_property", _OBS_TIME_POS, "time-pos")
            await self._command("observe_property", _OBS_IDLE, "idle-active")
        return self._connected

    async def _connect_socket(self) -> None:
        try:
            self._reader, self._writer = await asyncio.open_unix_connection(self._socket_path)
            self._connected = True
            self._running = True
            self._read_task = asyncio.create_task(self._read_loop())
            logger.info("Connected to mpv IPC socket")
        except Exception as e:
            logger.error("Failed to connect to mpv socket: %s", e)
            self._connected = False

    async def _read_loop(self) -> None:
        """Read responses and events from mpv."""
        while self._running and self._reader:
            try:
                line = await self._reader.readline()
                if not line:
                    break
                data = json.loads(line.decode().strip())
                if "event" in data:
                    self.handle_event(data)
                elif "request_id" in data:
                    fut = self._pending.pop(data["request_id"], None)
                    if fut and not fut.done():
                        fut.set_result(data)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.debug("mpv read error: %s", e)
                break
        self._connected = False

    def handle_event(self, data: dict[str, Any]) -> None:
        """Map one mpv IPC event onto the facade's state and events."""
        event = data.get("event")
        if event == "property-change":
            self._on_property(data.get("name"), data.get("data"))
        elif event == "seek":
            self._seek_pending = True
        elif event == "playback-restart":
            # also fires after loadfile; only a preceding seek counts
            if self._seek_pending:
                self._seek_pending = False
                self._events.emit(PlayerEvent.POSITION_CHANGED)

    def _on_property(self, name: Optional[str], value: Any) -> None:
        if name == "time-pos":
            if value is not None:
                self._position = float(value)
        elif name == "idle-active":
            self._idle = bool(value)
            if self._idle:
                self._position = 0.0
        elif name == "pause":
            was_paused = self._paused
            self._paused = bool(value)
            if was_paused is None or was_paused == self._paused:
                return
            self._events.emit(PlayerEvent.PAUSE if self._paused else PlayerEvent.PLAY)

    async def _command(self, *args: Any) -> Optional[dict]:
        """Send a command to mpv and wait for response."""
        if not self._connected or not self._writer:
            return None
        req_id = _next_id()
        cmd = json.dumps({"command": list(args), "request_id": req_id}) + "\n"
        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[req_id] = fut
        try:
            self._writer.write(cmd.encode())
            await self._writer.drain()
            return await asyncio.wait_for(fut, timeout=3.0)
        except asyncio.TimeoutError:
            self._pending.pop(req_id, None)
            logger.warning("mpv command timed out: %s", args[0] if args else "")
            return None
        except Exception as e:
            self._pending.pop(req_id, None)
            logger.error("mpv command error: %s", e)
            return None

    def _fire(self, *args: Any) -> None:
        if not self._connected:
            logger.debug("mpv not connected, dropping %s", args[0])
            return
        task = asyncio.get_running_loop().create_task(self._command(*args))
        self._fire_tasks.add(task)
        task.add_done_callback(self._fire_tasks.discard)

    def resolve_media(self, media: str) -> str:
        if "://" in media:
            return media
        return str((self.media_root / media).resolve())

    async def load_file(self, media: str) -> bool:
        target = self.resolve_media(media)
        logger.info("Loading %s", target)
        result = await self._command("loadfile", target, "replace")
        return result is not None and result.get("error") == "success"

    async def stop_subprocess(self) -> None:
        """Terminate mpv."""
        self._running = False
        self._connected = False
        if self._read_task:
            self._read_task.cancel()
        for task in list(self._fire_tasks):
            task.cancel()
        if self._writer:
            try:
                self._writer.close()
            except Exception as e:
                logger.debug("Closing mpv socket: %s", e)
        if self._proc:
            self._proc.terminate()
            try:
                self._proc.wait(timeout=3)
            except subprocess.TimeoutExpired:
                self._proc.kill()
        if os.path.exists(self._socket_path):
            os.unlink(self._socket_path)
        logger.info("mpv stopped")

    @property
    def is_connected(self) -> bool:
        return self._connected
