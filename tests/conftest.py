"""Shared fakes for the sync engine tests."""
import asyncio
from typing import Any, Callable, Optional

import pytest

from client.errors import ChannelUnavailable
from client.player import PlayerEvent, PlayerEvents
from shared.config import SyncConfig
from shared.playback_state import VideoIdentity
from shared.protocol import make_envelope, parse_envelope

SEEK_EVENT_DELAY = 0.01


class FakePlayer:
    """In-memory player. Seeks report completion a little later, like a real one."""

    def __init__(self, position: float = 0.0, playing: bool = False, reject_play: bool = False):
        self.events = PlayerEvents()
        self.position = position
        self.playing = playing
        self.reject_play = reject_play
        self.calls: list[tuple] = []

    @property
    def current_position(self) -> float:
        return self.position

    @property
    def is_playing(self) -> bool:
        return self.playing

    def subscribe(self, event, handler):
        return self.events.subscribe(event, handler)

    async def play(self) -> None:
        self.calls.append(("play",))
        await asyncio.sleep(0)
        if self.reject_play:
            raise RuntimeError("autoplay blocked")
        self._start()

    def pause(self) -> None:
        self.calls.append(("pause",))
        self._stop()

    def seek_to(self, position: float) -> None:
        self.calls.append(("seek", position))
        self._seek(position)

    # what the user does through the player's own controls
    def user_play(self) -> None:
        self._start()

    def user_pause(self) -> None:
        self._stop()

    def user_seek(self, position: float) -> None:
        self._seek(position)

    def _start(self) -> None:
        self.playing = True
        self.events.emit(PlayerEvent.PLAY)

    def _stop(self) -> None:
        self.playing = False
        self.events.emit(PlayerEvent.PAUSE)

    def _seek(self, position: float) -> None:
        self.position = position
        asyncio.get_running_loop().call_later(
            SEEK_EVENT_DELAY, self.events.emit, PlayerEvent.POSITION_CHANGED
        )

    def method_calls(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]


class MemoryHub:
    """A room relay: every send reaches the other channels, in order, on a later loop turn."""

    def __init__(self) -> None:
        self.channels: list["MemoryChannel"] = []
        self.log: list[tuple[str, str, Any]] = []  # (sender, event, payload)

    def channel(self, name: str = "peer") -> "MemoryChannel":
        ch = MemoryChannel(self, name)
        self.channels.append(ch)
        return ch

    def publish(self, sender: "MemoryChannel", event: str, payload: Any) -> None:
        raw = make_envelope(event, payload)
        self.log.append((sender.name, event, payload))
        loop = asyncio.get_running_loop()
        for ch in self.channels:
            if ch is not sender and ch.connected:
                loop.call_soon(ch.deliver, raw)

    def events(self, sender: Optional[str] = None) -> list[str]:
        return [e for s, e, _ in self.log if sender is None or s == sender]


class MemoryChannel:
    def __init__(self, hub: MemoryHub, name: str):
        self.hub = hub
        self.name = name
        self.connected = True
        self.on_connection_change: Optional[Callable[[bool], None]] = None
        self._handlers: dict[str, list] = {}

    def subscribe(self, event: str, handler):
        if not self.connected:
            raise ChannelUnavailable("offline")
        handlers = self._handlers.setdefault(event, [])
        handlers.append(handler)
        return lambda: handlers.remove(handler) if handler in handlers else None

    def send(self, event: str, payload: Any) -> None:
        if not self.connected:
            raise ChannelUnavailable("offline")
        self.hub.publish(self, event, payload)

    def deliver(self, raw: str) -> None:
        event, _, payload = parse_envelope(raw)
        for handler in list(self._handlers.get(event, ())):
            handler(payload)

    def handler_count(self) -> int:
        return sum(len(h) for h in self._handlers.values())

    def set_connected(self, connected: bool) -> None:
        self.connected = connected
        if self.on_connection_change:
            self.on_connection_change(connected)

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        self.connected = False


class RecordingNavigator:
    def __init__(self) -> None:
        self.urls: list[str] = []

    def navigate_full_reload(self, url: str) -> None:
        self.urls.append(url)


@pytest.fixture
def fast_config() -> SyncConfig:
    return SyncConfig(
        drift_tolerance_s=2.0,
        settle_ms=50,
        debounce_ms=0,
        heartbeat_interval_s=0.05,
        handoff_delay_ms=50,
    )


@pytest.fixture
def hub() -> MemoryHub:
    return MemoryHub()


@pytest.fixture
def navigator() -> RecordingNavigator:
    return RecordingNavigator()


@pytest.fixture
def identity() -> VideoIdentity:
    return VideoIdentity(
        video_id="v42",
        source_key="alpha",
        episode=3,
        video_title="Some Show",
        video_year="2021",
        media_url="https://cdn.example/v42/3.m3u8",
    )
