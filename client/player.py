"""RoomSync playback facade contract."""
from __future__ import annotations
import enum
import logging
from typing import Awaitable, Callable, Protocol

logger = logging.getLogger("roomsync.client.player")

Unsubscribe = Callable[[], None]


class PlayerEvent(enum.Enum):
    PLAY = "play"
    PAUSE = "pause"
    POSITION_CHANGED = "positionChanged"  # user seek finished


class PlaybackFacade(Protocol):
    """What the sync engine needs from a media player."""

    @property
    def current_position(self) -> float: ...

    @property
    def is_playing(self) -> bool: ...

    def play(self) -> Awaitable[None]: ...

    def pause(self) -> None: ...

    def seek_to(self, position: float) -> None: ...

    def subscribe(self, event: PlayerEvent, handler: Callable[[], None]) -> Unsubscribe: ...


class PlayerEvents:
    """Handler registry players can delegate subscribe() to."""

    def __init__(self) -> None:
        self._handlers: dict[PlayerEvent, list[Callable[[], None]]] = {e: [] for e in PlayerEvent}

    def subscribe(self, event: PlayerEvent, handler: Callable[[], None]) -> Unsubscribe:
        handlers = self._handlers[event]
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def emit(self, event: PlayerEvent) -> None:
        for handler in list(self._handlers[event]):
            try:
                handler()
            except Exception as e:
                logger.error("Player event handler error (%s): %s", event.value, e)

    def handler_count(self, event: PlayerEvent) -> int:
        return len(self._handlers[event])
