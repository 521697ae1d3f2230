"""RoomSync client WebSocket channel to the room relay."""
from __future__ import annotations
import asyncio
import logging
import uuid
from typing import Any, Callable, Optional, Protocol

import websockets
from websockets.asyncio.client import ClientConnection

from client.errors import ChannelUnavailable
from shared.protocol import make_envelope, parse_envelope, EVT_ROOM_JOIN

logger = logging.getLogger("roomsync.client.channel")

Handler = Callable[[Any], None]


class RemoteChannel(Protocol):
    """Named-event publish/subscribe transport."""

    @property
    def connected(self) -> bool: ...

    def send(self, event: str, payload: Any) -> None: ...

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]: ...


class WebSocketChannel:
    """
    Connects to the room relay and delivers inbound events to subscribers
    in arrival order. Sends are fire-and-forget.
    """

    def __init__(self, url: str, room_id: str, role: str = "member",
                 on_connection_change: Optional[Callable[[bool], None]] = None):
        self.url = url
        self.room_id = room_id
        self.role = role
        self.client_id = str(uuid.uuid4())
        self.on_connection_change = on_connection_change  # callback(connected: bool)
        self._ws: Optional[ClientConnection] = None
        self._handlers: dict[str, list[Handler]] = {}
        self._send_tasks: set[asyncio.Task] = set()

    @property
    def connected(self) -> bool:
        return self._ws is not None

    def subscribe(self, event: str, handler: Handler) -> Callable[[], None]:
        if not self.connected:
            raise ChannelUnavailable(f"cannot subscribe to {event}: not connected")
        handlers = self._handlers.setdefault(event, [])
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def send(self, event: str, payload: Any) -> None:
        ws = self._ws
        if ws is None:
            raise ChannelUnavailable(f"cannot send {event}: not connected")
        task = asyncio.get_running_loop().create_task(self._send(ws, event, payload))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)

    async def _send(self, ws: ClientConnection, event: str, payload: Any) -> None:
        try:
            await ws.send(make_envelope(event, payload))
        except Exception as e:
            logger.warning("Send error (%s): %s", event, e)

    async def connect(self) -> None:
        """Connect to the relay and process messages until disconnected."""
        logger.info("Connecting to %s (room %s)", self.url, self.room_id)
        try:
            async with websockets.connect(self.url, ping_interval=10, ping_timeout=30) as ws:
                await ws.send(make_envelope(EVT_ROOM_JOIN, {
                    "room_id": self.room_id,
                    "client_id": self.client_id,
                    "role": self.role,
                }))
                self._ws = ws
                self._notify(True)
                async for raw in ws:
                    self.deliver(raw)
        except Exception as e:
            logger.warning("Connection lost: %s", e)
        finally:
            was_connected = self._ws is not None
            self._ws = None
            if was_connected:
                self._notify(False)

    async def disconnect(self) -> None:
        ws = self._ws
        if ws is not None:
            try:
                await ws.close()
                logger.info("Disconnected from relay")
            except Exception as e:
                logger.warning("Error during disconnect: %s", e)
        for task in list(self._send_tasks):
            task.cancel()

    def deliver(self, raw: str) -> None:
        """Hand one raw envelope to the subscribers of its event."""
        try:
            event, _, payload = parse_envelope(raw)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Dropping malformed message: %s", e)
            return
        logger.debug("Recv: %s", event)
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(payload)
            except Exception as e:
                logger.error("Message handling error (%s): %s", event, e)

    def _notify(self, connected: bool) -> None:
        if self.on_connection_change:
            self.on_connection_change(connected)
