"""RoomSync room context: role, membership and outbound announcements."""
from __future__ import annotations
import logging
from typing import Any, Callable

from client.channel import RemoteChannel
from client.errors import ChannelUnavailable
from shared.playback_state import PlaybackState
from shared.protocol import Command, CommandKind, Role, encode_command

logger = logging.getLogger("roomsync.client.room")


class RoomContext:
    def __init__(self, channel: RemoteChannel, room_id: str, role: Role = Role.MEMBER):
        self.channel = channel
        self.room_id = room_id
        self.role = role

    @property
    def in_room(self) -> bool:
        return bool(self.room_id)

    @property
    def is_owner(self) -> bool:
        return self.role is Role.OWNER

    @property
    def connected(self) -> bool:
        return self.channel.connected

    def subscribe(self, event: str, handler: Callable[[Any], None]) -> Callable[[], None]:
        return self.channel.subscribe(event, handler)

    def announce_play(self) -> bool:
        return self._announce(Command(CommandKind.PLAY))

    def announce_pause(self) -> bool:
        return self._announce(Command(CommandKind.PAUSE))

    def announce_seek(self, position: float) -> bool:
        return self._announce(Command(CommandKind.SEEK, position=position))

    def announce_change(self, state: PlaybackState) -> bool:
        return self._announce(Command(CommandKind.CHANGE, state=state))

    def announce_sync(self, state: PlaybackState) -> bool:
        return self._announce(Command(CommandKind.SYNC, state=state))

    def _announce(self, command: Command) -> bool:
        event, payload = encode_command(command)
        try:
            self.channel.send(event, payload)
        except ChannelUnavailable as e:
            logger.debug("Dropped %s: %s", event, e)
            return False
        logger.debug("Sent %s", event)
        return True
