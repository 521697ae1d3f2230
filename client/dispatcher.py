"""RoomSync inbound command dispatcher."""
from __future__ import annotations
import logging
from typing import Any, Callable, Optional

from client.errors import PlayerUnavailable, PlayOperationRejected
from client.navigation import Navigator
from client.player import PlaybackFacade
from client.room import RoomContext
from client.suppressor import FeedbackSuppressor
from shared.config import SyncConfig
from shared.playback_state import build_play_url
from shared.protocol import Command, CommandKind, decode_command

logger = logging.getLogger("roomsync.client.dispatcher")


class CommandDispatcher:
    """
    Applies remote playback commands to the local player.
    Every mutation goes through the suppressor so the player events it
    causes are not broadcast back to the room.
    """

    def __init__(self, room: RoomContext, navigator: Navigator, suppressor: FeedbackSuppressor,
                 player_ref: Callable[[], Optional[PlaybackFacade]],
                 config: Optional[SyncConfig] = None):
        self.room = room
        self.navigator = navigator
        self.suppressor = suppressor
        self._player_ref = player_ref
        self.config = config or SyncConfig()
        self._closed = False

    def handle_event(self, event: str, payload: Any) -> None:
        """Channel callback: decode and dispatch one inbound event."""
        try:
            command = decode_command(event, payload)
        except ValueError as e:
            logger.warning("Dropping malformed %s: %s", event, e)
            return
        self.dispatch(command)

    def dispatch(self, command: Command) -> None:
        if self._closed:
            return
        logger.debug("Recv command: %s", command.kind.name)

        if command.kind is CommandKind.CHANGE:
            self._handle_change(command)
            return

        try:
            player = self._require_player()
        except PlayerUnavailable as e:
            logger.warning("Dropping %s: %s", command.kind.value, e)
            return

        if command.kind is CommandKind.SYNC:
            self._handle_sync(player, command)
        elif command.kind is CommandKind.PLAY:
            self._handle_play(player)
        elif command.kind is CommandKind.PAUSE:
            self._handle_pause(player)
        elif command.kind is CommandKind.SEEK:
            self._handle_seek(player, command.position or 0.0)

    def _require_player(self) -> PlaybackFacade:
        player = self._player_ref()
        if player is None:
            raise PlayerUnavailable("player not attached")
        return player

    def _handle_sync(self, player: PlaybackFacade, command: Command) -> None:
        # Position only; play/pause belongs to PLAY and PAUSE so a late sync
        # cannot undo an in-flight transport change.
        announced = command.state.position
        drift = abs(player.current_position - announced)
        if drift > self.config.drift_tolerance_s:
            logger.info("Drift %.2fs, seeking to %.2f", drift, announced)
            self.suppressor.run(lambda: player.seek_to(announced), self.config.settle_ms)
        else:
            logger.debug("Drift %.2fs within tolerance", drift)
            self.suppressor.hold()

    def _handle_play(self, player: PlaybackFacade) -> None:
        if player.is_playing:
            logger.debug("Already playing, skipping play")
            self.suppressor.hold()
            return
        logger.info("Remote play")
        self.suppressor.run(lambda: self._play(player), self.config.settle_ms)

    async def _play(self, player: PlaybackFacade) -> None:
        try:
            await player.play()
        except PlayOperationRejected:
            raise
        except Exception as e:
            raise PlayOperationRejected(str(e)) from e

    def _handle_pause(self, player: PlaybackFacade) -> None:
        if not player.is_playing:
            logger.debug("Already paused, skipping pause")
            self.suppressor.hold()
            return
        logger.info("Remote pause")
        self.suppressor.run(player.pause, self.config.settle_ms)

    def _handle_seek(self, player: PlaybackFacade, position: float) -> None:
        logger.info("Remote seek to %.2f", position)
        self.suppressor.run(lambda: player.seek_to(position), self.config.settle_ms)

    def _handle_change(self, command: Command) -> None:
        if self.room.is_owner:
            # The owner is the source of truth for what is playing
            logger.debug("Ignoring change as owner")
            return
        url = build_play_url(command.state)
        logger.info("Following owner to %s", url)
        self.navigator.navigate_full_reload(url)

    def close(self) -> None:
        self._closed = True
