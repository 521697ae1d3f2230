"""RoomSync outbound broadcasts of local playback changes."""
from __future__ import annotations
import asyncio
import logging
import time
from typing import Callable, Optional

from client.player import PlaybackFacade, PlayerEvent, Unsubscribe
from client.room import RoomContext
from client.suppressor import FeedbackSuppressor
from shared.config import SyncConfig
from shared.playback_state import PlaybackState, VideoIdentity

logger = logging.getLogger("roomsync.client.broadcaster")


class BroadcastController:
    """
    Turns local player events into room announcements.

    play/pause/seek go out immediately with no state payload. Full state
    (sync) goes out through broadcast_play_state only, which is debounced
    and also driven by the heartbeat while playing.
    """

    def __init__(self, room: RoomContext, suppressor: FeedbackSuppressor,
                 identity_ref: Callable[[], VideoIdentity],
                 config: Optional[SyncConfig] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.room = room
        self.suppressor = suppressor
        self._identity_ref = identity_ref
        self.config = config or SyncConfig()
        self._clock = clock
        self._player: Optional[PlaybackFacade] = None
        self._unsubscribers: list[Unsubscribe] = []
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._last_broadcast: Optional[float] = None

    @property
    def player(self) -> Optional[PlaybackFacade]:
        return self._player

    def attach(self, player: PlaybackFacade) -> None:
        if player is self._player:
            return
        self.detach()
        self._player = player
        self._unsubscribers = [
            player.subscribe(PlayerEvent.PLAY, self._on_play),
            player.subscribe(PlayerEvent.PAUSE, self._on_pause),
            player.subscribe(PlayerEvent.POSITION_CHANGED, self._on_position_changed),
        ]
        self._heartbeat_task = asyncio.get_running_loop().create_task(self._heartbeat_loop())
        logger.info("Player events attached, heartbeat every %.1fs", self.config.heartbeat_interval_s)

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None
        if self._player is not None:
            logger.info("Player events detached")
        self._player = None

    # ---- local player events ----

    def _on_play(self) -> None:
        if self.suppressor.is_suppressing:
            logger.debug("Play caused by remote command, not broadcasting")
            return
        player = self._player
        if player is None:
            return
        if player.is_playing:
            self.room.announce_play()
        else:
            logger.debug("Play event but player is paused, not broadcasting")

    def _on_pause(self) -> None:
        if self.suppressor.is_suppressing:
            logger.debug("Pause caused by remote command, not broadcasting")
            return
        player = self._player
        if player is None:
            return
        if not player.is_playing:
            self.room.announce_pause()
        else:
            logger.debug("Pause event but player is playing, not broadcasting")

    def _on_position_changed(self) -> None:
        if self.suppressor.is_suppressing:
            logger.debug("Seek caused by remote command, not broadcasting")
            return
        player = self._player
        if player is None:
            return
        self.room.announce_seek(player.current_position)

    # ---- full state ----

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.heartbeat_interval_s)
            player = self._player
            if player is None or not player.is_playing:
                continue
            self.broadcast_play_state()

    def broadcast_play_state(self) -> bool:
        """Announce the full playback state unless one went out too recently."""
        player = self._player
        if player is None or not self.room.in_room:
            return False
        now = self._clock()
        if self._last_broadcast is not None and (now - self._last_broadcast) * 1000 < self.config.debounce_ms:
            logger.debug("Sync debounced")
            return False
        self._last_broadcast = now
        state = PlaybackState.snapshot(self._identity_ref(), player.current_position, player.is_playing)
        return self.room.announce_sync(state)
