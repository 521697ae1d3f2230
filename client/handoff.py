"""RoomSync owner video-change announcement."""
from __future__ import annotations
import asyncio
import logging
from typing import Callable, Optional

from client.player import PlaybackFacade
from client.room import RoomContext
from shared.config import SyncConfig
from shared.playback_state import PlaybackState, VideoIdentity

logger = logging.getLogger("roomsync.client.handoff")


class VideoChangeHandoff:
    """
    Announces the owner's video once it has settled.
    Identity changes inside the delay restart it, so only the final video
    of a burst (page init, quick episode flips) goes out.
    """

    def __init__(self, room: RoomContext, player_ref: Callable[[], Optional[PlaybackFacade]],
                 config: Optional[SyncConfig] = None):
        self.room = room
        self._player_ref = player_ref
        self.config = config or SyncConfig()
        self._last_key: Optional[tuple] = None
        self._pending: Optional[asyncio.TimerHandle] = None

    def identity_changed(self, identity: VideoIdentity) -> None:
        if identity.key == self._last_key:
            return
        self.cancel()
        if not (self.room.is_owner and self.room.in_room):
            return
        if not identity.video_id or not identity.media_url:
            # not resolved yet; the next update with a media URL schedules
            self._last_key = None
            return
        if not self.room.connected:
            # the update after the relay connects schedules
            self._last_key = None
            return
        self._last_key = identity.key
        logger.debug("Video changed to %s, announcing in %dms", identity.key, self.config.handoff_delay_ms)
        self._pending = asyncio.get_running_loop().call_later(
            self.config.handoff_delay_ms / 1000.0, self._announce, identity
        )

    def _announce(self, identity: VideoIdentity) -> None:
        self._pending = None
        player = self._player_ref()
        position = player.current_position if player is not None else 0.0
        playing = player.is_playing if player is not None else False
        state = PlaybackState.snapshot(identity, position, playing)
        logger.info("Announcing video change: %s ep %s", state.video_id, state.episode)
        if not self.room.announce_change(state):
            logger.info("Relay offline, video change will be announced after reconnect")
            self._last_key = None

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
