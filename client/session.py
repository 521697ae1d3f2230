"""RoomSync play-page synchronization session."""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from client.broadcaster import BroadcastController
from client.dispatcher import CommandDispatcher
from client.errors import ChannelUnavailable
from client.handoff import VideoChangeHandoff
from client.navigation import Navigator
from client.player import PlaybackFacade
from client.room import RoomContext
from client.suppressor import FeedbackSuppressor
from shared.config import SyncConfig
from shared.playback_state import VideoIdentity
from shared.protocol import PLAYBACK_EVENTS, Role

logger = logging.getLogger("roomsync.client.session")


@dataclass(frozen=True)
class SyncStatus:
    in_room: bool
    is_owner: bool
    controls_disabled: bool  # advisory for the surrounding UI only
    broadcast_now: Callable[[], bool]


class PlaySync:
    """
    Keeps one play page in step with its room.

    The host calls update() whenever the player, the video or player
    readiness changes; it is cheap to call when nothing did. close() ends
    the session and releases every timer and subscription.
    """

    def __init__(self, room: RoomContext, navigator: Navigator, config: Optional[SyncConfig] = None):
        self.room = room
        self.config = config or SyncConfig()
        self.suppressor = FeedbackSuppressor()
        self._identity = VideoIdentity()
        self.broadcaster = BroadcastController(room, self.suppressor, lambda: self._identity, self.config)
        self.dispatcher = CommandDispatcher(
            room, navigator, self.suppressor, lambda: self.broadcaster.player, self.config
        )
        self.handoff = VideoChangeHandoff(room, lambda: self.broadcaster.player, self.config)
        self._channel_unsubscribers: list[Callable[[], None]] = []
        self._closed = False

    @property
    def identity(self) -> VideoIdentity:
        return self._identity

    def update(self, player: Optional[PlaybackFacade], identity: VideoIdentity,
               player_ready: bool) -> SyncStatus:
        if self._closed:
            return self.status()
        self._identity = identity

        if self.room.in_room:
            self._subscribe_channel()
            if player is not None and player_ready:
                self.broadcaster.attach(player)
            else:
                if player is not None:
                    logger.debug("Player not ready yet, waiting")
                self.broadcaster.detach()
            self.handoff.identity_changed(identity)
        else:
            self._teardown()

        return self.status()

    def status(self) -> SyncStatus:
        in_room = self.room.in_room
        return SyncStatus(
            in_room=in_room,
            is_owner=self.room.is_owner,
            controls_disabled=in_room and self.room.role is Role.MEMBER,
            broadcast_now=self.broadcaster.broadcast_play_state,
        )

    def _subscribe_channel(self) -> None:
        if self._channel_unsubscribers:
            return
        unsubscribers = []
        try:
            for event in PLAYBACK_EVENTS:
                unsubscribers.append(self.room.subscribe(event, self._handler_for(event)))
        except ChannelUnavailable as e:
            for unsubscribe in unsubscribers:
                unsubscribe()
            logger.info("Not listening for room commands yet: %s", e)
            return
        self._channel_unsubscribers = unsubscribers
        logger.info("Listening for room commands in %s", self.room.room_id)

    def _handler_for(self, event: str) -> Callable[[object], None]:
        def handle(payload: object) -> None:
            self.dispatcher.handle_event(event, payload)
        return handle

    def _unsubscribe_channel(self) -> None:
        for unsubscribe in self._channel_unsubscribers:
            unsubscribe()
        self._channel_unsubscribers = []

    def _teardown(self) -> None:
        self._unsubscribe_channel()
        self.broadcaster.detach()
        self.handoff.cancel()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._teardown()
        self.dispatcher.close()
        self.suppressor.close()
        logger.info("Sync session closed")
