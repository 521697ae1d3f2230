"""RoomSync client application: mpv, relay channel and sync session."""
from __future__ import annotations
import asyncio
import logging
from dataclasses import replace
from typing import Callable, Optional

from client.channel import WebSocketChannel
from client.mpv_player import MpvPlayer
from client.navigation import CallbackNavigator
from client.room import RoomContext
from client.session import PlaySync, SyncStatus
from shared.config import RoomSyncConfig
from shared.playback_state import VideoIdentity, parse_play_url

logger = logging.getLogger("roomsync.client.app")


class ClientApp:
    """Owns the player and the room connection, and rebinds the session as they change."""

    def __init__(self, config: RoomSyncConfig, mpv: Optional[MpvPlayer] = None,
                 channel: Optional[WebSocketChannel] = None,
                 on_status: Optional[Callable[[SyncStatus, VideoIdentity], None]] = None):
        self.config = config
        self.mpv = mpv or MpvPlayer(config.client.media_root)
        self.channel = channel or WebSocketChannel(
            config.client.relay_url, config.client.room_id, config.client.role,
        )
        self.channel.on_connection_change = self._on_connection_change
        self.room = RoomContext(self.channel, config.client.room_id, config.client.room_role)
        self.navigator = CallbackNavigator(self._request_reload)
        self.on_status = on_status  # callback(status, identity)
        self.identity = self._with_media_url(config.video) if config.video else VideoIdentity()
        self.session = self._new_session()
        self._player_ready = False
        self._reload_task: Optional[asyncio.Task] = None

    def _new_session(self) -> PlaySync:
        return PlaySync(self.room, self.navigator, self.config.sync)

    def _with_media_url(self, identity: VideoIdentity) -> VideoIdentity:
        if identity.media_url:
            return identity
        return replace(identity, media_url=self.config.client.media_url_for(identity))

    async def run(self) -> None:
        """Start mpv, open the configured video and stay connected to the room."""
        if not await self.mpv.start():
            logger.error("Player did not start; room commands will be dropped")
        if self.identity.video_id:
            await self.open_video(self.identity)
        self.refresh()
        await self.channel.connect()

    def refresh(self) -> SyncStatus:
        player = self.mpv if self.mpv.is_connected else None
        status = self.session.update(player, self.identity, self._player_ready)
        if self.on_status:
            self.on_status(status, self.identity)
        return status

    def broadcast_now(self) -> bool:
        return self.session.status().broadcast_now()

    async def open_video(self, identity: VideoIdentity) -> bool:
        """Switch the player to another video in place."""
        identity = self._with_media_url(identity)
        self._player_ready = False
        self.refresh()
        self.identity = identity
        ok = await self.mpv.load_file(identity.media_url)
        if not ok:
            logger.error("Could not load %s", identity.media_url)
        self._player_ready = ok
        self.refresh()
        return ok

    def _request_reload(self, url: str) -> None:
        if self._reload_task and not self._reload_task.done():
            self._reload_task.cancel()
        self._reload_task = asyncio.get_running_loop().create_task(self.reload(url))

    async def reload(self, url: str) -> None:
        """Full reload: drop the session with all its state and start over on url."""
        try:
            identity = parse_play_url(url)
        except ValueError as e:
            logger.warning("Ignoring reload: %s", e)
            return
        self.session.close()
        self.session = self._new_session()
        self._player_ready = False
        await self.open_video(identity)

    def _on_connection_change(self, connected: bool) -> None:
        logger.info("Relay %s", "connected" if connected else "disconnected")
        self.refresh()

    async def shutdown(self) -> None:
        self.session.close()
        await self.channel.disconnect()
        await self.mpv.stop_subprocess()
