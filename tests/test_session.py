"""End-to-end tests: two peers sharing a room through an in-memory relay."""
import asyncio
from dataclasses import replace
from urllib.parse import parse_qs, urlsplit

from client.player import PlayerEvent
from client.room import RoomContext
from client.session import PlaySync
from conftest import FakePlayer, RecordingNavigator
from shared.config import SyncConfig
from shared.protocol import Role

QUIET = SyncConfig(settle_ms=50, debounce_ms=0, heartbeat_interval_s=10, handoff_delay_ms=50)


class Peer:
    def __init__(self, hub, name, role, config=QUIET, player=None, room_id="room-1"):
        self.channel = hub.channel(name)
        self.room = RoomContext(self.channel, room_id, role)
        self.navigator = RecordingNavigator()
        self.sync = PlaySync(self.room, self.navigator, config)
        self.player = player or FakePlayer()

    def bind(self, identity, ready=True):
        return self.sync.update(self.player, identity, ready)


def test_status_for_member_and_owner(hub, identity):
    async def scenario():
        member = Peer(hub, "b", Role.MEMBER)
        owner = Peer(hub, "a", Role.OWNER)
        m = member.bind(identity)
        o = owner.bind(identity)
        assert (m.in_room, m.is_owner, m.controls_disabled) == (True, False, True)
        assert (o.in_room, o.is_owner, o.controls_disabled) == (True, True, False)
        member.sync.close()
        owner.sync.close()

    asyncio.run(scenario())


def test_status_outside_room(hub, identity):
    async def scenario():
        solo = Peer(hub, "solo", Role.MEMBER, room_id="")
        status = solo.bind(identity)
        assert not status.in_room
        assert not status.controls_disabled
        assert solo.channel.handler_count() == 0
        assert solo.player.events.handler_count(PlayerEvent.PLAY) == 0
        solo.sync.close()

    asyncio.run(scenario())


def test_pause_reaches_peer_without_echo(hub, identity):
    async def scenario():
        a = Peer(hub, "a", Role.MEMBER, player=FakePlayer(position=30.0, playing=True))
        b = Peer(hub, "b", Role.MEMBER, player=FakePlayer(position=30.0, playing=True))
        a.bind(identity)
        b.bind(identity)

        a.player.user_pause()
        await asyncio.sleep(0.1)
        assert not b.player.is_playing
        assert hub.events() == ["play:pause"]
        a.sync.close()
        b.sync.close()

    asyncio.run(scenario())


def test_play_reaches_peer_without_echo(hub, identity):
    async def scenario():
        a = Peer(hub, "a", Role.MEMBER)
        b = Peer(hub, "b", Role.MEMBER)
        a.bind(identity)
        b.bind(identity)

        a.player.user_play()
        await asyncio.sleep(0.1)
        assert b.player.is_playing
        assert hub.events() == ["play:play"]
        a.sync.close()
        b.sync.close()

    asyncio.run(scenario())


def test_seek_reaches_peer_without_echo(hub, identity):
    async def scenario():
        a = Peer(hub, "a", Role.MEMBER, player=FakePlayer(position=10.0))
        b = Peer(hub, "b", Role.MEMBER, player=FakePlayer(position=10.0))
        a.bind(identity)
        b.bind(identity)

        a.player.user_seek(200.0)
        await asyncio.sleep(0.1)
        assert b.player.current_position == 200.0
        assert hub.events() == ["play:seek"]
        a.sync.close()
        b.sync.close()

    asyncio.run(scenario())


def test_heartbeat_corrects_drifted_peer(hub, identity):
    async def scenario():
        config = replace(QUIET, heartbeat_interval_s=0.05)
        a = Peer(hub, "a", Role.MEMBER, config, player=FakePlayer(position=120.0, playing=True))
        b = Peer(hub, "b", Role.MEMBER, config, player=FakePlayer(position=100.0, playing=True))
        a.bind(identity)
        b.bind(identity)
        # b's own heartbeat would announce 100.0; only a's should land
        b.player.playing = False
        await asyncio.sleep(0.09)
        assert b.player.method_calls("seek") == [("seek", 120.0)]
        assert "play:update" not in hub.events("b")
        assert "play:seek" not in hub.events()
        a.sync.close()
        b.sync.close()

    asyncio.run(scenario())


def test_owner_video_change_moves_member(hub, identity):
    async def scenario():
        owner = Peer(hub, "a", Role.OWNER)
        member = Peer(hub, "b", Role.MEMBER)
        member.bind(identity)
        owner.bind(identity)
        owner.bind(replace(identity, episode=4, media_url="https://cdn.example/v42/4.m3u8"))
        await asyncio.sleep(0.12)

        assert hub.events("a") == ["play:change"]
        assert len(member.navigator.urls) == 1
        query = parse_qs(urlsplit(member.navigator.urls[0]).query)
        assert query["episode"] == ["4"]
        assert query["id"] == ["v42"]
        assert query["source"] == ["alpha"]
        assert owner.navigator.urls == []
        owner.sync.close()
        member.sync.close()

    asyncio.run(scenario())


def test_owner_video_reaches_member_after_late_connect(hub, identity):
    async def scenario():
        owner = Peer(hub, "a", Role.OWNER)
        member = Peer(hub, "b", Role.MEMBER)
        member.bind(identity)
        owner.channel.connected = False
        owner.bind(identity)
        await asyncio.sleep(0.1)
        assert hub.events("a") == []

        owner.channel.connected = True
        owner.bind(identity)
        await asyncio.sleep(0.1)
        assert hub.events("a") == ["play:change"]
        assert len(member.navigator.urls) == 1
        owner.sync.close()
        member.sync.close()

    asyncio.run(scenario())


def test_member_change_is_not_announced(hub, identity):
    async def scenario():
        member = Peer(hub, "b", Role.MEMBER)
        member.bind(identity)
        member.bind(replace(identity, episode=9))
        await asyncio.sleep(0.1)
        assert hub.log == []
        member.sync.close()

    asyncio.run(scenario())


def test_player_not_ready_waits(hub, identity):
    async def scenario():
        a = Peer(hub, "a", Role.MEMBER)
        b = Peer(hub, "b", Role.MEMBER)
        a.bind(identity)
        b.bind(identity, ready=False)
        assert b.player.events.handler_count(PlayerEvent.PLAY) == 0

        # commands for b are dropped while it is not ready
        a.player.user_play()
        await asyncio.sleep(0.02)
        assert not b.player.is_playing

        b.bind(identity, ready=True)
        assert b.player.events.handler_count(PlayerEvent.PLAY) == 1
        a.player.user_pause()
        a.player.user_play()
        await asyncio.sleep(0.02)
        assert b.player.is_playing
        a.sync.close()
        b.sync.close()

    asyncio.run(scenario())


def test_subscribes_once_channel_is_up(hub, identity):
    async def scenario():
        b = Peer(hub, "b", Role.MEMBER)
        b.channel.connected = False
        b.bind(identity)
        assert b.channel.handler_count() == 0

        b.channel.connected = True
        b.bind(identity)
        assert b.channel.handler_count() == 5
        b.bind(identity)
        assert b.channel.handler_count() == 5
        b.sync.close()

    asyncio.run(scenario())


def test_broadcast_now(hub, identity):
    async def scenario():
        a = Peer(hub, "a", Role.MEMBER, config=replace(QUIET, debounce_ms=1000),
                 player=FakePlayer(position=64.0, playing=False))
        status = a.bind(identity)
        assert status.broadcast_now() is True
        assert status.broadcast_now() is False
        assert hub.events() == ["play:update"]
        a.sync.close()

    asyncio.run(scenario())


def test_close_releases_everything(hub, identity):
    async def scenario():
        owner = Peer(hub, "a", Role.OWNER, player=FakePlayer(position=10.0, playing=True))
        other = Peer(hub, "b", Role.MEMBER)
        other.bind(identity)
        owner.bind(identity)  # handoff pending
        owner.sync.close()

        assert owner.channel.handler_count() == 0
        assert owner.player.events.handler_count(PlayerEvent.PAUSE) == 0
        other.player.user_play()
        await asyncio.sleep(0.1)
        # no change announcement, no command applied after teardown
        assert hub.events("a") == []
        assert owner.player.calls == []
        # further updates are ignored
        status = owner.bind(replace(identity, episode=8))
        assert status.in_room
        assert owner.channel.handler_count() == 0
        other.sync.close()

    asyncio.run(scenario())
