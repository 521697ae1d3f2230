"""RoomSync network protocol definitions."""
from __future__ import annotations
import enum
import json
import time
from dataclasses import dataclass
from typing import Any, Optional

from shared.playback_state import PlaybackState


def _now_ms() -> int:
    return int(time.time() * 1000)


def make_envelope(event: str, payload: Any) -> str:
    return json.dumps({"event": event, "ts_utc_ms": _now_ms(), "payload": payload})


def parse_envelope(raw: str) -> tuple[str, int, Any]:
    data = json.loads(raw)
    return data["event"], data.get("ts_utc_ms", 0), data.get("payload", {})


# ---- Room events ----
EVT_ROOM_JOIN = "room:join"

# ---- Playback events (peer <-> peer via relay) ----
EVT_SYNC = "play:update"
EVT_PLAY = "play:play"
EVT_PAUSE = "play:pause"
EVT_SEEK = "play:seek"
EVT_CHANGE = "play:change"


class CommandKind(enum.Enum):
    SYNC = EVT_SYNC
    PLAY = EVT_PLAY
    PAUSE = EVT_PAUSE
    SEEK = EVT_SEEK
    CHANGE = EVT_CHANGE


PLAYBACK_EVENTS = tuple(kind.value for kind in CommandKind)


class Role(enum.Enum):
    OWNER = "owner"
    MEMBER = "member"


@dataclass(frozen=True)
class Command:
    """A decoded inbound playback command."""
    kind: CommandKind
    state: Optional[PlaybackState] = None  # SYNC, CHANGE
    position: Optional[float] = None  # SEEK


def decode_command(event: str, payload: Any) -> Command:
    """
    Build a Command from an event name and its payload.
    Raises ValueError for unknown events or malformed payloads.
    """
    kind = CommandKind(event)
    if kind is CommandKind.SYNC:
        # a sync without a position cannot be compared for drift
        raw = payload.get("position") if isinstance(payload, dict) else None
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise ValueError(f"sync payload has no numeric position: {payload!r}")
    if kind in (CommandKind.SYNC, CommandKind.CHANGE):
        return Command(kind, state=PlaybackState.from_payload(payload))
    if kind is CommandKind.SEEK:
        # Older peers send the bare number
        raw = payload.get("position") if isinstance(payload, dict) else payload
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise ValueError(f"seek payload has no numeric position: {payload!r}")
        return Command(kind, position=max(0.0, float(raw)))
    return Command(kind)


def encode_command(command: Command) -> tuple[str, Any]:
    """Return (event, payload) for an outbound command."""
    if command.kind in (CommandKind.SYNC, CommandKind.CHANGE):
        if command.state is None:
            raise ValueError(f"{command.kind.name} needs a playback state")
        return command.kind.value, command.state.to_payload()
    if command.kind is CommandKind.SEEK:
        return command.kind.value, {"position": float(command.position or 0.0)}
    return command.kind.value, {}
