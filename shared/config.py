"""RoomSync configuration file (TOML) parsing and validation."""
from __future__ import annotations
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from shared.playback_state import VideoIdentity
from shared.protocol import Role


@dataclass
class SyncConfig:
    drift_tolerance_s: float = 2.0
    settle_ms: int = 500
    debounce_ms: int = 1000
    heartbeat_interval_s: float = 5.0
    handoff_delay_ms: int = 1000

    def validate(self) -> list[str]:
        errors = []
        if self.drift_tolerance_s < 0:
            errors.append("sync.drift_tolerance_s must be >= 0")
        if self.settle_ms < 0:
            errors.append("sync.settle_ms must be >= 0")
        if self.debounce_ms < 0:
            errors.append("sync.debounce_ms must be >= 0")
        if self.heartbeat_interval_s <= 0:
            errors.append("sync.heartbeat_interval_s must be > 0")
        if self.handoff_delay_ms < 0:
            errors.append("sync.handoff_delay_ms must be >= 0")
        return errors


@dataclass
class ClientConfig:
    relay_url: str = "ws://localhost:9430"
    room_id: str = ""
    role: str = "member"  # "owner" | "member"
    media_root: str = "."
    media_url_template: str = "{id}/{episode}.mp4"
    log_dir: str = "logs"

    @property
    def room_role(self) -> Role:
        return Role(self.role)

    def validate(self) -> list[str]:
        errors = []
        if not self.relay_url.startswith(("ws://", "wss://")):
            errors.append(f"client.relay_url must be a ws:// or wss:// URL: {self.relay_url}")
        if self.role not in ("owner", "member"):
            errors.append(f"Invalid client.role: {self.role}")
        try:
            self.media_url_template.format(id="x", source="x", episode=1)
        except (KeyError, IndexError, ValueError) as e:
            errors.append(f"client.media_url_template is not usable: {e}")
        return errors

    def media_url_for(self, identity: VideoIdentity) -> str:
        return self.media_url_template.format(
            id=identity.video_id, source=identity.source_key, episode=identity.episode or 1
        )


@dataclass
class RoomSyncConfig:
    sync: SyncConfig = field(default_factory=SyncConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    video: Optional[VideoIdentity] = None

    def validate(self) -> list[str]:
        return self.sync.validate() + self.client.validate()


def _parse_sync(raw: dict) -> SyncConfig:
    return SyncConfig(
        drift_tolerance_s=float(raw.get("drift_tolerance_s", 2.0)),
        settle_ms=int(raw.get("settle_ms", 500)),
        debounce_ms=int(raw.get("debounce_ms", 1000)),
        heartbeat_interval_s=float(raw.get("heartbeat_interval_s", 5.0)),
        handoff_delay_ms=int(raw.get("handoff_delay_ms", 1000)),
    )


def _parse_client(raw: dict) -> ClientConfig:
    return ClientConfig(
        relay_url=raw.get("relay_url", "ws://localhost:9430"),
        room_id=raw.get("room_id", ""),
        role=raw.get("role", "member"),
        media_root=raw.get("media_root", "."),
        media_url_template=raw.get("media_url_template", "{id}/{episode}.mp4"),
        log_dir=raw.get("log_dir", "logs"),
    )


def _parse_video(raw: dict) -> Optional[VideoIdentity]:
    if not raw.get("id"):
        return None
    return VideoIdentity(
        video_id=str(raw["id"]),
        source_key=raw.get("source", ""),
        episode=raw.get("episode"),
        video_title=raw.get("title", ""),
        video_year=raw.get("year"),
        search_title=raw.get("search_title"),
    )


def load_config(path: Optional[Path]) -> RoomSyncConfig:
    """Load a roomsync.toml file. A missing file gives the defaults."""
    if path is None or not path.exists():
        return RoomSyncConfig()
    with open(path, "rb") as f:
        data = tomllib.load(f)

    return RoomSyncConfig(
        sync=_parse_sync(data.get("sync", {})),
        client=_parse_client(data.get("client", {})),
        video=_parse_video(data.get("video", {})),
    )
