"""RoomSync playback state wire entity and play-page URLs."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import parse_qs, urlencode, urlsplit

STATE_KIND = "play"
PLAY_PATH = "/play"


@dataclass(frozen=True)
class VideoIdentity:
    """What the host page is currently showing."""
    video_id: str = ""
    source_key: str = ""
    episode: Optional[int] = None
    video_title: str = ""
    video_year: Optional[str] = None
    search_title: Optional[str] = None
    media_url: str = ""

    @property
    def key(self) -> tuple[str, str, Optional[int]]:
        """The part of the identity that decides whether the video changed."""
        return (self.video_id, self.source_key, self.episode)


@dataclass(frozen=True)
class PlaybackState:
    media_url: str = ""
    position: float = 0.0  # seconds, point sample on the sender's clock
    is_playing: bool = False
    video_id: str = ""
    video_title: str = ""
    video_year: Optional[str] = None
    search_title: Optional[str] = None
    episode: Optional[int] = None
    source_key: str = ""
    kind: str = STATE_KIND

    @classmethod
    def snapshot(cls, identity: VideoIdentity, position: float, is_playing: bool) -> PlaybackState:
        return cls(
            media_url=identity.media_url,
            position=max(0.0, float(position or 0.0)),
            is_playing=bool(is_playing),
            video_id=identity.video_id,
            video_title=identity.video_title,
            video_year=identity.video_year,
            search_title=identity.search_title,
            episode=identity.episode,
            source_key=identity.source_key,
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "kind": self.kind,
            "mediaUrl": self.media_url,
            "position": self.position,
            "isPlaying": self.is_playing,
            "videoId": self.video_id,
            "videoTitle": self.video_title,
            "sourceKey": self.source_key,
        }
        if self.video_year:
            payload["videoYear"] = self.video_year
        if self.search_title:
            payload["searchTitle"] = self.search_title
        if self.episode is not None:
            payload["episode"] = self.episode
        return payload

    @classmethod
    def from_payload(cls, payload: Any) -> PlaybackState:
        if not isinstance(payload, dict):
            raise ValueError(f"playback state must be an object, got {type(payload).__name__}")
        position = payload.get("position", 0.0)
        if isinstance(position, bool) or not isinstance(position, (int, float)):
            position = 0.0
        episode = payload.get("episode")
        if isinstance(episode, bool) or not isinstance(episode, int) or episode < 1:
            episode = None
        return cls(
            media_url=str(payload.get("mediaUrl", "")),
            position=max(0.0, float(position)),
            is_playing=bool(payload.get("isPlaying", False)),
            video_id=str(payload.get("videoId", "")),
            video_title=str(payload.get("videoTitle", "")),
            video_year=payload.get("videoYear") or None,
            search_title=payload.get("searchTitle") or None,
            episode=episode,
            source_key=str(payload.get("sourceKey", "")),
            kind=str(payload.get("kind", STATE_KIND)),
        )


def build_play_url(state: PlaybackState) -> str:
    """Play-page URL a member navigates to when the owner changes video."""
    params = {
        "id": state.video_id,
        "source": state.source_key,
        "episode": str(state.episode or 1),
    }
    if state.video_title:
        params["title"] = state.video_title
    if state.video_year:
        params["year"] = state.video_year
    if state.search_title:
        params["stitle"] = state.search_title
    return f"{PLAY_PATH}?{urlencode(params)}"


def parse_play_url(url: str) -> VideoIdentity:
    """Inverse of build_play_url. media_url is left for the caller to resolve."""
    parts = urlsplit(url)
    if parts.path != PLAY_PATH:
        raise ValueError(f"not a play-page URL: {url}")
    query = {k: v[0] for k, v in parse_qs(parts.query).items()}
    if not query.get("id"):
        raise ValueError(f"play-page URL has no video id: {url}")
    try:
        episode = int(query.get("episode", "1"))
    except ValueError:
        episode = 1
    return VideoIdentity(
        video_id=query["id"],
        source_key=query.get("source", ""),
        episode=max(1, episode),
        video_title=query.get("title", ""),
        video_year=query.get("year"),
        search_title=query.get("stitle"),
    )
