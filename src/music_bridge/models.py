from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any


class PlaybackState(str, Enum):
    DISCONNECTED = "disconnected"
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"

    @property
    def mpris_status(self) -> str:
        if self is PlaybackState.PLAYING:
            return "Playing"
        if self is PlaybackState.PAUSED:
            return "Paused"
        return "Stopped"


class PlayerAction(str, Enum):
    PAUSE = "pause"
    RESUME = "resume"
    SKIP_TO_PREVIOUS = "previous"
    SKIP_TO_NEXT = "next"
    ADD_TO_FAVORITES = "add-to-favorites"


@dataclass(frozen=True, slots=True)
class TrackInfo:
    source: str | None = None
    url: str | None = None
    title: str | None = None
    artists: tuple[str, ...] | None = None
    album: str | None = None
    release_date: str | None = None
    duration_ms: int | None = None
    is_in_library: bool | None = None

    def __post_init__(self) -> None:
        if self.artists is not None and not isinstance(self.artists, tuple):
            object.__setattr__(self, "artists", tuple(self.artists))

    def to_dict(self) -> dict[str, Any]:
        payload = {key: value for key, value in asdict(self).items() if value is not None}
        if "artists" in payload:
            payload["artists"] = list(payload["artists"])
        return payload


@dataclass(frozen=True, slots=True, kw_only=True)
class LinkInfo(TrackInfo):
    """Metadata for a resolved link; `type` is the kind of resource behind it."""

    type: str

    def __post_init__(self) -> None:
        TrackInfo.__post_init__(self)
        if not self.title:
            raise ValueError("LinkInfo requires a title")


@dataclass(slots=True)
class PlayerState:
    state: PlaybackState = PlaybackState.DISCONNECTED
    source: str | None = None
    track: TrackInfo | None = None

    @classmethod
    def disconnected(cls, source: str | None = None) -> PlayerState:
        return cls(state=PlaybackState.DISCONNECTED, source=source)

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "source": self.source,
            "track": self.track.to_dict() if self.track else None,
        }


@dataclass(frozen=True, slots=True)
class TrackFields:
    source: bool = False
    url: bool = False
    title: bool = False
    artists: bool = False
    album: bool = False
    release_date: bool = False
    duration_ms: bool = False
    is_in_library: bool = False

    @classmethod
    def all(cls) -> TrackFields:
        return cls(**{item.name: True for item in fields(cls)})

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> TrackFields:
        known = {item.name for item in fields(cls)}
        unknown = set(raw) - known
        if unknown:
            raise ValueError(f"Unknown track fields: {', '.join(sorted(unknown))}")
        not_bool = sorted(key for key, value in raw.items() if not isinstance(value, bool))
        if not_bool:
            raise ValueError(f"Track fields must be booleans: {', '.join(not_bool)}")
        return cls(**raw)

    def any(self) -> bool:
        return any(getattr(self, item.name) for item in fields(self))


@dataclass(frozen=True, slots=True)
class PlayerStateFields:
    source: bool = False
    track: TrackFields | None = None


@dataclass(frozen=True, slots=True)
class PlayerStateOptions:
    """Selects which parts of a PlayerState a backend should fetch.

    The playback state itself is always returned; everything under `include`
    is opt-in so that pollers only pay for the calls they need.
    """

    include: PlayerStateFields = field(default_factory=PlayerStateFields)

    @classmethod
    def everything(cls) -> PlayerStateOptions:
        return cls(include=PlayerStateFields(source=True, track=TrackFields.all()))

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> PlayerStateOptions:
        include = raw.get("include", {})
        if not isinstance(include, dict):
            raise ValueError("include must be an object")
        unknown = set(include) - {"source", "track"}
        if unknown:
            raise ValueError(f"Unknown player state fields: {', '.join(sorted(unknown))}")

        track_raw = include.get("track")
        track: TrackFields | None
        if track_raw is True:
            track = TrackFields.all()
        elif isinstance(track_raw, dict):
            track = TrackFields.from_dict(track_raw)
        elif track_raw is None or track_raw is False:
            track = None
        else:
            raise ValueError("track must be a boolean or an object")
        source = include.get("source", False)
        if not isinstance(source, bool):
            raise ValueError("source must be a boolean")
        return cls(include=PlayerStateFields(source=source, track=track))

    def wants(self, name: str) -> bool:
        track = self.include.track
        return track is not None and bool(getattr(track, name))
