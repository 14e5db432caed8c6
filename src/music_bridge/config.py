from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
import os
from pathlib import Path
import tomllib
from typing import Any


DEFAULT_CONFIG_PATH = Path.home() / ".config" / "music-bridge" / "config.toml"
DEFAULT_DATA_DIR = Path.home() / ".local" / "share" / "music-bridge"


class StatusBarItem(str, Enum):
    NONE = "none"
    TEXT = "text"
    PLAY = "play"
    PREVIOUS = "previous"
    NEXT = "next"
    ADD_TO_FAVORITES = "add-to-favorites"


DEFAULT_SETTINGS: dict[str, Any] = {
    "app": {
        "poll_interval_seconds": 2.0,
        "mpris_name": "musicbridge",
        "control_socket_path": "/tmp/music-bridge.sock",
        "data_dir": str(DEFAULT_DATA_DIR),
        "player_priority": ["spotify"],
        "notifications": True,
    },
    "integrations": {
        "spotify": {
            "enabled": False,
            "auto_login": False,
            "client_id": "",
            "redirect_uri": "music-bridge://auth-flow?target=spotify",
            "favorites_playlist_id": "",
        },
    },
    "ui": {
        "status_bar": ["previous", "play", "next", "text"],
        "show_play_state_in_icon": True,
        "change_icon_color": True,
        "waybar_max_length": 48,
        "waybar_scroll": False,
    },
}


@dataclass(slots=True)
class SpotifyConfig:
    enabled: bool = False
    auto_login: bool = False
    client_id: str = ""
    redirect_uri: str = "music-bridge://auth-flow?target=spotify"
    favorites_playlist_id: str = ""


@dataclass(slots=True)
class UiConfig:
    status_bar: tuple[StatusBarItem, ...] = (
        StatusBarItem.PREVIOUS,
        StatusBarItem.PLAY,
        StatusBarItem.NEXT,
        StatusBarItem.TEXT,
    )
    show_play_state_in_icon: bool = True
    change_icon_color: bool = True
    waybar_max_length: int = 48
    waybar_scroll: bool = False


@dataclass(slots=True)
class AppConfig:
    poll_interval_seconds: float = 2.0
    mpris_name: str = "musicbridge"
    control_socket_path: str = "/tmp/music-bridge.sock"
    data_dir: Path = DEFAULT_DATA_DIR
    player_priority: tuple[str, ...] = ("spotify",)
    notifications: bool = True
    spotify: SpotifyConfig = field(default_factory=SpotifyConfig)
    ui: UiConfig = field(default_factory=UiConfig)

    @property
    def credentials_path(self) -> Path:
        return self.data_dir / "credentials.json"


def merge_settings(defaults: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_settings(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None) -> AppConfig:
    resolved = path or DEFAULT_CONFIG_PATH
    if resolved.exists():
        raw = tomllib.loads(resolved.read_text(encoding="utf-8"))
    else:
        raw = {}
    return config_from_dict(raw)


def config_from_dict(raw: dict[str, Any]) -> AppConfig:
    settings = merge_settings(DEFAULT_SETTINGS, raw)
    app = settings["app"]
    spotify = settings["integrations"]["spotify"]
    ui = settings["ui"]

    configured_client_id = str(spotify.get("client_id", ""))
    client_id = os.getenv("MUSIC_BRIDGE_SPOTIFY_CLIENT_ID", configured_client_id)

    return AppConfig(
        poll_interval_seconds=float(app["poll_interval_seconds"]),
        mpris_name=str(app["mpris_name"]),
        control_socket_path=str(app["control_socket_path"]),
        data_dir=Path(str(app["data_dir"])).expanduser(),
        player_priority=tuple(str(item).lower() for item in app["player_priority"]),
        notifications=_as_bool(app["notifications"]),
        spotify=SpotifyConfig(
            enabled=_as_bool(spotify["enabled"]),
            auto_login=_as_bool(spotify["auto_login"]),
            client_id=client_id.strip(),
            redirect_uri=str(spotify["redirect_uri"]),
            favorites_playlist_id=str(spotify["favorites_playlist_id"] or "").strip(),
        ),
        ui=UiConfig(
            status_bar=_status_bar_items(ui["status_bar"]),
            show_play_state_in_icon=_as_bool(ui["show_play_state_in_icon"]),
            change_icon_color=_as_bool(ui["change_icon_color"]),
            waybar_max_length=int(ui["waybar_max_length"]),
            waybar_scroll=_as_bool(ui["waybar_scroll"]),
        ),
    )


def _status_bar_items(raw: object) -> tuple[StatusBarItem, ...]:
    if not isinstance(raw, list):
        raise ValueError("ui.status_bar must be a list")
    try:
        return tuple(StatusBarItem(str(item)) for item in raw)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in StatusBarItem)
        raise ValueError(f"ui.status_bar items must be one of: {allowed}") from exc


def _as_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)
