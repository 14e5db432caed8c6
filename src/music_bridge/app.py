from __future__ import annotations

import argparse
import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
import json
import logging
from pathlib import Path
import shutil
import time
from typing import Any
import webbrowser

from music_bridge.auth import AuthCoordinator, AuthManager
from music_bridge.config import AppConfig, StatusBarItem, UiConfig, load_config
from music_bridge.controller import BridgeController
from music_bridge.credentials import CredentialStore
from music_bridge.ipc import BridgeIpcServer, send_ipc
from music_bridge.models import PlayerStateFields, PlayerStateOptions, TrackFields
from music_bridge.mpris import BridgeMprisService
from music_bridge.notifications import DesktopNotificationSink, Notifier, spawn_detached
from music_bridge.player_manager import PlayerManager
from music_bridge.provider import MediaPlayerService
from music_bridge.resolvers import CachingLinkResolver, MultiLinkResolver
from music_bridge.spotify import SpotifyAuthStrategy, SpotifyLinkResolver, SpotifyMediaPlayer


LOGGER = logging.getLogger(__name__)

STATE_ICONS = {"playing": "▶", "paused": "⏸", "stopped": "■", "disconnected": "○"}
WAYBAR_STATE_FILE = Path("/tmp/music-bridge-waybar-state.json")


@dataclass(slots=True)
class Bridge:
    manager: PlayerManager
    resolver: CachingLinkResolver
    auth_manager: AuthManager
    notifier: Notifier


def order_players(
    players: Sequence[MediaPlayerService], priority: Sequence[str]
) -> list[MediaPlayerService]:
    rank = {key: index for index, key in enumerate(priority)}
    return sorted(players, key=lambda player: rank.get(player.key, len(rank)))


def poll_options(ui: UiConfig) -> PlayerStateOptions:
    """Fields the daemon polls for: what MPRIS and the status bar can show."""
    track = TrackFields(
        source=True,
        url=True,
        title=True,
        artists=True,
        album=True,
        duration_ms=True,
        is_in_library=StatusBarItem.ADD_TO_FAVORITES in ui.status_bar,
    )
    return PlayerStateOptions(include=PlayerStateFields(source=True, track=track))


def build_bridge(
    config: AppConfig,
    notifier: Notifier | None = None,
    *,
    open_browser: Callable[[str], bool] = webbrowser.open,
) -> Bridge:
    notifier = notifier or Notifier()
    credentials = CredentialStore(config.credentials_path)
    auth_manager = AuthManager()

    spotify_auth = AuthCoordinator(
        SpotifyAuthStrategy(
            config.spotify.client_id,
            config.spotify.redirect_uri,
            open_browser=open_browser,
        ),
        credentials,
        notifier,
    )
    auth_manager.register(SpotifyMediaPlayer.key, spotify_auth)

    players: list[MediaPlayerService] = [
        SpotifyMediaPlayer(config.spotify, spotify_auth, notifier),
    ]
    manager = PlayerManager(order_players(players, config.player_priority))
    resolver = CachingLinkResolver(
        MultiLinkResolver([SpotifyLinkResolver(config.spotify, spotify_auth)])
    )
    return Bridge(
        manager=manager, resolver=resolver, auth_manager=auth_manager, notifier=notifier
    )


def _auto_login(config: AppConfig, bridge: Bridge) -> None:
    for player in bridge.manager.available_players():
        integration = getattr(config, player.key, None)
        if integration is not None and getattr(integration, "auto_login", False):
            spawn_detached(
                player.perform_authorization(silent=False),
                bridge.notifier,
                name=f"music-bridge-login-{player.key}",
            )


async def run_daemon(config: AppConfig) -> None:
    notifier = Notifier()
    desktop_sink: DesktopNotificationSink | None = None
    if config.notifications:
        desktop_sink = DesktopNotificationSink()
        try:
            await desktop_sink.start()
            notifier.add_sink(desktop_sink)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Desktop notifications unavailable: %s", exc)
            desktop_sink = None

    bridge = build_bridge(config, notifier)
    controller = BridgeController(
        manager=bridge.manager,
        resolver=bridge.resolver,
        notifier=notifier,
        poll_interval_seconds=config.poll_interval_seconds,
        options=poll_options(config.ui),
    )
    mpris = BridgeMprisService(controller=controller, mpris_name=config.mpris_name)
    ipc = BridgeIpcServer(
        controller=controller,
        auth_manager=bridge.auth_manager,
        config=config,
        socket_path=config.control_socket_path,
    )

    await mpris.start()
    await ipc.start()
    await controller.start()
    _auto_login(config, bridge)
    LOGGER.info("Bridge started as org.mpris.MediaPlayer2.%s", config.mpris_name)

    try:
        await asyncio.Event().wait()
    finally:
        await ipc.stop()
        await mpris.stop()
        await controller.stop()
        await bridge.auth_manager.close()
        if desktop_sink:
            await desktop_sink.stop()


async def run_ipc_command(config: AppConfig, action: str, **payload: Any) -> None:
    response = await send_ipc(config.control_socket_path, action, **payload)
    if not response.get("ok", False):
        raise SystemExit(f"{action} failed: {response.get('error', 'unknown error')}")
    print(json.dumps(response, indent=2))


async def run_waybar_command(config: AppConfig) -> None:
    response = await send_ipc(config.control_socket_path, "status")
    if not response.get("ok", False):
        print(
            json.dumps(
                {
                    "text": "music offline",
                    "class": ["offline"],
                    "tooltip": "music-bridge daemon not running",
                }
            )
        )
        return
    print(json.dumps(render_waybar(response.get("state", {}), config.ui)))


def render_waybar(state: dict[str, Any], ui: UiConfig) -> dict[str, Any]:
    status = str(state.get("state", "disconnected"))
    track = state.get("track") or {}
    liked = bool(track.get("is_in_library", False))
    artists = ", ".join(str(name) for name in track.get("artists", []) or [])
    title = str(track.get("title", "") or "").strip() or "No track"
    label = f"{artists} - {title}" if artists else title

    parts: list[str] = []
    for item in ui.status_bar:
        if item is StatusBarItem.TEXT:
            text = label
            if ui.show_play_state_in_icon:
                text = f"{STATE_ICONS.get(status, '○')} {text}"
            parts.append(
                _compact_waybar_text(
                    text,
                    max_length=ui.waybar_max_length,
                    scroll=ui.waybar_scroll,
                )
            )
        elif item is StatusBarItem.PLAY:
            parts.append("⏸" if status == "playing" else "▶")
        elif item is StatusBarItem.PREVIOUS:
            parts.append("⏮")
        elif item is StatusBarItem.NEXT:
            parts.append("⏭")
        elif item is StatusBarItem.ADD_TO_FAVORITES:
            parts.append("♥" if liked else "♡")

    classes: list[str] = []
    if ui.change_icon_color:
        classes.append(status)
    classes.append("liked" if liked else "unliked")
    source = state.get("source") or state.get("player") or ""
    tooltip = f"{label}\n{track.get('album')}" if track.get("album") else label
    if source:
        tooltip += f"\n{source}"
    return {"text": " ".join(parts), "class": classes, "tooltip": tooltip}


def _compact_waybar_text(text: str, *, max_length: int, scroll: bool) -> str:
    if len(text) <= max_length:
        return text
    if not scroll:
        return text[: max_length - 1] + "…"

    spacer = "   "
    marquee = text + spacer
    width = max(10, max_length)
    start = _next_waybar_cursor(text, len(marquee))
    looped = marquee + marquee
    return looped[start : start + width]


def _next_waybar_cursor(key: str, span: int) -> int:
    previous_key = ""
    cursor = 0
    if WAYBAR_STATE_FILE.exists():
        try:
            data = json.loads(WAYBAR_STATE_FILE.read_text(encoding="utf-8"))
            previous_key = str(data.get("key", ""))
            cursor = int(data.get("cursor", 0))
        except (OSError, ValueError):
            previous_key = ""
            cursor = 0

    if previous_key == key:
        cursor = (cursor + 1) % max(span, 1)
    else:
        cursor = 0

    try:
        WAYBAR_STATE_FILE.write_text(
            json.dumps({"key": key, "cursor": cursor, "updated_at": int(time.time())}),
            encoding="utf-8",
        )
    except OSError as exc:
        LOGGER.debug("Could not persist waybar cursor: %s", exc)
    return cursor


def run_doctor(config: AppConfig) -> None:
    checks = {
        "dbus_session_bus": shutil.which("dbus-daemon") is not None,
        "browser_available": _browser_available(),
        "spotify_enabled": config.spotify.enabled,
        "spotify_client_id_present": bool(config.spotify.client_id),
        "spotify_logged_in": CredentialStore(config.credentials_path).get(
            SpotifyAuthStrategy.credential_key
        )
        is not None,
        "control_socket_path": config.control_socket_path,
        "credentials_path": str(config.credentials_path),
        "player_priority": list(config.player_priority),
        "status_bar": [item.value for item in config.ui.status_bar],
        "mpris_name": config.mpris_name,
    }
    print(json.dumps(checks, indent=2))


def _browser_available() -> bool:
    try:
        webbrowser.get()
    except webbrowser.Error:
        return False
    return True


async def run(args: argparse.Namespace) -> None:
    config = load_config(args.config)
    command = args.command or "run"

    if command == "run":
        await run_daemon(config)
        return
    if command == "doctor":
        run_doctor(config)
        return
    if command == "players":
        await run_ipc_command(config, "players")
        return
    if command == "ctl":
        await run_ipc_command(config, args.action)
        return
    if command in ("open", "supports", "resolve"):
        await run_ipc_command(config, command, url=args.url)
        return
    if command == "auth-callback":
        await run_ipc_command(config, "auth_flow", url=args.url)
        return
    if command in ("select", "login", "logout", "enable", "disable"):
        await run_ipc_command(config, command, player=args.player)
        return
    if command == "waybar":
        await run_waybar_command(config)
        return

    raise SystemExit(f"Unknown command: {command}")
