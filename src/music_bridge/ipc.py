from __future__ import annotations

import asyncio
import json
from pathlib import Path
import time
from typing import Any

from music_bridge.auth import AuthManager, parse_redirect
from music_bridge.config import AppConfig
from music_bridge.controller import BridgeController
from music_bridge.errors import AuthorizationPendingError, PlayerNotAvailableError
from music_bridge.provider import MediaPlayerService


TRANSPORT_ACTIONS = ("play", "pause", "play_pause", "next", "previous")


class BridgeIpcServer:
    def __init__(
        self,
        controller: BridgeController,
        auth_manager: AuthManager,
        config: AppConfig,
        socket_path: str,
    ) -> None:
        self._controller = controller
        self._auth_manager = auth_manager
        self._config = config
        self._socket_path = Path(socket_path)
        self._server: asyncio.AbstractServer | None = None
        self._favorites_cooldown_seconds = 0.8
        self._last_favorite_at = 0.0

    async def start(self) -> None:
        self._socket_path.unlink(missing_ok=True)
        self._server = await asyncio.start_unix_server(
            self._handle_client,
            path=str(self._socket_path),
        )

    async def stop(self) -> None:
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        self._socket_path.unlink(missing_ok=True)

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        try:
            line = await reader.readline()
            if not line:
                return
            request = json.loads(line.decode("utf-8"))
            response = await self.dispatch(request)
        except Exception as exc:  # noqa: BLE001
            response = {"ok": False, "error": str(exc)}
        writer.write((json.dumps(response) + "\n").encode("utf-8"))
        await writer.drain()
        writer.close()
        await writer.wait_closed()

    async def dispatch(self, request: dict[str, Any]) -> dict[str, Any]:
        action = str(request.get("action", "")).strip()
        manager = self._controller.manager
        if action == "status":
            return {"ok": True, "state": self._state_payload()}
        if action == "players":
            return {"ok": True, "players": self._players_payload()}
        if action == "select":
            manager.select_player_by_key(str(request.get("player") or "") or None)
            await self._controller.refresh_state()
            return {"ok": True, "players": self._players_payload(), "state": self._state_payload()}
        if action in TRANSPORT_ACTIONS:
            await getattr(self._controller, action)()
            return {"ok": True, "state": self._state_payload()}
        if action == "add_to_favorites":
            if self._favorites_rate_limited():
                return {"ok": True, "skipped": "rate_limited", "state": self._state_payload()}
            await self._controller.add_to_favorites()
            return {"ok": True, "state": self._state_payload()}
        if action == "supports":
            url = _require_url(request)
            return {"ok": True, "supported": self._controller.is_link_supported(url)}
        if action == "open":
            url = _require_url(request)
            if not self._controller.is_link_supported(url):
                return {"ok": False, "error": f"no enabled player supports {url}"}
            await self._controller.open_link(url)
            return {"ok": True, "state": self._state_payload()}
        if action == "resolve":
            info = await self._controller.resolve_link(_require_url(request))
            return {"ok": True, "link": info.to_dict() if info else None}
        if action == "login":
            player = self._target_player(request)
            try:
                await player.perform_authorization(silent=False)
            except AuthorizationPendingError as exc:
                return {"ok": True, "pending": True, "message": str(exc)}
            return {"ok": True, "player": player.name}
        if action == "logout":
            player = self._target_player(request)
            await player.log_out()
            await self._controller.refresh_state()
            return {"ok": True, "player": player.name}
        if action == "auth_flow":
            raw_params = request.get("params")
            if isinstance(raw_params, dict):
                params = {str(key): str(value) for key, value in raw_params.items()}
            else:
                params = parse_redirect(_require_url(request))
            handled = await self._auth_manager.receive_auth_flow(params)
            return {"ok": True, "handled": handled}
        if action in ("enable", "disable"):
            player = manager.find_player(str(request.get("player", "")))
            integration = getattr(self._config, player.key, None)
            if integration is None or not hasattr(integration, "enabled"):
                return {"ok": False, "error": f"{player.name} cannot be toggled"}
            integration.enabled = action == "enable"
            await self._controller.refresh_state()
            return {"ok": True, "players": self._players_payload()}
        return {"ok": False, "error": f"unknown action: {action}"}

    def _target_player(self, request: dict[str, Any]) -> MediaPlayerService:
        manager = self._controller.manager
        key = str(request.get("player") or "")
        if key:
            return manager.find_player(key)
        active = manager.active_player
        if active is not None:
            return active
        available = manager.available_players()
        if not available:
            raise PlayerNotAvailableError("No player is enabled")
        return available[0]

    def _favorites_rate_limited(self) -> bool:
        now = time.monotonic()
        if now - self._last_favorite_at < self._favorites_cooldown_seconds:
            return True
        self._last_favorite_at = now
        return False

    def _players_payload(self) -> list[dict[str, Any]]:
        manager = self._controller.manager
        active = manager.active_player
        return [
            {
                "key": player.key,
                "name": player.name,
                "enabled": player.is_enabled(),
                "active": player is active,
            }
            for player in manager.all_players
        ]

    def _state_payload(self) -> dict[str, Any]:
        payload = self._controller.state.to_dict()
        payload["player"] = self._controller.manager.name
        return payload


def _require_url(request: dict[str, Any]) -> str:
    url = str(request.get("url", "")).strip()
    if not url:
        raise ValueError("url is required")
    return url


async def send_ipc(socket_path: str, action: str, **payload: Any) -> dict[str, Any]:
    try:
        reader, writer = await asyncio.open_unix_connection(socket_path)
    except FileNotFoundError:
        return {"ok": False, "error": "daemon socket not found"}
    except OSError as exc:
        return {"ok": False, "error": str(exc)}
    request = {"action": action, **payload}
    writer.write((json.dumps(request) + "\n").encode("utf-8"))
    await writer.drain()
    line = await reader.readline()
    writer.close()
    await writer.wait_closed()
    if not line:
        return {"ok": False, "error": "empty response"}
    return json.loads(line.decode("utf-8"))
