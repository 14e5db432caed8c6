from __future__ import annotations

import base64
from collections.abc import Awaitable, Callable, Sequence
import hashlib
import logging
import secrets
from typing import Any
from urllib.parse import urlencode

import httpx

from music_bridge.credentials import AccessToken
from music_bridge.errors import BridgeError, CredentialRejectedError


API_BASE_URL = "https://api.spotify.com/v1"
ACCOUNTS_BASE_URL = "https://accounts.spotify.com"
LOGGER = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[str]]


class SpotifyApiError(BridgeError):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"{message} (HTTP {status_code})")
        self.status_code = status_code


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if not isinstance(payload, dict):
        return response.reason_phrase
    error = payload.get("error")
    if isinstance(error, dict):
        return str(error.get("message") or response.reason_phrase)
    if isinstance(error, str):
        return str(payload.get("error_description") or error)
    return response.reason_phrase


class SpotifyWebApi:
    def __init__(
        self,
        token_provider: TokenProvider,
        *,
        base_url: str = API_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 20,
    ) -> None:
        self._token_provider = token_provider
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def current_user_profile(self) -> dict[str, Any]:
        return await self._request_json("GET", "/me") or {}

    async def get_playback_state(self) -> dict[str, Any] | None:
        # 204 means there is no active device.
        return await self._request_json("GET", "/me/player")

    async def get_currently_playing(self) -> dict[str, Any] | None:
        return await self._request_json("GET", "/me/player/currently-playing")

    async def start_resume_playback(
        self,
        device_id: str | None = None,
        context_uri: str | None = None,
        uris: Sequence[str] | None = None,
    ) -> None:
        body: dict[str, Any] = {}
        if context_uri:
            body["context_uri"] = context_uri
        if uris:
            body["uris"] = list(uris)
        await self._request_json(
            "PUT", "/me/player/play", params=_device_params(device_id), json=body or None
        )

    async def pause_playback(self, device_id: str | None = None) -> None:
        await self._request_json("PUT", "/me/player/pause", params=_device_params(device_id))

    async def skip_to_next(self, device_id: str | None = None) -> None:
        await self._request_json("POST", "/me/player/next", params=_device_params(device_id))

    async def skip_to_previous(self, device_id: str | None = None) -> None:
        await self._request_json("POST", "/me/player/previous", params=_device_params(device_id))

    async def get_track(self, track_id: str) -> dict[str, Any]:
        return await self._request_json("GET", f"/tracks/{track_id}") or {}

    async def get_album(self, album_id: str) -> dict[str, Any]:
        return await self._request_json("GET", f"/albums/{album_id}") or {}

    async def get_playlist(self, playlist_id: str) -> dict[str, Any]:
        return await self._request_json("GET", f"/playlists/{playlist_id}") or {}

    async def get_artist(self, artist_id: str) -> dict[str, Any]:
        return await self._request_json("GET", f"/artists/{artist_id}") or {}

    async def tracks_contain(self, track_ids: Sequence[str]) -> list[bool]:
        payload = await self._request_json(
            "GET", "/me/tracks/contains", params={"ids": ",".join(track_ids)}
        )
        if not isinstance(payload, list):
            return [False for _ in track_ids]
        return [bool(item) for item in payload]

    async def save_tracks(self, track_ids: Sequence[str]) -> None:
        await self._request_json("PUT", "/me/tracks", json={"ids": list(track_ids)})

    async def add_items_to_playlist(self, playlist_id: str, uris: Sequence[str]) -> None:
        await self._request_json(
            "POST", f"/playlists/{playlist_id}/tracks", json={"uris": list(uris)}
        )

    async def _request_json(
        self,
        method: str,
        endpoint: str,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        token = await self._token_provider()
        response = await self._http.request(
            method,
            endpoint,
            params=params or None,
            json=json,
            headers={"Authorization": f"Bearer {token}"},
        )
        LOGGER.debug("Spotify %s %s -> %s", method, endpoint, response.status_code)
        if response.status_code == 401:
            raise CredentialRejectedError(_error_message(response) or "Bad or expired token.")
        if response.is_error:
            raise SpotifyApiError(response.status_code, _error_message(response))
        if response.status_code == 204 or not response.content:
            return None
        return response.json()


def _device_params(device_id: str | None) -> dict[str, str] | None:
    return {"device_id": device_id} if device_id else None


class SpotifyOAuthClient:
    """Authorization code flow with PKCE against the Spotify accounts service."""

    def __init__(
        self,
        client_id: str,
        redirect_uri: str,
        *,
        base_url: str = ACCOUNTS_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 20,
    ) -> None:
        self._client_id = client_id
        self._redirect_uri = redirect_uri
        self._base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def close(self) -> None:
        await self._http.aclose()

    @staticmethod
    def generate_code_verifier() -> str:
        return base64.urlsafe_b64encode(secrets.token_bytes(32)).decode("utf-8").rstrip("=")

    @staticmethod
    def generate_code_challenge(code_verifier: str) -> str:
        digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
        return base64.urlsafe_b64encode(digest).decode("utf-8").rstrip("=")

    def authorization_url(self, code_verifier: str, scopes: Sequence[str]) -> str:
        params = {
            "client_id": self._client_id,
            "response_type": "code",
            "redirect_uri": self._redirect_uri,
            "code_challenge_method": "S256",
            "code_challenge": self.generate_code_challenge(code_verifier),
            "scope": " ".join(scopes),
        }
        return f"{self._base_url}/authorize?{urlencode(params)}"

    async def exchange_code(self, code: str, code_verifier: str) -> AccessToken:
        return await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._redirect_uri,
                "client_id": self._client_id,
                "code_verifier": code_verifier,
            }
        )

    async def refresh_token(self, refresh_token: str) -> AccessToken:
        return await self._token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self._client_id,
            }
        )

    async def _token_request(self, data: dict[str, str]) -> AccessToken:
        response = await self._http.post("/api/token", data=data)
        if response.status_code in (400, 401):
            message = _error_message(response)
            if "invalid_grant" in response.text or response.status_code == 401:
                raise CredentialRejectedError(message)
            raise SpotifyApiError(response.status_code, message)
        if response.is_error:
            raise SpotifyApiError(response.status_code, _error_message(response))
        return AccessToken.from_dict(response.json())
