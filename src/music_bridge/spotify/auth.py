from __future__ import annotations

from collections.abc import Callable
from functools import partial
import logging
import webbrowser

import httpx

from music_bridge.auth import AuthStrategy
from music_bridge.credentials import AccessToken, CredentialStore, calculate_expiry
from music_bridge.errors import AuthorizationPendingError, BridgeError, CredentialRejectedError
from music_bridge.spotify.api import SpotifyOAuthClient, SpotifyWebApi


LOGGER = logging.getLogger(__name__)

TOKEN_CACHE_KEY = "spotify:pkce:token"
VERIFIER_CACHE_KEY = "spotify:pkce:verifier"
REFRESH_SKEW_SECONDS = 60.0
SPOTIFY_SCOPES: tuple[str, ...] = (
    # pause/resume/skip
    "user-modify-playback-state",
    # currently playing track
    "user-read-playback-state",
    # favorites
    "user-library-read",
    "user-library-modify",
    "playlist-modify-public",
    "playlist-modify-private",
)


class SpotifyAuthStrategy(AuthStrategy[SpotifyWebApi]):
    target = "spotify"
    display_name = "Spotify"
    credential_key = TOKEN_CACHE_KEY

    def __init__(
        self,
        client_id: str,
        redirect_uri: str,
        *,
        open_browser: Callable[[str], bool] = webbrowser.open,
        api_transport: httpx.AsyncBaseTransport | None = None,
        accounts_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client_id = client_id
        self._redirect_uri = redirect_uri
        self._open_browser = open_browser
        self._api_transport = api_transport
        self._accounts_transport = accounts_transport
        self._credentials: CredentialStore | None = None
        self._oauth: SpotifyOAuthClient | None = None

    def create_session(self, credentials: CredentialStore) -> SpotifyWebApi:
        self._credentials = credentials
        return SpotifyWebApi(
            partial(self._access_token, credentials), transport=self._api_transport
        )

    async def verify_session(self, session: SpotifyWebApi) -> None:
        if not self.has_credential(self._require_credentials()):
            self._begin_login()
        await session.current_user_profile()

    async def exchange_code(self, session: SpotifyWebApi, code: str) -> AccessToken:
        credentials = self._require_credentials()
        verifier = credentials.get(VERIFIER_CACHE_KEY)
        if not verifier:
            raise BridgeError("No Spotify login is in progress")
        token = await self._oauth_client().exchange_code(code, str(verifier))
        credentials.remove(VERIFIER_CACHE_KEY)
        return token

    async def close_session(self, session: SpotifyWebApi) -> None:
        await session.close()
        if self._oauth is not None:
            await self._oauth.close()
            self._oauth = None

    async def _access_token(self, credentials: CredentialStore) -> str:
        raw = credentials.get(self.credential_key)
        if not isinstance(raw, dict):
            raise CredentialRejectedError("Not logged in to Spotify")
        token = AccessToken.from_dict(raw)
        if token.expires_at is None:
            token.expires_at = credentials.expires(self.credential_key)
        if token.refresh_token and token.is_expired(skew_seconds=REFRESH_SKEW_SECONDS):
            token = await self._refresh(credentials, token)
        return token.access_token

    async def _refresh(self, credentials: CredentialStore, token: AccessToken) -> AccessToken:
        LOGGER.debug("Refreshing Spotify access token")
        refreshed = await self._oauth_client().refresh_token(token.refresh_token)
        if not refreshed.refresh_token:
            refreshed.refresh_token = token.refresh_token
        expiry = calculate_expiry(refreshed)
        refreshed.expires_at = expiry
        credentials.set(self.credential_key, refreshed.to_dict(), expires=expiry)
        return refreshed

    def _begin_login(self) -> None:
        credentials = self._require_credentials()
        oauth = self._oauth_client()
        verifier = oauth.generate_code_verifier()
        credentials.set(VERIFIER_CACHE_KEY, verifier)
        url = oauth.authorization_url(verifier, SPOTIFY_SCOPES)
        LOGGER.info("Starting Spotify login")
        if self._open_browser(url):
            raise AuthorizationPendingError("Complete the login in your browser")
        raise AuthorizationPendingError(f"Open {url} to log in")

    def _oauth_client(self) -> SpotifyOAuthClient:
        if not self._client_id:
            raise BridgeError(
                "Spotify client_id is not configured; set [integrations.spotify] client_id"
            )
        if self._oauth is None:
            self._oauth = SpotifyOAuthClient(
                self._client_id, self._redirect_uri, transport=self._accounts_transport
            )
        return self._oauth

    def _require_credentials(self) -> CredentialStore:
        if self._credentials is None:
            raise BridgeError("Spotify session has not been created")
        return self._credentials
