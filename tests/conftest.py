"""Shared fakes and fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from music_bridge.auth import AuthStrategy
from music_bridge.config import SpotifyConfig
from music_bridge.credentials import AccessToken, CredentialStore
from music_bridge.errors import AuthorizationPendingError
from music_bridge.models import PlaybackState, PlayerAction, PlayerState, PlayerStateOptions
from music_bridge.notifications import Notifier
from music_bridge.provider import MediaPlayerService


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        super().__init__()
        self.messages: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)
        super().notify(message)


class FakePlayer(MediaPlayerService):
    def __init__(
        self,
        key: str,
        state: PlaybackState = PlaybackState.PAUSED,
        *,
        enabled: bool = True,
        config: SpotifyConfig | None = None,
        prefix: str | None = None,
    ) -> None:
        self.key = key
        self.state = state
        self.enabled = enabled
        self.config = config
        self.prefix = prefix or f"https://{key}.example/"
        self.state_calls = 0
        self.options_seen: list[PlayerStateOptions | None] = []
        self.actions: list[PlayerAction] = []
        self.opened: list[str] = []
        self.authorizations: list[bool] = []
        self.logged_out = False

    @property
    def name(self) -> str:
        return self.key.title()

    def is_enabled(self) -> bool:
        if self.config is not None:
            return self.config.enabled
        return self.enabled

    def is_link_supported(self, url: str) -> bool:
        return url.startswith(self.prefix)

    async def open_link(self, url: str) -> None:
        self.opened.append(url)

    async def perform_action(self, action: PlayerAction) -> None:
        self.actions.append(action)

    async def get_player_state(self, options: PlayerStateOptions | None = None) -> PlayerState:
        self.state_calls += 1
        self.options_seen.append(options)
        return PlayerState(state=self.state, source=self.name)

    async def perform_authorization(self, *, silent: bool) -> None:
        self.authorizations.append(silent)

    async def log_out(self) -> None:
        self.logged_out = True


class FakeSession:
    pass


class FakeStrategy(AuthStrategy[FakeSession]):
    target = "fake"
    display_name = "Fake"
    credential_key = "fake:token"

    def __init__(self) -> None:
        self.sessions_created = 0
        self.verify_calls = 0
        self.pending = False
        self.exchange_error: Exception | None = None
        self.exchanged: list[str] = []

    def create_session(self, credentials: CredentialStore) -> FakeSession:
        self.sessions_created += 1
        return FakeSession()

    async def verify_session(self, session: FakeSession) -> None:
        self.verify_calls += 1
        if self.pending:
            raise AuthorizationPendingError("Complete the login in your browser")

    async def exchange_code(self, session: FakeSession, code: str) -> AccessToken:
        if self.exchange_error is not None:
            raise self.exchange_error
        self.exchanged.append(code)
        return AccessToken(access_token=f"token-{code}", expires_in=3600, refresh_token="refresh")


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def credentials(tmp_path: Path) -> CredentialStore:
    return CredentialStore(tmp_path / "credentials.json")
