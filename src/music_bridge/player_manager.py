from __future__ import annotations

from collections.abc import Sequence
import logging

from music_bridge.errors import PlayerNotAvailableError
from music_bridge.models import PlaybackState, PlayerAction, PlayerState, PlayerStateOptions
from music_bridge.provider import MediaPlayerService


LOGGER = logging.getLogger(__name__)


class PlayerManager(MediaPlayerService):
    """Routes calls to one of several backends.

    A backend becomes active when the user selects it, opens a link on it, or,
    while nothing is active, when it is the first in priority order found
    playing. Once active it keeps receiving every call until another one is
    selected or it gets disabled.
    """

    key = "manager"

    def __init__(self, players: Sequence[MediaPlayerService]) -> None:
        self._players: list[MediaPlayerService] = list(players)
        self._active: MediaPlayerService | None = None

    @property
    def name(self) -> str:
        active = self.active_player
        return active.name if active else "No player selected"

    @property
    def all_players(self) -> list[MediaPlayerService]:
        return list(self._players)

    @property
    def active_player(self) -> MediaPlayerService | None:
        self.available_players()
        return self._active

    def available_players(self) -> list[MediaPlayerService]:
        available = [player for player in self._players if player.is_enabled()]
        if self._active is not None and self._active not in available:
            LOGGER.info("Active player %s is no longer available", self._active.name)
            self._active = None
        return available

    def find_player(self, key: str) -> MediaPlayerService:
        for player in self._players:
            if player.key == key or player.name.lower() == key.lower():
                return player
        raise PlayerNotAvailableError(f"Unknown player: {key}")

    def select_player(self, player: MediaPlayerService | None) -> None:
        if player is None:
            self._active = None
            return
        if player not in self.available_players():
            raise PlayerNotAvailableError(
                "The specified player does not belong to this PlayerManager"
            )
        self._active = player

    def select_player_by_key(self, key: str | None) -> None:
        self.select_player(self.find_player(key) if key else None)

    def is_active_player(self, player: MediaPlayerService) -> bool:
        if player not in self.available_players():
            raise PlayerNotAvailableError(
                "The specified player does not belong to this PlayerManager"
            )
        return self._active is player

    def is_enabled(self) -> bool:
        return True

    def is_link_supported(self, url: str) -> bool:
        return any(player.is_link_supported(url) for player in self.available_players())

    async def open_link(self, url: str) -> None:
        for player in self.available_players():
            if player.is_link_supported(url):
                self._active = player
                await player.open_link(url)
                return
        LOGGER.debug("No player supports %s", url)

    async def get_player_state(self, options: PlayerStateOptions | None = None) -> PlayerState:
        available = self.available_players()
        if self._active is not None:
            return await self._active.get_player_state(options)

        for player in available:
            state = await player.get_player_state(options)
            if state.state is PlaybackState.PLAYING:
                LOGGER.info("Discovered playing player %s", player.name)
                self._active = player
                return state

        # Nothing is obviously active; discovery runs again on the next call.
        return PlayerState.disconnected()

    async def determine_selected_player(self) -> MediaPlayerService | None:
        available = self.available_players()
        if self._active is not None:
            return self._active
        for player in available:
            state = await player.get_player_state()
            if state.state is PlaybackState.PLAYING:
                self._active = player
                return player
        return None

    async def perform_action(self, action: PlayerAction) -> None:
        player = await self.determine_selected_player()
        if player is None:
            LOGGER.debug("No active player for %s", action.value)
            return
        await player.perform_action(action)

    async def perform_authorization(self, *, silent: bool) -> None:
        active = self.active_player
        if active is not None:
            await active.perform_authorization(silent=silent)

    async def close(self) -> None:
        for player in self._players:
            await player.close()
