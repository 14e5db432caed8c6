from __future__ import annotations

from abc import ABC, abstractmethod

from music_bridge.models import PlayerAction, PlayerState, PlayerStateOptions


class MediaPlayerService(ABC):
    """A backend the bridge can control.

    Implementations must not raise out of `open_link`, `perform_action` or
    `get_player_state`: failures are reported through notifications and the
    call degrades to a no-op or a disconnected state.
    """

    key: str = ""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def is_enabled(self) -> bool: ...

    @abstractmethod
    def is_link_supported(self, url: str) -> bool: ...

    @abstractmethod
    async def open_link(self, url: str) -> None: ...

    @abstractmethod
    async def perform_action(self, action: PlayerAction) -> None: ...

    @abstractmethod
    async def get_player_state(self, options: PlayerStateOptions | None = None) -> PlayerState: ...

    @abstractmethod
    async def perform_authorization(self, *, silent: bool) -> None: ...

    async def log_out(self) -> None:
        return None

    async def close(self) -> None:
        return None
