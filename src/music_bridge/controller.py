from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging

from music_bridge.models import (
    LinkInfo,
    PlaybackState,
    PlayerAction,
    PlayerState,
    PlayerStateOptions,
)
from music_bridge.notifications import Notifier, spawn_detached
from music_bridge.player_manager import PlayerManager
from music_bridge.resolvers import LinkResolver


StateListener = Callable[[PlayerState], Awaitable[None]]
LOGGER = logging.getLogger(__name__)


class BridgeController:
    def __init__(
        self,
        manager: PlayerManager,
        resolver: LinkResolver,
        notifier: Notifier,
        poll_interval_seconds: float = 2.0,
        options: PlayerStateOptions | None = None,
    ) -> None:
        self._manager = manager
        self._resolver = resolver
        self._notifier = notifier
        self._poll_interval = poll_interval_seconds
        self._options = options or PlayerStateOptions.everything()
        self._state = PlayerState()
        self._listeners: list[StateListener] = []
        self._task: asyncio.Task[None] | None = None
        self._stopped = asyncio.Event()

    @property
    def state(self) -> PlayerState:
        return self._state

    @property
    def manager(self) -> PlayerManager:
        return self._manager

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    async def start(self) -> None:
        if self._task:
            return
        self._task = asyncio.create_task(self._sync_loop(), name="music-bridge-sync")

    async def stop(self) -> None:
        self._stopped.set()
        if self._task:
            await self._task
        await self._manager.close()

    async def refresh_state(self) -> PlayerState:
        updated = await self._manager.get_player_state(self._options)
        self._state = updated
        await self._emit_state(updated)
        return updated

    async def play(self) -> None:
        await self._act(PlayerAction.RESUME)

    async def pause(self) -> None:
        await self._act(PlayerAction.PAUSE)

    async def play_pause(self) -> None:
        if self._state.state is PlaybackState.PLAYING:
            await self.pause()
        else:
            await self.play()

    async def next(self) -> None:
        await self._act(PlayerAction.SKIP_TO_NEXT)

    async def previous(self) -> None:
        await self._act(PlayerAction.SKIP_TO_PREVIOUS)

    async def add_to_favorites(self) -> None:
        await self._act(PlayerAction.ADD_TO_FAVORITES)

    def is_link_supported(self, url: str) -> bool:
        return self._manager.is_link_supported(url)

    async def open_link(self, url: str) -> None:
        await self._manager.open_link(url)
        await self.refresh_state()

    def open_link_detached(self, url: str) -> bool:
        """Hand an intercepted link to its player without waiting for playback to start."""
        if not self._manager.is_link_supported(url):
            return False
        spawn_detached(self.open_link(url), self._notifier, name="music-bridge-open")
        return True

    async def resolve_link(self, url: str) -> LinkInfo | None:
        return await self._resolver.resolve_link(url)

    async def _act(self, action: PlayerAction) -> None:
        await self._manager.perform_action(action)
        # Listeners see the result now rather than on the next poll.
        await self.refresh_state()

    async def _sync_loop(self) -> None:
        while not self._stopped.is_set():
            try:
                await self.refresh_state()
            except Exception:
                LOGGER.exception("Failed to sync player state")
            finally:
                try:
                    await asyncio.wait_for(self._stopped.wait(), timeout=self._poll_interval)
                except TimeoutError:
                    pass

    async def _emit_state(self, state: PlayerState) -> None:
        if not self._listeners:
            return
        await asyncio.gather(
            *(listener(state) for listener in self._listeners), return_exceptions=True
        )
