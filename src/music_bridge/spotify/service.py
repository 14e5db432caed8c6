from __future__ import annotations

import logging
from typing import Any

from music_bridge.auth import AuthCoordinator
from music_bridge.config import SpotifyConfig
from music_bridge.models import (
    PlaybackState,
    PlayerAction,
    PlayerState,
    PlayerStateOptions,
    TrackInfo,
)
from music_bridge.notifications import Notifier
from music_bridge.provider import MediaPlayerService
from music_bridge.spotify import metadata
from music_bridge.spotify.api import SpotifyWebApi
from music_bridge.spotify.links import is_spotify_link, parse_link


LOGGER = logging.getLogger(__name__)


async def _nothing() -> None:
    return None


class SpotifyMediaPlayer(MediaPlayerService):
    key = "spotify"

    def __init__(
        self,
        config: SpotifyConfig,
        auth: AuthCoordinator[SpotifyWebApi],
        notifier: Notifier,
    ) -> None:
        self._config = config
        self._auth = auth
        self._notifier = notifier

    @property
    def name(self) -> str:
        return "Spotify"

    @property
    def auth(self) -> AuthCoordinator[SpotifyWebApi]:
        return self._auth

    def is_enabled(self) -> bool:
        return self._config.enabled

    def is_link_supported(self, url: str) -> bool:
        return is_spotify_link(url)

    async def perform_authorization(self, *, silent: bool) -> None:
        await self._auth.perform_authorization(silent=silent)

    async def log_out(self) -> None:
        await self._auth.log_out()

    async def close(self) -> None:
        await self._auth.close()

    async def open_link(self, url: str) -> None:
        link = parse_link(url)
        if link is None:
            self._notifier.notify(f"Spotify cannot play {url}")
            return
        self._notifier.notify(f"Recognized Spotify link: {url}")

        async def play(api: SpotifyWebApi) -> None:
            LOGGER.debug("Starting playback of %s", link.uri)
            if link.is_playable_item:
                await api.start_resume_playback(uris=[link.uri])
            else:
                await api.start_resume_playback(context_uri=link.uri)

        await self._auth.with_authentication(
            silent=False, on_authenticated=play, on_failure=_nothing
        )

    async def perform_action(self, action: PlayerAction) -> None:
        async def dispatch(api: SpotifyWebApi) -> None:
            if action is PlayerAction.SKIP_TO_PREVIOUS:
                self._notifier.notify("Previous track")
                await api.skip_to_previous()
            elif action is PlayerAction.SKIP_TO_NEXT:
                self._notifier.notify("Next track")
                await api.skip_to_next()
            elif action is PlayerAction.PAUSE:
                self._notifier.notify("Pausing playback")
                await api.pause_playback()
            elif action is PlayerAction.RESUME:
                self._notifier.notify("Resuming playback")
                await api.start_resume_playback()
            elif action is PlayerAction.ADD_TO_FAVORITES:
                await self._add_current_to_favorites(api)

        await self._auth.with_authentication(
            silent=False, on_authenticated=dispatch, on_failure=_nothing
        )

    async def get_player_state(self, options: PlayerStateOptions | None = None) -> PlayerState:
        async def query(api: SpotifyWebApi) -> PlayerState:
            playback = await api.get_playback_state()
            item = (playback or {}).get("item")
            track = None
            if isinstance(item, dict):
                track = await self._track_info(api, item, options)
            return PlayerState(state=_playback_state(playback), source=self.name, track=track)

        async def disconnected() -> PlayerState:
            return PlayerState.disconnected(self.name)

        return await self._auth.with_authentication(
            silent=True, on_authenticated=query, on_failure=disconnected
        )

    async def _track_info(
        self, api: SpotifyWebApi, item: dict[str, Any], options: PlayerStateOptions | None
    ) -> TrackInfo | None:
        if options is None:
            return TrackInfo(
                source=self.name, url=metadata.external_url(item), title=item.get("name")
            )
        fields = options.include.track
        if fields is None or not fields.any():
            return None

        values: dict[str, Any] = {}
        if options.wants("source"):
            values["source"] = self.name
        if options.wants("url"):
            values["url"] = metadata.external_url(item)
        if options.wants("title"):
            values["title"] = item.get("name")
        if options.wants("artists"):
            values["artists"] = metadata.artist_names(item)
        if options.wants("album"):
            values["album"] = metadata.album_name(item)
        if options.wants("release_date"):
            values["release_date"] = metadata.release_date(item)
        if options.wants("duration_ms"):
            values["duration_ms"] = metadata.duration_ms(item)
        if options.wants("is_in_library") and item.get("type", "track") == "track" and item.get("id"):
            # Library membership is a separate request, only made on demand.
            contained = await api.tracks_contain([str(item["id"])])
            values["is_in_library"] = bool(contained and contained[0])
        return TrackInfo(**values)

    async def _add_current_to_favorites(self, api: SpotifyWebApi) -> None:
        playing = await api.get_currently_playing()
        item = (playing or {}).get("item")
        if not isinstance(item, dict) or not item.get("id"):
            self._notifier.notify("Spotify is not playing anything")
            return

        track_id = str(item["id"])
        title = str(item.get("name") or track_id)
        playlist_id = self._config.favorites_playlist_id
        if playlist_id:
            await api.add_items_to_playlist(
                playlist_id, [str(item.get("uri") or f"spotify:track:{track_id}")]
            )
            self._notifier.notify(f"Added {title} to favorites")
        else:
            await api.save_tracks([track_id])
            self._notifier.notify(f"Saved {title} to your library")


def _playback_state(playback: dict[str, Any] | None) -> PlaybackState:
    # No playback object: authenticated, but no active device.
    if playback is None:
        return PlaybackState.STOPPED
    if playback.get("is_playing"):
        return PlaybackState.PLAYING
    return PlaybackState.PAUSED
