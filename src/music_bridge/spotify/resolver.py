from __future__ import annotations

from typing import Any

from music_bridge.auth import AuthCoordinator
from music_bridge.config import SpotifyConfig
from music_bridge.models import LinkInfo
from music_bridge.resolvers import LinkResolver
from music_bridge.spotify import metadata
from music_bridge.spotify.api import SpotifyWebApi
from music_bridge.spotify.links import SpotifyLink, parse_link


SOURCE = "Spotify"
RESOLVABLE_KINDS = frozenset({"track", "album", "playlist", "artist"})


async def _unresolved() -> LinkInfo | None:
    return None


class SpotifyLinkResolver(LinkResolver):
    def __init__(self, config: SpotifyConfig, auth: AuthCoordinator[SpotifyWebApi]) -> None:
        self._config = config
        self._auth = auth

    async def resolve_link(self, url: str) -> LinkInfo | None:
        if not self._config.enabled:
            return None
        link = parse_link(url)
        if link is None or link.kind not in RESOLVABLE_KINDS:
            return None

        async def lookup(api: SpotifyWebApi) -> LinkInfo | None:
            return await _fetch(api, link, url)

        return await self._auth.with_authentication(
            silent=True, on_authenticated=lookup, on_failure=_unresolved
        )


async def _fetch(api: SpotifyWebApi, link: SpotifyLink, url: str) -> LinkInfo | None:
    payload: dict[str, Any]
    if link.kind == "track":
        payload = await api.get_track(link.id)
        if not payload.get("name"):
            return None
        return LinkInfo(
            type="track",
            source=SOURCE,
            url=metadata.external_url(payload) or url,
            title=str(payload["name"]),
            artists=metadata.artist_names(payload),
            album=metadata.album_name(payload),
            release_date=metadata.release_date(payload),
            duration_ms=metadata.duration_ms(payload),
        )
    if link.kind == "album":
        payload = await api.get_album(link.id)
        if not payload.get("name"):
            return None
        return LinkInfo(
            type="album",
            source=SOURCE,
            url=metadata.external_url(payload) or url,
            title=str(payload["name"]),
            artists=metadata.artist_names(payload),
            album=str(payload["name"]),
            release_date=metadata.release_date(payload),
        )
    if link.kind == "playlist":
        payload = await api.get_playlist(link.id)
        if not payload.get("name"):
            return None
        owner = payload.get("owner")
        owner_name = owner.get("display_name") if isinstance(owner, dict) else None
        return LinkInfo(
            type="playlist",
            source=SOURCE,
            url=metadata.external_url(payload) or url,
            title=str(payload["name"]),
            artists=[str(owner_name)] if owner_name else [],
        )

    payload = await api.get_artist(link.id)
    if not payload.get("name"):
        return None
    return LinkInfo(
        type="artist",
        source=SOURCE,
        url=metadata.external_url(payload) or url,
        title=str(payload["name"]),
        artists=[str(payload["name"])],
    )
