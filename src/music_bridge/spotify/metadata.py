from __future__ import annotations

from typing import Any


def external_url(payload: dict[str, Any]) -> str | None:
    urls = payload.get("external_urls")
    if isinstance(urls, dict) and urls.get("spotify"):
        return str(urls["spotify"])
    return None


def artist_names(payload: dict[str, Any]) -> list[str]:
    artists = payload.get("artists", [])
    names: list[str] = []
    if isinstance(artists, list):
        for artist in artists:
            if isinstance(artist, dict) and artist.get("name"):
                names.append(str(artist["name"]))
    if not names and isinstance(payload.get("show"), dict):
        publisher = payload["show"].get("publisher")
        if publisher:
            names.append(str(publisher))
    return names


def album_of(payload: dict[str, Any]) -> dict[str, Any]:
    album = payload.get("album")
    if isinstance(album, dict):
        return album
    show = payload.get("show")
    if isinstance(show, dict):
        return show
    return {}


def album_name(payload: dict[str, Any]) -> str | None:
    name = album_of(payload).get("name")
    return str(name) if name else None


def release_date(payload: dict[str, Any]) -> str | None:
    value = album_of(payload).get("release_date") or payload.get("release_date")
    return str(value) if value else None


def duration_ms(payload: dict[str, Any]) -> int | None:
    value = payload.get("duration_ms")
    return int(value) if value is not None else None
