from __future__ import annotations

from dataclasses import dataclass
import re


LINK_PREFIX = "https://open.spotify.com"
PLAYABLE_ITEM_KINDS = frozenset({"track", "episode"})

_LINK_PATTERN = re.compile(
    r"^https://open\.spotify\.com/"
    r"(?:intl-[A-Za-z-]+/)?"
    r"(?P<kind>track|album|playlist|artist|episode|show)/"
    r"(?P<id>[A-Za-z0-9]+)"
    r"(?:[/?#]|$)"
)


@dataclass(frozen=True, slots=True)
class SpotifyLink:
    kind: str
    id: str

    @property
    def uri(self) -> str:
        return f"spotify:{self.kind}:{self.id}"

    @property
    def is_playable_item(self) -> bool:
        return self.kind in PLAYABLE_ITEM_KINDS


def is_spotify_link(url: str) -> bool:
    return url.startswith(LINK_PREFIX)


def parse_link(url: str) -> SpotifyLink | None:
    match = _LINK_PATTERN.match(url.strip())
    if match is None:
        return None
    return SpotifyLink(kind=match.group("kind"), id=match.group("id"))
