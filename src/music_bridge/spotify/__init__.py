from music_bridge.spotify.api import SpotifyApiError, SpotifyOAuthClient, SpotifyWebApi
from music_bridge.spotify.auth import SpotifyAuthStrategy
from music_bridge.spotify.resolver import SpotifyLinkResolver
from music_bridge.spotify.service import SpotifyMediaPlayer


__all__ = [
    "SpotifyApiError",
    "SpotifyAuthStrategy",
    "SpotifyLinkResolver",
    "SpotifyMediaPlayer",
    "SpotifyOAuthClient",
    "SpotifyWebApi",
]
