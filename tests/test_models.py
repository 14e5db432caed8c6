from __future__ import annotations

import dataclasses

import pytest

from music_bridge.models import (
    LinkInfo,
    PlaybackState,
    PlayerState,
    PlayerStateOptions,
    TrackFields,
    TrackInfo,
)


class TestPlayerStateOptions:
    def test_nothing_selected_by_default(self) -> None:
        options = PlayerStateOptions.from_dict({})

        assert options.include.source is False
        assert options.include.track is None
        assert not options.wants("title")

    def test_track_true_selects_every_field(self) -> None:
        options = PlayerStateOptions.from_dict({"include": {"track": True}})

        assert options.include.track == TrackFields.all()

    def test_partial_track_selection(self) -> None:
        options = PlayerStateOptions.from_dict(
            {"include": {"source": True, "track": {"title": True, "is_in_library": True}}}
        )

        assert options.include.source is True
        assert options.wants("title")
        assert options.wants("is_in_library")
        assert not options.wants("artists")

    @pytest.mark.parametrize(
        "raw",
        [
            {"include": {"lyrics": True}},
            {"include": {"track": {"genre": True}}},
            {"include": {"track": "title"}},
            {"include": ["track"]},
            {"include": {"track": {"title": "false"}}},
            {"include": {"track": {"title": 1}}},
            {"include": {"source": "yes"}},
            {"include": {"track": 0}},
        ],
    )
    def test_rejects_malformed_selection(self, raw: dict) -> None:
        with pytest.raises(ValueError):
            PlayerStateOptions.from_dict(raw)

    def test_everything(self) -> None:
        options = PlayerStateOptions.everything()

        assert options.include.source
        assert options.include.track is not None
        assert options.include.track.any()


class TestStateAndTracks:
    def test_track_to_dict_skips_unset_fields(self) -> None:
        assert TrackInfo(title="Song", is_in_library=False).to_dict() == {
            "title": "Song",
            "is_in_library": False,
        }

    def test_player_state_to_dict(self) -> None:
        state = PlayerState(
            state=PlaybackState.PAUSED, source="Spotify", track=TrackInfo(title="Song")
        )

        assert state.to_dict() == {
            "state": "paused",
            "source": "Spotify",
            "track": {"title": "Song"},
        }
        assert PlayerState.disconnected("Spotify").to_dict()["track"] is None

    def test_mpris_status(self) -> None:
        assert PlaybackState.PLAYING.mpris_status == "Playing"
        assert PlaybackState.DISCONNECTED.mpris_status == "Stopped"

    def test_link_info_requires_title(self) -> None:
        with pytest.raises(ValueError):
            LinkInfo(type="track", title="")

        info = LinkInfo(type="album", title="Album", artists=["A"])
        assert info.to_dict() == {"title": "Album", "artists": ["A"], "type": "album"}

    def test_tracks_are_immutable(self) -> None:
        track = TrackInfo(title="Song", artists=["A", "B"])

        assert track.artists == ("A", "B")
        with pytest.raises(dataclasses.FrozenInstanceError):
            track.title = "Other"  # type: ignore[misc]
        assert track.to_dict() == {"title": "Song", "artists": ["A", "B"]}
