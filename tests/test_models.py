"""
Tests for the value types and small helpers.
"""

from dataclasses import FrozenInstanceError

import pytest

from core.errors import InvalidArgument
from core.models import Playlist, PersistedSettings, RepeatMode, ThemePreference, Track
from core.utils import format_time, title_from_filename


class TestTrack:
    def test_minimal_track(self):
        t = Track(id="a", title="Rock Anthem", artist="Band", source_locator="/x.mp3")
        assert t.duration_seconds == 0.0
        assert t.cover_locator is None

    def test_empty_id_rejected(self):
        with pytest.raises(InvalidArgument):
            Track(id="", title="x", artist="y", source_locator="/x.mp3")

    def test_blank_locator_rejected(self):
        with pytest.raises(InvalidArgument):
            Track(id="a", title="x", artist="y", source_locator="   ")

    def test_negative_duration_rejected(self):
        with pytest.raises(InvalidArgument):
            Track(id="a", title="x", artist="y", source_locator="/x.mp3", duration_seconds=-1)

    def test_frozen(self):
        t = Track(id="a", title="x", artist="y", source_locator="/x.mp3")
        with pytest.raises(FrozenInstanceError):
            t.title = "other"


class TestPlaylist:
    def test_tracks_stored_as_tuple(self, track_factory):
        tracks = [track_factory(), track_factory()]
        p = Playlist(id="p1", name="Mix", tracks=tracks)
        tracks.append(track_factory())
        assert isinstance(p.tracks, tuple)
        assert len(p.tracks) == 2

    def test_created_at_is_aware(self):
        p = Playlist(id="p1", name="Mix")
        assert p.created_at.tzinfo is not None

    def test_blank_name_rejected(self):
        with pytest.raises(InvalidArgument):
            Playlist(id="p1", name="  ")


class TestPersistedSettings:
    def test_defaults(self):
        s = PersistedSettings(schema_version=1)
        assert s.playlists == ()
        assert s.volume_percent == 70
        assert s.theme is ThemePreference.AUTO
        assert s.repeat_mode is RepeatMode.OFF
        assert s.shuffle_enabled is False


class TestUtils:
    @pytest.mark.parametrize("seconds,expected", [
        (None, "0:00"),
        (0, "0:00"),
        (float("nan"), "0:00"),
        (5, "0:05"),
        (65.9, "1:05"),
        (3600, "60:00"),
    ])
    def test_format_time(self, seconds, expected):
        assert format_time(seconds) == expected

    def test_title_from_filename(self):
        assert title_from_filename("/tmp/My  Song.final.mp3") == "My Song.final"
        assert title_from_filename("track.flac") == "track"
