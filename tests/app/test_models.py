"""Tests for app data models."""

import pytest

from worship_sound.app.errors import (
    DecodingError,
    ErrorKind,
    InvalidQueryError,
    NoSpiritualResultsError,
    TransportError,
)
from worship_sound.app.models import (
    RESOURCE_STATES,
    Empty,
    Failed,
    Found,
    PlaybackState,
    ProgressChanged,
    SearchRequest,
    Track,
)


class TestTrack:
    """Tests for Track."""

    @pytest.mark.parametrize("seconds,expected", [(0, "0:00"), (30, "0:30"), (185, "3:05"), (-4, "0:00")])
    def test_formatted_duration(self, seconds, expected):
        """Duration is shown as m:ss."""
        assert Track(id=1, duration_seconds=seconds).formatted_duration == expected

    @pytest.mark.parametrize("uri,expected", [(None, False), ("", False), ("  ", False), ("https://x/p.mp3", True)])
    def test_has_preview(self, uri, expected):
        """Only non-blank preview URIs count."""
        assert Track(id=1, preview_uri=uri).has_preview is expected

    def test_to_dict(self, hillsong_track):
        """All fields are included."""
        data = hillsong_track.to_dict()

        assert data["id"] == 3
        assert data["artist_name"] == "Hillsong United"
        assert set(data) == {
            "id",
            "title",
            "artist_name",
            "album_title",
            "duration_seconds",
            "preview_uri",
            "cover_uri",
        }

    def test_immutable(self, hillsong_track):
        """Tracks cannot be modified."""
        with pytest.raises(AttributeError):
            hillsong_track.title = "changed"


class TestSearchRequest:
    """Tests for SearchRequest."""

    def test_defaults(self):
        """First page of 50 by default."""
        request = SearchRequest(raw_query="oceans")

        assert (request.limit, request.offset) == (50, 0)


class TestOutcomes:
    """Tests for search outcome types."""

    def test_found_does_not_raise(self, worship_track):
        """Found is a success."""
        Found(tracks=[worship_track], total_returned=3, kept_after_filter=1).raise_for_outcome()

    def test_empty_raises(self):
        """Empty raises with its reason."""
        with pytest.raises(NoSpiritualResultsError, match="nothing here"):
            Empty(reason="nothing here").raise_for_outcome()

    @pytest.mark.parametrize(
        "kind,error",
        [
            (ErrorKind.TRANSPORT, TransportError),
            (ErrorKind.DECODING, DecodingError),
            (ErrorKind.INVALID_QUERY, InvalidQueryError),
        ],
    )
    def test_failed_raises_matching_error(self, kind, error):
        """Failed raises the error class for its kind."""
        with pytest.raises(error):
            Failed(error_kind=kind, message="boom").raise_for_outcome()

    def test_error_kinds_match(self):
        """Error classes carry the kind used by outcomes."""
        assert TransportError("x").kind == ErrorKind.TRANSPORT
        assert DecodingError("x").kind == ErrorKind.DECODING


class TestPlaybackModels:
    """Tests for playback state and events."""

    def test_resource_states(self):
        """Only loaded states hold a resource."""
        assert RESOURCE_STATES == {PlaybackState.PREPARED, PlaybackState.PLAYING, PlaybackState.PAUSED}

    @pytest.mark.parametrize(
        "position,duration,expected",
        [(0, 30000, 0.0), (15000, 30000, 50.0), (30000, 30000, 100.0), (40000, 30000, 100.0), (10, 0, 0.0)],
    )
    def test_progress_percent(self, position, duration, expected):
        """Progress is a bounded percentage."""
        assert ProgressChanged(position, duration).progress_percent == expected
