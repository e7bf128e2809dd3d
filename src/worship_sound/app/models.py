"""Data models for worship-sound.

Provides the Track entity received from the search service, the tagged
search outcomes delivered by the orchestrator, and the playback state and
event types emitted by the playback engine.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Optional, Union

from worship_sound.app.errors import ERRORS_BY_KIND, ErrorKind, NoSpiritualResultsError


@dataclass(frozen=True)
class Track:
    """A track as returned by the remote search service.

    Tracks are immutable; derived fields such as liked status or spiritual
    score are attached by callers (see ``TrackWithStatus``).

    Attributes:
        id: Opaque track identifier from the service
        title: Track title
        artist_name: Main artist name
        album_title: Album title
        duration_seconds: Full track duration in seconds
        preview_uri: URL of the streaming preview, if any
        cover_uri: URL of the album cover, if any
    """

    id: Any
    title: str = ""
    artist_name: str = ""
    album_title: str = ""
    duration_seconds: int = 0
    preview_uri: Optional[str] = None
    cover_uri: Optional[str] = None

    @property
    def formatted_duration(self) -> str:
        """Get duration formatted as m:ss."""
        minutes, seconds = divmod(max(0, int(self.duration_seconds)), 60)
        return f"{minutes}:{seconds:02d}"

    @property
    def has_preview(self) -> bool:
        """Check if the track has a playable preview URL."""
        return bool(self.preview_uri and self.preview_uri.strip())

    def to_dict(self) -> dict[str, Any]:
        """Convert Track to dictionary.

        Returns:
            Dictionary representation of the track
        """
        return {
            "id": self.id,
            "title": self.title,
            "artist_name": self.artist_name,
            "album_title": self.album_title,
            "duration_seconds": self.duration_seconds,
            "preview_uri": self.preview_uri,
            "cover_uri": self.cover_uri,
        }


@dataclass(frozen=True)
class SearchRequest:
    """A logical search request as issued by the UI."""

    raw_query: str
    limit: int = 50
    offset: int = 0


@dataclass(frozen=True)
class SearchPage:
    """One page of results from the remote search service.

    Attributes:
        tracks: Tracks on this page, in service order
        total: Total number of matches reported by the service
    """

    tracks: list[Track] = field(default_factory=list)
    total: int = 0


@dataclass(frozen=True)
class Found:
    """Terminal outcome: spiritual tracks were found.

    Attributes:
        tracks: Tracks kept after classification, in service order
        total_returned: Number of tracks the service returned for the winning attempt
        kept_after_filter: Number of tracks kept
    """

    tracks: list[Track]
    total_returned: int
    kept_after_filter: int

    def raise_for_outcome(self) -> None:
        """Found never raises."""


@dataclass(frozen=True)
class Empty:
    """Terminal outcome: the service answered but nothing classified as spiritual."""

    reason: str

    def raise_for_outcome(self) -> None:
        """Raise NoSpiritualResultsError carrying the reason."""
        raise NoSpiritualResultsError(self.reason)


@dataclass(frozen=True)
class Failed:
    """Terminal outcome: the search could not be carried out.

    Attributes:
        error_kind: What went wrong (transport, decoding, invalid query)
        message: Human-readable detail
    """

    error_kind: ErrorKind
    message: str = ""

    def raise_for_outcome(self) -> None:
        """Raise the error class matching ``error_kind``."""
        raise ERRORS_BY_KIND[self.error_kind](self.message)


SearchOutcome = Union[Found, Empty, Failed]


class PlaybackState(Enum):
    """Playback engine state."""

    IDLE = auto()
    LOADING = auto()
    PREPARED = auto()
    PLAYING = auto()
    PAUSED = auto()
    STOPPED = auto()
    COMPLETED = auto()
    ERROR = auto()


# States in which a streaming resource is open
RESOURCE_STATES = frozenset({PlaybackState.PREPARED, PlaybackState.PLAYING, PlaybackState.PAUSED})


@dataclass(frozen=True)
class StateChanged:
    """The engine entered ``state``; ``track`` is the session track at that time."""

    state: PlaybackState
    track: Optional[Track] = None


@dataclass(frozen=True)
class ProgressChanged:
    """Periodic progress tick while playing, or a position change after seek."""

    position_ms: int
    duration_ms: int

    @property
    def progress_percent(self) -> float:
        """Get progress as percentage (0-100)."""
        if self.duration_ms <= 0:
            return 0.0
        return min(100.0, self.position_ms / self.duration_ms * 100)


@dataclass(frozen=True)
class PlaybackFailed:
    """Loading or playing ``track`` failed."""

    track: Optional[Track]
    message: str


PlaybackEvent = Union[StateChanged, ProgressChanged, PlaybackFailed]
