"""Catalog display service for worship-sound.

Combines tracks with derived display fields (liked status, spiritual
score) without mutating them. Liked status comes from an optional local
library store, consumed through the LibraryStore protocol.
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence

from worship_sound.app.models import Track
from worship_sound.app.services.classifier import SpiritualClassifier


class LibraryStore(Protocol):
    """Local persistence of liked tracks and playlists."""

    def is_liked(self, track_id: Any) -> bool:
        ...

    def save(self, track: Track, collection_name: str) -> None:
        ...

    def remove(self, track_id: Any, collection_name: str) -> bool:
        ...

    def list_by_collection(self, collection_name: str) -> list[Track]:
        """Tracks of a collection, most recently saved first."""

    def list_collection_names(self) -> list[str]:
        ...


@dataclass(frozen=True)
class TrackWithStatus:
    """Track with its derived display fields.

    Attributes:
        track: The track as received from the search service
        spiritual_score: Classifier score (0-100)
        liked: Whether the track is in the user's liked collection
    """

    track: Track
    spiritual_score: int
    liked: bool = False

    @property
    def score_label(self) -> str:
        """Get a coarse label for the score."""
        if self.spiritual_score >= 60:
            return "high"
        if self.spiritual_score >= 30:
            return "medium"
        return "low"


class CatalogService:
    """Attaches derived fields to tracks for display.

    Attributes:
        classifier: Spiritual classifier used for scoring
        library: Optional local library store for liked status
    """

    def __init__(self, classifier: SpiritualClassifier, library: Optional[LibraryStore] = None):
        self.classifier = classifier
        self.library = library

    def annotate(self, tracks: Sequence[Track]) -> list[TrackWithStatus]:
        """Annotate tracks, preserving order.

        Args:
            tracks: Tracks to annotate

        Returns:
            List of TrackWithStatus
        """
        return [
            TrackWithStatus(
                track=track,
                spiritual_score=self.classifier.calculate_spiritual_score(track),
                liked=self.library.is_liked(track.id) if self.library else False,
            )
            for track in tracks
        ]

    def sort_by_score(self, tracks: Sequence[Track]) -> list[TrackWithStatus]:
        """Annotate tracks and order them by descending score (stable)."""
        return sorted(self.annotate(tracks), key=lambda item: item.spiritual_score, reverse=True)
