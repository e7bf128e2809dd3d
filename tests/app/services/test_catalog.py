"""Tests for CatalogService."""

from unittest.mock import MagicMock

import pytest

from worship_sound.app.services.catalog import CatalogService, TrackWithStatus


@pytest.fixture
def library():
    """Library store where only track 3 is liked."""
    store = MagicMock()
    store.is_liked.side_effect = lambda track_id: track_id == 3
    return store


class TestAnnotate:
    """Tests for CatalogService.annotate."""

    def test_scores_in_order(self, classifier, worship_track, secular_track, hillsong_track):
        """Each track gets its score; order is preserved."""
        catalog = CatalogService(classifier)

        items = catalog.annotate([worship_track, secular_track, hillsong_track])

        assert [item.track for item in items] == [worship_track, secular_track, hillsong_track]
        assert [item.spiritual_score for item in items] == [20, 0, 30]
        assert not any(item.liked for item in items)

    def test_liked_status_from_library(self, classifier, library, worship_track, hillsong_track):
        """Liked status is looked up per track id."""
        catalog = CatalogService(classifier, library)

        items = catalog.annotate([worship_track, hillsong_track])

        assert [item.liked for item in items] == [False, True]
        assert library.is_liked.call_count == 2

    def test_empty(self, classifier):
        """No tracks, no items."""
        assert CatalogService(classifier).annotate([]) == []


class TestSortByScore:
    """Tests for CatalogService.sort_by_score."""

    def test_descending(self, classifier, worship_track, secular_track, hillsong_track):
        """Highest score first."""
        items = CatalogService(classifier).sort_by_score([secular_track, worship_track, hillsong_track])

        assert [item.track.id for item in items] == [3, 1, 2]

    def test_stable_for_ties(self, classifier, track_factory):
        """Tracks with equal scores keep their order."""
        first = track_factory(10, "Grace")
        second = track_factory(11, "Mercy")

        items = CatalogService(classifier).sort_by_score([first, second])

        assert [item.track for item in items] == [first, second]


class TestTrackWithStatus:
    """Tests for TrackWithStatus."""

    @pytest.mark.parametrize("score,label", [(0, "low"), (29, "low"), (30, "medium"), (59, "medium"), (60, "high"), (100, "high")])
    def test_score_label(self, worship_track, score, label):
        """Scores map to coarse labels."""
        assert TrackWithStatus(worship_track, score).score_label == label
