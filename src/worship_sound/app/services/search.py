"""Spiritual search orchestration for worship-sound.

Turns a user query (or none, for trending) into a remote search with
spiritual query enhancement and a single content fallback attempt, and
delivers exactly one terminal outcome per surviving search. Issuing a new
search supersedes the one in flight: its task is cancelled and its
outcome, should one still arrive, is discarded.
"""

import asyncio
import random
from typing import Awaitable, Callable, Optional, Protocol, Sequence

from worship_sound.app.errors import ErrorKind, SearchServiceError
from worship_sound.app.logging_config import get_logger
from worship_sound.app.models import Empty, Failed, Found, SearchOutcome, SearchPage, Track
from worship_sound.app.services.classifier import (
    FALLBACK_TEMPLATES,
    TRENDING_QUERIES,
    SpiritualClassifier,
)

logger = get_logger(__name__)

NO_TRENDING_REASON = "No spiritual songs available at the moment"
NO_HIGH_QUALITY_REASON = "No high-quality spiritual songs found. Try a different search term."


class TrackSearchClient(Protocol):
    """Remote search collaborator (see DeezerClient)."""

    async def search(self, query: str, limit: int, offset: int) -> SearchPage:
        ...


def no_results_reason(query: str) -> str:
    """Human-readable explanation for an empty search."""
    return f'No spiritual songs found for "{query}". Try searching for gospel, worship, or christian music.'


class _AttemptFailed(Exception):
    """Internal: a remote attempt failed and the search must end as Failed."""

    def __init__(self, outcome: Failed):
        super().__init__(outcome.message)
        self.outcome = outcome


class SearchOrchestrator:
    """Resilient, cancellable discovery of spiritual tracks.

    Only one search (of any kind) is in flight per instance. Each public
    search coroutine returns its outcome, or ``None`` if it was superseded
    by a later search or cancelled with ``cancel()``. The optional
    ``on_outcome`` listener receives each surviving outcome exactly once.

    Attributes:
        client: Remote search collaborator
        classifier: Spiritual classifier used for filtering and scoring
        fallback_limit: Result count requested by fallback attempts
    """

    def __init__(
        self,
        client: TrackSearchClient,
        classifier: Optional[SpiritualClassifier] = None,
        fallback_limit: int = 30,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the orchestrator.

        Args:
            client: Remote search collaborator
            classifier: Classifier (a default one is built if omitted)
            fallback_limit: Result count requested by fallback attempts
            rng: Random source for fallback and trending query choice
        """
        self.client = client
        self.classifier = classifier or SpiritualClassifier()
        self.fallback_limit = fallback_limit
        self._rng = rng or random.Random()

        self._generation = 0
        self._current: Optional[asyncio.Task] = None

        self._on_outcome: Optional[Callable[[SearchOutcome], None]] = None
        self._on_loading: Optional[Callable[[bool], None]] = None

    def set_callbacks(
        self,
        on_outcome: Optional[Callable[[SearchOutcome], None]] = None,
        on_loading: Optional[Callable[[bool], None]] = None,
    ) -> None:
        """Set search event callbacks.

        Args:
            on_outcome: Called once with the terminal outcome of each surviving search
            on_loading: Called with True when a search starts and False when it ends
        """
        self._on_outcome = on_outcome
        self._on_loading = on_loading

    @property
    def is_searching(self) -> bool:
        """Check if a search is in flight."""
        return self._current is not None and not self._current.done()

    async def search(self, query: str, limit: int = 50, offset: int = 0) -> Optional[SearchOutcome]:
        """Search spiritual tracks for a user query.

        Args:
            query: User's search query
            limit: Number of results to request
            offset: Starting index for pagination

        Returns:
            The terminal outcome, or None if superseded
        """
        return await self._run(self._search_pipeline(query, limit, offset), f"search {query!r}")

    async def trending(self, limit: int = 50, offset: int = 0) -> Optional[SearchOutcome]:
        """Load trending spiritual tracks from a random pre-vetted query.

        Args:
            limit: Number of results to request
            offset: Starting index for pagination

        Returns:
            The terminal outcome, or None if superseded
        """
        return await self._run(self._trending_pipeline(limit, offset), "trending")

    async def high_quality_search(
        self,
        query: str,
        minimum_score: int,
        limit: int = 100,
        offset: int = 0,
    ) -> Optional[SearchOutcome]:
        """Search, then keep only tracks scoring at least ``minimum_score``.

        Args:
            query: User's search query
            minimum_score: Minimum spiritual score (0-100)
            limit: Number of results to request
            offset: Starting index for pagination

        Returns:
            The terminal outcome, or None if superseded
        """
        return await self._run(
            self._high_quality_pipeline(query, minimum_score, limit, offset),
            f"high quality search {query!r} (min score {minimum_score})",
        )

    def score_filter(self, tracks: Sequence[Track], minimum_score: int) -> list[Track]:
        """Keep tracks whose spiritual score is at least ``minimum_score``."""
        return [t for t in tracks if self.classifier.calculate_spiritual_score(t) >= minimum_score]

    def cancel(self) -> bool:
        """Cancel the in-flight search, if any.

        Returns:
            True if a search was cancelled
        """
        cancelled = self._cancel_current()
        if cancelled:
            self._notify_loading(False)
        return cancelled

    def _cancel_current(self) -> bool:
        # Bumping the generation invalidates any outcome not yet delivered
        self._generation += 1
        task, self._current = self._current, None
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug("Cancelled in-flight search")
        return True

    async def _run(self, pipeline: Awaitable[SearchOutcome], label: str) -> Optional[SearchOutcome]:
        """Run a pipeline as the single in-flight search and deliver its outcome."""
        self._cancel_current()
        generation = self._generation
        task = asyncio.ensure_future(pipeline)
        self._current = task
        self._notify_loading(True)

        try:
            outcome = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                logger.debug(f"Discarding superseded {label}")
                return None
            # The caller itself was cancelled
            raise
        finally:
            if self._current is task:
                self._current = None
                self._notify_loading(False)

        if generation != self._generation:
            logger.debug(f"Discarding late outcome of superseded {label}")
            return None

        logger.info(f"{label} -> {type(outcome).__name__}")
        if self._on_outcome:
            self._on_outcome(outcome)
        return outcome

    def _notify_loading(self, is_loading: bool) -> None:
        if self._on_loading:
            self._on_loading(is_loading)

    async def _attempt(self, query: str, limit: int, offset: int) -> tuple[list[Track], int]:
        """Issue one remote search and classify it.

        Returns:
            (spiritual tracks kept, number of tracks returned)

        Raises:
            _AttemptFailed: If the remote call failed
        """
        try:
            page = await self.client.search(query, limit, offset)
        except SearchServiceError as e:
            logger.error(f"Search attempt for {query!r} failed: {e}")
            raise _AttemptFailed(Failed(error_kind=e.kind, message=str(e))) from e
        except Exception as e:
            logger.exception(f"Unexpected error searching for {query!r}: {e}")
            raise _AttemptFailed(Failed(error_kind=ErrorKind.TRANSPORT, message=f"Search error: {e}")) from e

        kept = self.classifier.filter_spiritual_songs(page.tracks)
        logger.debug(f"Attempt {query!r}: kept {len(kept)} of {len(page.tracks)}")
        return kept, len(page.tracks)

    async def _search_pipeline(self, query: str, limit: int, offset: int) -> SearchOutcome:
        if not query or not query.strip():
            return Failed(error_kind=ErrorKind.INVALID_QUERY, message="Search query must not be empty")

        query = query.strip()
        try:
            kept, returned = await self._attempt(self.classifier.enhance_query(query), limit, offset)
            if kept:
                return Found(tracks=kept, total_returned=returned, kept_after_filter=len(kept))

            fallback_query = self._rng.choice(FALLBACK_TEMPLATES).format(query=query)
            logger.info(f"No spiritual results for {query!r}, falling back to {fallback_query!r}")
            kept, returned = await self._attempt(fallback_query, self.fallback_limit, 0)
        except _AttemptFailed as e:
            return e.outcome

        if kept:
            return Found(tracks=kept, total_returned=returned, kept_after_filter=len(kept))
        return Empty(reason=no_results_reason(query))

    async def _trending_pipeline(self, limit: int, offset: int) -> SearchOutcome:
        first = self._rng.choice(TRENDING_QUERIES)
        try:
            kept, returned = await self._attempt(first, limit, offset)
            if kept:
                return Found(tracks=kept, total_returned=returned, kept_after_filter=len(kept))

            retry = self._rng.choice([q for q in TRENDING_QUERIES if q != first])
            logger.info(f"No trending results for {first!r}, retrying with {retry!r}")
            kept, returned = await self._attempt(retry, self.fallback_limit, 0)
        except _AttemptFailed as e:
            return e.outcome

        if kept:
            return Found(tracks=kept, total_returned=returned, kept_after_filter=len(kept))
        return Empty(reason=NO_TRENDING_REASON)

    async def _high_quality_pipeline(self, query: str, minimum_score: int, limit: int, offset: int) -> SearchOutcome:
        outcome = await self._search_pipeline(query, limit, offset)
        if not isinstance(outcome, Found):
            return outcome

        high_quality = self.score_filter(outcome.tracks, minimum_score)
        if not high_quality:
            return Empty(reason=NO_HIGH_QUALITY_REASON)
        return Found(
            tracks=high_quality,
            total_returned=outcome.total_returned,
            kept_after_filter=len(high_quality),
        )
