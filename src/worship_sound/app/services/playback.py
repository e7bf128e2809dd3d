"""Preview playback engine for worship-sound.

Manages a single streaming preview session as an explicit state machine:

    IDLE -> LOADING -> PREPARED -> PLAYING <-> PAUSED
                 \\                    |
                  -> ERROR             -> COMPLETED -> IDLE
    any non-idle state -- stop() --> STOPPED -> IDLE

Loading and end-of-stream handling run on one dedicated worker thread, so
at most one resource is ever being opened or released at a time. A
generation counter, bumped by play() and stop(), lets the worker discard
loads and completions that belong to a session that no longer exists.
Events are queued while the state lock is held and delivered by one
thread at a time, so listeners see them in the order they were accepted.
"""

import threading
from collections import deque
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Callable, Optional

from worship_sound.app.errors import PlaybackResourceError
from worship_sound.app.logging_config import get_logger
from worship_sound.app.models import (
    RESOURCE_STATES,
    PlaybackEvent,
    PlaybackFailed,
    PlaybackState,
    ProgressChanged,
    StateChanged,
    Track,
)
from worship_sound.app.services.audio_backend import AudioResource, StreamingBackend

logger = get_logger(__name__)


class ProgressTicker:
    """Repeating timer calling ``tick`` every ``interval_seconds`` until cancelled."""

    def __init__(self, interval_seconds: float, tick: Callable[["ProgressTicker"], None]):
        self.interval_seconds = interval_seconds
        self._tick = tick
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, name="playback-progress", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _run(self) -> None:
        while not self._cancelled.wait(self.interval_seconds):
            self._tick(self)


class PlaybackEngine:
    """Single-session preview player.

    All state lives behind one lock. Operations whose precondition does
    not hold when they run are ignored and return False. Events are
    queued under the lock and delivered to one listener, outside it and
    in acceptance order, by whichever thread is currently dispatching
    (caller, loader worker or progress ticker).

    Attributes:
        backend: Streaming backend opening preview URIs
        progress_interval_ms: Cadence of progress events while playing
    """

    def __init__(
        self,
        backend: StreamingBackend,
        progress_interval_ms: int = 500,
        executor: Optional[Executor] = None,
    ):
        """Initialize the playback engine.

        Args:
            backend: Streaming backend opening preview URIs
            progress_interval_ms: Cadence of progress events while playing
            executor: Worker for loads and completions (a single thread by default)
        """
        self.backend = backend
        self.progress_interval_ms = progress_interval_ms

        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="playback-loader")
        self._lock = threading.RLock()

        self._state = PlaybackState.IDLE
        self._track: Optional[Track] = None
        self._resource: Optional[AudioResource] = None
        self._position_ms = 0
        self._duration_ms = 0
        self._volume: Optional[float] = None
        self._generation = 0
        self._ticker: Optional[ProgressTicker] = None
        self._released = False

        self._listener: Optional[Callable[[PlaybackEvent], None]] = None
        self._pending: deque[PlaybackEvent] = deque()
        self._dispatching = False

    def set_listener(self, listener: Optional[Callable[[PlaybackEvent], None]]) -> None:
        """Set the playback event listener.

        Args:
            listener: Called with every StateChanged, ProgressChanged and
                PlaybackFailed event; must be thread-safe
        """
        self._listener = listener

    @property
    def state(self) -> PlaybackState:
        """Get current playback state."""
        with self._lock:
            return self._state

    @property
    def current_track(self) -> Optional[Track]:
        """Get the session track (retained in ERROR for diagnostics)."""
        with self._lock:
            return self._track

    @property
    def is_playing(self) -> bool:
        """Check if currently playing."""
        return self.state == PlaybackState.PLAYING

    @property
    def is_prepared(self) -> bool:
        """Check if a resource is loaded."""
        return self.state in RESOURCE_STATES

    @property
    def duration_ms(self) -> int:
        """Get duration of the current preview in milliseconds."""
        with self._lock:
            return self._duration_ms

    @property
    def position_ms(self) -> int:
        """Get current position in milliseconds."""
        with self._lock:
            return self._current_position_locked()

    def play(self, track: Track) -> None:
        """Play a track's preview, replacing any current session.

        Returns immediately; the preview is loaded on the worker thread.

        Args:
            track: Track to play
        """
        events: list[PlaybackEvent] = []
        with self._lock:
            if self._released:
                logger.warning("play() called on a released engine")
                return

            self._generation += 1
            generation = self._generation

            if self._state in RESOURCE_STATES:
                self._teardown_locked()
                events.append(StateChanged(PlaybackState.STOPPED, self._track))

            self._cancel_ticker_locked()
            self._track = track
            self._position_ms = 0
            self._duration_ms = max(0, int(track.duration_seconds)) * 1000
            self._state = PlaybackState.LOADING
            events.append(StateChanged(PlaybackState.LOADING, track))
            self._pending.extend(events)

        logger.info(f"Loading preview: {track.title} - {track.artist_name}")
        self._dispatch()
        self._executor.submit(self._load, track, generation)

    def pause(self) -> bool:
        """Pause playback.

        Returns:
            True if paused
        """
        with self._lock:
            if self._state != PlaybackState.PLAYING or self._resource is None:
                return False

            self._resource.pause()
            self._position_ms = position = self._resource.position_ms()
            self._cancel_ticker_locked()
            self._state = PlaybackState.PAUSED
            self._pending.append(StateChanged(PlaybackState.PAUSED, self._track))

        logger.debug(f"Paused at {position}ms")
        self._dispatch()
        return True

    def resume(self) -> bool:
        """Resume paused playback.

        Returns:
            True if resumed
        """
        with self._lock:
            if self._state != PlaybackState.PAUSED or self._resource is None:
                return False

            try:
                self._resource.play(self._end_of_stream_callback(self._generation))
            except PlaybackResourceError as e:
                logger.error(f"Failed to resume: {e}")
                events = self._fail_locked(str(e))
                resumed = False
            else:
                self._state = PlaybackState.PLAYING
                self._start_ticker_locked()
                events = [StateChanged(PlaybackState.PLAYING, self._track)]
                resumed = True
            self._pending.extend(events)

        self._dispatch()
        return resumed

    def toggle(self) -> bool:
        """Pause if playing, resume if paused.

        Returns:
            True if either transition happened
        """
        return self.pause() or self.resume()

    def stop(self) -> bool:
        """Stop playback, release the resource and return to IDLE.

        Also acknowledges an ERROR state. Any in-flight load is discarded.

        Returns:
            True if the engine was not already idle
        """
        with self._lock:
            if self._state == PlaybackState.IDLE:
                return False

            self._generation += 1
            track = self._track
            self._teardown_locked()
            self._state = PlaybackState.STOPPED
            events: list[PlaybackEvent] = [StateChanged(PlaybackState.STOPPED, track)]
            events.extend(self._reset_to_idle_locked())
            self._pending.extend(events)

        logger.info("Playback stopped")
        self._dispatch()
        return True

    def seek(self, position_ms: int) -> bool:
        """Seek within the loaded preview, clamping to [0, duration].

        Returns:
            True if a resource was loaded and the seek applied
        """
        with self._lock:
            if self._state not in RESOURCE_STATES or self._resource is None:
                return False

            clamped = max(0, min(int(position_ms), self._duration_ms))
            self._resource.seek(clamped)
            self._position_ms = clamped
            self._pending.append(ProgressChanged(clamped, self._duration_ms))

        self._dispatch()
        return True

    def set_volume(self, volume: float) -> None:
        """Set playback volume (0.0 to 1.0) for this and later previews."""
        with self._lock:
            self._volume = max(0.0, min(1.0, volume))
            if self._resource is not None:
                self._resource.set_volume(self._volume)

    def release(self) -> None:
        """Stop playback and shut down the worker. The engine is unusable afterwards."""
        self.stop()
        with self._lock:
            self._released = True
        self._executor.shutdown(wait=False)

    def _load(self, track: Track, generation: int) -> None:
        """Worker: open the preview and start playing if still current."""
        try:
            if not track.has_preview:
                raise PlaybackResourceError("Track has no preview URL")
            resource = self.backend.open(track.preview_uri)
        except Exception as e:
            logger.error(f"Failed to load preview for {track.title!r}: {e}")
            with self._lock:
                if generation != self._generation:
                    return
                self._pending.extend(self._fail_locked(str(e)))
            self._dispatch()
            return

        with self._lock:
            if generation != self._generation:
                stale = True
            else:
                stale = False
                self._pending.extend(self._start_locked(resource, generation))

        if stale:
            logger.debug(f"Discarding stale load of {track.title!r}")
            resource.close()
            return

        self._dispatch()

    def _start_locked(self, resource: AudioResource, generation: int) -> list[PlaybackEvent]:
        self._resource = resource
        if resource.duration_ms > 0:
            self._duration_ms = resource.duration_ms
        if self._volume is not None:
            resource.set_volume(self._volume)
        self._position_ms = 0
        self._state = PlaybackState.PREPARED
        events: list[PlaybackEvent] = [StateChanged(PlaybackState.PREPARED, self._track)]

        try:
            resource.play(self._end_of_stream_callback(generation))
        except PlaybackResourceError as e:
            events.extend(self._fail_locked(str(e)))
            return events

        self._state = PlaybackState.PLAYING
        self._start_ticker_locked()
        events.append(StateChanged(PlaybackState.PLAYING, self._track))
        logger.info(f"Playing: {self._track.title if self._track else '?'} ({self._duration_ms}ms)")
        return events

    def _end_of_stream_callback(self, generation: int) -> Callable[[], None]:
        def on_end() -> None:
            # Runs on the audio thread; hand over to the worker
            try:
                self._executor.submit(self._complete, generation)
            except RuntimeError:
                logger.debug("End of stream after engine release")

        return on_end

    def _complete(self, generation: int) -> None:
        """Worker: natural end of stream."""
        with self._lock:
            if generation != self._generation or self._state != PlaybackState.PLAYING:
                logger.debug("Ignoring stale end-of-stream")
                return

            track = self._track
            self._teardown_locked()
            self._state = PlaybackState.COMPLETED
            events: list[PlaybackEvent] = [StateChanged(PlaybackState.COMPLETED, track)]
            events.extend(self._reset_to_idle_locked())
            self._pending.extend(events)

        logger.info(f"Playback completed: {track.title if track else '?'}")
        self._dispatch()

    def _fail_locked(self, message: str) -> list[PlaybackEvent]:
        # Track is kept for diagnostics; resource and clock are dropped
        self._teardown_locked()
        self._state = PlaybackState.ERROR
        return [PlaybackFailed(self._track, message), StateChanged(PlaybackState.ERROR, self._track)]

    def _teardown_locked(self) -> None:
        self._cancel_ticker_locked()
        resource, self._resource = self._resource, None
        if resource is not None:
            resource.close()
        self._position_ms = 0

    def _reset_to_idle_locked(self) -> list[PlaybackEvent]:
        self._track = None
        self._position_ms = 0
        self._duration_ms = 0
        self._state = PlaybackState.IDLE
        return [StateChanged(PlaybackState.IDLE, None)]

    def _current_position_locked(self) -> int:
        if self._state == PlaybackState.PLAYING and self._resource is not None:
            return min(self._resource.position_ms(), self._duration_ms)
        return self._position_ms

    def _start_ticker_locked(self) -> None:
        self._cancel_ticker_locked()
        self._ticker = ProgressTicker(self.progress_interval_ms / 1000, self._on_tick)
        self._ticker.start()

    def _cancel_ticker_locked(self) -> None:
        ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.cancel()

    def _on_tick(self, ticker: ProgressTicker) -> None:
        with self._lock:
            if ticker is not self._ticker or self._state != PlaybackState.PLAYING:
                return
            self._pending.append(ProgressChanged(self._current_position_locked(), self._duration_ms))
        self._dispatch()

    def _dispatch(self) -> None:
        """Deliver queued events in order unless another thread already is."""
        with self._lock:
            if self._dispatching:
                return
            self._dispatching = True

        try:
            while True:
                with self._lock:
                    if not self._pending:
                        self._dispatching = False
                        return
                    event = self._pending.popleft()
                    listener = self._listener
                if listener is None:
                    continue
                try:
                    listener(event)
                except Exception:
                    logger.exception(f"Playback listener failed on {event}")
        except BaseException:
            with self._lock:
                self._dispatching = False
            raise
