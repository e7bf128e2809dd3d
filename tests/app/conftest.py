"""Shared fixtures for app tests."""

import threading
import time
from concurrent.futures import Executor, Future
from typing import Callable, Optional

import pytest

from worship_sound.app.errors import PlaybackResourceError
from worship_sound.app.models import SearchPage, Track
from worship_sound.app.services.classifier import SpiritualClassifier


class ImmediateExecutor(Executor):
    """Executor running submitted work inline, for deterministic engine tests."""

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class FakeResource:
    """In-memory AudioResource recording what the engine does to it."""

    def __init__(self, uri: str, log: list, duration_ms: int = 30000, finish_after: Optional[float] = None):
        self.uri = uri
        self.duration_ms = duration_ms
        self.close_count = 0
        self.playing = False
        self.volume: Optional[float] = None
        self.on_end: Optional[Callable[[], None]] = None
        self._position = 0
        self._log = log
        self._finish_after = finish_after

    def play(self, on_end):
        self.playing = True
        self.on_end = on_end
        if self._finish_after is not None:
            threading.Timer(self._finish_after, self.finish).start()

    def pause(self):
        self.playing = False

    def seek(self, position_ms):
        self._position = position_ms

    def position_ms(self):
        return self._position

    def set_volume(self, volume):
        self.volume = volume

    def close(self):
        if self.close_count == 0:
            self._log.append(("close", self.uri))
        self.close_count += 1
        self.playing = False

    def finish(self):
        """Simulate end-of-stream from the audio thread."""
        self.on_end()


class FakeBackend:
    """StreamingBackend returning FakeResources.

    URIs listed in ``failing`` raise PlaybackResourceError. URIs with an
    entry in ``gates`` block in open() until the event is set.
    """

    def __init__(self, duration_ms: int = 30000, finish_after: Optional[float] = None):
        self.duration_ms = duration_ms
        self.finish_after = finish_after
        self.failing: set[str] = set()
        self.gates: dict[str, threading.Event] = {}
        self.log: list[tuple[str, str]] = []
        self.resources: list[FakeResource] = []

    def open(self, uri):
        gate = self.gates.get(uri)
        if gate is not None:
            gate.wait(timeout=5)
        if uri in self.failing:
            raise PlaybackResourceError(f"Cannot decode {uri}")
        self.log.append(("open", uri))
        resource = FakeResource(uri, self.log, self.duration_ms, self.finish_after)
        self.resources.append(resource)
        return resource


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll until predicate is true or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


def make_track(track_id, title="", artist="", album="", preview="https://cdn.example/preview.mp3", duration=180) -> Track:
    """Build a Track with sensible defaults."""
    return Track(
        id=track_id,
        title=title,
        artist_name=artist,
        album_title=album,
        duration_seconds=duration,
        preview_uri=preview,
        cover_uri=None,
    )


@pytest.fixture
def classifier():
    """Default spiritual classifier."""
    return SpiritualClassifier()


@pytest.fixture
def worship_track():
    """A clearly spiritual track."""
    return make_track(1, "Amazing Grace Worship Anthem", "Unknown Band", "", preview="https://cdn.example/1.mp3")


@pytest.fixture
def secular_track():
    """A clearly non-spiritual track."""
    return make_track(2, "Blue Monday", "New Order", "Power Corruption and Lies", preview="https://cdn.example/2.mp3")


@pytest.fixture
def hillsong_track():
    """Track matching only through the artist allow-list."""
    return make_track(3, "Oceans", "Hillsong United", "Zion", preview="https://cdn.example/3.mp3")


@pytest.fixture
def spiritual_page(worship_track, hillsong_track, secular_track):
    """A search page mixing spiritual and secular tracks."""
    return SearchPage(tracks=[worship_track, secular_track, hillsong_track], total=3)


@pytest.fixture
def secular_page(secular_track):
    """A search page with nothing spiritual on it."""
    return SearchPage(tracks=[secular_track, make_track(4, "Take On Me", "a-ha", "Hunting High and Low")], total=2)


@pytest.fixture
def fake_backend():
    """Fake streaming backend."""
    return FakeBackend()


@pytest.fixture
def track_factory():
    """Factory building Tracks with sensible defaults."""
    return make_track


@pytest.fixture
def immediate_executor():
    """Executor running engine work inline."""
    return ImmediateExecutor()


@pytest.fixture
def wait_for():
    """Polling helper for threaded tests."""
    return wait_until
