"""Streaming preview backend for worship-sound.

Fetches a preview (HTTP URL or local file), decodes it with miniaudio and
plays it through a miniaudio playback device. The playback engine only
sees the StreamingBackend / AudioResource protocols defined here.
"""

import threading
from pathlib import Path
from typing import Callable, Generator, Optional, Protocol

import httpx
import miniaudio
import numpy as np

from worship_sound.app.errors import PlaybackResourceError
from worship_sound.app.logging_config import get_logger

logger = get_logger(__name__)

SAMPLE_RATE = 44100
NCHANNELS = 2


class AudioResource(Protocol):
    """An opened, decoded preview ready for progressive playback."""

    @property
    def duration_ms(self) -> int:
        ...

    def play(self, on_end: Callable[[], None]) -> None:
        """Start or resume from the current position; ``on_end`` fires at end-of-stream."""

    def pause(self) -> None:
        """Stop the clock without releasing the resource."""

    def seek(self, position_ms: int) -> None:
        ...

    def position_ms(self) -> int:
        ...

    def set_volume(self, volume: float) -> None:
        ...

    def close(self) -> None:
        """Release the resource. Must be idempotent."""


class StreamingBackend(Protocol):
    """Opens preview URIs. ``open`` blocks and is called off the caller's thread."""

    def open(self, uri: str) -> AudioResource:
        ...


class MiniaudioResource:
    """Decoded preview played through a miniaudio device.

    Position is tracked in frames handed to the device, so pause, resume
    and seek all work from the same counter.

    Attributes:
        volume: Playback volume (0.0 to 1.0)
        buffer_ms: Device buffer size in milliseconds
    """

    def __init__(self, source: miniaudio.DecodedSoundFile, volume: float = 0.8, buffer_ms: int = 200):
        self.volume = max(0.0, min(1.0, volume))
        self.buffer_ms = buffer_ms

        self._source = source
        self._samples = np.frombuffer(source.samples, dtype=np.int16)
        self._nchannels = source.nchannels
        self._sample_rate = source.sample_rate
        self._total_frames = len(self._samples) // self._nchannels if self._nchannels else 0

        self._frame_pos = 0
        self._device: Optional[miniaudio.PlaybackDevice] = None
        self._generator: Optional[Generator] = None
        self._closed = False
        self._lock = threading.Lock()

    @property
    def duration_ms(self) -> int:
        """Get decoded duration in milliseconds."""
        if self._sample_rate <= 0:
            return 0
        return int(self._total_frames * 1000 / self._sample_rate)

    def position_ms(self) -> int:
        """Get current position in milliseconds."""
        with self._lock:
            frames = self._frame_pos
        if self._sample_rate <= 0:
            return 0
        return min(int(frames * 1000 / self._sample_rate), self.duration_ms)

    def set_volume(self, volume: float) -> None:
        """Set playback volume (0.0 to 1.0)."""
        self.volume = max(0.0, min(1.0, volume))

    def seek(self, position_ms: int) -> None:
        """Move the read position; takes effect on the next device request."""
        frame = int(max(0, position_ms) * self._sample_rate / 1000)
        with self._lock:
            self._frame_pos = min(frame, self._total_frames)

    def play(self, on_end: Callable[[], None]) -> None:
        """Start the device from the current frame position.

        Raises:
            PlaybackResourceError: If the resource is closed or the device fails
        """
        with self._lock:
            if self._closed:
                raise PlaybackResourceError("Resource already released")
            if self._device is not None:
                return

        generator = self._stream_generator(on_end)
        next(generator)

        try:
            device = miniaudio.PlaybackDevice(
                output_format=miniaudio.SampleFormat.SIGNED16,
                nchannels=self._nchannels,
                sample_rate=self._sample_rate,
                buffersize_msec=self.buffer_ms,
            )
            device.start(generator)
        except miniaudio.MiniaudioError as e:
            generator.close()
            raise PlaybackResourceError(f"Audio device error: {e}") from e

        with self._lock:
            self._generator = generator
            self._device = device
        logger.debug(f"Device started at frame {self._frame_pos}/{self._total_frames}")

    def pause(self) -> None:
        """Stop the device, keeping the decoded audio and position."""
        self._stop_device()

    def close(self) -> None:
        """Stop the device and drop the decoded audio."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._stop_device()
        logger.debug("Audio resource released")

    def _stop_device(self) -> None:
        with self._lock:
            device, self._device = self._device, None
            generator, self._generator = self._generator, None

        if device is not None:
            device.stop()
            device.close()
        if generator is not None:
            generator.close()

    def _stream_generator(self, on_end: Callable[[], None]) -> Generator[np.ndarray, int, None]:
        """Generator feeding the miniaudio device.

        Receives the number of frames wanted via ``send()`` and yields an
        int16 array of shape (frames, nchannels). Calls ``on_end`` once the
        last frame has been handed over, unless closed first.
        """
        nchannels = self._nchannels
        try:
            num_frames = yield np.zeros((0, nchannels), dtype=np.int16)

            while num_frames:
                with self._lock:
                    start_frame = self._frame_pos
                    end_frame = min(start_frame + num_frames, self._total_frames)
                    self._frame_pos = end_frame

                if start_frame >= self._total_frames:
                    break

                chunk = self._samples[start_frame * nchannels:end_frame * nchannels]
                missing = num_frames * nchannels - len(chunk)
                if missing > 0:
                    chunk = np.concatenate([chunk, np.zeros(missing, dtype=np.int16)])
                if self.volume != 1.0:
                    chunk = (chunk * self.volume).astype(np.int16)

                num_frames = yield chunk.reshape((num_frames, nchannels))
        except GeneratorExit:
            return

        logger.debug("End of stream reached")
        on_end()


class MiniaudioBackend:
    """Streaming backend: httpx for fetching, miniaudio for decode and output.

    Attributes:
        volume: Initial volume for opened resources
        buffer_ms: Device buffer size in milliseconds
        timeout: Fetch timeout in seconds
    """

    def __init__(self, volume: float = 0.8, buffer_ms: int = 200, timeout: float = 30.0):
        self.volume = volume
        self.buffer_ms = buffer_ms
        self.timeout = timeout

    def open(self, uri: str) -> MiniaudioResource:
        """Fetch and decode a preview.

        Args:
            uri: HTTP(S) URL, ``file://`` URI or local path

        Returns:
            Decoded resource, not yet playing

        Raises:
            PlaybackResourceError: On missing URI, fetch or decode failure
        """
        if not uri or not uri.strip():
            raise PlaybackResourceError("Track has no preview URL")

        data = self._fetch(uri.strip())
        logger.debug(f"Fetched {len(data)} bytes from {uri}")

        try:
            decoded = miniaudio.decode(
                data,
                output_format=miniaudio.SampleFormat.SIGNED16,
                nchannels=NCHANNELS,
                sample_rate=SAMPLE_RATE,
            )
        except miniaudio.MiniaudioError as e:
            raise PlaybackResourceError(f"Failed to decode preview: {e}") from e

        logger.debug(f"Decoded {decoded.num_frames} frames at {decoded.sample_rate}Hz")
        return MiniaudioResource(decoded, volume=self.volume, buffer_ms=self.buffer_ms)

    def _fetch(self, uri: str) -> bytes:
        if uri.startswith(("http://", "https://")):
            try:
                response = httpx.get(uri, timeout=self.timeout, follow_redirects=True)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise PlaybackResourceError(f"Preview fetch failed (HTTP {e.response.status_code})") from e
            except httpx.HTTPError as e:
                raise PlaybackResourceError(f"Preview fetch failed: {e}") from e
            return response.content

        path = Path(uri[len("file://"):] if uri.startswith("file://") else uri)
        try:
            return path.read_bytes()
        except OSError as e:
            raise PlaybackResourceError(f"Cannot read preview file {path}: {e}") from e
