"""Audio capture from the local input device.

``AudioCaptureEngine`` owns the device for the span of one take and
collects the fixed-interval PCM chunks the device produces. Stopping the
engine joins the chunks, in production order, into one immutable
``AudioArtifact``.

The device itself sits behind ``AudioSource`` so the engine can be driven
by ``sounddevice`` in the recorder and by a scripted source in tests.
"""

import io
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

import numpy as np
import soundfile as sf

from src.core.config import get_settings
from src.core.exceptions import (
    DeviceUnavailableError,
    InvalidStateError,
    RecordingAlreadyActiveError,
)

logger = logging.getLogger(__name__)

ChunkSink = Callable[[bytes], None]


@dataclass(frozen=True)
class AudioArtifact:
    """Finalized 16-bit PCM audio of one take."""

    data: bytes
    sample_rate: int
    channels: int
    sample_width: int = 2

    @property
    def duration(self) -> float:
        """Audio length in seconds."""
        return len(self.data) / (self.sample_rate * self.sample_width * self.channels)

    def to_wav(self) -> bytes:
        """Encode the PCM data as a WAV container for upload."""
        frame_size = self.sample_width * self.channels
        usable = len(self.data) - (len(self.data) % frame_size)
        samples = np.frombuffer(self.data[:usable], dtype=np.int16).reshape(-1, self.channels)
        buf = io.BytesIO()
        sf.write(buf, samples, self.sample_rate, format="WAV", subtype="PCM_16")
        return buf.getvalue()


# ---------------------------------------------------------------------------
# Device sources
# ---------------------------------------------------------------------------


class AudioSource(ABC):
    """A device that pushes raw PCM chunks to a callback while open."""

    @abstractmethod
    def open(self, on_chunk: ChunkSink) -> None:
        """Acquire the device and start producing chunks.

        Raises:
            DeviceUnavailableError: If the device cannot be acquired.
        """

    @abstractmethod
    def pause(self) -> None:
        """Stop producing chunks, keeping the device."""

    @abstractmethod
    def resume(self) -> None:
        """Resume producing chunks after ``pause()``."""

    @abstractmethod
    def close(self) -> None:
        """Stop producing chunks and release the device."""


class SoundDeviceSource(AudioSource):
    """``sounddevice.RawInputStream`` delivering one chunk per capture interval.

    Args:
        sample_rate: Requested sample rate in Hz.
        channels: Requested channel count.
        chunk_interval: Seconds of audio per delivered chunk.
        device: Device index or name substring; ``None`` = system default.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_interval: float = 1.0,
        device: int | str | None = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_interval = chunk_interval
        self.device = device
        self._stream = None

    def open(self, on_chunk: ChunkSink) -> None:
        try:
            # Importing sounddevice raises OSError when PortAudio is missing
            import sounddevice as sd
        except OSError as exc:
            raise DeviceUnavailableError(f"Audio backend unavailable: {exc}") from exc

        def _callback(indata, frames, time_info, status) -> None:  # noqa: ANN001
            if status:
                logger.debug("Input stream status: %s", status)
            on_chunk(bytes(indata))

        try:
            stream = sd.RawInputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                blocksize=int(self.sample_rate * self.chunk_interval),
                device=self.device,
                callback=_callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as exc:
            raise DeviceUnavailableError(f"Could not access microphone: {exc}") from exc
        self._stream = stream

    def pause(self) -> None:
        if self._stream is not None:
            self._stream.stop()

    def resume(self) -> None:
        if self._stream is not None:
            self._stream.start()

    def close(self) -> None:
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        try:
            stream.stop()
        finally:
            stream.close()


def create_source() -> SoundDeviceSource:
    """Build the default device source from settings."""
    settings = get_settings()
    device: int | str | None = settings.capture_device or None
    if isinstance(device, str) and device.isdigit():
        device = int(device)
    return SoundDeviceSource(
        sample_rate=settings.capture_sample_rate,
        channels=settings.capture_channels,
        chunk_interval=settings.capture_chunk_interval,
        device=device,
    )


# ---------------------------------------------------------------------------
# Exclusive device ownership (one capturing engine per process)
# ---------------------------------------------------------------------------

_device_owner: "AudioCaptureEngine | None" = None
_owner_lock = threading.Lock()


def _claim_device(engine: "AudioCaptureEngine") -> None:
    global _device_owner
    with _owner_lock:
        if _device_owner is not None and _device_owner is not engine:
            raise RecordingAlreadyActiveError()
        _device_owner = engine


def _release_device(engine: "AudioCaptureEngine") -> None:
    global _device_owner
    with _owner_lock:
        if _device_owner is engine:
            _device_owner = None


def reset_device_owner() -> None:
    """Forget the current device owner (test helper)."""
    global _device_owner
    with _owner_lock:
        _device_owner = None


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class CaptureState(StrEnum):
    idle = "idle"
    capturing = "capturing"
    paused = "paused"
    stopped = "stopped"


class AudioCaptureEngine:
    """Collects device chunks for one take and assembles the artifact.

    Args:
        source: Device source; defaults to ``create_source()``.
        sample_rate: Sample rate recorded on the artifact (defaults to the source's).
        channels: Channel count recorded on the artifact (defaults to the source's).
        on_chunk: Optional sink invoked once per captured chunk, in order.
            Called on the device thread.
    """

    def __init__(
        self,
        source: AudioSource | None = None,
        *,
        sample_rate: int | None = None,
        channels: int | None = None,
        on_chunk: ChunkSink | None = None,
    ) -> None:
        self._source = source if source is not None else create_source()
        self.sample_rate = sample_rate or getattr(self._source, "sample_rate", 16000)
        self.channels = channels or getattr(self._source, "channels", 1)
        self._on_chunk = on_chunk
        self._chunks: list[bytes] = []
        self._lock = threading.Lock()
        self._state = CaptureState.idle
        self._artifact: AudioArtifact | None = None

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def chunk_count(self) -> int:
        with self._lock:
            return len(self._chunks)

    @property
    def artifact(self) -> AudioArtifact | None:
        return self._artifact

    def start(self) -> None:
        """Acquire the device and begin collecting chunks.

        Raises:
            InvalidStateError: If the engine is not idle.
            RecordingAlreadyActiveError: If another engine holds the device
                (a ``DeviceUnavailableError``).
            DeviceUnavailableError: If the device cannot be acquired; the
                engine stays idle so ``start()`` can be retried.
        """
        if self._state is not CaptureState.idle:
            raise InvalidStateError("start capture", self._state)
        _claim_device(self)
        with self._lock:
            self._chunks = []
        self._artifact = None
        try:
            self._state = CaptureState.capturing
            self._source.open(self._receive)
        except DeviceUnavailableError:
            self._state = CaptureState.idle
            _release_device(self)
            raise
        except Exception as exc:
            self._state = CaptureState.idle
            _release_device(self)
            raise DeviceUnavailableError(f"Could not access microphone: {exc}") from exc
        logger.info("Audio capture started (%s Hz, %s ch)", self.sample_rate, self.channels)

    def pause(self) -> None:
        if self._state is CaptureState.paused:
            return
        if self._state is not CaptureState.capturing:
            raise InvalidStateError("pause capture", self._state)
        self._source.pause()
        self._state = CaptureState.paused

    def resume(self) -> None:
        if self._state is CaptureState.capturing:
            return
        if self._state is not CaptureState.paused:
            raise InvalidStateError("resume capture", self._state)
        self._source.resume()
        self._state = CaptureState.capturing

    def stop(self) -> AudioArtifact | None:
        """Release the device and join all chunks in capture order.

        Returns:
            The artifact, or None when no chunk was produced.
        """
        if self._state not in (CaptureState.capturing, CaptureState.paused):
            raise InvalidStateError("stop capture", self._state)
        try:
            self._source.close()
        finally:
            self._state = CaptureState.stopped
            _release_device(self)

        with self._lock:
            chunks = list(self._chunks)
        if chunks:
            self._artifact = AudioArtifact(
                data=b"".join(chunks),
                sample_rate=self.sample_rate,
                channels=self.channels,
            )
        logger.info("Audio capture stopped: %d chunks", len(chunks))
        return self._artifact

    def discard(self) -> None:
        """Drop captured audio and return to idle, releasing the device if held."""
        if self._state in (CaptureState.capturing, CaptureState.paused):
            try:
                self._source.close()
            except Exception:
                logger.warning("Failed to close audio source on discard", exc_info=True)
        _release_device(self)
        with self._lock:
            self._chunks = []
        self._artifact = None
        self._state = CaptureState.idle

    def _receive(self, chunk: bytes) -> None:
        """Device callback: append one chunk in arrival order."""
        if not chunk:
            return
        with self._lock:
            if self._state is CaptureState.stopped or self._state is CaptureState.idle:
                return
            self._chunks.append(chunk)
        if self._on_chunk is not None:
            try:
                self._on_chunk(chunk)
            except Exception:
                logger.warning("Chunk sink failed (non-fatal)", exc_info=True)
