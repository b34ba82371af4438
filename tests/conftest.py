"""Shared pytest fixtures for the FieldNotes test suite.

Provides scripted audio sources and clocks for the capture layer, an
in-memory SQLite database, and a temporary uploads directory.
"""

import math
import struct

import pytest

from src.core.config import get_settings
from src.services.capture.engine import AudioSource, reset_device_owner
from src.services.storage import database
from src.services.storage.files import AudioStore

# ---------------------------------------------------------------------------
# Capture Fixtures
# ---------------------------------------------------------------------------


class FakeSource(AudioSource):
    """Scripted device: tests push chunks through ``emit()``.

    Set ``fail_on_open`` to an exception instance to simulate a denied
    microphone on the next ``open()``.
    """

    def __init__(self, sample_rate: int = 16000, channels: int = 1) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.fail_on_open: Exception | None = None
        self.is_open = False
        self.paused = False
        self.open_calls = 0
        self._sink = None

    def open(self, on_chunk) -> None:  # noqa: ANN001
        self.open_calls += 1
        if self.fail_on_open is not None:
            exc, self.fail_on_open = self.fail_on_open, None
            raise exc
        self._sink = on_chunk
        self.is_open = True
        self.paused = False

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    def close(self) -> None:
        self.is_open = False

    def emit(self, chunk: bytes) -> None:
        """Deliver a chunk as the device thread would, unless paused."""
        if self._sink is not None and not self.paused:
            self._sink(chunk)


class FakeTime:
    """Manually advanced monotonic time source."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _release_capture_device():
    """Each test starts with the input device unclaimed."""
    reset_device_owner()
    yield
    reset_device_owner()


@pytest.fixture
def fake_source():
    return FakeSource()


@pytest.fixture
def source_factory():
    """Build additional scripted sources (e.g. for a second engine)."""
    return FakeSource


@pytest.fixture
def fake_time():
    return FakeTime()


@pytest.fixture
def sample_pcm_bytes():
    """Generate 1 second of 440Hz sine-wave PCM audio (16kHz, 16-bit, mono).

    Returns:
        bytes: Raw PCM audio data.
    """
    sample_rate = 16000
    amplitude = 16000  # ~50% of max int16
    samples = [
        struct.pack("<h", int(amplitude * math.sin(2 * math.pi * 440.0 * i / sample_rate)))
        for i in range(sample_rate)
    ]
    return b"".join(samples)


# ---------------------------------------------------------------------------
# Storage Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def uploads_dir(tmp_path, monkeypatch):
    """Point the configured uploads directory at a temp dir."""
    path = tmp_path / "uploads"
    monkeypatch.setenv("UPLOADS_DIR", str(path))
    get_settings.cache_clear()
    yield path
    get_settings.cache_clear()


@pytest.fixture
def audio_store(uploads_dir):
    return AudioStore(uploads_dir, "/uploads")


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine with tables, dispose after test."""
    engine = database.create_engine("sqlite+aiosqlite:///:memory:")
    await database.init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Yield an AsyncSession bound to the test engine; rolls back after test."""
    from sqlalchemy.ext.asyncio import async_sessionmaker

    factory = async_sessionmaker(db_engine, expire_on_commit=False)
    async with factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def repository(db_session):
    """Return a ResearchRepository bound to the test session."""
    from src.services.storage.repository import ResearchRepository

    return ResearchRepository(db_session)


@pytest.fixture
def db(db_engine):
    """Route ``get_session()`` to the in-memory test engine."""
    database._engine = db_engine
    database._session_factory = None
    yield db_engine
    database.reset_engine()
