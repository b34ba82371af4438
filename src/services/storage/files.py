"""
Filesystem storage for uploaded interview audio.

Each upload gets its own file named ``<epoch-ms>-<original name>``. Files
are created exclusively and never overwritten; a name collision moves the
prefix forward by one millisecond until a free name is found.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path

from src.core.config import get_settings
from src.core.utils import safe_filename

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredAudio:
    """Where an uploaded artifact lives on disk and how clients fetch it."""

    path: str
    url: str


class AudioStore:
    """Writes, resolves and deletes audio files under one directory.

    Args:
        root: Directory holding the uploads (created on first write).
        url_prefix: Public URL prefix the directory is served under.
    """

    def __init__(self, root: str | Path, url_prefix: str = "/uploads") -> None:
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    def save(self, data: bytes, filename: str) -> StoredAudio:
        """Write *data* to a new, uniquely named file."""
        self.root.mkdir(parents=True, exist_ok=True)
        base = safe_filename(filename)
        stamp = int(time.time() * 1000)
        while True:
            name = f"{stamp}-{base}"
            path = self.root / name
            try:
                with open(path, "xb") as fh:
                    fh.write(data)
                break
            except FileExistsError:
                stamp += 1
        logger.info("Stored %d bytes of audio as %s", len(data), name)
        return StoredAudio(path=str(path.resolve()), url=f"{self.url_prefix}/{name}")

    def delete(self, path: str | None) -> bool:
        """Remove a stored file. Returns True when a file was removed."""
        if not path:
            return False
        target = Path(path)
        existed = target.is_file()
        target.unlink(missing_ok=True)
        return existed


def get_audio_store() -> AudioStore:
    """Build the audio store configured in settings."""
    settings = get_settings()
    return AudioStore(settings.uploads_dir, settings.uploads_url_prefix)
