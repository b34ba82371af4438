"""Shared utility functions for FieldNotes."""

import re
import uuid


def new_id() -> str:
    """Return a fresh entity identifier."""
    return uuid.uuid4().hex


def format_time(seconds: float) -> str:
    """Format elapsed seconds as ``MM:SS`` for the recorder display."""
    seconds = max(seconds, 0.0)
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{mins:02d}:{secs:02d}"


def safe_filename(name: str, default: str = "recording.wav") -> str:
    """Reduce an uploaded filename to a safe basename."""
    name = name.replace("\\", "/").rsplit("/", 1)[-1]
    name = re.sub(r"[^A-Za-z0-9._-]", "_", name).lstrip(".")
    return name or default
