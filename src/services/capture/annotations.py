"""Timestamped notes taken during a recording session."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass

from src.core.exceptions import CaptureValidationError


@dataclass(frozen=True)
class AnnotationEntry:
    """A single note correlated to elapsed recording time."""

    id: str
    timestamp: float
    content: str


class AnnotationLog:
    """Append/remove-only list of notes for one session.

    ``list()`` keeps insertion order; use ``chronological()`` when the
    notes need to be shown by timestamp.
    """

    def __init__(self) -> None:
        self._entries: list[AnnotationEntry] = []

    def add(self, timestamp: float, content: str) -> AnnotationEntry | None:
        """Append a note. Blank content is ignored and returns None."""
        content = content.strip()
        if not content:
            return None
        if not math.isfinite(timestamp) or timestamp < 0:
            raise CaptureValidationError(
                f"Annotation timestamp must be a finite number >= 0, got {timestamp}"
            )
        entry = AnnotationEntry(id=uuid.uuid4().hex, timestamp=float(timestamp), content=content)
        self._entries.append(entry)
        return entry

    def remove(self, entry_id: str) -> None:
        self._entries = [e for e in self._entries if e.id != entry_id]

    def list(self) -> list[AnnotationEntry]:
        return list(self._entries)

    def chronological(self) -> list[AnnotationEntry]:
        # sorted() is stable, so equal timestamps keep insertion order
        return sorted(self._entries, key=lambda e: e.timestamp)

    def clear(self) -> None:
        self._entries = []

    def __len__(self) -> int:
        return len(self._entries)
