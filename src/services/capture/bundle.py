"""The immutable result of one recording session, handed to persistence."""

import json
from dataclasses import dataclass, field


@dataclass(frozen=True)
class BundleAnnotation:
    timestamp: float
    content: str


@dataclass(frozen=True)
class CaptureBundle:
    """Everything a finished session persists, in one atomic submission.

    Attributes:
        persona_id: Persona the interview belongs to.
        exercise_id: Research exercise the interview belongs to.
        title: Interview title (non-empty after trimming).
        audio: Encoded audio bytes, or None for a notes-only interview.
        annotations: Notes in insertion order.
        duration: Recorded seconds according to the session clock.
        audio_filename: Original filename used when storing the audio.
    """

    persona_id: str
    exercise_id: str
    title: str
    audio: bytes | None = None
    annotations: tuple[BundleAnnotation, ...] = field(default_factory=tuple)
    duration: float = 0.0
    audio_filename: str = "recording.wav"

    def annotations_json(self) -> str:
        """Serialize the notes for the multipart ``annotations`` field."""
        return json.dumps(
            [{"timestamp": a.timestamp, "content": a.content} for a in self.annotations]
        )
