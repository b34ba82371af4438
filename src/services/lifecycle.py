"""Server-side lifecycle of an interview.

``InterviewLifecycleManager`` turns a finished capture bundle into a
persisted interview with status ``recorded`` and afterwards exposes the
narrow mutation surface used by external transcription / analysis jobs:
forward-only status changes, transcript attachment and new analyses.

Each step runs in its own ``get_session()`` transaction. The interview
row is committed before its annotations are written, so a failure while
writing annotations leaves a valid interview without notes rather than
losing the recording.
"""

import json
import logging
import math

from sqlalchemy.exc import SQLAlchemyError

from src.core.exceptions import CaptureValidationError, FieldNotesError, InvalidStatusError
from src.core.models import InterviewStatus
from src.services.capture.bundle import CaptureBundle
from src.services.storage.database import get_session
from src.services.storage.files import AudioStore, StoredAudio, get_audio_store
from src.services.storage.models_db import Analysis, Interview, Transcript
from src.services.storage.repository import ResearchRepository

logger = logging.getLogger(__name__)


def parse_status(value: str | InterviewStatus) -> InterviewStatus:
    """Map a raw status value onto the closed enumeration.

    Raises:
        InvalidStatusError: For values outside the enumeration (422).
    """
    try:
        return InterviewStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in InterviewStatus)
        raise InvalidStatusError(
            f"Unknown interview status {value!r}; expected one of: {allowed}",
            status_code=422,
        ) from None


def validate_bundle(bundle: CaptureBundle) -> None:
    """Check the required fields of a submitted bundle."""
    if not bundle.persona_id or not bundle.exercise_id:
        raise CaptureValidationError("personaId and exerciseId are required")
    if not bundle.title.strip():
        raise CaptureValidationError("Title must not be empty")
    if not math.isfinite(bundle.duration):
        raise CaptureValidationError(f"Duration must be a finite number, got {bundle.duration}")
    for note in bundle.annotations:
        if not math.isfinite(note.timestamp) or note.timestamp < 0:
            raise CaptureValidationError(
                f"Annotation timestamp must be a finite number >= 0, got {note.timestamp}"
            )
        if not note.content.strip():
            raise CaptureValidationError("Annotation content must not be empty")


class InterviewLifecycleManager:
    """Persists capture bundles and advances interview status.

    Args:
        store: Audio file store; defaults to the configured uploads directory.
    """

    def __init__(self, store: AudioStore | None = None) -> None:
        self._store = store or get_audio_store()

    async def commit(self, bundle: CaptureBundle) -> Interview:
        """Persist a bundle as a new ``recorded`` interview.

        Raises:
            CaptureValidationError: Missing ids/title or malformed notes, or the
                exercise does not belong to the persona.
            EntityNotFoundError: The exercise does not exist.
            FieldNotesError: The interview row could not be written.
        """
        validate_bundle(bundle)
        async with get_session() as session:
            repo = ResearchRepository(session)
            exercise = await repo.get_exercise(bundle.exercise_id)
        if exercise.persona_id != bundle.persona_id:
            raise CaptureValidationError(
                f"Exercise {bundle.exercise_id} does not belong to persona {bundle.persona_id}"
            )

        stored: StoredAudio | None = None
        if bundle.audio:
            stored = self._store.save(bundle.audio, bundle.audio_filename)

        try:
            async with get_session() as session:
                repo = ResearchRepository(session)
                interview = await repo.create_interview(
                    exercise_id=bundle.exercise_id,
                    persona_id=bundle.persona_id,
                    title=bundle.title.strip(),
                    status=InterviewStatus.recorded,
                    audio_url=stored.url if stored else None,
                    audio_path=stored.path if stored else None,
                    duration=max(bundle.duration, 0.0),
                )
        except SQLAlchemyError as exc:
            if stored is not None:
                self._store.delete(stored.path)
            raise FieldNotesError(
                detail=f"Failed to create interview: {exc}",
                code="PERSISTENCE_ERROR",
                status_code=500,
            ) from exc
        logger.info("Interview %s created (audio=%s)", interview.id, bool(stored))

        if bundle.annotations:
            try:
                async with get_session() as session:
                    repo = ResearchRepository(session)
                    await repo.add_annotations(
                        interview.id,
                        [(a.timestamp, a.content.strip()) for a in bundle.annotations],
                    )
            except SQLAlchemyError:
                logger.exception(
                    "Failed to store %d annotations for interview %s",
                    len(bundle.annotations),
                    interview.id,
                )
        return interview

    async def get(self, interview_id: str) -> Interview:
        """Load an interview with annotations, transcript and analyses."""
        async with get_session() as session:
            repo = ResearchRepository(session)
            return await repo.get_interview(interview_id, with_children=True)

    async def advance(self, interview_id: str, new_status: str | InterviewStatus) -> Interview:
        """Move an interview forward in the processing lifecycle.

        Raises:
            InvalidStatusError: Unknown value (422) or a non-forward move (409).
            EntityNotFoundError: The interview does not exist.
        """
        status = parse_status(new_status)
        async with get_session() as session:
            repo = ResearchRepository(session)
            interview = await repo.get_interview(interview_id)
            current = parse_status(interview.status)
            if status.rank <= current.rank:
                raise InvalidStatusError(
                    f"Cannot move interview {interview_id} from {current} to {status}"
                )
            interview = await repo.update_interview_status(interview_id, status)
        logger.info("Interview %s: %s -> %s", interview_id, current, status)
        return interview

    async def attach_transcript(self, interview_id: str, content: str) -> Transcript:
        async with get_session() as session:
            repo = ResearchRepository(session)
            return await repo.set_transcript(interview_id, content)

    async def add_analysis(
        self, interview_id: str, agent_name: str, content: dict | list
    ) -> Analysis:
        """Store an analysis payload as JSON text."""
        async with get_session() as session:
            repo = ResearchRepository(session)
            return await repo.create_analysis(
                interview_id, agent_name, json.dumps(content, ensure_ascii=False)
            )
