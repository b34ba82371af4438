"""
Interview REST endpoints.

``POST /interviews`` is the capture-bundle boundary: a multipart form
with ``personaId``, ``exerciseId``, ``title``, an optional ``audio`` file
and an optional JSON ``annotations`` list. The remaining endpoints serve
the interview detail and audio, and the status / transcript / analysis
surface used by external processing jobs.
"""

import json
import logging
from pathlib import Path

from fastapi import APIRouter, File, Form, UploadFile
from fastapi.responses import FileResponse
from pydantic import TypeAdapter, ValidationError

from src.core.exceptions import CaptureValidationError, FieldNotesError
from src.core.models import (
    AnalysisCreate,
    AnalysisResponse,
    AnnotationIn,
    AnnotationResponse,
    DeleteResponse,
    EntityKind,
    InterviewDetailResponse,
    InterviewResponse,
    InterviewStatus,
    StatusUpdate,
    TranscriptIn,
    TranscriptResponse,
)
from src.services.capture.bundle import BundleAnnotation, CaptureBundle
from src.services.cascade import CascadeDeleteCoordinator
from src.services.lifecycle import InterviewLifecycleManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/interviews", tags=["interviews"])

_annotations_adapter = TypeAdapter(list[AnnotationIn])

_MEDIA_TYPES = {
    ".wav": "audio/wav",
    ".webm": "audio/webm",
    ".mp3": "audio/mpeg",
    ".m4a": "audio/mp4",
    ".ogg": "audio/ogg",
    ".flac": "audio/flac",
}


def to_interview_response(interview) -> InterviewResponse:
    """Convert an ORM Interview object to its API response model.

    Args:
        interview: SQLAlchemy ORM ``Interview`` instance.

    Returns:
        InterviewResponse: Pydantic model suitable for JSON serialization.
    """
    return InterviewResponse(
        id=interview.id,
        exercise_id=interview.exercise_id,
        persona_id=interview.persona_id,
        title=interview.title,
        status=InterviewStatus(interview.status),
        audio_url=interview.audio_url,
        duration=interview.duration,
        created_at=interview.created_at,
    )


def _parse_annotations(raw: str | None) -> tuple[BundleAnnotation, ...]:
    """Decode the serialized ``annotations`` form field."""
    if not raw or not raw.strip():
        return ()
    try:
        items = _annotations_adapter.validate_python(json.loads(raw))
    except json.JSONDecodeError as exc:
        raise CaptureValidationError(f"annotations is not valid JSON: {exc.msg}") from exc
    except ValidationError as exc:
        raise CaptureValidationError(f"Invalid annotations: {exc}") from exc
    return tuple(BundleAnnotation(timestamp=a.timestamp, content=a.content) for a in items)


@router.post("", response_model=InterviewResponse, status_code=201)
async def create_interview(
    persona_id: str = Form(..., alias="personaId"),
    exercise_id: str = Form(..., alias="exerciseId"),
    title: str = Form(...),
    annotations: str | None = Form(None),
    duration: float = Form(0.0, ge=0, allow_inf_nan=False),
    audio: UploadFile | None = File(None),
):
    """Persist a finished capture session as a ``recorded`` interview."""
    audio_bytes: bytes | None = None
    audio_filename = "recording.wav"
    if audio is not None:
        data = await audio.read()
        if data:
            audio_bytes = data
            audio_filename = audio.filename or audio_filename

    bundle = CaptureBundle(
        persona_id=persona_id,
        exercise_id=exercise_id,
        title=title,
        audio=audio_bytes,
        annotations=_parse_annotations(annotations),
        duration=duration,
        audio_filename=audio_filename,
    )
    interview = await InterviewLifecycleManager().commit(bundle)
    return to_interview_response(interview)


@router.get("/{interview_id}", response_model=InterviewDetailResponse)
async def get_interview(interview_id: str):
    """Interview with notes by timestamp, transcript, and analyses newest first."""
    interview = await InterviewLifecycleManager().get(interview_id)
    base = to_interview_response(interview)
    return InterviewDetailResponse(
        **base.model_dump(),
        annotations=[
            AnnotationResponse.model_validate(a, from_attributes=True)
            for a in interview.annotations
        ],
        transcript=(
            TranscriptResponse.model_validate(interview.transcript, from_attributes=True)
            if interview.transcript is not None
            else None
        ),
        analyses=[
            AnalysisResponse.model_validate(a, from_attributes=True) for a in interview.analyses
        ],
    )


@router.get("/{interview_id}/audio")
async def get_interview_audio(interview_id: str):
    """Serve the stored audio file for an interview."""
    interview = await InterviewLifecycleManager().get(interview_id)
    if not interview.audio_path:
        raise FieldNotesError(
            detail=f"No audio file for interview {interview_id}",
            code="AUDIO_NOT_FOUND",
            status_code=404,
        )

    audio_path = Path(interview.audio_path)
    if not audio_path.is_file():
        raise FieldNotesError(
            detail=f"Audio file not found on disk: {interview.audio_url}",
            code="AUDIO_NOT_FOUND",
            status_code=404,
        )

    ext = audio_path.suffix.lower()
    return FileResponse(
        path=audio_path,
        media_type=_MEDIA_TYPES.get(ext, "application/octet-stream"),
        filename=f"interview-{interview_id}{ext}",
    )


@router.patch("/{interview_id}/status", response_model=InterviewResponse)
async def advance_status(interview_id: str, body: StatusUpdate):
    """Move an interview forward (recorded -> transcribing -> analyzing -> complete)."""
    interview = await InterviewLifecycleManager().advance(interview_id, body.status)
    return to_interview_response(interview)


@router.put("/{interview_id}/transcript", response_model=TranscriptResponse)
async def put_transcript(interview_id: str, body: TranscriptIn):
    transcript = await InterviewLifecycleManager().attach_transcript(interview_id, body.content)
    return TranscriptResponse.model_validate(transcript, from_attributes=True)


@router.post("/{interview_id}/analyses", response_model=AnalysisResponse, status_code=201)
async def create_analysis(interview_id: str, body: AnalysisCreate):
    analysis = await InterviewLifecycleManager().add_analysis(
        interview_id, body.agent_name, body.content
    )
    return AnalysisResponse.model_validate(analysis, from_attributes=True)


@router.delete("/{interview_id}", response_model=DeleteResponse)
async def delete_interview(interview_id: str):
    """Delete an interview with its notes, transcript, analyses and audio file."""
    return await CascadeDeleteCoordinator().delete(EntityKind.interview, interview_id)
