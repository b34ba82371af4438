"""
Pydantic v2 request / response models used across the API layer.

Also holds the closed enumerations shared by the server and the capture
client: interview status, exercise type, and deletable entity kinds.
"""

import json
from datetime import datetime
from enum import StrEnum
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field, field_validator

# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: datetime


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class InterviewStatus(StrEnum):
    """Processing stage of an interview. Moves forward only."""

    draft = "draft"
    recorded = "recorded"
    transcribing = "transcribing"
    analyzing = "analyzing"
    complete = "complete"

    @property
    def rank(self) -> int:
        """Position in the forward-only lifecycle."""
        return list(InterviewStatus).index(self)


class ExerciseType(StrEnum):
    """Kinds of research exercise a persona can be studied with."""

    usability_test = "Usability Test"
    interview = "Interview"
    card_sort = "Card Sort"
    survey = "Survey"
    tree_test = "Tree Test"
    ab_test = "A/B Test"
    field_study = "Field Study"
    diary_study = "Diary Study"
    focus_group = "Focus Group"
    other = "Other"


class EntityKind(StrEnum):
    """Entities that can be deleted (with their descendants)."""

    project = "project"
    persona = "persona"
    exercise = "exercise"
    interview = "interview"


def _non_blank(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


NonBlankStr = Annotated[str, AfterValidator(_non_blank)]


# ---------------------------------------------------------------------------
# Project / Persona / Exercise
# ---------------------------------------------------------------------------


class ProjectCreate(BaseModel):
    """POST /projects request body."""

    name: NonBlankStr
    description: str | None = None


class ProjectResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    created_at: datetime


class PersonaCreate(BaseModel):
    """POST /personas request body."""

    project_id: str
    name: NonBlankStr
    description: str | None = None
    characteristics: str | None = None


class PersonaResponse(BaseModel):
    id: str
    project_id: str
    name: str
    description: str | None = None
    characteristics: str | None = None
    created_at: datetime


class ExerciseCreate(BaseModel):
    """POST /exercises request body."""

    persona_id: str
    name: NonBlankStr
    type: ExerciseType = ExerciseType.interview
    description: str | None = None


class ExerciseResponse(BaseModel):
    id: str
    persona_id: str
    name: str
    type: ExerciseType
    description: str | None = None
    created_at: datetime
    interview_count: int = 0


# ---------------------------------------------------------------------------
# Interview
# ---------------------------------------------------------------------------


class AnnotationIn(BaseModel):
    """One note of the serialized ``annotations`` form field."""

    timestamp: float = Field(ge=0, allow_inf_nan=False)
    content: NonBlankStr


class AnnotationResponse(BaseModel):
    id: str
    interview_id: str
    timestamp: float
    content: str


class TranscriptIn(BaseModel):
    """PUT /interviews/{id}/transcript request body."""

    content: str


class TranscriptResponse(BaseModel):
    id: str
    interview_id: str
    content: str
    created_at: datetime


class AnalysisCreate(BaseModel):
    """POST /interviews/{id}/analyses request body (external analysis jobs)."""

    agent_name: NonBlankStr
    content: dict | list


class AnalysisResponse(BaseModel):
    id: str
    interview_id: str
    agent_name: str
    content: dict | list | str
    created_at: datetime

    @field_validator("content", mode="before")
    @classmethod
    def _deserialize(cls, value):
        """Analyses are stored as JSON text; fall back to the raw string."""
        if isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return value
        return value


class InterviewResponse(BaseModel):
    """Standard interview representation returned by the API."""

    id: str
    exercise_id: str
    persona_id: str
    title: str
    status: InterviewStatus
    audio_url: str | None = None
    duration: float = 0.0
    created_at: datetime


class InterviewDetailResponse(InterviewResponse):
    """Interview with annotations (by timestamp), transcript and analyses (newest first)."""

    annotations: list[AnnotationResponse] = Field(default_factory=list)
    transcript: TranscriptResponse | None = None
    analyses: list[AnalysisResponse] = Field(default_factory=list)


class StatusUpdate(BaseModel):
    """PATCH /interviews/{id}/status request body."""

    status: str


# ---------------------------------------------------------------------------
# Delete / Error
# ---------------------------------------------------------------------------


class DeleteResponse(BaseModel):
    """Successful DELETE response."""

    success: bool = True
    audio_deleted: int = 0


class ErrorResponse(BaseModel):
    """Standard error envelope returned by the API."""

    error: str
    code: str
    timestamp: str
