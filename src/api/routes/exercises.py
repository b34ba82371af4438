"""Research exercise REST endpoints."""

from fastapi import APIRouter

from src.api.routes.interviews import to_interview_response
from src.core.models import (
    DeleteResponse,
    EntityKind,
    ExerciseCreate,
    ExerciseResponse,
    ExerciseType,
    InterviewResponse,
)
from src.services.cascade import CascadeDeleteCoordinator
from src.services.storage.database import get_session
from src.services.storage.repository import ResearchRepository

router = APIRouter(prefix="/exercises", tags=["exercises"])


def to_exercise_response(exercise, interview_count: int = 0) -> ExerciseResponse:
    """Convert an ORM ResearchExercise to its API response model."""
    return ExerciseResponse(
        id=exercise.id,
        persona_id=exercise.persona_id,
        name=exercise.name,
        type=ExerciseType(exercise.type),
        description=exercise.description,
        created_at=exercise.created_at,
        interview_count=interview_count,
    )


@router.post("", response_model=ExerciseResponse, status_code=201)
async def create_exercise(body: ExerciseCreate):
    async with get_session() as session:
        repo = ResearchRepository(session)
        exercise = await repo.create_exercise(
            persona_id=body.persona_id,
            name=body.name,
            type=body.type.value,
            description=body.description,
        )
    return to_exercise_response(exercise)


@router.get("/{exercise_id}", response_model=ExerciseResponse)
async def get_exercise(exercise_id: str):
    async with get_session() as session:
        repo = ResearchRepository(session)
        exercise = await repo.get_exercise(exercise_id)
        counts = await repo.interview_counts([exercise_id])
    return to_exercise_response(exercise, counts[exercise_id])


@router.get("/{exercise_id}/interviews", response_model=list[InterviewResponse])
async def list_exercise_interviews(exercise_id: str):
    """List an exercise's interviews, newest first."""
    async with get_session() as session:
        repo = ResearchRepository(session)
        await repo.get_exercise(exercise_id)  # verify exists
        interviews = await repo.list_interviews(exercise_id)
    return [to_interview_response(i) for i in interviews]


@router.delete("/{exercise_id}", response_model=DeleteResponse)
async def delete_exercise(exercise_id: str):
    """Delete an exercise with all of its interviews."""
    return await CascadeDeleteCoordinator().delete(EntityKind.exercise, exercise_id)
