"""Persona REST endpoints."""

from fastapi import APIRouter

from src.api.routes.exercises import to_exercise_response
from src.core.models import (
    DeleteResponse,
    EntityKind,
    ExerciseResponse,
    PersonaCreate,
    PersonaResponse,
)
from src.services.cascade import CascadeDeleteCoordinator
from src.services.storage.database import get_session
from src.services.storage.repository import ResearchRepository

router = APIRouter(prefix="/personas", tags=["personas"])


@router.post("", response_model=PersonaResponse, status_code=201)
async def create_persona(body: PersonaCreate):
    async with get_session() as session:
        repo = ResearchRepository(session)
        persona = await repo.create_persona(
            project_id=body.project_id,
            name=body.name,
            description=body.description,
            characteristics=body.characteristics,
        )
    return PersonaResponse.model_validate(persona, from_attributes=True)


@router.get("/{persona_id}", response_model=PersonaResponse)
async def get_persona(persona_id: str):
    async with get_session() as session:
        repo = ResearchRepository(session)
        persona = await repo.get_persona(persona_id)
    return PersonaResponse.model_validate(persona, from_attributes=True)


@router.get("/{persona_id}/exercises", response_model=list[ExerciseResponse])
async def list_persona_exercises(persona_id: str):
    """List a persona's exercises with their interview counts."""
    async with get_session() as session:
        repo = ResearchRepository(session)
        await repo.get_persona(persona_id)  # verify exists
        exercises = await repo.list_exercises(persona_id)
        counts = await repo.interview_counts(e.id for e in exercises)
    return [to_exercise_response(e, counts.get(e.id, 0)) for e in exercises]


@router.delete("/{persona_id}", response_model=DeleteResponse)
async def delete_persona(persona_id: str):
    """Delete a persona with all of its exercises and interviews."""
    return await CascadeDeleteCoordinator().delete(EntityKind.persona, persona_id)
