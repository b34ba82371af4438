"""
Project REST endpoints.

Thin CRUD over ``ResearchRepository``; deletes go through the
``CascadeDeleteCoordinator`` so that personas, exercises, interviews and
their audio files are removed with the project.
"""

from fastapi import APIRouter

from src.core.models import (
    DeleteResponse,
    EntityKind,
    PersonaResponse,
    ProjectCreate,
    ProjectResponse,
)
from src.services.cascade import CascadeDeleteCoordinator
from src.services.storage.database import get_session
from src.services.storage.repository import ResearchRepository

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("", response_model=ProjectResponse, status_code=201)
async def create_project(body: ProjectCreate):
    async with get_session() as session:
        repo = ResearchRepository(session)
        project = await repo.create_project(name=body.name, description=body.description)
    return ProjectResponse.model_validate(project, from_attributes=True)


@router.get("", response_model=list[ProjectResponse])
async def list_projects():
    """List all projects, newest first."""
    async with get_session() as session:
        repo = ResearchRepository(session)
        projects = await repo.list_projects()
    return [ProjectResponse.model_validate(p, from_attributes=True) for p in projects]


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str):
    async with get_session() as session:
        repo = ResearchRepository(session)
        project = await repo.get_project(project_id)
    return ProjectResponse.model_validate(project, from_attributes=True)


@router.get("/{project_id}/personas", response_model=list[PersonaResponse])
async def list_project_personas(project_id: str):
    """List a project's personas, newest first."""
    async with get_session() as session:
        repo = ResearchRepository(session)
        await repo.get_project(project_id)  # verify exists
        personas = await repo.list_personas(project_id)
    return [PersonaResponse.model_validate(p, from_attributes=True) for p in personas]


@router.delete("/{project_id}", response_model=DeleteResponse)
async def delete_project(project_id: str):
    """Delete a project with all of its personas, exercises and interviews."""
    return await CascadeDeleteCoordinator().delete(EntityKind.project, project_id)
