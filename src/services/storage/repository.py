"""
CRUD repository for all FieldNotes tables.

``ResearchRepository`` receives an ``AsyncSession`` and provides all
data-access methods.  It calls ``flush()`` rather than ``commit()`` so
that transaction boundaries are controlled by the caller (typically
:func:`get_session`).
"""

import logging
from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.exceptions import EntityNotFoundError
from src.core.models import EntityKind, InterviewStatus
from src.services.storage.models_db import (
    Analysis,
    Annotation,
    Interview,
    Persona,
    Project,
    ResearchExercise,
    Transcript,
)

logger = logging.getLogger(__name__)

_MODELS = {
    EntityKind.project: Project,
    EntityKind.persona: Persona,
    EntityKind.exercise: ResearchExercise,
    EntityKind.interview: Interview,
}


class ResearchRepository:
    """Data-access layer for the FieldNotes schema.

    All methods use ``flush()`` instead of ``commit()`` so transaction
    boundaries are controlled by the caller (typically ``get_session()``
    context manager which commits on clean exit).

    Args:
        session: An active SQLAlchemy ``AsyncSession``.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def create_project(self, name: str, description: str | None = None) -> Project:
        project = Project(name=name, description=description or None)
        self._session.add(project)
        await self._session.flush()
        return project

    async def get_project(self, project_id: str) -> Project:
        """Return a project by ID or raise :class:`EntityNotFoundError`."""
        project = await self._session.get(Project, project_id)
        if project is None:
            raise EntityNotFoundError("project", project_id)
        return project

    async def list_projects(self) -> list[Project]:
        """Return all projects, newest first."""
        stmt = select(Project).order_by(Project.created_at.desc())
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Personas
    # ------------------------------------------------------------------

    async def create_persona(
        self,
        project_id: str,
        name: str,
        description: str | None = None,
        characteristics: str | None = None,
    ) -> Persona:
        await self.get_project(project_id)
        persona = Persona(
            project_id=project_id,
            name=name,
            description=description or None,
            characteristics=characteristics or None,
        )
        self._session.add(persona)
        await self._session.flush()
        return persona

    async def get_persona(self, persona_id: str) -> Persona:
        persona = await self._session.get(Persona, persona_id)
        if persona is None:
            raise EntityNotFoundError("persona", persona_id)
        return persona

    async def list_personas(self, project_id: str) -> list[Persona]:
        stmt = (
            select(Persona)
            .where(Persona.project_id == project_id)
            .order_by(Persona.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Research exercises
    # ------------------------------------------------------------------

    async def create_exercise(
        self,
        persona_id: str,
        name: str,
        type: str,
        description: str | None = None,
    ) -> ResearchExercise:
        await self.get_persona(persona_id)
        exercise = ResearchExercise(
            persona_id=persona_id,
            name=name,
            type=type,
            description=description or None,
        )
        self._session.add(exercise)
        await self._session.flush()
        return exercise

    async def get_exercise(self, exercise_id: str) -> ResearchExercise:
        exercise = await self._session.get(ResearchExercise, exercise_id)
        if exercise is None:
            raise EntityNotFoundError("exercise", exercise_id)
        return exercise

    async def list_exercises(self, persona_id: str) -> list[ResearchExercise]:
        stmt = (
            select(ResearchExercise)
            .where(ResearchExercise.persona_id == persona_id)
            .order_by(ResearchExercise.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def interview_counts(self, exercise_ids: Iterable[str]) -> dict[str, int]:
        """Return ``{exercise_id: number of interviews}`` for the given exercises."""
        ids = list(exercise_ids)
        if not ids:
            return {}
        stmt = (
            select(Interview.exercise_id, func.count(Interview.id))
            .where(Interview.exercise_id.in_(ids))
            .group_by(Interview.exercise_id)
        )
        result = await self._session.execute(stmt)
        counts = {exercise_id: count for exercise_id, count in result.all()}
        return {i: counts.get(i, 0) for i in ids}

    # ------------------------------------------------------------------
    # Interviews
    # ------------------------------------------------------------------

    async def create_interview(
        self,
        exercise_id: str,
        persona_id: str,
        title: str,
        status: InterviewStatus = InterviewStatus.draft,
        audio_url: str | None = None,
        audio_path: str | None = None,
        duration: float = 0.0,
    ) -> Interview:
        """Create and return a new interview row."""
        interview = Interview(
            exercise_id=exercise_id,
            persona_id=persona_id,
            title=title,
            status=str(status),
            audio_url=audio_url,
            audio_path=audio_path,
            duration=duration,
        )
        self._session.add(interview)
        await self._session.flush()
        return interview

    async def get_interview(self, interview_id: str, with_children: bool = False) -> Interview:
        """Return an interview by ID or raise :class:`EntityNotFoundError`.

        Args:
            interview_id: Interview to load.
            with_children: Eager-load annotations, transcript and analyses.
        """
        stmt = select(Interview).where(Interview.id == interview_id)
        if with_children:
            stmt = stmt.options(
                selectinload(Interview.annotations),
                selectinload(Interview.transcript),
                selectinload(Interview.analyses),
            ).execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        interview = result.scalar_one_or_none()
        if interview is None:
            raise EntityNotFoundError("interview", interview_id)
        return interview

    async def list_interviews(self, exercise_id: str) -> list[Interview]:
        stmt = (
            select(Interview)
            .where(Interview.exercise_id == exercise_id)
            .order_by(Interview.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def update_interview_status(
        self, interview_id: str, status: InterviewStatus
    ) -> Interview:
        """Update only the status field of an interview."""
        interview = await self.get_interview(interview_id)
        interview.status = str(status)
        await self._session.flush()
        return interview

    # ------------------------------------------------------------------
    # Annotations
    # ------------------------------------------------------------------

    async def add_annotations(
        self,
        interview_id: str,
        items: Iterable[tuple[float, str]],
    ) -> list[Annotation]:
        """Insert notes for an interview, remembering their submitted order."""
        rows = [
            Annotation(
                interview_id=interview_id,
                timestamp=timestamp,
                content=content,
                position=position,
            )
            for position, (timestamp, content) in enumerate(items)
        ]
        if not rows:
            return []
        self._session.add_all(rows)
        await self._session.flush()
        return rows

    async def list_annotations(self, interview_id: str) -> list[Annotation]:
        """Return notes ordered by timestamp, ties in submitted order."""
        stmt = (
            select(Annotation)
            .where(Annotation.interview_id == interview_id)
            .order_by(Annotation.timestamp, Annotation.position)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Transcripts & analyses
    # ------------------------------------------------------------------

    async def set_transcript(self, interview_id: str, content: str) -> Transcript:
        """Attach the interview's transcript, replacing an earlier one."""
        await self.get_interview(interview_id)
        stmt = select(Transcript).where(Transcript.interview_id == interview_id)
        result = await self._session.execute(stmt)
        transcript = result.scalar_one_or_none()
        if transcript is None:
            transcript = Transcript(interview_id=interview_id, content=content)
            self._session.add(transcript)
        else:
            transcript.content = content
        await self._session.flush()
        return transcript

    async def create_analysis(self, interview_id: str, agent_name: str, content: str) -> Analysis:
        await self.get_interview(interview_id)
        analysis = Analysis(interview_id=interview_id, agent_name=agent_name, content=content)
        self._session.add(analysis)
        await self._session.flush()
        return analysis

    async def list_analyses(self, interview_id: str) -> list[Analysis]:
        """Return analyses, most recent first."""
        stmt = (
            select(Analysis)
            .where(Analysis.interview_id == interview_id)
            .order_by(Analysis.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Deletes
    # ------------------------------------------------------------------

    async def audio_paths_under(self, kind: EntityKind, entity_id: str) -> list[str]:
        """Return stored audio paths of every interview in an entity's subtree."""
        stmt = select(Interview.audio_path).where(Interview.audio_path.isnot(None))
        if kind is EntityKind.interview:
            stmt = stmt.where(Interview.id == entity_id)
        elif kind is EntityKind.exercise:
            stmt = stmt.where(Interview.exercise_id == entity_id)
        elif kind is EntityKind.persona:
            stmt = stmt.join(ResearchExercise, Interview.exercise_id == ResearchExercise.id).where(
                ResearchExercise.persona_id == entity_id
            )
        else:
            stmt = (
                stmt.join(ResearchExercise, Interview.exercise_id == ResearchExercise.id)
                .join(Persona, ResearchExercise.persona_id == Persona.id)
                .where(Persona.project_id == entity_id)
            )
        result = await self._session.execute(stmt)
        return [path for (path,) in result.all() if path]

    async def delete_entity(self, kind: EntityKind, entity_id: str) -> None:
        """Delete one entity; the database cascades to its descendants."""
        model = _MODELS[kind]
        entity = await self._session.get(model, entity_id)
        if entity is None:
            raise EntityNotFoundError(str(kind), entity_id)
        await self._session.delete(entity)
        await self._session.flush()
