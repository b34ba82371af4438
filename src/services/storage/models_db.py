"""
SQLAlchemy ORM models for the FieldNotes schema.

Tables: ``projects``, ``personas``, ``research_exercises``, ``interviews``,
``annotations``, ``transcripts``, ``analyses``.

Every child row references its parent with ``ON DELETE CASCADE`` and the
ORM relationships mirror it with ``passive_deletes=True``, so deleting any
ancestor removes the whole subtree in the database.
"""

from datetime import UTC, datetime

from sqlalchemy import Float, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.utils import new_id
from src.services.storage.database import Base


def _now() -> datetime:
    return datetime.now(UTC)


def _children(back: str):  # noqa: ANN202
    return relationship(
        back_populates=back,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Project(Base):
    """A research project; owns personas."""

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=_now, index=True)

    personas: Mapped[list["Persona"]] = _children("project")

    def __repr__(self) -> str:
        return f"<Project id={self.id} name={self.name!r}>"


class Persona(Base):
    """A user archetype studied within a project."""

    __tablename__ = "personas"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    project_id: Mapped[str] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    characteristics: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=_now)

    project: Mapped["Project"] = relationship(back_populates="personas")
    exercises: Mapped[list["ResearchExercise"]] = _children("persona")

    def __repr__(self) -> str:
        return f"<Persona id={self.id} project={self.project_id}>"


class ResearchExercise(Base):
    """A research activity (usability test, card sort, ...) run with a persona."""

    __tablename__ = "research_exercises"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    persona_id: Mapped[str] = mapped_column(
        ForeignKey("personas.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(255))
    type: Mapped[str] = mapped_column(String(50))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=_now)

    persona: Mapped["Persona"] = relationship(back_populates="exercises")
    interviews: Mapped[list["Interview"]] = _children("exercise")

    def __repr__(self) -> str:
        return f"<ResearchExercise id={self.id} type={self.type!r}>"


class Interview(Base):
    """A recorded interview session."""

    __tablename__ = "interviews"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    exercise_id: Mapped[str] = mapped_column(
        ForeignKey("research_exercises.id", ondelete="CASCADE"), index=True
    )
    # Denormalized for routing; the exercise already implies it
    persona_id: Mapped[str] = mapped_column(
        ForeignKey("personas.id", ondelete="CASCADE"), index=True
    )
    title: Mapped[str] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(String(20), default="draft", index=True)
    audio_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    audio_path: Mapped[str | None] = mapped_column(String(512), nullable=True)
    duration: Mapped[float] = mapped_column(Float, default=0.0)
    created_at: Mapped[datetime] = mapped_column(default=_now)

    exercise: Mapped["ResearchExercise"] = relationship(back_populates="interviews")
    annotations: Mapped[list["Annotation"]] = relationship(
        back_populates="interview",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="[Annotation.timestamp, Annotation.position]",
    )
    transcript: Mapped["Transcript"] = relationship(
        back_populates="interview",
        cascade="all, delete-orphan",
        passive_deletes=True,
        uselist=False,
    )
    analyses: Mapped[list["Analysis"]] = relationship(
        back_populates="interview",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Analysis.created_at.desc()",
    )

    def __repr__(self) -> str:
        return f"<Interview id={self.id} status={self.status!r}>"


class Annotation(Base):
    """A timestamped note taken while recording."""

    __tablename__ = "annotations"
    __table_args__ = (Index("ix_annotations_interview_timestamp", "interview_id", "timestamp"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    interview_id: Mapped[str] = mapped_column(ForeignKey("interviews.id", ondelete="CASCADE"))
    timestamp: Mapped[float] = mapped_column(Float)
    content: Mapped[str] = mapped_column(Text)
    # Insertion order within the capture bundle; breaks timestamp ties
    position: Mapped[int] = mapped_column(default=0)

    interview: Mapped["Interview"] = relationship(back_populates="annotations")

    def __repr__(self) -> str:
        return f"<Annotation id={self.id} interview={self.interview_id} t={self.timestamp}>"


class Transcript(Base):
    """Full transcript text of an interview (at most one)."""

    __tablename__ = "transcripts"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    interview_id: Mapped[str] = mapped_column(
        ForeignKey("interviews.id", ondelete="CASCADE"), unique=True
    )
    content: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(default=_now)

    interview: Mapped["Interview"] = relationship(back_populates="transcript")


class Analysis(Base):
    """An AI-generated analysis; ``content`` holds serialized JSON."""

    __tablename__ = "analyses"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    interview_id: Mapped[str] = mapped_column(
        ForeignKey("interviews.id", ondelete="CASCADE"), index=True
    )
    agent_name: Mapped[str] = mapped_column(String(100))
    content: Mapped[str] = mapped_column(Text, default="{}")
    created_at: Mapped[datetime] = mapped_column(default=_now)

    interview: Mapped["Interview"] = relationship(back_populates="analyses")

    def __repr__(self) -> str:
        return f"<Analysis id={self.id} agent={self.agent_name!r}>"
