"""
Storage module - Database and file system operations.
"""

from src.services.storage.database import (
    Base,
    close_db,
    get_engine,
    get_session,
    init_db,
    reset_engine,
)
from src.services.storage.files import AudioStore, StoredAudio, get_audio_store
from src.services.storage.models_db import (
    Analysis,
    Annotation,
    Interview,
    Persona,
    Project,
    ResearchExercise,
    Transcript,
)
from src.services.storage.repository import ResearchRepository

__all__ = [
    "Analysis",
    "Annotation",
    "AudioStore",
    "Base",
    "Interview",
    "Persona",
    "Project",
    "ResearchExercise",
    "ResearchRepository",
    "StoredAudio",
    "Transcript",
    "close_db",
    "get_audio_store",
    "get_engine",
    "get_session",
    "init_db",
    "reset_engine",
]
