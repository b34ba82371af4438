"""Cascading delete of projects, personas, exercises and interviews.

The database removes descendant rows through ``ON DELETE CASCADE``; this
module adds the part the database cannot do, removing the stored audio
files of every interview in the deleted subtree. Deletes are permanent.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from src.core.exceptions import DeleteFailedError, EntityNotFoundError
from src.core.models import EntityKind
from src.services.storage.database import get_session
from src.services.storage.files import AudioStore, get_audio_store
from src.services.storage.repository import ResearchRepository

logger = logging.getLogger(__name__)


class CascadeDeleteCoordinator:
    """Deletes an entity with all of its descendants and their audio.

    Args:
        store: Audio file store; defaults to the configured uploads directory.
    """

    def __init__(self, store: AudioStore | None = None) -> None:
        self._store = store or get_audio_store()

    async def delete(self, kind: EntityKind | str, entity_id: str) -> dict:
        """Delete ``kind``/``entity_id`` and everything below it.

        Returns:
            ``{"success": True, "audio_deleted": <files removed>}``.

        Raises:
            DeleteFailedError: The entity does not exist or the storage layer
                rejected the delete; carries the underlying message.
        """
        kind = EntityKind(kind)
        try:
            async with get_session() as session:
                repo = ResearchRepository(session)
                audio_paths = await repo.audio_paths_under(kind, entity_id)
                await repo.delete_entity(kind, entity_id)
        except EntityNotFoundError as exc:
            logger.warning("Delete %s %s failed: %s", kind, entity_id, exc.detail)
            raise DeleteFailedError(kind, exc.detail) from exc
        except SQLAlchemyError as exc:
            logger.exception("Delete %s %s failed", kind, entity_id)
            raise DeleteFailedError(kind, str(exc)) from exc

        audio_deleted = 0
        for path in audio_paths:
            try:
                if self._store.delete(path):
                    audio_deleted += 1
            except OSError as exc:
                logger.warning("Failed to delete audio %s: %s", path, exc)

        logger.info(
            "Deleted %s %s (%d audio files removed)", kind, entity_id, audio_deleted
        )
        return {"success": True, "audio_deleted": audio_deleted}
