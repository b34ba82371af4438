"""
FieldNotes exception hierarchy.

All application-specific exceptions inherit from FieldNotesError,
enabling centralized error handling in the API middleware layer and
a single ``except`` clause in the recorder UI.
"""

from datetime import UTC, datetime


class FieldNotesError(Exception):
    """Base exception for all FieldNotes errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "FIELDNOTES_ERROR",
        status_code: int = 500,
    ) -> None:
        self.detail = detail
        self.code = code
        self.status_code = status_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Capture session
# ---------------------------------------------------------------------------


class DeviceUnavailableError(FieldNotesError):
    """Raised when the audio input device cannot be acquired.

    Covers denied microphone permission, missing devices and a missing
    PortAudio library. The session stays in its pre-recording state.
    """

    def __init__(self, detail: str = "Could not access microphone") -> None:
        super().__init__(
            detail=detail,
            code="DEVICE_UNAVAILABLE",
            status_code=503,
        )


class InvalidStateError(FieldNotesError):
    """Raised when an operation is invoked in a state that does not allow it."""

    def __init__(self, operation: str, state: str) -> None:
        self.operation = operation
        self.state = state
        super().__init__(
            detail=f"Cannot {operation} while {state}",
            code="INVALID_STATE",
            status_code=409,
        )


class CaptureValidationError(FieldNotesError):
    """Raised when a required field is missing or malformed."""

    def __init__(self, detail: str = "Validation failed") -> None:
        super().__init__(
            detail=detail,
            code="VALIDATION_ERROR",
            status_code=422,
        )


class SaveFailedError(FieldNotesError):
    """Raised when persisting a capture bundle fails; the bundle is kept for retry."""

    def __init__(self, detail: str = "Failed to save interview") -> None:
        super().__init__(
            detail=detail,
            code="SAVE_FAILED",
            status_code=502,
        )


class RecordingAlreadyActiveError(DeviceUnavailableError):
    """Raised when a second capture tries to take the input device.

    To callers this is an unavailable device: the session stays in its
    pre-recording state and may retry once the other take ends.
    """

    def __init__(self) -> None:
        super().__init__("Microphone is in use by another active recording")


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class EntityNotFoundError(FieldNotesError):
    """Raised when a project, persona, exercise or interview ID does not exist."""

    def __init__(self, kind: str, entity_id: str) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(
            detail=f"{kind.capitalize()} not found: {entity_id}",
            code=f"{kind.upper()}_NOT_FOUND",
            status_code=404,
        )


class InvalidStatusError(FieldNotesError):
    """Raised when an interview status transition is unknown or goes backward."""

    def __init__(self, detail: str, status_code: int = 409) -> None:
        super().__init__(
            detail=detail,
            code="INVALID_STATUS",
            status_code=status_code,
        )


class DeleteFailedError(FieldNotesError):
    """Raised when the storage layer refuses a delete; carries its message."""

    def __init__(self, kind: str, detail: str) -> None:
        super().__init__(
            detail=f"Failed to delete {kind}: {detail}",
            code="DELETE_FAILED",
            status_code=500,
        )
