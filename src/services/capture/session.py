"""Recording session state machine.

``RecordingSessionController`` exclusively owns a ``Clock``, an
``AudioCaptureEngine`` and an ``AnnotationLog`` for one interview take.
A UI renders ``state`` / ``elapsed`` / ``annotations`` and dispatches
user events into the methods below; nothing else mutates the session.

States::

    empty --start--> recording <--pause/resume--> recording_paused
    recording | recording_paused --stop--> captured
    captured --start_again--> recording          (audio discarded, notes kept)
    captured | empty(+notes) --save--> saving --> saved | save_failed
    save_failed --save--> saving                 (same data, retry)

Usage::

    session = RecordingSessionController(persona_id, exercise_id, title="Onboarding #3")
    session.start()
    session.annotate("Hesitates at pricing page")
    session.stop()
    interview = await session.save(submit)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum

from src.core.exceptions import (
    CaptureValidationError,
    DeviceUnavailableError,
    FieldNotesError,
    InvalidStateError,
    SaveFailedError,
)
from src.services.capture.annotations import AnnotationEntry, AnnotationLog
from src.services.capture.bundle import BundleAnnotation, CaptureBundle
from src.services.capture.clock import Clock
from src.services.capture.engine import AudioArtifact, AudioCaptureEngine

logger = logging.getLogger(__name__)

SubmitFn = Callable[[CaptureBundle], Awaitable[dict]]


class SessionState(StrEnum):
    """States of a recording session."""

    empty = "empty"
    recording = "recording"
    recording_paused = "recording_paused"
    captured = "captured"
    saving = "saving"
    saved = "saved"
    save_failed = "save_failed"


_LIVE = (SessionState.recording, SessionState.recording_paused)


class RecordingSessionController:
    """Drives one interview capture from first start to a single save.

    Args:
        persona_id: Persona the interview will be filed under.
        exercise_id: Exercise the interview will be filed under.
        title: Initial interview title (may be edited until saved).
        clock: Clock to use; a fresh one by default.
        engine: Capture engine to use; a device-backed one by default.
    """

    def __init__(
        self,
        persona_id: str,
        exercise_id: str,
        title: str = "",
        *,
        clock: Clock | None = None,
        engine: AudioCaptureEngine | None = None,
    ) -> None:
        self.persona_id = persona_id
        self.exercise_id = exercise_id
        self._title = title
        self._clock = clock or Clock()
        self._engine = engine or AudioCaptureEngine()
        self._log = AnnotationLog()
        self._state = SessionState.empty
        # State to fall back to while save_failed (captured or empty)
        self._settled = SessionState.empty
        self._artifact: AudioArtifact | None = None
        self._duration = 0.0
        self._bundle: CaptureBundle | None = None
        self._saved_record: dict | None = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def title(self) -> str:
        return self._title

    @title.setter
    def title(self, value: str) -> None:
        if self._state in (SessionState.saving, SessionState.saved):
            raise InvalidStateError("edit title", self._state)
        self._title = value

    @property
    def elapsed(self) -> float:
        """Live clock value while recording, final duration afterwards."""
        if self._state in _LIVE:
            return self._clock.sample()
        return self._duration

    @property
    def artifact(self) -> AudioArtifact | None:
        return self._artifact

    @property
    def annotations(self) -> list[AnnotationEntry]:
        return self._log.list()

    @property
    def last_bundle(self) -> CaptureBundle | None:
        """The bundle of the most recent save attempt."""
        return self._bundle

    @property
    def saved_record(self) -> dict | None:
        return self._saved_record

    def tick(self) -> float:
        """Poll the clock and notify its tick callback (UI refresh)."""
        if self._state in _LIVE:
            return self._clock.tick()
        return self._duration

    @property
    def effective_state(self) -> SessionState:
        """State that governs the next event; ``save_failed`` defers to the take it holds."""
        if self._state is SessionState.save_failed:
            return self._settled
        return self._state

    def available_actions(self) -> tuple[str, ...]:
        """Names of the recording events the session accepts right now."""
        state = self.effective_state
        if self._state in (SessionState.saving, SessionState.saved):
            return ()
        if state is SessionState.empty:
            return ("start", "cancel")
        if state is SessionState.recording:
            return ("pause", "stop", "cancel")
        if state is SessionState.recording_paused:
            return ("resume", "stop", "cancel")
        return ("start_again", "cancel")

    @property
    def can_save(self) -> bool:
        """A stopped take, or notes without any take, can be saved."""
        state = self.effective_state
        return state is SessionState.captured or (
            state is SessionState.empty and len(self._log) > 0
        )

    # ------------------------------------------------------------------
    # Recording transitions
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Acquire the microphone and start the clock.

        Raises:
            DeviceUnavailableError: The session stays empty; retry is allowed.
        """
        if self.effective_state is not SessionState.empty:
            raise InvalidStateError("start recording", self._state)
        self._begin_take(fallback=self._state)

    def start_again(self) -> None:
        """Re-record: discard the captured audio, keep notes, restart from zero."""
        if self.effective_state is not SessionState.captured:
            raise InvalidStateError("record again", self._state)
        self._engine.discard()
        self._clock.reset()
        self._artifact = None
        self._duration = 0.0
        self._settled = SessionState.empty
        logger.info("Discarded previous take; re-recording")
        self._begin_take(fallback=SessionState.empty)

    def _begin_take(self, fallback: SessionState) -> None:
        self._clock.reset()
        self._clock.start()
        try:
            self._engine.start()
        except FieldNotesError:
            self._clock.reset()
            self._state = fallback
            raise
        self._state = SessionState.recording
        logger.info("Recording started for exercise %s", self.exercise_id)

    def pause(self) -> None:
        if self._state is SessionState.recording_paused:
            return
        if self._state is not SessionState.recording:
            raise InvalidStateError("pause", self._state)
        self._engine_call(self._engine.pause, "pause")
        try:
            self._clock.pause()
        except FieldNotesError:
            self._engine.resume()
            raise
        self._state = SessionState.recording_paused

    def resume(self) -> None:
        if self._state is SessionState.recording:
            return
        if self._state is not SessionState.recording_paused:
            raise InvalidStateError("resume", self._state)
        self._engine_call(self._engine.resume, "resume")
        try:
            self._clock.resume()
        except FieldNotesError:
            self._engine.pause()
            raise
        self._state = SessionState.recording

    def stop(self) -> AudioArtifact | None:
        """Finish the take; duration and artifact are fixed from here on."""
        if self._state not in _LIVE:
            raise InvalidStateError("stop", self._state)
        self._duration = self._clock.stop()
        self._state = SessionState.captured
        self._settled = SessionState.captured
        try:
            self._artifact = self._engine.stop()
        except FieldNotesError:
            self._artifact = None
            raise
        except Exception as exc:
            logger.exception("Audio capture failed while stopping")
            self._artifact = None
            raise DeviceUnavailableError(f"Audio capture failed: {exc}") from exc
        logger.info(
            "Recording stopped after %.1fs (%s)",
            self._duration,
            "no audio" if self._artifact is None else f"{len(self._artifact.data)} bytes",
        )
        return self._artifact

    def cancel(self) -> None:
        """Throw the session away before saving. Nothing is persisted."""
        if self._state in (SessionState.saving, SessionState.saved):
            raise InvalidStateError("cancel", self._state)
        self._engine.discard()
        self._clock.reset()
        self._log.clear()
        self._artifact = None
        self._duration = 0.0
        self._bundle = None
        self._state = SessionState.empty
        self._settled = SessionState.empty

    def _engine_call(self, fn: Callable[[], None], operation: str) -> None:
        """Run an engine transition, translating device errors."""
        try:
            fn()
        except FieldNotesError:
            raise
        except Exception as exc:
            logger.exception("Audio engine failed to %s", operation)
            raise DeviceUnavailableError(f"Audio capture failed to {operation}: {exc}") from exc

    # ------------------------------------------------------------------
    # Annotations
    # ------------------------------------------------------------------

    def annotate(self, content: str) -> AnnotationEntry | None:
        """Add a note stamped with the current elapsed time.

        Returns:
            The new entry, or None when the content was blank.
        """
        state = self.effective_state
        if state in _LIVE:
            timestamp = self._clock.sample()
        elif state is SessionState.captured:
            timestamp = self._duration
        elif state is SessionState.empty:
            timestamp = 0.0
        else:
            raise InvalidStateError("annotate", self._state)
        return self._log.add(timestamp, content)

    def remove_annotation(self, entry_id: str) -> None:
        if self._state in (SessionState.saving, SessionState.saved):
            raise InvalidStateError("remove annotation", self._state)
        self._log.remove(entry_id)

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def build_bundle(self) -> CaptureBundle:
        """Snapshot the session into an immutable bundle."""
        return CaptureBundle(
            persona_id=self.persona_id,
            exercise_id=self.exercise_id,
            title=self._title.strip(),
            audio=self._artifact.to_wav() if self._artifact is not None else None,
            annotations=tuple(
                BundleAnnotation(timestamp=e.timestamp, content=e.content)
                for e in self._log.list()
            ),
            duration=self._duration,
        )

    async def save(self, submit: SubmitFn) -> dict:
        """Persist the session once through *submit*.

        Args:
            submit: Async callable that stores a bundle and returns the
                created interview record.

        Raises:
            InvalidStateError: Nothing to save, or a save is already in flight.
            CaptureValidationError: Title is empty; state is unchanged.
            SaveFailedError: *submit* failed; the session moves to
                ``save_failed`` and can be saved again.
        """
        if self._state is SessionState.saving:
            raise InvalidStateError("save (a save is already in progress)", self._state)
        state = self.effective_state
        if not self.can_save:
            raise InvalidStateError("save", self._state)
        if not self._title.strip():
            raise CaptureValidationError("Please enter a title for the interview")
        if not self.persona_id or not self.exercise_id:
            raise CaptureValidationError("Persona and exercise are required")

        self._bundle = self.build_bundle()
        self._settled = state
        self._state = SessionState.saving
        try:
            record = await submit(self._bundle)
        except asyncio.CancelledError:
            self._state = SessionState.save_failed
            raise
        except Exception as exc:
            self._state = SessionState.save_failed
            detail = getattr(exc, "detail", None) or getattr(exc, "message", None) or str(exc)
            logger.warning("Saving interview %r failed: %s", self._bundle.title, detail)
            raise SaveFailedError(f"Failed to save interview: {detail}") from exc

        self._state = SessionState.saved
        self._saved_record = record
        logger.info("Interview saved: %s", record.get("id") if isinstance(record, dict) else record)
        return record
