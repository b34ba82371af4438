"""Unit tests for RecordingSessionController.

Drives the session state machine with a scripted device and a manual
clock, and saves through async stand-ins for the HTTP submission.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.core.exceptions import (
    CaptureValidationError,
    DeviceUnavailableError,
    InvalidStateError,
    SaveFailedError,
)
from src.services.capture import (
    AudioCaptureEngine,
    CaptureState,
    Clock,
    RecordingSessionController,
    SessionState,
)


@pytest.fixture
def engine(fake_source):
    return AudioCaptureEngine(fake_source)


@pytest.fixture
def session(engine, fake_time):
    return RecordingSessionController(
        "persona-1",
        "exercise-1",
        title="Onboarding #1",
        clock=Clock(time_source=fake_time),
        engine=engine,
    )


def _record(session, fake_source, fake_time, seconds: float = 2.0) -> None:
    session.start()
    fake_source.emit(b"\x01\x00" * 4)
    fake_time.advance(seconds)
    session.stop()


# ===================================================================
# Recording transitions
# ===================================================================


class TestRecording:
    """start / pause / resume / stop."""

    def test_full_take(self, session, fake_source, fake_time):
        session.start()
        assert session.state is SessionState.recording
        fake_source.emit(b"\x01\x00")
        fake_time.advance(3)
        session.pause()
        assert session.state is SessionState.recording_paused
        fake_time.advance(10)
        session.resume()
        fake_source.emit(b"\x02\x00")
        fake_time.advance(2)
        artifact = session.stop()

        assert session.state is SessionState.captured
        assert artifact.data == b"\x01\x00\x02\x00"
        assert session.elapsed == pytest.approx(5)

    def test_pause_twice_is_noop(self, session):
        session.start()
        session.pause()
        session.pause()
        assert session.state is SessionState.recording_paused

    def test_resume_while_recording_is_noop(self, session):
        session.start()
        session.resume()
        assert session.state is SessionState.recording

    def test_pause_before_start_rejected(self, session):
        with pytest.raises(InvalidStateError):
            session.pause()

    def test_stop_before_start_rejected(self, session):
        with pytest.raises(InvalidStateError):
            session.stop()

    def test_start_while_recording_rejected(self, session):
        session.start()
        with pytest.raises(InvalidStateError):
            session.start()

    def test_denied_microphone_keeps_session_empty(self, session, fake_source):
        fake_source.fail_on_open = DeviceUnavailableError("Permission denied")
        with pytest.raises(DeviceUnavailableError):
            session.start()
        assert session.state is SessionState.empty
        assert session.elapsed == 0.0

        session.start()
        assert session.state is SessionState.recording

    def test_device_held_by_other_session(self, session, source_factory, fake_time):
        session.start()
        other = RecordingSessionController(
            "persona-2",
            "exercise-2",
            clock=Clock(time_source=fake_time),
            engine=AudioCaptureEngine(source_factory()),
        )
        with pytest.raises(DeviceUnavailableError):
            other.start()
        assert other.state is SessionState.empty

        session.stop()
        other.start()
        assert other.state is SessionState.recording

    def test_engine_pause_failure_leaves_state(self, session, fake_source):
        session.start()

        def broken():
            raise RuntimeError("stream died")

        fake_source.pause = broken
        with pytest.raises(DeviceUnavailableError):
            session.pause()
        assert session.state is SessionState.recording

    def test_stop_without_audio(self, session, fake_time):
        session.start()
        fake_time.advance(1)
        assert session.stop() is None
        assert session.state is SessionState.captured


class TestRecordAgain:
    def test_discards_audio_and_keeps_notes(self, session, fake_source, fake_time):
        session.start()
        fake_time.advance(4)
        session.annotate("first take note")
        fake_source.emit(b"\x01\x00")
        session.stop()

        session.start_again()
        assert session.state is SessionState.recording
        assert session.elapsed == 0.0
        assert session.artifact is None
        assert [a.content for a in session.annotations] == ["first take note"]

        fake_source.emit(b"\x05\x00")
        fake_time.advance(1)
        assert session.stop().data == b"\x05\x00"

    def test_only_from_captured(self, session):
        with pytest.raises(InvalidStateError):
            session.start_again()


class TestCancel:
    def test_cancel_discards_everything(self, session, fake_source, fake_time, engine):
        session.start()
        session.annotate("note")
        fake_source.emit(b"\x01\x00")
        session.cancel()
        assert session.state is SessionState.empty
        assert session.annotations == []
        assert engine.state is CaptureState.idle


# ===================================================================
# Annotations
# ===================================================================


class TestAnnotate:
    def test_timestamp_is_elapsed_time(self, session, fake_time):
        session.start()
        fake_time.advance(12.5)
        entry = session.annotate("clicked the wrong tab")
        assert entry.timestamp == pytest.approx(12.5)

    def test_paused_time_not_counted(self, session, fake_time):
        session.start()
        fake_time.advance(2)
        session.pause()
        fake_time.advance(30)
        assert session.annotate("while paused").timestamp == pytest.approx(2)

    def test_before_recording_uses_zero(self, session):
        assert session.annotate("setup note").timestamp == 0.0

    def test_after_stop_uses_duration(self, session, fake_source, fake_time):
        _record(session, fake_source, fake_time, seconds=7)
        assert session.annotate("wrap-up").timestamp == pytest.approx(7)

    def test_blank_note_ignored(self, session):
        assert session.annotate("   ") is None
        assert session.annotations == []


# ===================================================================
# Save
# ===================================================================


class TestSave:
    async def test_save_submits_bundle(self, session, fake_source, fake_time):
        _record(session, fake_source, fake_time)
        session.annotate("note")
        submit = AsyncMock(return_value={"id": "abc", "status": "recorded"})

        record = await session.save(submit)

        assert record["id"] == "abc"
        assert session.state is SessionState.saved
        bundle = submit.await_args.args[0]
        assert bundle.persona_id == "persona-1"
        assert bundle.exercise_id == "exercise-1"
        assert bundle.title == "Onboarding #1"
        assert bundle.audio.startswith(b"RIFF")
        assert bundle.duration == pytest.approx(2)
        assert [a.content for a in bundle.annotations] == ["note"]

    async def test_empty_title_rejected_without_state_change(self, session, fake_source, fake_time):
        _record(session, fake_source, fake_time)
        session.title = "   "
        submit = AsyncMock()
        with pytest.raises(CaptureValidationError):
            await session.save(submit)
        assert session.state is SessionState.captured
        submit.assert_not_awaited()

    async def test_notes_only_interview(self, session):
        session.annotate("participant declined recording")
        submit = AsyncMock(return_value={"id": "n1"})
        await session.save(submit)
        bundle = submit.await_args.args[0]
        assert bundle.audio is None
        assert len(bundle.annotations) == 1

    async def test_nothing_to_save(self, session):
        with pytest.raises(InvalidStateError):
            await session.save(AsyncMock())

    async def test_cannot_save_while_recording(self, session):
        session.start()
        with pytest.raises(InvalidStateError):
            await session.save(AsyncMock())

    async def test_concurrent_saves_submit_once(self, session, fake_source, fake_time):
        _record(session, fake_source, fake_time)
        calls = 0

        async def slow_submit(bundle):
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.05)
            return {"id": "once"}

        results = await asyncio.gather(
            session.save(slow_submit),
            session.save(slow_submit),
            return_exceptions=True,
        )

        assert calls == 1
        assert sum(isinstance(r, InvalidStateError) for r in results) == 1
        assert session.state is SessionState.saved

    async def test_failed_save_can_be_retried(self, session, fake_source, fake_time):
        _record(session, fake_source, fake_time)
        submit = AsyncMock(side_effect=[ConnectionError("offline"), {"id": "retry"}])

        with pytest.raises(SaveFailedError, match="offline"):
            await session.save(submit)
        assert session.state is SessionState.save_failed
        first_bundle = session.last_bundle

        await session.save(submit)
        assert session.state is SessionState.saved
        assert submit.await_count == 2
        assert submit.await_args.args[0] == first_bundle

    async def test_title_locked_after_save(self, session, fake_source, fake_time):
        _record(session, fake_source, fake_time)
        await session.save(AsyncMock(return_value={"id": "x"}))
        with pytest.raises(InvalidStateError):
            session.title = "renamed"

    async def test_save_again_after_saved_rejected(self, session, fake_source, fake_time):
        _record(session, fake_source, fake_time)
        submit = AsyncMock(return_value={"id": "x"})
        await session.save(submit)
        with pytest.raises(InvalidStateError):
            await session.save(submit)
        assert submit.await_count == 1


# ===================================================================
# Available actions (what the recorder offers)
# ===================================================================


class TestAvailableActions:
    def test_follow_the_take(self, session, fake_source, fake_time):
        assert session.available_actions() == ("start", "cancel")
        session.start()
        assert session.available_actions() == ("pause", "stop", "cancel")
        session.pause()
        assert session.available_actions() == ("resume", "stop", "cancel")
        session.stop()
        assert session.available_actions() == ("start_again", "cancel")

    async def test_failed_save_of_silent_take_offers_record_again(self, session, fake_time):
        session.start()
        fake_time.advance(3)
        session.stop()
        assert session.artifact is None

        with pytest.raises(SaveFailedError):
            await session.save(AsyncMock(side_effect=ConnectionError("offline")))
        assert session.state is SessionState.save_failed
        assert session.effective_state is SessionState.captured
        assert "start" not in session.available_actions()
        assert session.can_save

        session.start_again()
        assert session.state is SessionState.recording

    async def test_failed_notes_only_save_offers_start(self, session):
        session.annotate("before the call")
        with pytest.raises(SaveFailedError):
            await session.save(AsyncMock(side_effect=ConnectionError("offline")))
        assert session.effective_state is SessionState.empty
        assert session.available_actions() == ("start", "cancel")

        session.start()
        assert session.state is SessionState.recording

    async def test_nothing_offered_once_saved(self, session, fake_source, fake_time):
        _record(session, fake_source, fake_time)
        await session.save(AsyncMock(return_value={"id": "x"}))
        assert session.available_actions() == ()
        assert not session.can_save

    def test_can_save_needs_take_or_notes(self, session):
        assert not session.can_save
        session.annotate("first impression")
        assert session.can_save
