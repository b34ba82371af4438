"""
Recorder component: drives a ``RecordingSessionController`` from Streamlit.

The controller lives in ``st.session_state`` so it survives reruns; every
button maps to exactly one controller event. States:
empty -> recording <-> recording_paused -> captured -> saving -> saved
"""

import asyncio
import logging

import streamlit as st

from src.core.config import get_settings
from src.core.exceptions import FieldNotesError
from src.core.utils import format_time
from src.services.capture import RecordingSessionController, SessionState
from src.ui.api_client import get_api_client

logger = logging.getLogger(__name__)

_SESSION_KEY = "capture_session"


def _controller(persona_id: str, exercise_id: str) -> RecordingSessionController:
    """Return the session for the selected exercise, creating one if needed."""
    session: RecordingSessionController | None = st.session_state.get(_SESSION_KEY)
    if session is None or (session.persona_id, session.exercise_id) != (persona_id, exercise_id):
        if session is not None and session.state in (
            SessionState.recording,
            SessionState.recording_paused,
        ):
            # Keep the live take; the selection is locked while recording.
            return session
        session = RecordingSessionController(persona_id, exercise_id)
        st.session_state[_SESSION_KEY] = session
    return session


def _dispatch(action, *args) -> None:  # noqa: ANN001
    """Run one controller event and surface domain errors in the page."""
    try:
        action(*args)
    except FieldNotesError as exc:
        logger.info("Capture action rejected: %s", exc.detail)
        st.session_state["capture_error"] = exc.detail


def _save(session: RecordingSessionController) -> None:
    client = get_api_client(st.session_state.get("api_base_url", get_settings().api_base_url))

    async def submit(bundle):  # noqa: ANN001, ANN202
        return await asyncio.to_thread(client.submit_interview, bundle)

    try:
        with st.spinner("Saving interview..."):
            asyncio.run(session.save(submit))
    except FieldNotesError as exc:
        st.session_state["capture_error"] = exc.detail


@st.fragment(run_every=get_settings().tick_interval)
def _render_timer(session: RecordingSessionController) -> None:
    """Elapsed time, refreshed while the take is live."""
    elapsed = session.tick()
    label = {
        SessionState.recording: "Recording",
        SessionState.recording_paused: "Paused",
    }.get(session.state, "Duration")
    st.metric(label, format_time(elapsed))


# Button label, style and column for each recording event.
_CONTROLS = {
    "start": ("Start recording", "primary", 0),
    "start_again": ("Record again", "secondary", 0),
    "pause": ("Pause", "secondary", 0),
    "resume": ("Resume", "secondary", 0),
    "stop": ("Stop", "primary", 1),
    "cancel": ("Cancel", "secondary", 3),
}


def _render_controls(session: RecordingSessionController) -> None:
    cols = st.columns(4)
    for action in session.available_actions():
        label, kind, col = _CONTROLS[action]
        cols[col].button(label, type=kind, on_click=_dispatch, args=(getattr(session, action),))


def _render_notes(session: RecordingSessionController) -> None:
    st.subheader("Notes")
    if session.state not in (SessionState.saving, SessionState.saved):
        with st.form("note_form", clear_on_submit=True):
            note = st.text_input("Add a note", placeholder="e.g. Hesitates on the pricing page")
            if st.form_submit_button("Add note"):
                _dispatch(session.annotate, note)

    for entry in session.annotations:
        col_time, col_text, col_del = st.columns([1, 6, 1])
        col_time.code(format_time(entry.timestamp), language=None)
        col_text.write(entry.content)
        if session.state not in (SessionState.saving, SessionState.saved):
            col_del.button(
                "Remove",
                key=f"rm_{entry.id}",
                on_click=_dispatch,
                args=(session.remove_annotation, entry.id),
            )


def render_recorder(persona_id: str, exercise_id: str) -> None:
    """Render the capture UI for one persona / exercise pair."""
    session = _controller(persona_id, exercise_id)

    error = st.session_state.pop("capture_error", None)
    if error:
        st.error(error)

    if session.state is SessionState.saved:
        record = session.saved_record or {}
        st.success(f"Interview saved: {record.get('title', session.title)}")
        if record.get("audio_url"):
            st.markdown(f"**Audio**: `{record['audio_url']}`")
        if st.button("New interview"):
            st.session_state.pop(_SESSION_KEY, None)
            st.rerun()
        return

    session.title = st.text_input(
        "Interview title",
        value=session.title,
        placeholder="e.g. Onboarding walkthrough #3",
    )

    _render_timer(session)
    _render_controls(session)

    if session.artifact is not None:
        st.audio(session.artifact.to_wav(), format="audio/wav")

    _render_notes(session)

    if session.state is SessionState.save_failed:
        st.warning("The last save failed. Your recording and notes are kept; try again.")
    if st.button("Save interview", type="primary", disabled=not session.can_save):
        _save(session)
        st.rerun()
