"""
Interviews page: browse an exercise's interviews with notes and audio.
"""

# Ensure project root is on sys.path (Streamlit page files need this).
import sys as _sys; from pathlib import Path as _Path; _r = str(_Path(__file__).resolve().parents[3]); _r in _sys.path or _sys.path.insert(0, _r)  # noqa: E702,I001

import streamlit as st  # noqa: E402

from src.core.utils import format_time  # noqa: E402
from src.ui.api_client import APIError, get_api_client  # noqa: E402

st.header("Interviews")

client = get_api_client(st.session_state.api_base_url)

exercise_id = st.session_state.get("sel_exercise")
if not exercise_id:
    st.info("Select an exercise on the Record page first.")
    st.stop()

try:
    interviews = client.list_interviews(exercise_id)
except APIError as exc:
    st.error(exc.message)
    st.stop()

if not interviews:
    st.info("No interviews recorded for this exercise yet.")

for item in interviews:
    with st.expander(f"{item['title']} · {item['status']} · {format_time(item['duration'])}"):
        detail = client.get_interview(item["id"])
        if detail.get("audio_url"):
            audio = client.download_audio(item["id"])
            if audio:
                st.audio(audio)
        for note in detail["annotations"]:
            st.markdown(f"`{format_time(note['timestamp'])}` {note['content']}")
        if detail.get("transcript"):
            st.subheader("Transcript")
            st.write(detail["transcript"]["content"])
        for analysis in detail["analyses"]:
            st.caption(analysis["agent_name"])
            st.json(analysis["content"])
        if st.button("Delete interview", key=f"del_{item['id']}"):
            try:
                result = client.delete_entity("interview", item["id"])
                st.success(f"Deleted ({result.get('audio_deleted', 0)} audio file(s) removed)")
                st.rerun()
            except APIError as exc:
                st.error(exc.message)
