"""
Record page: pick project / persona / exercise, then capture an interview.
"""

# Ensure project root is on sys.path (Streamlit page files need this).
import sys as _sys; from pathlib import Path as _Path; _r = str(_Path(__file__).resolve().parents[3]); _r in _sys.path or _sys.path.insert(0, _r)  # noqa: E702,I001

import streamlit as st  # noqa: E402

from src.core.models import ExerciseType  # noqa: E402
from src.ui.api_client import APIError, get_api_client  # noqa: E402
from src.ui.components.recorder import render_recorder  # noqa: E402

st.header("Record interview")

client = get_api_client(st.session_state.api_base_url)


def _pick(label: str, items: list[dict], key: str) -> dict | None:
    if not items:
        return None
    labels = {item["id"]: item["name"] for item in items}
    selected = st.selectbox(label, list(labels), format_func=labels.get, key=key)
    return next(item for item in items if item["id"] == selected)


try:
    projects = client.list_projects()
except APIError as exc:
    st.error(exc.message)
    st.stop()

col_project, col_persona, col_exercise = st.columns(3)

with col_project:
    project = _pick("Project", projects, "sel_project")
    with st.popover("New project"):
        name = st.text_input("Project name", key="new_project_name")
        if st.button("Create project", disabled=not name.strip()):
            try:
                client.create_project(name)
                st.rerun()
            except APIError as exc:
                st.error(exc.message)

if project is None:
    st.info("Create a project to get started.")
    st.stop()

with col_persona:
    persona = _pick("Persona", client.list_personas(project["id"]), "sel_persona")
    with st.popover("New persona"):
        name = st.text_input("Persona name", key="new_persona_name")
        traits = st.text_area("Characteristics", key="new_persona_traits")
        if st.button("Create persona", disabled=not name.strip()):
            try:
                client.create_persona(project["id"], name, characteristics=traits or None)
                st.rerun()
            except APIError as exc:
                st.error(exc.message)

if persona is None:
    st.info("Add a persona to this project.")
    st.stop()

with col_exercise:
    exercise = _pick("Exercise", client.list_exercises(persona["id"]), "sel_exercise")
    with st.popover("New exercise"):
        name = st.text_input("Exercise name", key="new_exercise_name")
        kind = st.selectbox("Type", [t.value for t in ExerciseType], index=1)
        if st.button("Create exercise", disabled=not name.strip()):
            try:
                client.create_exercise(persona["id"], name, type=kind)
                st.rerun()
            except APIError as exc:
                st.error(exc.message)

if exercise is None:
    st.info("Add a research exercise for this persona.")
    st.stop()

st.divider()
render_recorder(persona["id"], exercise["id"])
