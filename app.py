"""Guided Setup Wizard (Streamlit Web UI)

Run locally:
    streamlit run app.py

Session identity comes from Streamlit secrets or the environment:
    ONBOARDING_ACTOR_ROLE, ONBOARDING_ORGANIZATION_ID, ONBOARDING_ACCESS_TOKEN
"""
from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path

import streamlit as st

# ---------------------------------------------------------------------------
# Page configuration (must be first st call)
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="Guided Setup Wizard",
    page_icon="🧭",
    layout="centered",
    initial_sidebar_state="expanded",
)

_SECRET_KEYS = (
    "ONBOARDING_API_BASE_URL",
    "ONBOARDING_ACTOR_ROLE",
    "ONBOARDING_ORGANIZATION_ID",
    "ONBOARDING_ACCESS_TOKEN",
)


# ---------------------------------------------------------------------------
# Resolve settings: st.secrets → env → .env fallback
# ---------------------------------------------------------------------------

def _load_settings():
    """Copy Streamlit secrets into the environment, then resolve config and session."""
    from src.guidedsetup.config import WizardConfig, session_from_env

    try:
        for key in _SECRET_KEYS:
            value = st.secrets.get(key, "")
            if value and not os.environ.get(key):
                os.environ[key] = str(value)
    except Exception:  # noqa: BLE001
        # No secrets.toml; fall back to the environment.
        pass

    env_path = Path(__file__).resolve().parent / ".env"
    config = WizardConfig.from_env(env_path if env_path.exists() else None)
    return config, session_from_env()


# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------

def _init_session(config, session):
    """Start a new wizard session and save it to session_state."""
    from src.guidedsetup.runtime import build_graph

    graph = build_graph(session, config)
    graph.start_session()
    st.session_state["graph"] = graph
    st.session_state["upload_nonce"] = 0


def _render_turn(turn):
    role = "assistant" if turn.speaker.value == "system" else "user"
    with st.chat_message(role, avatar="🧭" if role == "assistant" else "👤"):
        st.markdown(turn.body)


def _run(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Main app
# ---------------------------------------------------------------------------

def main():
    from src.guidedsetup.cursor import InvalidTransition
    from src.guidedsetup.ingestion import ACCEPTED_EXTENSIONS, UploadedFile
    from src.guidedsetup.log import configure_logging
    from src.guidedsetup.state_schema import StageId

    try:
        config, session = _load_settings()
    except ValueError as e:
        st.error(f"**Configuration error:** {e}")
        st.stop()

    configure_logging(config.log_level)

    if "graph" not in st.session_state:
        _init_session(config, session)
    graph = st.session_state["graph"]

    # --- Sidebar ---
    with st.sidebar:
        st.title("🧭 Guided Setup")
        st.caption(f"Signed in as {session.actor_role.value.replace('_', ' ')}")
        st.divider()

        if st.button("🔄 New Session", use_container_width=True):
            _init_session(config, session)
            st.rerun()

        show_trace = st.toggle("Show session trace", value=False)

        st.divider()
        st.subheader("Steps")
        current = graph.current_stage
        with_data = set(graph.state.stages_with_data())
        for stage in graph.stages:
            marker = "▶️" if stage.id == current.id else ("✔️" if stage.id in with_data else "  ")
            clicked = st.button(
                f"{marker} {stage.icon} {stage.label}",
                key=f"jump_{stage.id.value}",
                use_container_width=True,
                disabled=graph.is_closed,
            )
            if clicked:
                try:
                    graph.jump_to(stage.id)
                except InvalidTransition as e:
                    st.error(str(e))
                st.rerun()

    # --- Header and progress ---
    st.title("Guided Setup")
    st.progress(graph.cursor.progress_fraction(), text=graph.cursor.step_label())

    # --- Render conversation history ---
    for turn in graph.log:
        _render_turn(turn)

    if graph.state.exited:
        st.info(f"Switching to the manual form: {graph.redirect_to}")
        return
    if graph.state.completed:
        st.success("Onboarding complete. Click **New Session** in the sidebar to start over.")
        if show_trace:
            with st.expander("📋 Final Session Trace", expanded=False):
                st.json(json.loads(graph.get_trace_json()))
        return

    # --- Choice buttons under the latest system turn ---
    turns = graph.log.all_turns()
    latest = turns[-1] if turns else None
    if latest is not None and latest.speaker.value == "system" and latest.choices:
        cols = st.columns(min(len(latest.choices), 3))
        for idx, choice in enumerate(latest.choices):
            if cols[idx % len(cols)].button(choice.label, key=f"choice_{latest.id}_{idx}"):
                with st.spinner("Working…"):
                    _run(graph.process_action(choice.token))
                st.rerun()

    # --- File uploader for the current stage ---
    stage = graph.current_stage
    if stage.accepts_uploads or stage.id == StageId.TEAM:
        nonce = st.session_state.get("upload_nonce", 0)
        uploaded = st.file_uploader(
            f"Upload a file for {stage.label}",
            type=[ext.lstrip(".") for ext in ACCEPTED_EXTENSIONS],
            key=f"upload_{stage.id.value}_{nonce}",
        )
        if uploaded is not None and st.button("Submit file", key=f"submit_{stage.id.value}_{nonce}"):
            upload = UploadedFile(name=uploaded.name, content=uploaded.getvalue())
            with st.spinner(f"Checking {uploaded.name}…"):
                _run(graph.process_file(stage.id, upload))
            st.session_state["upload_nonce"] = nonce + 1
            st.rerun()

    if show_trace:
        with st.expander("🔍 Session Trace", expanded=False):
            st.json(json.loads(graph.get_trace_json()))

    # --- Chat input ---
    if prompt := st.chat_input("Type your answer…"):
        with st.spinner("Working…"):
            _run(graph.process_message(prompt))
        st.rerun()


if __name__ == "__main__":
    main()
