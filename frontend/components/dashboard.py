import asyncio
import json
from datetime import date

import streamlit as st

from tracker.config import get_settings
from tracker.controller import TrackerController
from tracker.errors import TrackerError
from tracker.services.view_projector import (
    project_chart_series,
    project_recent_activity,
    project_stat_cards,
)


def _render_status_bar(controller: TrackerController):
    state = controller.connectivity
    css = "status-disconnected" if state.is_disconnected else "status-connected"
    col_status, col_logs, col_refresh = st.columns([3, 1, 1])
    with col_status:
        st.markdown(
            f'Backend Status: <span class="{css}">{state.status.value.capitalize()}</span>',
            unsafe_allow_html=True,
        )
        st.caption(f"Server: {controller.backend_url}")
    col_logs.caption(f"{len(controller.result.logs)} logs loaded")
    if col_refresh.button("Refresh Data", disabled=controller.synchronizer.is_syncing):
        asyncio.run(controller.refresh())
        st.rerun()


def _render_debug_panel(controller: TrackerController):
    trace = controller.debug_trace()
    if trace is None:
        return
    with st.expander("API Response Debug"):
        st.caption(f"Response timestamp: {trace.timestamp.isoformat()}")
        for label, payload in (
            ("Logs API Response", trace.logs),
            ("Stats API Response", trace.stats),
            ("Process API Response", trace.process),
            ("Error Response", trace.error),
        ):
            if payload is not None:
                st.markdown(f"**{label}**")
                st.code(json.dumps(payload, indent=2, default=str), language="json")


def _render_stat_cards(controller: TrackerController):
    cards = project_stat_cards(controller.result.stats, controller.result.logs)
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total Tokens", cards.total_tokens)
    col1.caption(f"{cards.loaded_logs} requests")
    col2.metric("Total Cost", cards.total_cost)
    col3.metric("Total Requests", cards.total_requests)
    col4.metric("Avg Response Time", cards.avg_response_time)


def _render_prompt_form(controller: TrackerController):
    st.markdown("### Send Prompt to AI")
    disabled = controller.controls_disabled
    registry = controller.registry
    model_ids = [m["id"] for m in registry.list_models()]
    current_idx = model_ids.index(st.session_state.model_id) if st.session_state.model_id in model_ids else 0

    with st.form("prompt_form"):
        model_id = st.selectbox(
            "Select Model",
            model_ids,
            format_func=registry.display_name,
            index=current_idx,
            disabled=disabled,
        )
        text = st.text_area(
            "Your Prompt",
            value=controller.submitter.draft,
            height=120,
            disabled=disabled,
            placeholder="Enter your AI prompt here...",
        )
        submitted = st.form_submit_button("Send Prompt", type="primary", disabled=disabled)

    if submitted:
        st.session_state.model_id = model_id
        try:
            asyncio.run(controller.submit(text, st.session_state.model_id))
        except TrackerError as e:
            st.session_state.flash_error = f"Processing Error: {e}"
        st.rerun()

    filename, csv_text = controller.export_csv(date.today())
    st.download_button(
        "Export CSV",
        data=csv_text,
        file_name=filename,
        mime="text/csv",
        disabled=not controller.result.logs,
    )


def _render_charts(controller: TrackerController):
    series = project_chart_series(controller.result.logs, get_settings().chart_window)
    if not series:
        return
    chart_data = {
        "time": [p.timestamp for p in series],
        "tokens": [p.tokens for p in series],
        "cost": [p.scaled_cost for p in series],
    }
    col_tokens, col_cost = st.columns(2)
    with col_tokens:
        st.markdown("#### Token Usage Over Time")
        st.line_chart(chart_data, x="time", y="tokens")
    with col_cost:
        st.markdown("#### Cost Analysis (micro-dollars)")
        st.bar_chart(chart_data, x="time", y="cost")


def _render_recent_activity(controller: TrackerController):
    logs = controller.result.logs
    st.markdown(f"### Recent Activity ({len(logs)} total entries)" if logs else "### Recent Activity")
    recent = project_recent_activity(logs, get_settings().recent_limit)
    if not recent:
        st.caption("No data found from backend. Send your first prompt to start tracking!")
        return
    st.dataframe(
        [
            {
                "Timestamp": log.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                "Model": controller.registry.display_name(log.model_used),
                "Prompt": log.prompt_text[:80],
                "Tokens": log.total_tokens,
                "Cost": f"${log.estimated_cost:.6f}",
                "Response Time": f"{log.response_time_ms}ms",
            }
            for log in recent
        ],
        use_container_width=True,
    )


def render_dashboard(controller: TrackerController):
    st.markdown("## AI Token Tracker")
    user = controller.session.user
    col_title, col_logout = st.columns([4, 1])
    col_title.caption(f"Signed in as {user.name or user.email}")
    if col_logout.button("Logout"):
        controller.logout()
        st.rerun()

    _render_status_bar(controller)
    _render_debug_panel(controller)

    error = controller.result.error
    if error is not None:
        st.error(f"Backend Error: {error}")
    if st.session_state.flash_error:
        st.error(st.session_state.flash_error)
        if st.button("Dismiss"):
            st.session_state.flash_error = ""
            st.rerun()

    _render_stat_cards(controller)
    st.divider()
    _render_prompt_form(controller)
    st.divider()
    _render_charts(controller)
    _render_recent_activity(controller)
