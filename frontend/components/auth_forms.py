import asyncio

import streamlit as st

from tracker.controller import TrackerController
from tracker.errors import TrackerError
from tracker.models.schemas import RegistrationForm


def _render_backend_status(controller: TrackerController):
    state = controller.connectivity
    if state.is_disconnected:
        st.error("Backend: Disconnected. Registration will not work.")
    else:
        st.caption(f"Backend: {state.status.value.capitalize()}")


def render_login(controller: TrackerController):
    with st.form("login_form"):
        email = st.text_input("Email Address", placeholder="Enter your email")
        password = st.text_input("Password", type="password", placeholder="Enter your password")
        submitted = st.form_submit_button("Sign In", type="primary")

    if submitted:
        try:
            asyncio.run(controller.login(email, password))
        except TrackerError as e:
            st.error(str(e))
            return
        st.rerun()


def render_register(controller: TrackerController):
    _render_backend_status(controller)
    disabled = controller.connectivity.is_disconnected
    with st.form("register_form"):
        name = st.text_input("Full Name", disabled=disabled)
        email = st.text_input("Email Address", disabled=disabled)
        password = st.text_input("Password", type="password", disabled=disabled)
        confirm = st.text_input("Confirm Password", type="password", disabled=disabled)
        submitted = st.form_submit_button("Create Account", type="primary", disabled=disabled)

    if submitted:
        profile = RegistrationForm(
            name=name, email=email, password=password, confirm_password=confirm
        )
        try:
            asyncio.run(controller.register(profile))
        except TrackerError as e:
            st.error(str(e))
            return
        st.rerun()


def render_auth_forms(controller: TrackerController):
    st.markdown("## AI Token Tracker")
    login_tab, register_tab = st.tabs(["Sign In", "Create Account"])
    with login_tab:
        render_login(controller)
    with register_tab:
        render_register(controller)
