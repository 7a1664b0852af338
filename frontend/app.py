import asyncio
import logging
from pathlib import Path

from dotenv import load_dotenv

# Load .env so the Streamlit process sees the same settings as the CLI launcher
load_dotenv(Path(__file__).parent.parent / ".env")

import streamlit as st
from tracker.config import get_settings
from tracker.controller import build_controller
from frontend.components.auth_forms import render_auth_forms
from frontend.components.dashboard import render_dashboard

settings = get_settings()
logging.basicConfig(level=settings.log_level)

st.set_page_config(
    page_title="AI Token Tracker",
    layout="wide",
    initial_sidebar_state="collapsed",
)

st.markdown("""
<style>
    .status-connected { color: #4ade80; font-weight: 600; }
    .status-disconnected { color: #f87171; font-weight: 600; }
    #MainMenu { visibility: hidden; }
    footer { visibility: hidden; }
</style>
""", unsafe_allow_html=True)

# --- Initialize session state ---
if "controller" not in st.session_state:
    st.session_state.controller = build_controller(settings)
    asyncio.run(st.session_state.controller.start())
if "model_id" not in st.session_state:
    st.session_state.model_id = st.session_state.controller.registry.default_model
if "flash_error" not in st.session_state:
    st.session_state.flash_error = ""

controller = st.session_state.controller

if controller.session.is_authenticated:
    render_dashboard(controller)
else:
    render_auth_forms(controller)
