import logging

import streamlit as st

from app_ui import AppUI
from config import load_settings
from errors import ConfigUnavailable

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


# Main Streamlit application entry point
def main():
    st.set_page_config(page_title="Attendance Headcount Dashboard", page_icon="📊", layout="wide")

    # Settings are loaded once per script run and passed down explicitly
    try:
        settings = load_settings()
    except ConfigUnavailable as e:
        st.error(f"🛑 Couldn't load settings. {e}")
        st.stop()

    AppUI(settings).display_main_page()


if __name__ == "__main__":
    main()
