"""
app.py - minimal entrypoint for Streamlit app

Keep this file tiny so streamlit can import it without side-effects.
Run the app with:
    streamlit run app.py

This module simply delegates to taxtrack.ui.dashboard.main().

"""
import os

import streamlit as _st

from taxtrack.config import CONFIG_ENV_KEYS


def _copy_secrets_to_env():
    # On Streamlit Cloud, settings arrive as secrets; the service reads env vars
    try:
        secrets = dict(_st.secrets)
    except FileNotFoundError:
        return
    for key in CONFIG_ENV_KEYS:
        if secrets.get(key) and key not in os.environ:
            os.environ[key] = str(secrets[key])


_copy_secrets_to_env()

from taxtrack.ui import dashboard  # noqa: E402


def main():
    dashboard.main()


if __name__ == "__main__":
    main()
