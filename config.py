# config.py
import logging
import os
from typing import Optional

try:
    import streamlit as st
    _secrets = getattr(st, "secrets", {})
except Exception:
    _secrets = {}

DEFAULTS = {
    "DATABASE_URL": "sqlite:///tallyfield.db",
    "CRM_TIMEZONE": "America/Chicago",
    "LOG_LEVEL": "INFO",
    "GANTT_DEFAULT_ZOOM": "week",
    "CRM_USER": None,
}

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_logging_configured = False


def _from_secrets(name: str) -> Optional[str]:
    # st.secrets raises when no secrets.toml exists (plain python or pytest)
    try:
        return _secrets.get(name)
    except Exception:
        return None


def get_setting(name: str, default: Optional[str] = None) -> Optional[str]:
    """Secrets first, then environment, then the built-in default."""
    value = _from_secrets(name) or os.getenv(name)
    if value:
        return str(value)
    if default is not None:
        return default
    return DEFAULTS.get(name)


def configure_logging(level: Optional[str] = None) -> None:
    global _logging_configured
    if _logging_configured:
        return
    lvl = (level or get_setting("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=getattr(logging, lvl, logging.INFO), format=LOG_FORMAT)
    _logging_configured = True
