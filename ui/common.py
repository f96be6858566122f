# ui/common.py
import streamlit as st

from services.result import ActionResult


def force_rerun():
    fn = getattr(st, "rerun", None) or getattr(st, "experimental_rerun", None)
    if fn:
        fn()


def show_result(result: ActionResult, rerun: bool = False) -> bool:
    """Flash the outcome of an action; returns result.ok."""
    if result.ok:
        if result.message:
            st.success(result.message)
    else:
        st.error(result.message)
    for w in result.warnings:
        st.warning(w)
    if rerun and result.ok and not result.warnings:
        force_rerun()
    return result.ok
