"""Visual identity for the intake form page."""

from __future__ import annotations

from html import escape as html_escape
from typing import Any, Optional

import streamlit as st


_THEME_CSS = """
<style>
:root {
    --intake-accent: #0F877C;
    --intake-accent-dark: #13A99B;
    --intake-surface: #FFFFFF;
    --intake-border: rgba(15, 135, 124, 0.2);
    --intake-text: #1F2933;
    --intake-muted: #52606D;
}

[data-testid="stAppViewContainer"] {
    background: #E0F2F1;
}

.block-container {
    max-width: 52rem;
    padding-top: 2rem;
    padding-bottom: 4rem;
}

.intake-header {
    text-align: center;
    padding: 1.5rem 2rem;
    margin-bottom: 1.5rem;
}

.intake-header__title {
    margin: 0;
    font-size: 2rem;
    font-weight: 700;
    color: var(--intake-text);
}

.intake-header__subtitle {
    margin: 0.35rem 0 0 0;
    color: var(--intake-muted);
}

.intake-label {
    white-space: pre-line;
    font-weight: 600;
    color: var(--intake-text);
    margin: 0.75rem 0 0.25rem 0;
}

.intake-thanks {
    text-align: center;
    color: #059669;
    font-size: 1.6rem;
    font-weight: 600;
    margin: 2rem 0;
}

.stButton>button {
    border-radius: 999px !important;
    font-weight: 600 !important;
}

.stButton>button[kind="primary"] {
    background: var(--intake-accent) !important;
    border: none !important;
    color: #fff !important;
}

.stButton>button[kind="primary"]:hover {
    background: var(--intake-accent-dark) !important;
}
</style>
"""


def apply_app_theme(page_title: str, page_icon: Optional[str] = None) -> None:
    """Set up page configuration and inject the form CSS."""

    st.set_page_config(
        page_title=page_title,
        page_icon=page_icon,
        layout="centered",
    )
    st.markdown(_THEME_CSS, unsafe_allow_html=True)


def page_header(
    title: str,
    subtitle: Optional[str] = None,
    *,
    container: Optional[Any] = None,
) -> None:
    """Render the centred page title."""

    subtitle_markup = (
        f"<p class='intake-header__subtitle'>{html_escape(subtitle)}</p>" if subtitle else ""
    )
    target = container.markdown if container is not None else st.markdown
    target(
        f"<div class='intake-header'><h1 class='intake-header__title'>{html_escape(title)}</h1>"
        f"{subtitle_markup}</div>",
        unsafe_allow_html=True,
    )


def question_label(label: str, *, container: Optional[Any] = None) -> None:
    """Render a multi-line question label above its widget."""

    target = container.markdown if container is not None else st.markdown
    target(f"<div class='intake-label'>{html_escape(label)}</div>", unsafe_allow_html=True)


def thank_you(message: str) -> None:
    st.markdown(f"<div class='intake-thanks'>{html_escape(message)}</div>", unsafe_allow_html=True)
