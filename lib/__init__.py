"""Library helpers for the dynamic intake form."""

from .answer_state import AnswerState  # noqa: F401
from .form_renderer import layout_form, render  # noqa: F401
from .visibility import is_visible  # noqa: F401
