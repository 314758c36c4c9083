"""Streamlit page rendering the intake questionnaire selected by ``?formid``."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd
import streamlit as st

from lib.answer_state import AnswerState, LocalFileAnswer
from lib.form_renderer import QuestionNode, SectionView, SubsectionView, WidgetSpec, layout_form
from lib.grouping import CollapseState, group_questions
from lib.inflight import ActionInProgressError, InFlightGuard
from lib.progress import (
    MissingEmailError,
    ProgressError,
    ResumeOutcome,
    ResumeStatus,
    load_saved_progress,
    resume_from_responses,
    save_progress,
)
from lib.questions import Question, parse_form_id, questions_from_rows
from lib.schema_defaults import (
    BUSY_MESSAGE,
    DEFAULT_BUCKET,
    DEFAULT_EMAIL_LABEL,
    DEFAULT_LOAD_PROGRESS_LABEL,
    DEFAULT_PAGE_TITLE,
    DEFAULT_RESUME_LABEL,
    DEFAULT_SAVE_LABEL,
    DEFAULT_SELECT_PLACEHOLDER,
    DEFAULT_SUBMIT_LABEL,
    DEFAULT_THANK_YOU_MESSAGE,
    DEFAULT_UPLOAD_PREFIX,
    FETCH_ERROR_MESSAGE,
    FORM_ID_QUERY_PARAM,
    NO_ORGANIZATION_MESSAGE,
    NO_PROGRESS_MESSAGE,
    RESUME_ERROR_MESSAGE,
    RESUME_MISSING_EMAIL_MESSAGE,
    SAVE_ERROR_MESSAGE,
    SAVE_MISSING_EMAIL_MESSAGE,
    SAVE_SUCCESS_MESSAGE,
    SUBMIT_ERROR_MESSAGE,
)
from lib.submission import (
    SubmissionError,
    SubmissionRecord,
    SubmissionScope,
    resolve_organization_id,
    submit,
)
from lib.supabase_backend import BackendError, SupabaseBackend, SupabaseConfig
from lib.ui_theme import apply_app_theme, page_header, question_label, thank_you

logger = logging.getLogger(__name__)

ANSWERS_STATE_KEY = "intake_answers"
COLLAPSE_STATE_KEY = "intake_collapse"
SUBMITTED_STATE_KEY = "intake_submitted"
EMAIL_WIDGET_KEY = "intake_contact_email"
WIDGET_PREFIX = "intake_q"
IMAGE_TYPES = ["png", "jpg", "jpeg", "gif", "webp"]

SUBMIT_ACTION = "submit"
SAVE_ACTION = "save_progress"
RESUME_ACTION = "resume"
LOAD_PROGRESS_ACTION = "load_progress"


def _secrets_dict(name: str) -> Dict[str, Any]:
    """Return a mapping stored under ``name`` in Streamlit secrets."""

    value = st.secrets.get(name, {})  # type: ignore[arg-type]
    if isinstance(value, Mapping):
        return dict(value)
    return {}


def _supabase_settings() -> Dict[str, Any]:
    """Return Supabase configuration from secrets in a normalised structure."""

    secrets = _secrets_dict("supabase")
    url = secrets.get("url")
    key = secrets.get("key")
    bucket = secrets.get("bucket")
    upload_prefix = secrets.get("upload_prefix")
    scope = secrets.get("submission_scope")

    if not (url and key):
        url = st.secrets.get("supabase_url", url)
        key = st.secrets.get("supabase_key", key)
        bucket = st.secrets.get("supabase_bucket", bucket)

    if not (url and key):
        return {}

    try:
        submission_scope = SubmissionScope(str(scope or SubmissionScope.VISIBLE.value).strip().lower())
    except ValueError:
        logger.warning("Unknown submission_scope %r; using visible questions only", scope)
        submission_scope = SubmissionScope.VISIBLE

    return {
        "url": str(url),
        "key": str(key),
        "bucket": str(bucket or DEFAULT_BUCKET),
        "upload_prefix": str(upload_prefix if upload_prefix is not None else DEFAULT_UPLOAD_PREFIX),
        "submission_scope": submission_scope,
    }


@st.cache_data(ttl=60, show_spinner=False)
def fetch_question_rows(config: SupabaseConfig, form_id: int) -> List[Dict[str, Any]]:
    """Download the active question rows for ``form_id``."""

    return SupabaseBackend(config).fetch_questions(form_id)


def load_questions(config: SupabaseConfig, form_id: int) -> List[Question]:
    """Return the questions for ``form_id``; fetch errors yield an empty form."""

    try:
        rows = fetch_question_rows(config, form_id)
    except BackendError:
        logger.exception("Error fetching questions for form %s", form_id)
        st.error(FETCH_ERROR_MESSAGE)
        return []
    return questions_from_rows(rows)


def _get_query_param(name: str) -> Optional[str]:
    """Return the first query parameter value if present."""

    params = st.query_params
    values = params.get(name)
    if not values:
        return None
    if isinstance(values, list):
        return next((str(value) for value in values if value is not None), None)
    return str(values)


def current_form_id() -> int:
    return parse_form_id(_get_query_param(FORM_ID_QUERY_PARAM))


def _answer_state(form_id: int) -> AnswerState:
    states: Dict[int, AnswerState] = st.session_state.setdefault(ANSWERS_STATE_KEY, {})
    return states.setdefault(form_id, AnswerState())


def _collapse_state(form_id: int) -> CollapseState:
    states: Dict[int, CollapseState] = st.session_state.setdefault(COLLAPSE_STATE_KEY, {})
    return states.setdefault(form_id, CollapseState())


def _submitted_forms() -> Dict[int, List[SubmissionRecord]]:
    return st.session_state.setdefault(SUBMITTED_STATE_KEY, {})


def widget_key(question_id: int, suffix: Optional[str] = None) -> str:
    base = f"{WIDGET_PREFIX}_{question_id}"
    return f"{base}__{suffix}" if suffix is not None else base


def reset_widgets(question_ids: Iterable[int]) -> None:
    """Forget widget state so the widgets re-read their values from the answers."""

    for question_id in question_ids:
        base = widget_key(question_id)
        for key in list(st.session_state.keys()):
            if key == base or str(key).startswith(f"{base}__"):
                st.session_state.pop(key)


# ---------------- Widget callbacks ----------------

def _on_text_change(answers: AnswerState, question_id: int, key: str) -> None:
    answers.set_text(question_id, st.session_state.get(key) or "")


def _on_choice_change(answers: AnswerState, question_id: int, key: str) -> None:
    value = st.session_state.get(key)
    answers.set_text(question_id, "" if value is None else str(value))


def _on_checkbox_change(answers: AnswerState, question_id: int, value: str, key: str) -> None:
    if st.session_state.get(key):
        answers.check_choice(question_id, value)
    else:
        answers.uncheck_choice(question_id, value)


def _on_file_change(answers: AnswerState, question_id: int, key: str) -> None:
    uploaded = st.session_state.get(key)
    if uploaded is None:
        if isinstance(answers.get(question_id), LocalFileAnswer):
            answers.discard(question_id)
        return
    answers.set_file(question_id, uploaded.name, uploaded.getvalue(), getattr(uploaded, "type", None))


def _on_email_change(answers: AnswerState) -> None:
    answers.contact_email = str(st.session_state.get(EMAIL_WIDGET_KEY) or "").strip()


def _on_toggle(collapse: CollapseState, key: str) -> None:
    collapse.toggle(key)


# ---------------- Drawing ----------------

def draw_widget(widget: WidgetSpec, answers: AnswerState, backend: SupabaseBackend, target: Any) -> None:
    """Draw one widget description with Streamlit and bind it to ``answers``."""

    question_id = widget.question_id
    key = widget_key(question_id)
    option_values = [value for _, value in widget.options]
    option_labels = {value: label for label, value in widget.options}

    question_label(widget.label, container=target)

    if widget.kind == "text_input":
        target.text_input(
            widget.label,
            value=widget.value,
            key=key,
            on_change=_on_text_change,
            args=(answers, question_id, key),
            label_visibility="collapsed",
        )
    elif widget.kind == "text_area":
        target.text_area(
            widget.label,
            value=widget.value,
            key=key,
            on_change=_on_text_change,
            args=(answers, question_id, key),
            label_visibility="collapsed",
        )
    elif widget.kind == "radio":
        if not option_values:
            target.warning(f"Question {question_id} has no options configured.")
            return
        target.radio(
            widget.label,
            option_values,
            index=option_values.index(widget.value) if widget.value in option_values else None,
            format_func=lambda value: option_labels.get(value, value),
            key=key,
            on_change=_on_choice_change,
            args=(answers, question_id, key),
            label_visibility="collapsed",
        )
    elif widget.kind == "selectbox":
        choices = ["", *option_values]
        target.selectbox(
            widget.label,
            choices,
            index=choices.index(widget.value) if widget.value in choices else 0,
            format_func=lambda value: option_labels.get(value, value) if value else DEFAULT_SELECT_PLACEHOLDER,
            key=key,
            on_change=_on_choice_change,
            args=(answers, question_id, key),
            label_visibility="collapsed",
        )
    elif widget.kind == "checkbox_group":
        for index, (label, value) in enumerate(widget.options):
            option_key = widget_key(question_id, str(index))
            target.checkbox(
                label,
                value=value in widget.value,
                key=option_key,
                on_change=_on_checkbox_change,
                args=(answers, question_id, value, option_key),
            )
    elif widget.kind == "file_uploader":
        target.file_uploader(
            widget.label,
            key=key,
            on_change=_on_file_change,
            args=(answers, question_id, key),
            label_visibility="collapsed",
        )
        if widget.value:
            target.caption(f"Uploaded: {widget.value}")
    elif widget.kind == "image_uploader":
        target.file_uploader(
            widget.label,
            type=IMAGE_TYPES,
            key=key,
            on_change=_on_file_change,
            args=(answers, question_id, key),
            label_visibility="collapsed",
        )
        preview = widget.value
        if preview is None:
            target.caption("Click to upload")
        elif preview.is_local:
            target.image(preview.content, caption=preview.name, width=150)
        else:
            target.image(backend.public_url(preview.path), caption=preview.name, width=150)


def _draw_nodes(nodes: Sequence[QuestionNode], answers: AnswerState, backend: SupabaseBackend) -> None:
    for node in nodes:
        target: Any = st
        if node.depth:
            _, target = st.columns([0.05 * node.depth, 1])
        draw_widget(node.widget, answers, backend, target)


def draw_form(
    sections: Sequence[SectionView],
    answers: AnswerState,
    collapse: CollapseState,
    backend: SupabaseBackend,
) -> None:
    """Draw sections, named subsections and their visible questions."""

    for section in sections:
        with st.container(border=True):
            st.button(
                f"{'▾' if section.expanded else '▸'} {section.name}",
                key=f"toggle_{section.key}",
                on_click=_on_toggle,
                args=(collapse, section.key),
            )
            for block in section.blocks:
                if isinstance(block, SubsectionView):
                    with st.container(border=True):
                        st.button(
                            f"{'▾' if block.expanded else '▸'} {block.name}",
                            key=f"toggle_{block.key}",
                            on_click=_on_toggle,
                            args=(collapse, block.key),
                        )
                        _draw_nodes(block.nodes, answers, backend)
                else:
                    _draw_nodes([block], answers, backend)


def submitted_records_frame(records: Sequence[SubmissionRecord], questions: Sequence[Question]) -> pd.DataFrame:
    """Return a table of submitted answers labelled with their questions."""

    labels = {question.id: question.label for question in questions}
    rows = [
        {
            "Question ID": record.question_id,
            "Question": labels.get(record.question_id, ""),
            "Answer": record.answer,
        }
        for record in records
    ]
    return pd.DataFrame(rows, columns=["Question ID", "Question", "Answer"])


# ---------------- Actions ----------------

def handle_submit(
    form_id: int,
    questions: Sequence[Question],
    answers: AnswerState,
    backend: SupabaseBackend,
    guard: InFlightGuard,
    *,
    scope: SubmissionScope = SubmissionScope.VISIBLE,
    upload_prefix: str = DEFAULT_UPLOAD_PREFIX,
) -> Optional[List[SubmissionRecord]]:
    """Run the submission pipeline and switch the form to its submitted state."""

    try:
        with guard.hold(SUBMIT_ACTION), st.spinner("Submitting..."):
            organization_id = resolve_organization_id(backend, answers.contact_email)
            records = submit(
                questions,
                answers,
                backend,
                organization_id=organization_id,
                scope=scope,
                upload_prefix=upload_prefix,
            )
    except ActionInProgressError:
        st.warning(BUSY_MESSAGE)
        return None
    except (SubmissionError, BackendError) as exc:
        logger.error("Submission error: %s", exc)
        st.error(SUBMIT_ERROR_MESSAGE)
        return None

    _submitted_forms()[form_id] = records
    return records


def handle_save_progress(
    form_id: int,
    answers: AnswerState,
    backend: SupabaseBackend,
    guard: InFlightGuard,
) -> bool:
    try:
        with guard.hold(SAVE_ACTION), st.spinner("Saving..."):
            save_progress(form_id, answers, backend)
    except ActionInProgressError:
        st.warning(BUSY_MESSAGE)
        return False
    except MissingEmailError:
        st.error(SAVE_MISSING_EMAIL_MESSAGE)
        return False
    except ProgressError:
        st.error(SAVE_ERROR_MESSAGE)
        return False

    st.success(SAVE_SUCCESS_MESSAGE)
    return True


def _report_resume(outcome: ResumeOutcome) -> None:
    if outcome.status is ResumeStatus.NO_ORGANIZATION:
        st.info(NO_ORGANIZATION_MESSAGE)
    elif outcome.status is ResumeStatus.NO_PROGRESS:
        st.info(NO_PROGRESS_MESSAGE)
    else:
        reset_widgets(outcome.question_ids)
        count = len(outcome.question_ids)
        st.success(f"Loaded {count} saved answer{'s' if count != 1 else ''}.")


def handle_resume(
    answers: AnswerState,
    backend: SupabaseBackend,
    guard: InFlightGuard,
    questions: Sequence[Question],
) -> Optional[ResumeOutcome]:
    """Merge the organisation's submitted answers into the form."""

    try:
        with guard.hold(RESUME_ACTION), st.spinner("Searching..."):
            outcome = resume_from_responses(answers, backend, questions)
    except ActionInProgressError:
        st.warning(BUSY_MESSAGE)
        return None
    except MissingEmailError:
        st.error(RESUME_MISSING_EMAIL_MESSAGE)
        return None
    except ProgressError:
        st.error(RESUME_ERROR_MESSAGE)
        return None

    _report_resume(outcome)
    return outcome


def handle_load_progress(
    form_id: int,
    answers: AnswerState,
    backend: SupabaseBackend,
    guard: InFlightGuard,
    questions: Sequence[Question],
) -> Optional[ResumeOutcome]:
    """Merge answers stored with *Save progress* into the form."""

    try:
        with guard.hold(LOAD_PROGRESS_ACTION), st.spinner("Loading saved progress..."):
            outcome = load_saved_progress(form_id, answers, backend, questions)
    except ActionInProgressError:
        st.warning(BUSY_MESSAGE)
        return None
    except MissingEmailError:
        st.error(RESUME_MISSING_EMAIL_MESSAGE)
        return None
    except ProgressError:
        st.error(RESUME_ERROR_MESSAGE)
        return None

    _report_resume(outcome)
    return outcome


def main() -> None:
    """Render the intake form page."""

    apply_app_theme(page_title=DEFAULT_PAGE_TITLE, page_icon="📝")
    page_header(DEFAULT_PAGE_TITLE, "Answer the questions below. You can save and come back later.")

    settings = _supabase_settings()
    if not settings:
        st.error("Supabase configuration is required. Add a [supabase] table with url and key to the secrets.")
        return

    config = SupabaseConfig(url=settings["url"], key=settings["key"], bucket=settings["bucket"])
    backend = SupabaseBackend(config)
    guard = InFlightGuard(st.session_state)
    form_id = current_form_id()
    answers = _answer_state(form_id)

    with st.spinner("Loading..."):
        questions = load_questions(config, form_id)

    submitted = _submitted_forms().get(form_id)
    if submitted is not None:
        thank_you(DEFAULT_THANK_YOU_MESSAGE)
        st.dataframe(submitted_records_frame(submitted, questions), hide_index=True)
        return

    collapse = _collapse_state(form_id)
    signature = tuple(question.id for question in questions)
    if questions and collapse.needs_initialise(signature):
        collapse.initialise(group_questions(questions), signature)

    if EMAIL_WIDGET_KEY not in st.session_state:
        st.session_state[EMAIL_WIDGET_KEY] = answers.contact_email
    email_col, resume_col, load_col = st.columns([3, 1, 1], vertical_alignment="bottom")
    email_col.text_input(DEFAULT_EMAIL_LABEL, key=EMAIL_WIDGET_KEY, on_change=_on_email_change, args=(answers,))
    if resume_col.button(DEFAULT_RESUME_LABEL, icon="🔍", disabled=guard.is_busy(RESUME_ACTION)):
        handle_resume(answers, backend, guard, questions)
    if load_col.button(DEFAULT_LOAD_PROGRESS_LABEL, disabled=guard.is_busy(LOAD_PROGRESS_ACTION)):
        handle_load_progress(form_id, answers, backend, guard, questions)

    if not questions:
        st.info("No questions are configured for this form yet.")
        return

    draw_form(layout_form(questions, answers, collapse), answers, collapse, backend)

    save_col, submit_col = st.columns(2)
    if save_col.button(DEFAULT_SAVE_LABEL, disabled=guard.is_busy(SAVE_ACTION), use_container_width=True):
        handle_save_progress(form_id, answers, backend, guard)
    if submit_col.button(
        DEFAULT_SUBMIT_LABEL,
        type="primary",
        disabled=guard.is_busy(SUBMIT_ACTION),
        use_container_width=True,
    ):
        records = handle_submit(
            form_id,
            questions,
            answers,
            backend,
            guard,
            scope=settings["submission_scope"],
            upload_prefix=settings["upload_prefix"],
        )
        if records is not None:
            st.rerun()


if __name__ == "__main__":
    main()
