"""Tests for the form page's settings and button handlers."""

from __future__ import annotations

import contextlib
import importlib

import pytest

EMAIL = "owner@example.com"


@pytest.fixture
def home(monkeypatch):
    module = importlib.import_module("Home")

    messages = {"error": [], "warning": [], "info": [], "success": []}
    for level, bucket in messages.items():
        monkeypatch.setattr(module.st, level, bucket.append)
    monkeypatch.setattr(module.st, "spinner", lambda *args, **kwargs: contextlib.nullcontext())
    monkeypatch.setattr(module.st, "session_state", {})
    module.messages = messages
    return module


def _guard(home):
    return home.InFlightGuard({})


def test_supabase_settings_prefers_nested_table(home, monkeypatch):
    monkeypatch.setattr(
        home.st,
        "secrets",
        {"supabase": {"url": "https://demo.supabase.co", "key": "k", "submission_scope": "ALL"}},
    )

    settings = home._supabase_settings()

    assert settings["url"] == "https://demo.supabase.co"
    assert settings["bucket"] == "profile_photo"
    assert settings["upload_prefix"] == "files"
    assert settings["submission_scope"] is home.SubmissionScope.ALL


def test_supabase_settings_flat_fallback_and_missing(home, monkeypatch):
    monkeypatch.setattr(
        home.st,
        "secrets",
        {"supabase_url": "https://demo.supabase.co", "supabase_key": "k", "supabase_bucket": "docs"},
    )

    settings = home._supabase_settings()
    assert settings["bucket"] == "docs"
    assert settings["submission_scope"] is home.SubmissionScope.VISIBLE

    monkeypatch.setattr(home.st, "secrets", {})
    assert home._supabase_settings() == {}


def test_unknown_submission_scope_defaults_to_visible(home, monkeypatch):
    monkeypatch.setattr(
        home.st,
        "secrets",
        {"supabase": {"url": "u", "key": "k", "submission_scope": "everything"}},
    )

    assert home._supabase_settings()["submission_scope"] is home.SubmissionScope.VISIBLE


def test_handle_submit_records_submission(home, question_factory, fake_backend_factory):
    backend = fake_backend_factory(organizations={EMAIL: [{"id": 3}]})
    answers = home.AnswerState(contact_email=EMAIL)
    answers.set_text(1, "Acme")

    records = home.handle_submit(1, [question_factory(1)], answers, backend, _guard(home))

    assert [record.organization_id for record in records] == [3]
    assert home._submitted_forms()[1] == records
    assert home.messages["error"] == []


def test_handle_submit_shows_error_and_stays_editable(home, question_factory, fake_backend_factory):
    backend = fake_backend_factory(fail_upsert=True)
    answers = home.AnswerState()

    result = home.handle_submit(1, [question_factory(1)], answers, backend, _guard(home))

    assert result is None
    assert home.messages["error"] == [home.SUBMIT_ERROR_MESSAGE]
    assert 1 not in home._submitted_forms()


def test_handle_submit_rejects_second_trigger(home, question_factory, fake_backend):
    guard = _guard(home)

    with guard.hold(home.SUBMIT_ACTION):
        result = home.handle_submit(1, [question_factory(1)], home.AnswerState(), fake_backend, guard)

    assert result is None
    assert home.messages["warning"] == [home.BUSY_MESSAGE]
    assert fake_backend.calls == []


def test_handle_save_progress_requires_email(home, fake_backend):
    answers = home.AnswerState()
    answers.set_text(1, "x")

    assert home.handle_save_progress(1, answers, fake_backend, _guard(home)) is False
    assert home.messages["error"] == [home.SAVE_MISSING_EMAIL_MESSAGE]
    assert fake_backend.writes == []


def test_handle_save_progress_success(home, fake_backend):
    answers = home.AnswerState(contact_email=EMAIL)
    answers.set_text(1, "x")

    assert home.handle_save_progress(1, answers, fake_backend, _guard(home)) is True
    assert home.messages["success"] == [home.SAVE_SUCCESS_MESSAGE]
    assert len(fake_backend.progress_upserts) == 1


def test_handle_resume_reports_unknown_organisation(home, fake_backend):
    answers = home.AnswerState(contact_email=EMAIL)

    outcome = home.handle_resume(answers, fake_backend, _guard(home), [])

    assert outcome.status is home.ResumeStatus.NO_ORGANIZATION
    assert home.messages["info"] == [home.NO_ORGANIZATION_MESSAGE]


def test_handle_resume_resets_widgets_for_loaded_answers(home, fake_backend_factory):
    backend = fake_backend_factory(
        organizations={EMAIL: [{"id": 9}]},
        responses={9: [{"question_id": 4, "answer": "Acme"}]},
    )
    home.st.session_state[home.widget_key(4)] = "stale"
    home.st.session_state[home.widget_key(4, "0")] = True
    home.st.session_state[home.widget_key(5)] = "kept"
    answers = home.AnswerState(contact_email=EMAIL)

    outcome = home.handle_resume(answers, backend, _guard(home), [])

    assert outcome.loaded
    assert answers.get(4).value == "Acme"
    assert home.widget_key(4) not in home.st.session_state
    assert home.widget_key(4, "0") not in home.st.session_state
    assert home.st.session_state[home.widget_key(5)] == "kept"
    assert home.messages["success"] == ["Loaded 1 saved answer."]


def test_handle_load_progress_reports_empty_store(home, fake_backend):
    answers = home.AnswerState(contact_email=EMAIL)

    outcome = home.handle_load_progress(2, answers, fake_backend, _guard(home), [])

    assert outcome.status is home.ResumeStatus.NO_PROGRESS
    assert home.messages["info"] == [home.NO_PROGRESS_MESSAGE]


def test_submitted_records_frame_labels_answers(home, question_factory):
    submission = importlib.import_module("lib.submission")
    records = [submission.SubmissionRecord(1, "Acme"), submission.SubmissionRecord(7, "")]

    frame = home.submitted_records_frame(records, [question_factory(1, label="Company name")])

    assert list(frame.columns) == ["Question ID", "Question", "Answer"]
    assert frame.to_dict("records") == [
        {"Question ID": 1, "Question": "Company name", "Answer": "Acme"},
        {"Question ID": 7, "Question": "", "Answer": ""},
    ]


def test_clearing_the_uploader_drops_only_pending_files(home):
    answers = home.AnswerState()
    answers.set_file(1, "cv.pdf", b"%PDF")
    answers.set(2, importlib.import_module("lib.answer_state").RemoteFileAnswer("files/old.pdf"))
    home.st.session_state[home.widget_key(1)] = None
    home.st.session_state[home.widget_key(2)] = None

    home._on_file_change(answers, 1, home.widget_key(1))
    home._on_file_change(answers, 2, home.widget_key(2))

    assert 1 not in answers
    assert answers.get(2).path == "files/old.pdf"
