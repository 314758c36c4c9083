"""Turn the current answers into ``responses`` rows and persist them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from lib.answer_state import AnswerState, LocalFileAnswer, RemoteFileAnswer, submission_value
from lib.questions import Question
from lib.schema_defaults import DEFAULT_UPLOAD_PREFIX
from lib.supabase_backend import BackendError, SupabaseBackend
from lib.visibility import visible_questions

logger = logging.getLogger(__name__)


class SubmissionError(RuntimeError):
    """Raised when an upload or the final upsert fails."""


class SubmissionScope(str, Enum):
    """Which questions contribute a record."""

    VISIBLE = "visible"
    ALL = "all"


@dataclass(frozen=True)
class SubmissionRecord:
    question_id: int
    answer: str
    organization_id: Optional[Any] = None

    def to_row(self) -> Dict[str, Any]:
        return {
            "question_id": self.question_id,
            "answer": self.answer,
            "organization_id": self.organization_id,
        }


def upload_path(file_name: str, prefix: str = DEFAULT_UPLOAD_PREFIX) -> str:
    """Return the storage path used for an uploaded file."""

    name = file_name.replace("\\", "/").rsplit("/", 1)[-1] or "upload"
    return f"{prefix.strip('/')}/{name}" if prefix.strip("/") else name


def resolve_organization_id(backend: SupabaseBackend, email: str) -> Optional[Any]:
    """Return the id of the single organisation matching ``email``, if any."""

    if not email.strip():
        return None
    rows = backend.find_organizations(email.strip())
    if len(rows) != 1:
        return None
    return rows[0].get("id")


def _questions_in_scope(
    questions: Sequence[Question], answers: AnswerState, scope: SubmissionScope
) -> List[Question]:
    if scope is SubmissionScope.ALL:
        return list(questions)
    return visible_questions(questions, answers)


def submit(
    questions: Sequence[Question],
    answers: AnswerState,
    backend: SupabaseBackend,
    *,
    organization_id: Optional[Any] = None,
    scope: SubmissionScope = SubmissionScope.VISIBLE,
    upload_prefix: str = DEFAULT_UPLOAD_PREFIX,
) -> List[SubmissionRecord]:
    """Upload pending files, then upsert one record per question in ``scope``.

    Every upload finishes before the upsert; a single failed upload aborts the
    whole submission and nothing is written to ``responses``.
    """

    in_scope = _questions_in_scope(questions, answers, scope)
    logger.info("Submitting %d of %d question(s) (scope=%s)", len(in_scope), len(questions), scope.value)

    records: List[SubmissionRecord] = []
    uploaded: Dict[int, RemoteFileAnswer] = {}
    for question in in_scope:
        answer = answers.get(question.id)
        if question.is_file_like and isinstance(answer, LocalFileAnswer):
            path = upload_path(answer.name, upload_prefix)
            try:
                value = backend.upload_file(path, answer.content, answer.mime_type)
            except BackendError as exc:
                logger.exception("Upload failed for question %s", question.id)
                raise SubmissionError(f"Upload failed for question {question.id}") from exc
            uploaded[question.id] = RemoteFileAnswer(value)
        elif isinstance(answer, LocalFileAnswer):
            # A file handle on a non-file question has nothing sensible to store.
            value = answer.name
        else:
            value = submission_value(answer)
        records.append(SubmissionRecord(question.id, value, organization_id))

    try:
        backend.upsert_responses([record.to_row() for record in records])
    except BackendError as exc:
        logger.exception("Failed to store responses")
        raise SubmissionError("Failed to store responses") from exc

    # Only once everything is stored do the local handles become references.
    answers.merge(uploaded)
    return records
