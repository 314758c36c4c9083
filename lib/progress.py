"""Save partially completed answers and bring them back by contact email."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from lib.answer_state import (
    Answer,
    AnswerState,
    LocalFileAnswer,
    decode_answer,
    encode_answer,
)
from lib.questions import Question
from lib.supabase_backend import BackendError, SupabaseBackend

logger = logging.getLogger(__name__)


class ProgressError(RuntimeError):
    """Raised when the progress or responses store cannot be used."""


class MissingEmailError(ValueError):
    """Raised when an operation needs the contact email and none was given."""


class ResumeStatus(str, Enum):
    LOADED = "loaded"
    NO_ORGANIZATION = "no_organization"
    NO_PROGRESS = "no_progress"


@dataclass(frozen=True)
class ProgressRecord:
    form_id: int
    contact_email: str
    question_id: int
    answer: str

    def to_row(self) -> Dict[str, Any]:
        return {
            "form_id": self.form_id,
            "contactEmail": self.contact_email,
            "question_id": self.question_id,
            "answer": self.answer,
        }


@dataclass
class ResumeOutcome:
    status: ResumeStatus
    question_ids: List[int] = field(default_factory=list)

    @property
    def loaded(self) -> bool:
        return self.status is ResumeStatus.LOADED


def _require_email(answers: AnswerState) -> str:
    email = answers.contact_email.strip()
    if not email:
        raise MissingEmailError("A contact email is required.")
    return email


def build_progress_records(form_id: int, answers: AnswerState) -> List[ProgressRecord]:
    """Return one record per held answer; local files are skipped."""

    email = _require_email(answers)
    records: List[ProgressRecord] = []
    for question_id, answer in answers.items():
        if isinstance(answer, LocalFileAnswer):
            logger.info("Not saving question %s: file %r has not been uploaded", question_id, answer.name)
            continue
        records.append(ProgressRecord(form_id, email, question_id, encode_answer(answer)))
    return records


def save_progress(form_id: int, answers: AnswerState, backend: SupabaseBackend) -> List[ProgressRecord]:
    """Upsert the current answers into the ``progress`` table."""

    records = build_progress_records(form_id, answers)
    try:
        backend.upsert_progress([record.to_row() for record in records])
    except BackendError as exc:
        logger.exception("Failed to save progress for form %s", form_id)
        raise ProgressError("Failed to save progress") from exc
    logger.info("Saved %d answer(s) for form %s", len(records), form_id)
    return records


def decode_rows(
    rows: Iterable[Mapping[str, Any]], questions: Sequence[Question] = ()
) -> Dict[int, Answer]:
    """Decode stored ``question_id``/``answer`` rows into answers."""

    types = {question.id: question.type for question in questions}
    decoded: Dict[int, Answer] = {}
    for row in rows:
        try:
            question_id = int(row.get("question_id"))
        except (TypeError, ValueError):
            logger.warning("Skipping stored answer with bad question id: %r", row.get("question_id"))
            continue
        decoded[question_id] = decode_answer(row.get("answer"), types.get(question_id))
    return decoded


def _merge_rows(
    answers: AnswerState, rows: List[Dict[str, Any]], questions: Sequence[Question]
) -> ResumeOutcome:
    if not rows:
        return ResumeOutcome(ResumeStatus.NO_PROGRESS)
    decoded = decode_rows(rows, questions)
    answers.merge(decoded)
    return ResumeOutcome(ResumeStatus.LOADED, sorted(decoded))


def resume_from_responses(
    answers: AnswerState,
    backend: SupabaseBackend,
    questions: Sequence[Question] = (),
) -> ResumeOutcome:
    """Load the submitted answers of the organisation owning the contact email.

    The email must match exactly one organisation; otherwise nothing changes.
    """

    email = _require_email(answers)
    try:
        organizations = backend.find_organizations(email)
    except BackendError as exc:
        logger.exception("Organisation lookup failed")
        raise ProgressError("Organisation lookup failed") from exc

    if len(organizations) != 1:
        logger.info("Found %d organisation(s) for the given email", len(organizations))
        return ResumeOutcome(ResumeStatus.NO_ORGANIZATION)

    organization_id: Optional[Any] = organizations[0].get("id")
    try:
        rows = backend.fetch_responses(organization_id)
    except BackendError as exc:
        logger.exception("Failed to fetch responses for organisation %s", organization_id)
        raise ProgressError("Failed to fetch responses") from exc

    return _merge_rows(answers, rows, questions)


def load_saved_progress(
    form_id: int,
    answers: AnswerState,
    backend: SupabaseBackend,
    questions: Sequence[Question] = (),
) -> ResumeOutcome:
    """Load answers previously stored with ``save_progress``."""

    email = _require_email(answers)
    try:
        rows = backend.fetch_progress(form_id, email)
    except BackendError as exc:
        logger.exception("Failed to fetch progress for form %s", form_id)
        raise ProgressError("Failed to fetch progress") from exc

    return _merge_rows(answers, rows, questions)
