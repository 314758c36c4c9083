"""Question definitions fetched from the remote store."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from lib.schema_defaults import DEFAULT_FORM_ID

logger = logging.getLogger(__name__)


class QuestionType(str, Enum):
    """Known question type tags as stored in the ``questions`` table."""

    SHORT_TEXT = "text"
    LONG_TEXT = "textarea"
    SINGLE_CHOICE = "radio"
    DROPDOWN_CHOICE = "select"
    MULTI_CHOICE = "checkbox"
    FILE = "file"
    IMAGE_FILE = "file-photo"


FILE_LIKE_TYPES = frozenset({QuestionType.FILE.value, QuestionType.IMAGE_FILE.value})


@dataclass(frozen=True)
class ChoiceOption:
    label: str
    value: str


@dataclass(frozen=True)
class Question:
    """A single read-only question row."""

    id: int
    form_id: int
    type: str
    label: str
    section: str = ""
    subsection: Optional[str] = None
    options: Tuple[ChoiceOption, ...] = ()
    parent_question_id: Optional[int] = None
    condition_value: Optional[str] = None

    @property
    def is_file_like(self) -> bool:
        return self.type in FILE_LIKE_TYPES

    @property
    def option_values(self) -> Tuple[str, ...]:
        return tuple(option.value for option in self.options)


def _clean_text(value: Any) -> str:
    """Return ``value`` converted to a trimmed string."""

    if isinstance(value, str):
        return value.strip()
    if value is None:
        return ""
    return str(value).strip()


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_options(value: Any) -> Tuple[ChoiceOption, ...]:
    """Convert the stored ``options`` column into ``ChoiceOption`` entries."""

    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        return ()
    options: List[ChoiceOption] = []
    for item in value:
        if isinstance(item, Mapping):
            raw_value = item.get("value")
            if raw_value is None:
                continue
            option_value = str(raw_value)
            label = _clean_text(item.get("label")) or option_value
        elif isinstance(item, str):
            option_value = item
            label = item
        else:
            continue
        options.append(ChoiceOption(label=label, value=option_value))
    return tuple(options)


def question_from_row(row: Mapping[str, Any]) -> Optional[Question]:
    """Build a ``Question`` from a ``questions`` row, or ``None`` if unusable."""

    question_id = _optional_int(row.get("id"))
    if question_id is None:
        logger.warning("Skipping question row without a usable id: %r", row.get("id"))
        return None

    parent_id = _optional_int(row.get("parent_question_id"))
    condition = row.get("condition_value")
    condition_value = None if condition is None else str(condition)
    if parent_id is not None and condition_value is None:
        logger.warning(
            "Question %s has parent %s but no condition value; it will never be shown.",
            question_id,
            parent_id,
        )

    subsection = _clean_text(row.get("subsection")) or None
    return Question(
        id=question_id,
        form_id=_optional_int(row.get("form_id")) or DEFAULT_FORM_ID,
        type=_clean_text(row.get("type")),
        label=str(row.get("label") or ""),
        section=_clean_text(row.get("section")),
        subsection=subsection,
        options=_parse_options(row.get("options")),
        parent_question_id=parent_id,
        condition_value=condition_value,
    )


def questions_from_rows(rows: Iterable[Mapping[str, Any]]) -> List[Question]:
    """Convert fetched rows, keeping fetch order and dropping unusable rows."""

    questions: List[Question] = []
    for row in rows:
        if not isinstance(row, Mapping):
            continue
        question = question_from_row(row)
        if question is not None:
            questions.append(question)
    return questions


@dataclass
class QuestionTree:
    """Questions indexed by parent so conditional children can be walked."""

    roots: List[Question] = field(default_factory=list)
    children: Dict[int, List[Question]] = field(default_factory=dict)
    orphans: List[Question] = field(default_factory=list)
    known_ids: Set[int] = field(default_factory=set)

    def children_of(self, question_id: int) -> List[Question]:
        return self.children.get(question_id, [])


def build_question_tree(questions: Iterable[Question]) -> QuestionTree:
    """Index ``questions`` by parent id, separating roots and orphans."""

    ordered = list(questions)
    tree = QuestionTree(known_ids={question.id for question in ordered})
    for question in ordered:
        parent_id = question.parent_question_id
        if parent_id is None:
            tree.roots.append(question)
        elif parent_id in tree.known_ids:
            tree.children.setdefault(parent_id, []).append(question)
        else:
            tree.orphans.append(question)

    if tree.orphans:
        logger.warning(
            "Ignoring %d question(s) whose parent is not part of the form: %s",
            len(tree.orphans),
            [question.id for question in tree.orphans],
        )
    return tree


def parse_form_id(value: Any) -> int:
    """Return the form id from a query parameter value, defaulting to 1."""

    if isinstance(value, list):
        value = next((item for item in value if item is not None), None)
    text = _clean_text(value)
    try:
        form_id = int(text)
    except ValueError:
        return DEFAULT_FORM_ID
    return form_id if form_id > 0 else DEFAULT_FORM_ID
