"""In-memory answers keyed by question id, plus their wire encoding."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Iterator, Mapping, Optional, Tuple, Union

from lib.questions import FILE_LIKE_TYPES

logger = logging.getLogger(__name__)


class UnserialisableAnswerError(ValueError):
    """Raised when an answer has no text representation (raw file handles)."""


@dataclass(frozen=True)
class TextAnswer:
    value: str


@dataclass(frozen=True)
class ChoiceSetAnswer:
    values: FrozenSet[str] = frozenset()

    def with_value(self, value: str) -> "ChoiceSetAnswer":
        return ChoiceSetAnswer(self.values | {value})

    def without_value(self, value: str) -> "ChoiceSetAnswer":
        return ChoiceSetAnswer(self.values - {value})


@dataclass(frozen=True)
class LocalFileAnswer:
    """A file selected in the browser but not uploaded yet."""

    name: str
    content: bytes = field(repr=False)
    mime_type: Optional[str] = None


@dataclass(frozen=True)
class RemoteFileAnswer:
    """A file already stored in the bucket, referenced by its storage path."""

    path: str


Answer = Union[TextAnswer, ChoiceSetAnswer, LocalFileAnswer, RemoteFileAnswer]


@dataclass
class AnswerState:
    """Current answers for one form session.

    An entry only exists once the user touched the question or a resume
    populated it; a missing entry means "unanswered".
    """

    entries: Dict[int, Answer] = field(default_factory=dict)
    contact_email: str = ""

    def get(self, question_id: int) -> Optional[Answer]:
        return self.entries.get(question_id)

    def set(self, question_id: int, answer: Answer) -> None:
        self.entries[question_id] = answer

    def set_text(self, question_id: int, value: str) -> None:
        self.entries[question_id] = TextAnswer(value)

    def check_choice(self, question_id: int, value: str) -> None:
        current = self.entries.get(question_id)
        base = current if isinstance(current, ChoiceSetAnswer) else ChoiceSetAnswer()
        self.entries[question_id] = base.with_value(value)

    def uncheck_choice(self, question_id: int, value: str) -> None:
        current = self.entries.get(question_id)
        if not isinstance(current, ChoiceSetAnswer):
            return
        self.entries[question_id] = current.without_value(value)

    def set_file(self, question_id: int, name: str, content: bytes, mime_type: Optional[str] = None) -> None:
        self.entries[question_id] = LocalFileAnswer(name=name, content=content, mime_type=mime_type)

    def discard(self, question_id: int) -> None:
        self.entries.pop(question_id, None)

    def merge(self, entries: Mapping[int, Answer]) -> None:
        """Overlay ``entries`` without clearing anything else."""

        self.entries.update(entries)

    def items(self) -> Iterable[Tuple[int, Answer]]:
        return list(self.entries.items())

    def has_email(self) -> bool:
        return bool(self.contact_email.strip())

    def __contains__(self, question_id: object) -> bool:
        return question_id in self.entries

    def __iter__(self) -> Iterator[int]:
        return iter(list(self.entries))

    def __len__(self) -> int:
        return len(self.entries)


def condition_value(answer: Optional[Answer]) -> Optional[str]:
    """Return the value compared against a child's ``condition_value``."""

    if isinstance(answer, TextAnswer):
        return answer.value
    return None


def encode_answer(answer: Answer) -> str:
    """Encode ``answer`` as the text stored in the progress table."""

    if isinstance(answer, TextAnswer):
        return answer.value
    if isinstance(answer, ChoiceSetAnswer):
        return json.dumps(sorted(answer.values))
    if isinstance(answer, RemoteFileAnswer):
        return json.dumps({"path": answer.path})
    raise UnserialisableAnswerError(
        f"Cannot encode {type(answer).__name__}; upload the file first."
    )


def submission_value(answer: Optional[Answer]) -> str:
    """Return the text stored in the responses table for ``answer``."""

    if answer is None:
        return ""
    if isinstance(answer, TextAnswer):
        return answer.value
    if isinstance(answer, ChoiceSetAnswer):
        return json.dumps(sorted(answer.values))
    if isinstance(answer, RemoteFileAnswer):
        return answer.path
    raise UnserialisableAnswerError("Local files must be uploaded before submission.")


def _looks_structured(raw: str) -> bool:
    return raw.startswith("{") or raw.startswith("[")


def decode_answer(raw: Any, question_type: Optional[str] = None) -> Answer:
    """Decode a stored answer back into an ``Answer``.

    Only values whose first character is ``{`` or ``[`` are parsed as JSON.
    Plain strings stay text, except for file-like questions where a non-empty
    string is the storage path of a previous upload.
    """

    text = "" if raw is None else str(raw)
    if _looks_structured(text):
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("Stored answer looks like JSON but does not parse; keeping text.")
            return TextAnswer(text)
        if isinstance(payload, list):
            return ChoiceSetAnswer(frozenset(str(item) for item in payload))
        if isinstance(payload, dict) and isinstance(payload.get("path"), str):
            return RemoteFileAnswer(payload["path"])
        return TextAnswer(text)

    if question_type in FILE_LIKE_TYPES and text:
        return RemoteFileAnswer(text)
    return TextAnswer(text)
