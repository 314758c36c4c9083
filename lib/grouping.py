"""Section/subsection grouping of top-level questions and collapse flags."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterable, List, Optional

from lib.questions import Question
from lib.schema_defaults import DEFAULT_SECTION, DEFAULT_SUBSECTION

Grouping = Dict[str, Dict[str, List[Question]]]

_KEY_SEPARATOR = "::"


def section_name(question: Question) -> str:
    return question.section or DEFAULT_SECTION


def subsection_name(question: Question) -> str:
    return question.subsection or DEFAULT_SUBSECTION


def group_questions(questions: Iterable[Question]) -> Grouping:
    """Group top-level questions by section then subsection.

    Sub-questions are left out: they render beneath their parent, whatever
    section they declare. Insertion order follows the fetch order.
    """

    grouped: Grouping = {}
    for question in questions:
        if question.parent_question_id is not None:
            continue
        subsections = grouped.setdefault(section_name(question), {})
        subsections.setdefault(subsection_name(question), []).append(question)
    return grouped


def collapse_key(section: str, subsection: Optional[str] = None) -> str:
    """Return the collapse flag key for a section or a section's subsection."""

    if subsection is None:
        return section
    return f"{section}{_KEY_SEPARATOR}{subsection}"


def grouping_keys(grouping: Grouping) -> List[str]:
    """Return every collapse key discovered in ``grouping``.

    The unnamed subsection has no wrapper of its own, so it gets no key.
    """

    keys: List[str] = []
    for section, subsections in grouping.items():
        keys.append(collapse_key(section))
        for subsection in subsections:
            if subsection != DEFAULT_SUBSECTION:
                keys.append(collapse_key(section, subsection))
    return keys


@dataclass
class CollapseState:
    """Independent collapsed flags, one per section and named subsection."""

    collapsed: Dict[str, bool] = field(default_factory=dict)
    signature: Optional[Hashable] = None

    def needs_initialise(self, signature: Hashable) -> bool:
        return self.signature != signature

    def initialise(self, grouping: Grouping, signature: Hashable = None) -> None:
        """Expand every discovered group; called once per distinct fetch."""

        self.collapsed = {key: False for key in grouping_keys(grouping)}
        self.signature = signature

    def toggle(self, key: str) -> bool:
        """Flip one flag and return the new collapsed value."""

        self.collapsed[key] = not self.collapsed.get(key, False)
        return self.collapsed[key]

    def is_expanded(self, key: str) -> bool:
        return not self.collapsed.get(key, False)
