"""Decide whether a conditional question should currently be shown."""

from __future__ import annotations

from typing import AbstractSet, List, Optional, Sequence

from lib.answer_state import AnswerState, condition_value
from lib.questions import Question, build_question_tree


def is_visible(
    question: Question,
    answers: AnswerState,
    known_ids: Optional[AbstractSet[int]] = None,
) -> bool:
    """Return ``True`` if ``question`` should render for ``answers``.

    Top-level questions are always visible. A sub-question is visible only
    when its parent's answer equals its condition value exactly. When
    ``known_ids`` is given, a parent outside that set hides the question.
    """

    parent_id = question.parent_question_id
    if parent_id is None:
        return True
    if known_ids is not None and parent_id not in known_ids:
        return False
    if question.condition_value is None:
        return False
    return condition_value(answers.get(parent_id)) == question.condition_value


def visible_questions(questions: Sequence[Question], answers: AnswerState) -> List[Question]:
    """Return the questions currently rendered, in fetch order.

    A sub-question of a hidden parent is hidden too, whatever its own
    condition says.
    """

    tree = build_question_tree(questions)
    shown = set()
    stack = list(reversed(tree.roots))
    while stack:
        question = stack.pop()
        if not is_visible(question, answers, tree.known_ids):
            continue
        shown.add(question.id)
        stack.extend(reversed(tree.children_of(question.id)))
    return [question for question in questions if question.id in shown]
