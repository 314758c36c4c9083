"""Describe how each question renders, independent of the widget toolkit.

Exports:
- render(question, answers) -> WidgetSpec | None
- layout_form(questions, answers, collapse) -> list[SectionView]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from lib.answer_state import (
    AnswerState,
    ChoiceSetAnswer,
    LocalFileAnswer,
    RemoteFileAnswer,
    TextAnswer,
)
from lib.grouping import CollapseState, collapse_key, group_questions
from lib.questions import Question, QuestionTree, QuestionType, build_question_tree
from lib.schema_defaults import DEFAULT_SUBSECTION
from lib.visibility import is_visible


@dataclass(frozen=True)
class ImagePreview:
    """Source for an image preview: local bytes or a stored path."""

    name: str = ""
    content: Optional[bytes] = field(default=None, repr=False)
    path: Optional[str] = None

    @property
    def is_local(self) -> bool:
        return self.content is not None


@dataclass(frozen=True)
class WidgetSpec:
    question_id: int
    kind: str
    label: str
    options: Tuple[Tuple[str, str], ...] = ()
    value: Any = None


@dataclass(frozen=True)
class QuestionNode:
    question: Question
    widget: WidgetSpec
    depth: int = 0


@dataclass
class SubsectionView:
    name: str
    key: str
    expanded: bool
    nodes: List[QuestionNode] = field(default_factory=list)


@dataclass
class SectionView:
    name: str
    key: str
    expanded: bool
    blocks: List[Union[QuestionNode, SubsectionView]] = field(default_factory=list)


def _options(question: Question) -> Tuple[Tuple[str, str], ...]:
    return tuple((option.label, option.value) for option in question.options)


def _text_value(answers: AnswerState, question: Question) -> str:
    answer = answers.get(question.id)
    return answer.value if isinstance(answer, TextAnswer) else ""


def _render_text(question: Question, answers: AnswerState) -> WidgetSpec:
    return WidgetSpec(question.id, "text_input", question.label, value=_text_value(answers, question))


def _render_textarea(question: Question, answers: AnswerState) -> WidgetSpec:
    return WidgetSpec(question.id, "text_area", question.label, value=_text_value(answers, question))


def _render_radio(question: Question, answers: AnswerState) -> WidgetSpec:
    current = _text_value(answers, question)
    selected = current if current in question.option_values else None
    return WidgetSpec(question.id, "radio", question.label, _options(question), selected)


def _render_select(question: Question, answers: AnswerState) -> WidgetSpec:
    current = _text_value(answers, question)
    selected = current if current in question.option_values else ""
    return WidgetSpec(question.id, "selectbox", question.label, _options(question), selected)


def _render_checkbox(question: Question, answers: AnswerState) -> WidgetSpec:
    answer = answers.get(question.id)
    checked = tuple(sorted(answer.values)) if isinstance(answer, ChoiceSetAnswer) else ()
    return WidgetSpec(question.id, "checkbox_group", question.label, _options(question), checked)


def _render_file(question: Question, answers: AnswerState) -> WidgetSpec:
    answer = answers.get(question.id)
    if isinstance(answer, LocalFileAnswer):
        value: Optional[str] = answer.name
    elif isinstance(answer, RemoteFileAnswer):
        value = answer.path
    else:
        value = None
    return WidgetSpec(question.id, "file_uploader", question.label, value=value)


def _render_image(question: Question, answers: AnswerState) -> WidgetSpec:
    answer = answers.get(question.id)
    if isinstance(answer, LocalFileAnswer):
        preview: Optional[ImagePreview] = ImagePreview(name=answer.name, content=answer.content)
    elif isinstance(answer, RemoteFileAnswer):
        preview = ImagePreview(name=answer.path.rsplit("/", 1)[-1], path=answer.path)
    else:
        preview = None
    return WidgetSpec(question.id, "image_uploader", question.label, value=preview)


RENDERERS: Dict[str, Callable[[Question, AnswerState], WidgetSpec]] = {
    QuestionType.SHORT_TEXT.value: _render_text,
    QuestionType.LONG_TEXT.value: _render_textarea,
    QuestionType.SINGLE_CHOICE.value: _render_radio,
    QuestionType.DROPDOWN_CHOICE.value: _render_select,
    QuestionType.MULTI_CHOICE.value: _render_checkbox,
    QuestionType.FILE.value: _render_file,
    QuestionType.IMAGE_FILE.value: _render_image,
}


def render(question: Question, answers: AnswerState) -> Optional[WidgetSpec]:
    """Return the widget description for ``question``, or ``None`` for unknown types."""

    renderer = RENDERERS.get(question.type)
    if renderer is None:
        return None
    return renderer(question, answers)


def _walk(roots: Sequence[Question], tree: QuestionTree, answers: AnswerState) -> List[QuestionNode]:
    """Depth-first walk of visible questions using an explicit stack."""

    nodes: List[QuestionNode] = []
    stack: List[Tuple[Question, int]] = [(question, 0) for question in reversed(roots)]
    while stack:
        question, depth = stack.pop()
        if not is_visible(question, answers, tree.known_ids):
            continue
        widget = render(question, answers)
        if widget is not None:
            nodes.append(QuestionNode(question, widget, depth))
        for child in reversed(tree.children_of(question.id)):
            stack.append((child, depth + 1))
    return nodes


def layout_form(
    questions: Sequence[Question],
    answers: AnswerState,
    collapse: CollapseState,
) -> List[SectionView]:
    """Return the sections to draw, with visible questions already resolved.

    Questions in the unnamed subsection sit directly in the section; named
    subsections get their own collapsible view. Collapsed groups keep their
    header but carry no questions.
    """

    tree = build_question_tree(questions)
    sections: List[SectionView] = []
    for section, subsections in group_questions(questions).items():
        section_key = collapse_key(section)
        view = SectionView(section, section_key, collapse.is_expanded(section_key))
        sections.append(view)
        if not view.expanded:
            continue
        for subsection, roots in subsections.items():
            if subsection == DEFAULT_SUBSECTION:
                view.blocks.extend(_walk(roots, tree, answers))
                continue
            sub_key = collapse_key(section, subsection)
            sub_view = SubsectionView(subsection, sub_key, collapse.is_expanded(sub_key))
            if sub_view.expanded:
                sub_view.nodes = _walk(roots, tree, answers)
            view.blocks.append(sub_view)
    return sections
