"""Tests for the widget dispatch and the form layout."""

from __future__ import annotations

import importlib

from lib.questions import ChoiceOption

YES_NO = (ChoiceOption("Yes", "yes"), ChoiceOption("No", "no"))


def test_render_dispatches_by_type(question_factory) -> None:
    renderer = importlib.import_module("lib.form_renderer")
    answer_state = importlib.import_module("lib.answer_state")

    answers = answer_state.AnswerState()
    kinds = {
        "text": "text_input",
        "textarea": "text_area",
        "radio": "radio",
        "select": "selectbox",
        "checkbox": "checkbox_group",
        "file": "file_uploader",
        "file-photo": "image_uploader",
    }
    for index, (question_type, kind) in enumerate(kinds.items()):
        widget = renderer.render(question_factory(index, question_type, options=YES_NO), answers)
        assert widget.kind == kind


def test_unknown_type_renders_nothing(question_factory) -> None:
    renderer = importlib.import_module("lib.form_renderer")
    answer_state = importlib.import_module("lib.answer_state")

    assert renderer.render(question_factory(1, "signature"), answer_state.AnswerState()) is None


def test_bound_values_follow_answers(question_factory) -> None:
    renderer = importlib.import_module("lib.form_renderer")
    answer_state = importlib.import_module("lib.answer_state")

    answers = answer_state.AnswerState()
    radio = question_factory(1, "radio", options=YES_NO)
    select = question_factory(2, "select", options=YES_NO)
    checkbox = question_factory(3, "checkbox", options=YES_NO)
    text = question_factory(4, "text")

    assert renderer.render(radio, answers).value is None
    assert renderer.render(select, answers).value == ""
    assert renderer.render(checkbox, answers).value == ()
    assert renderer.render(text, answers).value == ""

    answers.set_text(1, "no")
    answers.set_text(2, "maybe")
    answers.check_choice(3, "yes")
    answers.check_choice(3, "no")
    answers.set_text(4, "hello")

    assert renderer.render(radio, answers).value == "no"
    assert renderer.render(select, answers).value == ""
    assert renderer.render(checkbox, answers).value == ("no", "yes")
    assert renderer.render(text, answers).value == "hello"
    assert renderer.render(radio, answers).options == (("Yes", "yes"), ("No", "no"))


def test_file_and_image_values(question_factory) -> None:
    renderer = importlib.import_module("lib.form_renderer")
    answer_state = importlib.import_module("lib.answer_state")

    answers = answer_state.AnswerState()
    file_question = question_factory(1, "file")
    image_question = question_factory(2, "file-photo")

    assert renderer.render(file_question, answers).value is None
    assert renderer.render(image_question, answers).value is None

    answers.set_file(1, "cv.pdf", b"%PDF")
    answers.set_file(2, "me.png", b"\x89PNG")
    assert renderer.render(file_question, answers).value == "cv.pdf"
    preview = renderer.render(image_question, answers).value
    assert preview.is_local and preview.content == b"\x89PNG"

    answers.set(1, answer_state.RemoteFileAnswer("files/cv.pdf"))
    answers.set(2, answer_state.RemoteFileAnswer("files/me.png"))
    assert renderer.render(file_question, answers).value == "files/cv.pdf"
    preview = renderer.render(image_question, answers).value
    assert not preview.is_local
    assert preview.path == "files/me.png"
    assert preview.name == "me.png"


def test_render_is_idempotent(question_factory) -> None:
    renderer = importlib.import_module("lib.form_renderer")
    answer_state = importlib.import_module("lib.answer_state")

    answers = answer_state.AnswerState()
    answers.check_choice(1, "yes")
    question = question_factory(1, "checkbox", options=YES_NO)

    assert renderer.render(question, answers) == renderer.render(question, answers)
    assert answers.get(1) == answer_state.ChoiceSetAnswer(frozenset({"yes"}))


def _form(question_factory):
    return [
        question_factory(10, "radio", section="Company", options=YES_NO),
        question_factory(11, "text", section="Other", subsection="Elsewhere", parent_question_id=10, condition_value="yes"),
        question_factory(12, "text", section="Company", subsection="Contacts"),
        question_factory(13, "text", parent_question_id=99, condition_value="yes"),
        question_factory(14, "signature", section="Company"),
    ]


def _expanded(grouping, questions):
    collapse = grouping.CollapseState()
    collapse.initialise(grouping.group_questions(questions))
    return collapse


def test_layout_nests_children_under_parent(question_factory) -> None:
    renderer = importlib.import_module("lib.form_renderer")
    answer_state = importlib.import_module("lib.answer_state")
    grouping = importlib.import_module("lib.grouping")

    questions = _form(question_factory)
    answers = answer_state.AnswerState()
    collapse = _expanded(grouping, questions)

    sections = renderer.layout_form(questions, answers, collapse)
    assert [section.name for section in sections] == ["Company"]
    company = sections[0]
    assert [(b.question.id, b.depth) for b in company.blocks if isinstance(b, renderer.QuestionNode)] == [(10, 0)]
    subsections = [b for b in company.blocks if isinstance(b, renderer.SubsectionView)]
    assert [(s.name, [n.question.id for n in s.nodes]) for s in subsections] == [("Contacts", [12])]

    answers.set_text(10, "yes")
    company = renderer.layout_form(questions, answers, collapse)[0]
    nodes = [b for b in company.blocks if isinstance(b, renderer.QuestionNode)]
    assert [(n.question.id, n.depth) for n in nodes] == [(10, 0), (11, 1)]


def test_layout_omits_orphans_and_unknown_types(question_factory) -> None:
    renderer = importlib.import_module("lib.form_renderer")
    answer_state = importlib.import_module("lib.answer_state")
    grouping = importlib.import_module("lib.grouping")

    questions = _form(question_factory)
    answers = answer_state.AnswerState()
    answers.set_text(99, "yes")

    sections = renderer.layout_form(questions, answers, _expanded(grouping, questions))

    emitted = set()
    for section in sections:
        for block in section.blocks:
            nodes = block.nodes if isinstance(block, renderer.SubsectionView) else [block]
            emitted.update(node.question.id for node in nodes)
    assert 13 not in emitted
    assert 14 not in emitted


def test_collapsed_groups_keep_header_but_no_questions(question_factory) -> None:
    renderer = importlib.import_module("lib.form_renderer")
    answer_state = importlib.import_module("lib.answer_state")
    grouping = importlib.import_module("lib.grouping")

    questions = _form(question_factory)
    answers = answer_state.AnswerState()
    collapse = _expanded(grouping, questions)

    collapse.toggle(grouping.collapse_key("Company", "Contacts"))
    company = renderer.layout_form(questions, answers, collapse)[0]
    contacts = [b for b in company.blocks if isinstance(b, renderer.SubsectionView)][0]
    assert company.expanded
    assert not contacts.expanded
    assert contacts.nodes == []

    collapse.toggle("Company")
    company = renderer.layout_form(questions, answers, collapse)[0]
    assert not company.expanded
    assert company.blocks == []
