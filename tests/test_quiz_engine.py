"""
tests/test_quiz_engine.py — Pure quiz scoring tests
=====================================================
No database needed.
"""

from __future__ import annotations

import pytest

from agora.engine.quiz import (
    QuizAnswer,
    build_feedback,
    is_passing,
    normalize_questions,
    parse_answers,
    sanitize_questions,
    score_answers,
)
from agora.errors import InvalidRequest
from conftest import QUIZ_QUESTIONS


@pytest.fixture
def questions():
    return normalize_questions(QUIZ_QUESTIONS)


def _three_questions():
    return normalize_questions([
        {"text": f"Q{i}", "options": [
            {"text": "right", "is_correct": True},
            {"text": "wrong"},
        ]}
        for i in range(3)
    ])


class TestNormalizeQuestions:
    def test_assigns_option_ids(self, questions):
        assert [o["id"] for o in questions[0]["options"]] == ["0.0", "0.1"]
        assert [o["id"] for o in questions[1]["options"]] == ["1.0", "1.1", "1.2"]

    def test_keeps_explicit_ids(self):
        qs = normalize_questions([{"text": "Q", "options": [
            {"id": "a", "text": "A", "is_correct": True},
            {"id": "b", "text": "B"},
        ]}])
        assert [o["id"] for o in qs[0]["options"]] == ["a", "b"]

    def test_requires_a_question(self):
        with pytest.raises(InvalidRequest):
            normalize_questions([])

    def test_requires_two_options(self):
        with pytest.raises(InvalidRequest):
            normalize_questions([{"text": "Q", "options": [{"text": "A", "is_correct": True}]}])

    @pytest.mark.parametrize("flags", [(False, False), (True, True)])
    def test_requires_exactly_one_correct(self, flags):
        with pytest.raises(InvalidRequest):
            normalize_questions([{"text": "Q", "options": [
                {"text": "A", "is_correct": flags[0]},
                {"text": "B", "is_correct": flags[1]},
            ]}])

    def test_rejects_duplicate_option_ids(self):
        with pytest.raises(InvalidRequest):
            normalize_questions([{"text": "Q", "options": [
                {"id": "x", "text": "A", "is_correct": True},
                {"id": "x", "text": "B"},
            ]}])

    def test_requires_text(self):
        with pytest.raises(InvalidRequest):
            normalize_questions([{"text": " ", "options": [
                {"text": "A", "is_correct": True}, {"text": "B"},
            ]}])


class TestScoreAnswers:
    def test_all_correct(self, questions):
        answers = [QuizAnswer(0, "0.0"), QuizAnswer(1, "1.1")]
        assert score_answers(questions, answers) == 100

    def test_half_correct(self, questions):
        answers = [QuizAnswer(0, "0.0"), QuizAnswer(1, "1.0")]
        assert score_answers(questions, answers) == 50

    def test_missing_answers_count_as_wrong(self, questions):
        assert score_answers(questions, [QuizAnswer(0, "0.0")]) == 50
        assert score_answers(questions, []) == 0

    def test_out_of_range_and_unknown_option_ignored(self, questions):
        answers = [QuizAnswer(5, "5.0"), QuizAnswer(-1, "0.0"), QuizAnswer(1, "nope")]
        assert score_answers(questions, answers) == 0

    def test_first_answer_per_question_wins(self, questions):
        answers = [QuizAnswer(0, "0.1"), QuizAnswer(0, "0.0"), QuizAnswer(1, "1.1")]
        assert score_answers(questions, answers) == 50

    def test_rounds_half_up(self):
        qs = _three_questions()
        # 2/3 = 66.67 -> 67, 1/3 = 33.33 -> 33
        assert score_answers(qs, [QuizAnswer(0, "0.0"), QuizAnswer(1, "1.0")]) == 67
        assert score_answers(qs, [QuizAnswer(0, "0.0")]) == 33

    def test_exact_half_rounds_up(self):
        qs = normalize_questions([
            {"text": f"Q{i}", "options": [{"text": "r", "is_correct": True}, {"text": "w"}]}
            for i in range(8)
        ])
        # 1/8 = 12.5 -> 13
        assert score_answers(qs, [QuizAnswer(0, "0.0")]) == 13

    def test_empty_quiz_scores_zero(self):
        assert score_answers([], [QuizAnswer(0, "0.0")]) == 0


class TestPassingAndDisplay:
    def test_is_passing_inclusive(self):
        assert is_passing(70, 70)
        assert not is_passing(69, 70)

    def test_sanitize_hides_answers(self, questions):
        shown = sanitize_questions(questions)
        for q in shown:
            assert "explanation" not in q
            for option in q["options"]:
                assert set(option) == {"id", "text"}

    def test_parse_answers_drops_garbage(self):
        parsed = parse_answers([
            {"question_index": "1", "selected_option_id": "1.1"},
            {"question_index": "x", "selected_option_id": "1.1"},
            {"selected_option_id": "0.0"},
        ])
        assert parsed == [QuizAnswer(1, "1.1")]

    def test_feedback_reveals_correct_option(self, questions):
        feedback = build_feedback(questions, [QuizAnswer(1, "1.0")])
        assert feedback[0].selected_option_id is None
        assert feedback[0].is_correct is False
        assert feedback[1].correct_option_id == "1.1"
        assert feedback[1].explanation == "Next fiscal year."
