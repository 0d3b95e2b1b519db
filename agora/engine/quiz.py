"""
agora.engine.quiz — Quiz Scoring Pipeline
==========================================

Pure calculation — no database I/O.

A quiz is a list of question dicts::

    {
        "text": "What does the proposal fund?",
        "explanation": "Section 2 allocates the budget to...",
        "options": [
            {"id": "0.0", "text": "Parks", "is_correct": True},
            {"id": "0.1", "text": "Roads", "is_correct": False},
        ],
    }

Scores are integer percentages rounded half-up.  Missing, duplicate or
out-of-range answers never raise; they simply earn no credit.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from agora.errors import InvalidRequest

__all__ = [
    "QuestionFeedback",
    "QuizAnswer",
    "build_feedback",
    "is_passing",
    "normalize_questions",
    "parse_answers",
    "sanitize_questions",
    "score_answers",
]


@dataclass(frozen=True, slots=True)
class QuizAnswer:
    """One selected option for the question at ``question_index``."""

    question_index: int
    selected_option_id: str


@dataclass(frozen=True, slots=True)
class QuestionFeedback:
    """Post-attempt reveal for a single question."""

    question_index: int
    text: str
    selected_option_id: str | None
    correct_option_id: str
    is_correct: bool
    explanation: str


# ---------------------------------------------------------------------------
# Authoring
# ---------------------------------------------------------------------------
def normalize_questions(raw: Sequence[Mapping]) -> list[dict]:
    """Validate author-supplied questions and assign missing option ids.

    Each question needs text, an explanation and at least two options,
    exactly one of which is correct.  Option ids default to
    ``"<question>.<option>"`` and must be unique within a question.
    """
    if not raw:
        raise InvalidRequest("A quiz needs at least one question")

    questions: list[dict] = []
    for q_index, question in enumerate(raw):
        text = str(question.get("text", "")).strip()
        if not text:
            raise InvalidRequest(f"Question {q_index} has no text")
        options_raw = question.get("options") or []
        if len(options_raw) < 2:
            raise InvalidRequest(f"Question {q_index} needs at least two options")

        options: list[dict] = []
        seen_ids: set[str] = set()
        for o_index, option in enumerate(options_raw):
            option_id = str(option.get("id") or f"{q_index}.{o_index}")
            if option_id in seen_ids:
                raise InvalidRequest(
                    f"Question {q_index} repeats option id {option_id!r}"
                )
            seen_ids.add(option_id)
            options.append({
                "id": option_id,
                "text": str(option.get("text", "")).strip(),
                "is_correct": bool(option.get("is_correct", False)),
            })

        correct = sum(1 for o in options if o["is_correct"])
        if correct != 1:
            raise InvalidRequest(
                f"Question {q_index} must have exactly one correct option, has {correct}"
            )

        questions.append({
            "text": text,
            "explanation": str(question.get("explanation", "")).strip(),
            "options": options,
        })
    return questions


def sanitize_questions(questions: Sequence[Mapping]) -> list[dict]:
    """Strip correctness flags and explanations for display before an attempt."""
    return [
        {
            "text": q["text"],
            "options": [{"id": o["id"], "text": o["text"]} for o in q["options"]],
        }
        for q in questions
    ]


# ---------------------------------------------------------------------------
# Attempts
# ---------------------------------------------------------------------------
def parse_answers(raw: Iterable[Mapping]) -> list[QuizAnswer]:
    """Convert ``{"question_index", "selected_option_id"}`` dicts to answers.

    Entries that cannot be interpreted are dropped; they would score as
    incorrect anyway.
    """
    answers: list[QuizAnswer] = []
    for item in raw:
        try:
            index = int(item["question_index"])
            option_id = str(item["selected_option_id"])
        except (KeyError, TypeError, ValueError):
            continue
        answers.append(QuizAnswer(question_index=index, selected_option_id=option_id))
    return answers


def _first_answer_per_question(answers: Iterable[QuizAnswer]) -> dict[int, str]:
    chosen: dict[int, str] = {}
    for answer in answers:
        chosen.setdefault(answer.question_index, answer.selected_option_id)
    return chosen


def _correct_option_id(question: Mapping) -> str:
    return next(o["id"] for o in question["options"] if o["is_correct"])


def score_answers(questions: Sequence[Mapping], answers: Iterable[QuizAnswer]) -> int:
    """Percentage of questions answered correctly, rounded half-up.

    Only the first answer given for a question index counts.
    """
    total = len(questions)
    if total == 0:
        return 0

    chosen = _first_answer_per_question(answers)
    correct = 0
    for index, option_id in chosen.items():
        if not 0 <= index < total:
            continue
        option = next(
            (o for o in questions[index]["options"] if o["id"] == option_id), None
        )
        if option is not None and option["is_correct"]:
            correct += 1

    percentage = Decimal(correct) * 100 / Decimal(total)
    return int(percentage.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_passing(score: int, passing_score: int) -> bool:
    return score >= passing_score


def build_feedback(
    questions: Sequence[Mapping], answers: Iterable[QuizAnswer]
) -> list[QuestionFeedback]:
    """Reveal the correct option and explanation for every question."""
    chosen = _first_answer_per_question(answers)
    feedback: list[QuestionFeedback] = []
    for index, question in enumerate(questions):
        correct_id = _correct_option_id(question)
        selected = chosen.get(index)
        feedback.append(QuestionFeedback(
            question_index=index,
            text=question["text"],
            selected_option_id=selected,
            correct_option_id=correct_id,
            is_correct=selected == correct_id,
            explanation=question.get("explanation", ""),
        ))
    return feedback
