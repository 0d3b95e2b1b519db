"""
agora.api.routes.quizzes — Quiz authoring & attempts
======================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from agora.api.deps import get_current_account_id, get_engine
from agora.constants import DEFAULT_PASSING_SCORE
from agora.engine.quiz import QuizAnswer
from agora.services import quiz_service

router = APIRouter(tags=["quizzes"])


class OptionIn(BaseModel):
    id: str | None = None
    text: str
    is_correct: bool = False


class QuestionIn(BaseModel):
    text: str
    explanation: str = ""
    options: list[OptionIn]


class QuizCreate(BaseModel):
    title: str
    description: str = ""
    questions: list[QuestionIn]
    passing_score: int = Field(DEFAULT_PASSING_SCORE, ge=1, le=100)


class AnswerIn(BaseModel):
    question_index: int
    selected_option_id: str


class AttemptCreate(BaseModel):
    answers: list[AnswerIn]


@router.post("/proposals/{proposal_id}/quiz", status_code=201)
def create_quiz(
    proposal_id: int,
    body: QuizCreate,
    account_id: int = Depends(get_current_account_id),
    engine=Depends(get_engine),
):
    quiz = quiz_service.create_quiz(
        engine,
        proposal_id=proposal_id,
        author_id=account_id,
        title=body.title,
        description=body.description,
        questions=[q.model_dump() for q in body.questions],
        passing_score=body.passing_score,
    )
    return quiz_service.get_quiz(engine, quiz.id)


@router.get("/quizzes/{quiz_id}")
def get_quiz(quiz_id: int, engine=Depends(get_engine)):
    return quiz_service.get_quiz(engine, quiz_id)


@router.post("/quizzes/{quiz_id}/attempts")
def submit_attempt(
    quiz_id: int,
    body: AttemptCreate,
    account_id: int = Depends(get_current_account_id),
    engine=Depends(get_engine),
):
    result = quiz_service.submit_quiz_attempt(
        engine,
        quiz_id=quiz_id,
        account_id=account_id,
        answers=[QuizAnswer(a.question_index, a.selected_option_id) for a in body.answers],
    )
    return {
        "quiz_id": result.quiz_id,
        "score": result.score,
        "passing_score": result.passing_score,
        "passed": result.passed,
        "first_pass": result.first_pass,
        "feedback": [
            {
                "question_index": f.question_index,
                "selected_option_id": f.selected_option_id,
                "correct_option_id": f.correct_option_id,
                "is_correct": f.is_correct,
                "explanation": f.explanation,
            }
            for f in result.feedback
        ],
    }
