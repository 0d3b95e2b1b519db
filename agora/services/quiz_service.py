"""
agora.services.quiz_service — Competence Quizzes
=================================================

One quiz per proposal, written by the proposal's author.  Passing it makes
an account *competent* for that proposal: it may vote directly, receive
delegations and comment for free.  The first pass also earns 1 Acent.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from agora.constants import DEFAULT_PASSING_SCORE, QUIZ_PASS_REWARD
from agora.database.models import (
    Currency,
    EntityType,
    PassedQuiz,
    Proposal,
    Quiz,
    TransactionKind,
)
from agora.engine.quiz import (
    QuestionFeedback,
    QuizAnswer,
    build_feedback,
    is_passing,
    normalize_questions,
    parse_answers,
    sanitize_questions,
    score_answers,
)
from agora.errors import InvalidRequest, NotFound, QuizAlreadyExists, Unauthorized
from agora.services.ledger_service import get_account, make_intent, record_transaction

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class QuizAttemptResult:
    quiz_id: int
    account_id: int
    score: int
    passing_score: int
    passed: bool
    first_pass: bool
    reward_transaction_id: int | None = None
    feedback: list[QuestionFeedback] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Lookups shared with the other services
# ---------------------------------------------------------------------------
def get_proposal_quiz(session: Session, proposal_id: int) -> Quiz | None:
    return session.scalar(select(Quiz).where(Quiz.proposal_id == proposal_id))


def has_passed_quiz(session: Session, account_id: int, quiz_id: int) -> bool:
    return session.get(PassedQuiz, (account_id, quiz_id)) is not None


def is_competent(session: Session, account_id: int, proposal_id: int) -> bool:
    """Passed the proposal's quiz.  False when the proposal has no quiz."""
    quiz = get_proposal_quiz(session, proposal_id)
    return quiz is not None and has_passed_quiz(session, account_id, quiz.id)


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------
def create_quiz(
    engine: Engine,
    *,
    proposal_id: int,
    author_id: int,
    title: str,
    questions: Sequence[Mapping],
    description: str = "",
    passing_score: int = DEFAULT_PASSING_SCORE,
) -> Quiz:
    """Attach a quiz to a proposal.  Only the proposal author may do this."""
    title = title.strip()
    if not title:
        raise InvalidRequest("Quiz title is required")
    if not 1 <= passing_score <= 100:
        raise InvalidRequest("passing_score must be between 1 and 100")
    normalized = normalize_questions(questions)

    with Session(engine, expire_on_commit=False) as session:
        proposal = session.get(Proposal, proposal_id)
        if proposal is None:
            raise NotFound(f"Proposal {proposal_id} not found")
        if proposal.author_id != author_id:
            raise Unauthorized("Only the proposal author can create its quiz")

        quiz = Quiz(
            proposal_id=proposal_id,
            title=title,
            description=description.strip(),
            questions=normalized,
            passing_score=passing_score,
            created_by=author_id,
        )
        try:
            with session.begin_nested():
                session.add(quiz)
                session.flush()
        except IntegrityError:
            raise QuizAlreadyExists(f"Proposal {proposal_id} already has a quiz") from None

        session.commit()
        session.refresh(quiz)
        session.expunge(quiz)

    logger.info(
        "Quiz %d created for proposal %d (%d questions)",
        quiz.id, proposal_id, len(normalized),
    )
    return quiz


def get_quiz(engine: Engine, quiz_id: int, *, reveal_answers: bool = False) -> dict:
    """Quiz as a plain dict; correctness and explanations hidden by default."""
    with Session(engine) as session:
        quiz = session.get(Quiz, quiz_id)
        if quiz is None:
            raise NotFound(f"Quiz {quiz_id} not found")
        return {
            "id": quiz.id,
            "proposal_id": quiz.proposal_id,
            "title": quiz.title,
            "description": quiz.description,
            "passing_score": quiz.passing_score,
            "questions": (
                [dict(q) for q in quiz.questions] if reveal_answers
                else sanitize_questions(quiz.questions)
            ),
        }


def submit_quiz_attempt(
    engine: Engine,
    *,
    quiz_id: int,
    account_id: int,
    answers: Iterable[QuizAnswer | Mapping],
) -> QuizAttemptResult:
    """Score an attempt.  The first passing attempt records competence and
    credits ``+1`` Acent; later passes change nothing.
    """
    answers = list(answers)
    if all(isinstance(a, QuizAnswer) for a in answers):
        parsed = answers
    else:
        parsed = parse_answers(answers)

    with Session(engine) as session:
        get_account(session, account_id, for_update=True)
        quiz = session.get(Quiz, quiz_id)
        if quiz is None:
            raise NotFound(f"Quiz {quiz_id} not found")

        score = score_answers(quiz.questions, parsed)
        passed = is_passing(score, quiz.passing_score)
        result = QuizAttemptResult(
            quiz_id=quiz.id,
            account_id=account_id,
            score=score,
            passing_score=quiz.passing_score,
            passed=passed,
            first_pass=False,
            feedback=build_feedback(quiz.questions, parsed),
        )

        if passed and not has_passed_quiz(session, account_id, quiz.id):
            try:
                with session.begin_nested():
                    session.add(PassedQuiz(account_id=account_id, quiz_id=quiz.id, score=score))
                    session.flush()
            except IntegrityError:
                # A concurrent attempt recorded the pass first.
                session.commit()
                return result

            txn, created = record_transaction(session, make_intent(
                account_id,
                TransactionKind.QUIZ_PASS,
                Currency.ACENT,
                QUIZ_PASS_REWARD,
                f"Passed quiz {quiz.id}",
                entity_type=EntityType.QUIZ,
                entity_id=quiz.id,
            ))
            result.first_pass = created
            result.reward_transaction_id = txn.id if created else None

        session.commit()

    logger.info(
        "Quiz %d attempt by account %d: %d%% (%s)",
        quiz_id, account_id, score, "pass" if passed else "fail",
    )
    return result


def list_passed_quizzes(engine: Engine, account_id: int) -> list[int]:
    with Session(engine) as session:
        return list(session.scalars(
            select(PassedQuiz.quiz_id)
            .where(PassedQuiz.account_id == account_id)
            .order_by(PassedQuiz.quiz_id)
        ).all())
