"""Quiz grading.

Scores a submitted answer set against the weighted answer key of a quiz
lesson. Grading is a pure computation: the tracker persists the result.

Rounding: the percentage is rounded half-up to an integer, so 2 of 3
equally weighted questions score 67 and 12.5% scores 13.
"""

from collections.abc import Mapping, Sequence
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

import structlog

from src.courses.models import QuizQuestion

from .errors import InvalidStateError, QuizNotConfiguredError
from .store import EntityStore


logger = structlog.get_logger(__name__)

MAX_SCORE = Decimal(100)


def score_answers(
    questions: Sequence[QuizQuestion],
    answers: Mapping[UUID, UUID],
    lesson_id: UUID | None = None,
) -> int:
    """Compute a 0-100 score from questions and the submitted answers.

    Args:
        questions: Questions of the lesson, with their answers
        answers: Mapping of question id to chosen answer id. Questions
            without an entry count as wrong.
        lesson_id: Lesson being graded (error context only)

    Returns:
        Integer percentage of points earned

    Raises:
        QuizNotConfiguredError: No questions
        InvalidStateError: Questions carry no points in total
    """
    if not questions:
        raise QuizNotConfiguredError(lesson_id=lesson_id)

    total = sum(q.points for q in questions)
    if total <= 0:
        raise InvalidStateError(
            "Questionario sem pontuacao configurada", lesson_id=lesson_id
        )

    earned = sum(q.points for q in questions if q.is_correct(answers.get(q.id)))
    score = (Decimal(earned) / Decimal(total) * MAX_SCORE).quantize(
        Decimal(1), rounding=ROUND_HALF_UP
    )
    return int(score)


class QuizGrader:
    """Grades quiz submissions using the lesson's stored answer key."""

    def __init__(self, store: EntityStore):
        self.store = store

    async def grade(self, lesson_id: UUID, answers: Mapping[UUID, UUID]) -> int:
        """Grade a submission for a quiz lesson.

        Raises:
            QuizNotConfiguredError: The lesson has no questions
            InvalidStateError: The questions carry no points
        """
        questions = await self.store.get_quiz_questions(lesson_id)
        score = score_answers(questions, answers, lesson_id=lesson_id)

        logger.debug(
            "quiz_graded",
            lesson_id=str(lesson_id),
            questions=len(questions),
            answered=len(answers),
            score=score,
        )
        return score
