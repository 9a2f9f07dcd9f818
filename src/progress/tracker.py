"""Lesson completion tracking.

Records and reads the completion state of a (lesson, enrollment) pair.
Non-quiz lessons are completed explicitly; quiz lessons are completed by a
graded submission, whatever the score. The first completion timestamp is
authoritative: completing again is a no-op, and losing a concurrent
completion race is recovered by returning the winner's row.
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from uuid import UUID

import structlog

from src.courses.models import Lesson

from .errors import (
    ConflictError,
    EnrollmentNotFoundError,
    InvalidOperationError,
    LessonNotFoundError,
    LessonProgressNotFoundError,
)
from .grading import QuizGrader
from .models import Enrollment, LessonProgress
from .store import EntityStore


logger = structlog.get_logger(__name__)


class LessonCompletionTracker:
    """Creates, completes and reads lesson progress rows."""

    def __init__(self, store: EntityStore, grader: QuizGrader):
        self.store = store
        self.grader = grader

    async def _resolve(
        self, lesson_id: UUID, enrollment_id: UUID
    ) -> tuple[Lesson, Enrollment]:
        """Load the lesson and enrollment and check they share a course."""
        lesson = await self.store.get_lesson_by_id(lesson_id)
        if lesson is None:
            raise LessonNotFoundError(lesson_id=lesson_id, enrollment_id=enrollment_id)

        enrollment = await self.store.get_enrollment_by_id(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFoundError(
                lesson_id=lesson_id, enrollment_id=enrollment_id
            )

        if enrollment.course_id != lesson.course_id:
            raise InvalidOperationError(
                "Aula nao pertence ao curso da inscricao",
                lesson_id=lesson_id,
                enrollment_id=enrollment_id,
                course_id=lesson.course_id,
            )

        return lesson, enrollment

    async def _complete(self, progress: LessonProgress) -> tuple[LessonProgress, bool]:
        """Flag a row completed now, or return the row of whoever won.

        Returns:
            The completed row, and False when another writer completed it first
        """
        progress.is_completed = True
        progress.completed_at = datetime.now(UTC)

        try:
            await self.store.complete_lesson_progress(progress)
        except ConflictError:
            logger.info(
                "lesson_completion_race",
                lesson_id=str(progress.lesson_id),
                enrollment_id=str(progress.enrollment_id),
            )
            stored = await self.store.get_lesson_progress(
                progress.lesson_id, progress.enrollment_id
            )
            if stored is None:
                raise LessonProgressNotFoundError(
                    lesson_id=progress.lesson_id,
                    enrollment_id=progress.enrollment_id,
                ) from None
            return stored, False

        logger.info(
            "lesson_completed",
            lesson_id=str(progress.lesson_id),
            enrollment_id=str(progress.enrollment_id),
        )
        return progress, True

    async def mark_completed(
        self, lesson_id: UUID, enrollment_id: UUID
    ) -> LessonProgress:
        """Mark a non-quiz lesson completed (idempotent).

        Raises:
            LessonNotFoundError: Unknown lesson
            EnrollmentNotFoundError: Unknown enrollment
            InvalidOperationError: Quiz lesson, or lesson of another course
        """
        lesson, _ = await self._resolve(lesson_id, enrollment_id)
        if lesson.is_quiz:
            raise InvalidOperationError(
                "Aulas de questionario sao concluidas pelo envio de respostas",
                lesson_id=lesson_id,
                enrollment_id=enrollment_id,
            )

        progress = await self.store.get_or_create_lesson_progress(
            lesson_id, enrollment_id
        )
        if progress.is_completed:
            logger.debug(
                "lesson_already_completed",
                lesson_id=str(lesson_id),
                enrollment_id=str(enrollment_id),
            )
            return progress

        progress, _ = await self._complete(progress)
        return progress

    async def submit_quiz_answers(
        self,
        lesson_id: UUID,
        enrollment_id: UUID,
        answers: Mapping[UUID, UUID],
    ) -> int:
        """Grade a quiz submission, store the score and complete the lesson.

        Nothing is written unless grading succeeds. The first submission
        completes the row and stores the score in one write, so a failing
        write leaves the lesson incomplete. Later submissions overwrite the
        score only.

        Returns:
            Score 0-100

        Raises:
            LessonNotFoundError: Unknown lesson
            EnrollmentNotFoundError: Unknown enrollment
            InvalidOperationError: Not a quiz lesson, or lesson of another course
            QuizNotConfiguredError: The quiz has no questions
            InvalidStateError: The quiz questions carry no points
        """
        lesson, _ = await self._resolve(lesson_id, enrollment_id)
        if not lesson.is_quiz:
            raise InvalidOperationError(
                "Aula nao e um questionario",
                lesson_id=lesson_id,
                enrollment_id=enrollment_id,
            )

        score = await self.grader.grade(lesson_id, answers)

        progress = await self.store.get_or_create_lesson_progress(
            lesson_id, enrollment_id
        )
        progress.quiz_score = score
        applied = False
        if not progress.is_completed:
            progress, applied = await self._complete(progress)

        # Resubmission, or a lost completion race: the score is written alone
        if not applied:
            progress.quiz_score = score
            await self.store.update_quiz_score(progress)

        logger.info(
            "quiz_submitted",
            lesson_id=str(lesson_id),
            enrollment_id=str(enrollment_id),
            score=score,
        )
        return score

    async def is_completed(self, lesson_id: UUID, enrollment_id: UUID) -> bool:
        """True only if a progress row exists and is completed."""
        progress = await self.store.get_lesson_progress(lesson_id, enrollment_id)
        return progress is not None and progress.is_completed

    async def get_progress(
        self, lesson_id: UUID, enrollment_id: UUID
    ) -> LessonProgress:
        """Get the progress snapshot of a started lesson.

        Raises:
            LessonProgressNotFoundError: The lesson was never started
        """
        progress = await self.store.get_lesson_progress(lesson_id, enrollment_id)
        if progress is None:
            raise LessonProgressNotFoundError(
                lesson_id=lesson_id, enrollment_id=enrollment_id
            )
        return progress
