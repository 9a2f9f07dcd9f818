"""Course progress aggregation.

Course progress is the share of the course's lessons the enrollment has
completed. Every lesson weighs the same, quiz or not. The percentage is a
Decimal rounded half-up to two places (2 of 3 lessons is 66.67); the
completion hook fires on the integer condition completed == total, never on
the rounded value.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

import structlog

from .certification import CertificationTrigger
from .errors import EnrollmentNotFoundError, InvalidOperationError
from .store import EntityStore


logger = structlog.get_logger(__name__)

PERCENT_QUANTUM = Decimal("0.01")


def progress_percent(completed: int, total: int) -> Decimal:
    """Percentage of completed lessons, 0 for a course without lessons."""
    if total <= 0:
        return Decimal(0).quantize(PERCENT_QUANTUM)
    return (Decimal(completed) / Decimal(total) * 100).quantize(
        PERCENT_QUANTUM, rounding=ROUND_HALF_UP
    )


@dataclass(frozen=True)
class CourseProgress:
    """Result of a course progress computation."""

    course_id: UUID
    enrollment_id: UUID
    lessons_completed: int
    lessons_total: int
    percent: Decimal

    @property
    def is_complete(self) -> bool:
        return self.lessons_total > 0 and self.lessons_completed >= self.lessons_total


class CourseProgressAggregator:
    """Computes course completion and fires the certification hook."""

    def __init__(self, store: EntityStore, certification: CertificationTrigger):
        self.store = store
        self.certification = certification

    async def compute(self, course_id: UUID, enrollment_id: UUID) -> CourseProgress:
        """Compute the course progress of an enrollment.

        Raises:
            EnrollmentNotFoundError: Unknown enrollment
            InvalidOperationError: The enrollment belongs to another course
        """
        enrollment = await self.store.get_enrollment_by_id(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFoundError(
                enrollment_id=enrollment_id, course_id=course_id
            )
        if enrollment.course_id != course_id:
            raise InvalidOperationError(
                "Inscricao pertence a outro curso",
                enrollment_id=enrollment_id,
                course_id=course_id,
            )

        lessons = await self.store.get_lessons_by_course(course_id)
        lesson_ids = {lesson.id for lesson in lessons}
        progress_rows = await self.store.list_lesson_progress(enrollment_id)
        completed_ids = {
            p.lesson_id
            for p in progress_rows
            if p.is_completed and p.lesson_id in lesson_ids
        }

        result = CourseProgress(
            course_id=course_id,
            enrollment_id=enrollment_id,
            lessons_completed=len(completed_ids),
            lessons_total=len(lesson_ids),
            percent=progress_percent(len(completed_ids), len(lesson_ids)),
        )

        if result.is_complete and not enrollment.is_completed:
            await self.certification.on_course_completed(enrollment_id)

        return result

    async def compute_percent(self, course_id: UUID, enrollment_id: UUID) -> Decimal:
        """Course progress percentage (0-100)."""
        return (await self.compute(course_id, enrollment_id)).percent
