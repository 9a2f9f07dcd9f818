"""Student progress service layer.

Entry point used by the HTTP layer. Wires the entity store into:
- Quiz grading (grading.QuizGrader)
- Lesson completion tracking (tracker.LessonCompletionTracker)
- Course progress aggregation (aggregator.CourseProgressAggregator)
- The course completion hook (certification.CertificationTrigger)

and adds course enrollment on top.
"""

from collections.abc import Mapping
from uuid import UUID

import structlog

from .aggregator import CourseProgress, CourseProgressAggregator
from .certification import CertificationTrigger, EligibilityListener
from .errors import EnrollmentNotFoundError
from .grading import QuizGrader
from .models import Certificate, Enrollment, LessonProgress
from .store import EntityStore
from .tracker import LessonCompletionTracker


logger = structlog.get_logger(__name__)


class ProgressService:
    """Service for student progress tracking."""

    def __init__(
        self,
        store: EntityStore,
        recompute_on_completion: bool = True,
        listeners: list[EligibilityListener] | None = None,
    ):
        """Initialize with an entity store.

        Args:
            store: Entity store implementation
            recompute_on_completion: Refresh the course progress (and so the
                enrollment completion flag) after each lesson completion
            listeners: Certificate eligibility listeners
        """
        self.store = store
        self.recompute_on_completion = recompute_on_completion
        self.grader = QuizGrader(store)
        self.certification = CertificationTrigger(store, listeners)
        self.tracker = LessonCompletionTracker(store, self.grader)
        self.aggregator = CourseProgressAggregator(store, self.certification)

    # ==========================================================================
    # Enrollment Operations
    # ==========================================================================

    async def enroll_student(self, course_id: UUID, student_id: UUID) -> Enrollment:
        """Enroll a student in a course.

        Raises:
            AlreadyEnrolledError: The student is already enrolled
        """
        enrollment = Enrollment(course_id=course_id, student_id=student_id)
        await self.store.create_enrollment(enrollment)

        logger.info(
            "student_enrolled",
            enrollment_id=str(enrollment.id),
            course_id=str(course_id),
            student_id=str(student_id),
        )
        return enrollment

    async def get_enrollment(
        self, course_id: UUID, student_id: UUID
    ) -> Enrollment | None:
        """Get the enrollment of a student in a course."""
        return await self.store.get_enrollment(course_id, student_id)

    async def require_enrollment(self, course_id: UUID, student_id: UUID) -> Enrollment:
        """Get the enrollment of a student in a course or fail.

        Raises:
            EnrollmentNotFoundError: The student is not enrolled
        """
        enrollment = await self.get_enrollment(course_id, student_id)
        if enrollment is None:
            raise EnrollmentNotFoundError(
                "Aluno nao inscrito no curso", course_id=course_id
            )
        return enrollment

    async def get_certificate(self, enrollment_id: UUID) -> Certificate | None:
        """Get the certificate issued for an enrollment, if any."""
        return await self.store.get_certificate(enrollment_id)

    def on_certificate_eligible(self, listener: EligibilityListener) -> None:
        """Register a listener for newly completed enrollments."""
        self.certification.subscribe(listener)

    # ==========================================================================
    # Lesson Operations
    # ==========================================================================

    async def mark_lesson_completed(
        self, lesson_id: UUID, enrollment_id: UUID
    ) -> LessonProgress:
        """Mark a non-quiz lesson completed."""
        progress = await self.tracker.mark_completed(lesson_id, enrollment_id)
        await self._refresh_course_progress(enrollment_id)
        return progress

    async def submit_quiz_answers(
        self,
        lesson_id: UUID,
        enrollment_id: UUID,
        answers: Mapping[UUID, UUID],
    ) -> int:
        """Grade and store a quiz submission, returning the score."""
        score = await self.tracker.submit_quiz_answers(lesson_id, enrollment_id, answers)
        await self._refresh_course_progress(enrollment_id)
        return score

    async def get_lesson_progress(
        self, lesson_id: UUID, enrollment_id: UUID
    ) -> LessonProgress:
        """Get the progress snapshot of a started lesson."""
        return await self.tracker.get_progress(lesson_id, enrollment_id)

    async def is_lesson_completed(self, lesson_id: UUID, enrollment_id: UUID) -> bool:
        """Check whether a lesson is completed for an enrollment."""
        return await self.tracker.is_completed(lesson_id, enrollment_id)

    # ==========================================================================
    # Course Progress
    # ==========================================================================

    async def get_course_progress(
        self, course_id: UUID, enrollment_id: UUID
    ) -> CourseProgress:
        """Compute course progress (fires the completion hook at 100%)."""
        return await self.aggregator.compute(course_id, enrollment_id)

    async def _refresh_course_progress(self, enrollment_id: UUID) -> None:
        if not self.recompute_on_completion:
            return

        enrollment = await self.store.get_enrollment_by_id(enrollment_id)
        if enrollment is None or enrollment.is_completed:
            return
        await self.aggregator.compute(enrollment.course_id, enrollment_id)
