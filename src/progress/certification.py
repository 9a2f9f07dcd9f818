"""Course completion hook.

When course progress reaches 100% the enrollment is flagged completed
exactly once and an eligibility signal is sent to the registered listeners
(the certificate service issues, numbers and hosts the certificate).
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

import structlog

from .errors import EnrollmentNotFoundError
from .store import EntityStore


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CertificateEligibility:
    """Signal emitted once per completed enrollment."""

    enrollment_id: UUID
    course_id: UUID
    student_id: UUID
    completed_at: datetime


EligibilityListener = Callable[[CertificateEligibility], Awaitable[None]]


class CertificationTrigger:
    """Marks enrollments completed and announces certificate eligibility."""

    def __init__(
        self,
        store: EntityStore,
        listeners: list[EligibilityListener] | None = None,
    ):
        self.store = store
        self._listeners: list[EligibilityListener] = list(listeners or [])

    def subscribe(self, listener: EligibilityListener) -> None:
        """Register a coroutine called for every newly completed enrollment."""
        self._listeners.append(listener)

    async def on_course_completed(self, enrollment_id: UUID) -> bool:
        """Flag the enrollment completed if it is not already.

        Returns:
            True if this call performed the transition, False if the
            enrollment was already completed (including by a concurrent
            request).

        Raises:
            EnrollmentNotFoundError: Unknown enrollment
        """
        enrollment = await self.store.get_enrollment_by_id(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFoundError(enrollment_id=enrollment_id)

        if enrollment.is_completed:
            return False

        enrollment.is_completed = True
        enrollment.completed_at = datetime.now(UTC)

        if not await self.store.complete_enrollment(enrollment):
            logger.info("course_completion_race", enrollment_id=str(enrollment_id))
            return False

        logger.info(
            "course_completed",
            enrollment_id=str(enrollment.id),
            course_id=str(enrollment.course_id),
            student_id=str(enrollment.student_id),
        )

        await self._emit(
            CertificateEligibility(
                enrollment_id=enrollment.id,
                course_id=enrollment.course_id,
                student_id=enrollment.student_id,
                completed_at=enrollment.completed_at,
            )
        )
        return True

    async def _emit(self, signal: CertificateEligibility) -> None:
        # The completion is already durable, a failing listener must not undo it
        for listener in self._listeners:
            try:
                await listener(signal)
            except Exception:
                logger.exception(
                    "certificate_eligibility_listener_failed",
                    enrollment_id=str(signal.enrollment_id),
                    listener=getattr(listener, "__name__", repr(listener)),
                )
