"""Pydantic schemas for student progress tracking.

Request and response models for:
- Lesson completion and quiz submission
- Course enrollment
- Lesson and course progress queries
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .aggregator import CourseProgress
from .models import Enrollment, LessonProgress, LessonProgressStatus


# ==============================================================================
# Quiz Schemas
# ==============================================================================


class SubmitQuizAnswersRequest(BaseModel):
    """Quiz submission: chosen answer per question."""

    answers: dict[UUID, UUID] = Field(
        default_factory=dict,
        description="Question UUID -> chosen answer UUID (missing = wrong)",
    )


class QuizResultResponse(BaseModel):
    """Outcome of a graded quiz submission."""

    lesson_id: UUID
    enrollment_id: UUID
    score: int = Field(ge=0, le=100, description="0-100, rounded half-up")
    completed: bool = True


# ==============================================================================
# Lesson Progress Schemas
# ==============================================================================


class LessonProgressResponse(BaseModel):
    """Lesson progress snapshot."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lesson_id: UUID
    enrollment_id: UUID
    status: LessonProgressStatus
    is_completed: bool
    started_at: datetime | None = None
    completed_at: datetime | None = None
    quiz_score: int | None = None

    @classmethod
    def from_entity(cls, entity: LessonProgress) -> "LessonProgressResponse":
        """Create response from entity."""
        return cls(
            id=entity.id,
            lesson_id=entity.lesson_id,
            enrollment_id=entity.enrollment_id,
            status=entity.status,
            is_completed=entity.is_completed,
            started_at=entity.started_at,
            completed_at=entity.completed_at,
            quiz_score=entity.quiz_score,
        )


# ==============================================================================
# Enrollment Schemas
# ==============================================================================


class EnrollRequest(BaseModel):
    """Request to enroll in a course."""

    course_id: UUID = Field(..., description="Course UUID to enroll in")


class EnrollmentResponse(BaseModel):
    """Enrollment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    student_id: UUID
    enrolled_at: datetime
    is_completed: bool
    completed_at: datetime | None = None
    final_grade: int | None = None

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollmentResponse":
        """Create response from entity."""
        return cls(**entity.to_dict())


# ==============================================================================
# Course Progress Schemas
# ==============================================================================


class CourseProgressResponse(BaseModel):
    """Course completion of an enrollment."""

    course_id: UUID
    enrollment_id: UUID
    progress_percent: Decimal = Field(description="0-100, two decimal places")
    lessons_completed: int
    lessons_total: int
    is_completed: bool
    completed_at: datetime | None = None
    certificate_number: str | None = None

    @classmethod
    def build(
        cls,
        progress: CourseProgress,
        enrollment: Enrollment,
        certificate_number: str | None = None,
    ) -> "CourseProgressResponse":
        """Combine a computation result with the (refreshed) enrollment."""
        return cls(
            course_id=progress.course_id,
            enrollment_id=progress.enrollment_id,
            progress_percent=progress.percent,
            lessons_completed=progress.lessons_completed,
            lessons_total=progress.lessons_total,
            is_completed=enrollment.is_completed,
            completed_at=enrollment.completed_at,
            certificate_number=certificate_number,
        )
