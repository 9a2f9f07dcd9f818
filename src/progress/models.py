"""Database models for student progress tracking.

Cassandra table definitions for:
- Enrollments: a student's membership in a course and its completion
- Lesson progress: completion and quiz score per (enrollment, lesson)
- Certificates: one per completed enrollment (issued externally)
- Lookup tables: enrollment by (course, student)

The (enrollment_id, lesson_id) pair is the primary key of lesson_progress,
so the store itself guarantees at most one progress row per pair.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from src.courses.models import ensure_utc_aware


class LessonProgressStatus(str, Enum):
    """Lesson progress status."""

    IN_PROGRESS = "in_progress"  # Row exists, not completed
    COMPLETED = "completed"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    id UUID PRIMARY KEY,
    course_id UUID,
    student_id UUID,
    enrolled_at TIMESTAMP,
    is_completed BOOLEAN,
    completed_at TIMESTAMP,
    final_grade INT
)
"""

# Lookup: enrollment of a student in a course
# Partitioned by course for "who is enrolled in this course?"
ENROLLMENTS_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_course (
    course_id UUID,
    student_id UUID,
    enrollment_id UUID,
    enrolled_at TIMESTAMP,
    PRIMARY KEY (course_id, student_id)
)
"""

LESSON_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lesson_progress (
    enrollment_id UUID,
    lesson_id UUID,
    id UUID,
    is_completed BOOLEAN,
    started_at TIMESTAMP,
    completed_at TIMESTAMP,
    quiz_score INT,
    PRIMARY KEY (enrollment_id, lesson_id)
)
"""

# Secondary index used when a lesson is deleted (cascade to progress rows)
LESSON_PROGRESS_BY_LESSON_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS lesson_progress_lesson_idx
ON {keyspace}.lesson_progress (lesson_id)
"""

CERTIFICATES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates (
    enrollment_id UUID PRIMARY KEY,
    id UUID,
    certificate_number TEXT,
    certificate_url TEXT,
    issued_at TIMESTAMP
)
"""

PROGRESS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_COURSE_TABLE_CQL,
    LESSON_PROGRESS_TABLE_CQL,
    LESSON_PROGRESS_BY_LESSON_INDEX_CQL,
    CERTIFICATES_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Enrollment:
    """Course enrollment entity.

    Attributes:
        id: Unique identifier
        course_id: Course UUID
        student_id: Student UUID
        enrolled_at: Enrollment timestamp
        is_completed: Set once course progress reaches 100%
        completed_at: Course completion timestamp (None until completed)
        final_grade: Final grade, when one has been assigned
    """

    def __init__(
        self,
        course_id: UUID,
        student_id: UUID,
        id: UUID | None = None,
        enrolled_at: datetime | None = None,
        is_completed: bool = False,
        completed_at: datetime | None = None,
        final_grade: int | None = None,
    ):
        self.id = id or uuid4()
        self.course_id = course_id
        self.student_id = student_id
        self.enrolled_at = ensure_utc_aware(enrolled_at) or datetime.now(UTC)
        self.is_completed = bool(is_completed)
        self.completed_at = ensure_utc_aware(completed_at)
        self.final_grade = final_grade

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            id=row.id,
            course_id=row.course_id,
            student_id=row.student_id,
            enrolled_at=row.enrolled_at,
            is_completed=row.is_completed or False,
            completed_at=row.completed_at,
            final_grade=row.final_grade,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "course_id": self.course_id,
            "student_id": self.student_id,
            "enrolled_at": self.enrolled_at,
            "is_completed": self.is_completed,
            "completed_at": self.completed_at,
            "final_grade": self.final_grade,
        }

    def __repr__(self) -> str:
        state = "completed" if self.is_completed else "active"
        return (
            f"<Enrollment {self.id} student={self.student_id} "
            f"course={self.course_id} {state}>"
        )


class LessonProgress:
    """Progress of one enrollment on one lesson.

    Attributes:
        id: Unique identifier
        enrollment_id: Owning enrollment
        lesson_id: Lesson UUID
        is_completed: Completion flag (any graded quiz attempt completes)
        started_at: When the row was first created
        completed_at: First completion timestamp (None until completed)
        quiz_score: Latest quiz score 0-100 (None for non-quiz lessons)
    """

    def __init__(
        self,
        enrollment_id: UUID,
        lesson_id: UUID,
        id: UUID | None = None,
        is_completed: bool = False,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
        quiz_score: int | None = None,
    ):
        self.id = id or uuid4()
        self.enrollment_id = enrollment_id
        self.lesson_id = lesson_id
        self.is_completed = bool(is_completed)
        self.started_at = ensure_utc_aware(started_at) or datetime.now(UTC)
        self.completed_at = ensure_utc_aware(completed_at)
        self.quiz_score = quiz_score

    @property
    def status(self) -> LessonProgressStatus:
        """Derived progress status."""
        if self.is_completed:
            return LessonProgressStatus.COMPLETED
        return LessonProgressStatus.IN_PROGRESS

    @classmethod
    def from_row(cls, row: Any) -> "LessonProgress":
        """Create LessonProgress instance from Cassandra row."""
        return cls(
            id=row.id,
            enrollment_id=row.enrollment_id,
            lesson_id=row.lesson_id,
            is_completed=row.is_completed or False,
            started_at=row.started_at,
            completed_at=row.completed_at,
            quiz_score=row.quiz_score,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "enrollment_id": self.enrollment_id,
            "lesson_id": self.lesson_id,
            "is_completed": self.is_completed,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "quiz_score": self.quiz_score,
        }

    def __repr__(self) -> str:
        return (
            f"<LessonProgress enrollment={self.enrollment_id} "
            f"lesson={self.lesson_id} {self.status.value}>"
        )


class Certificate:
    """Certificate of a completed enrollment (one-to-one).

    Issuance, numbering and URL generation belong to the certificate
    service; this entity mirrors its table.
    """

    def __init__(
        self,
        enrollment_id: UUID,
        certificate_number: str,
        certificate_url: str = "",
        id: UUID | None = None,
        issued_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.enrollment_id = enrollment_id
        self.certificate_number = certificate_number
        self.certificate_url = certificate_url
        self.issued_at = ensure_utc_aware(issued_at) or datetime.now(UTC)

    @classmethod
    def from_row(cls, row: Any) -> "Certificate":
        """Create Certificate instance from Cassandra row."""
        return cls(
            id=row.id,
            enrollment_id=row.enrollment_id,
            certificate_number=row.certificate_number,
            certificate_url=row.certificate_url or "",
            issued_at=row.issued_at,
        )

    def __repr__(self) -> str:
        return f"<Certificate {self.certificate_number} enrollment={self.enrollment_id}>"
