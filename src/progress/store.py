"""Entity store used by the progress core.

``EntityStore`` is the narrow async contract the grader, tracker,
aggregator and certification trigger depend on. ``CassandraEntityStore``
implements it over the course and progress tables with prepared statements;
uniqueness of (enrollment_id, lesson_id) comes from the primary key and
first-writer-wins transitions use lightweight transactions.
"""

from typing import TYPE_CHECKING, Protocol
from uuid import UUID

import structlog

from src.courses.models import Lesson, QuizAnswer, QuizQuestion

from .errors import AlreadyEnrolledError, ConflictError, LessonProgressNotFoundError
from .models import Certificate, Enrollment, LessonProgress


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


class EntityStore(Protocol):
    """Read/write contract consumed by the progress core."""

    async def get_lesson_by_id(self, lesson_id: UUID) -> Lesson | None: ...

    async def get_lessons_by_course(self, course_id: UUID) -> list[Lesson]:
        """Lessons of a course ordered by ``Lesson.order``."""
        ...

    async def get_quiz_questions(self, lesson_id: UUID) -> list[QuizQuestion]:
        """Questions of a lesson, each with its answers."""
        ...

    async def get_enrollment(
        self, course_id: UUID, student_id: UUID
    ) -> Enrollment | None: ...

    async def get_enrollment_by_id(self, enrollment_id: UUID) -> Enrollment | None: ...

    async def create_enrollment(self, enrollment: Enrollment) -> None:
        """Persist a new enrollment.

        Raises:
            AlreadyEnrolledError: The student already has one for the course
        """
        ...

    async def update_enrollment(self, enrollment: Enrollment) -> None: ...

    async def complete_enrollment(self, enrollment: Enrollment) -> bool:
        """Set completion only if not completed yet. True when applied."""
        ...

    async def get_lesson_progress(
        self, lesson_id: UUID, enrollment_id: UUID
    ) -> LessonProgress | None: ...

    async def list_lesson_progress(self, enrollment_id: UUID) -> list[LessonProgress]: ...

    async def get_or_create_lesson_progress(
        self, lesson_id: UUID, enrollment_id: UUID
    ) -> LessonProgress:
        """Return the row for the pair, creating it if absent (upsert)."""
        ...

    async def update_quiz_score(self, progress: LessonProgress) -> None:
        """Overwrite the quiz score of a completed row.

        Raises:
            ConflictError: The row is not completed
        """
        ...

    async def complete_lesson_progress(self, progress: LessonProgress) -> None:
        """Mark the row completed, with its quiz score, only if not completed yet.

        Raises:
            ConflictError: The row was already completed by another writer
        """
        ...

    async def get_certificate(self, enrollment_id: UUID) -> Certificate | None: ...


def _was_applied(result) -> bool:
    """Read the [applied] column of a lightweight transaction result."""
    return bool(result.was_applied)


class CassandraEntityStore:
    """Cassandra implementation of :class:`EntityStore`."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        ks = self.keyspace

        # Course content
        self._get_lesson = self.session.prepare(
            f"SELECT * FROM {ks}.lessons WHERE id = ?"
        )
        self._get_course_lesson_ids = self.session.prepare(
            f"SELECT lesson_id FROM {ks}.lessons_by_course WHERE course_id = ?"
        )
        self._get_questions = self.session.prepare(
            f"SELECT * FROM {ks}.quiz_questions WHERE lesson_id = ?"
        )
        self._get_answers = self.session.prepare(
            f"SELECT * FROM {ks}.quiz_answers WHERE lesson_id = ?"
        )

        # Enrollments
        self._get_enrollment_by_id = self.session.prepare(
            f"SELECT * FROM {ks}.enrollments WHERE id = ?"
        )
        self._get_enrollment_lookup = self.session.prepare(f"""
            SELECT enrollment_id FROM {ks}.enrollments_by_course
            WHERE course_id = ? AND student_id = ?
        """)
        self._insert_enrollment_lookup = self.session.prepare(f"""
            INSERT INTO {ks}.enrollments_by_course
            (course_id, student_id, enrollment_id, enrolled_at)
            VALUES (?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._upsert_enrollment = self.session.prepare(f"""
            INSERT INTO {ks}.enrollments
            (id, course_id, student_id, enrolled_at, is_completed,
             completed_at, final_grade)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)
        self._complete_enrollment = self.session.prepare(f"""
            UPDATE {ks}.enrollments
            SET is_completed = true, completed_at = ?
            WHERE id = ?
            IF is_completed = false
        """)

        # Lesson progress
        self._get_progress = self.session.prepare(f"""
            SELECT * FROM {ks}.lesson_progress
            WHERE enrollment_id = ? AND lesson_id = ?
        """)
        self._list_progress = self.session.prepare(
            f"SELECT * FROM {ks}.lesson_progress WHERE enrollment_id = ?"
        )
        self._create_progress = self.session.prepare(f"""
            INSERT INTO {ks}.lesson_progress
            (enrollment_id, lesson_id, id, is_completed, started_at,
             completed_at, quiz_score)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)
        self._update_quiz_score = self.session.prepare(f"""
            UPDATE {ks}.lesson_progress
            SET quiz_score = ?
            WHERE enrollment_id = ? AND lesson_id = ?
            IF is_completed = true
        """)
        # Completion and score land in one conditional write
        self._complete_progress = self.session.prepare(f"""
            UPDATE {ks}.lesson_progress
            SET is_completed = true, completed_at = ?, quiz_score = ?
            WHERE enrollment_id = ? AND lesson_id = ?
            IF is_completed = false
        """)

        # Certificates
        self._get_certificate = self.session.prepare(
            f"SELECT * FROM {ks}.certificates WHERE enrollment_id = ?"
        )

    # ==========================================================================
    # Course Content
    # ==========================================================================

    async def get_lesson_by_id(self, lesson_id: UUID) -> Lesson | None:
        """Get lesson by ID."""
        result = await self.session.aexecute(self._get_lesson, [lesson_id])
        row = result.one()
        return Lesson.from_row(row) if row else None

    async def get_lessons_by_course(self, course_id: UUID) -> list[Lesson]:
        """Get the lessons of a course in sequence order."""
        rows = await self.session.aexecute(self._get_course_lesson_ids, [course_id])
        lessons = []
        for row in rows:
            lesson = await self.get_lesson_by_id(row.lesson_id)
            if lesson:
                lessons.append(lesson)
        return sorted(lessons, key=lambda lesson: lesson.order)

    async def get_quiz_questions(self, lesson_id: UUID) -> list[QuizQuestion]:
        """Get the questions of a lesson with their answers attached."""
        question_rows = await self.session.aexecute(self._get_questions, [lesson_id])
        questions = {row.question_id: QuizQuestion.from_row(row) for row in question_rows}
        if not questions:
            return []

        answer_rows = await self.session.aexecute(self._get_answers, [lesson_id])
        for row in answer_rows:
            question = questions.get(row.question_id)
            if question is not None:
                question.answers.append(QuizAnswer.from_row(row))

        return list(questions.values())

    # ==========================================================================
    # Enrollments
    # ==========================================================================

    async def get_enrollment(
        self, course_id: UUID, student_id: UUID
    ) -> Enrollment | None:
        """Get the enrollment of a student in a course."""
        result = await self.session.aexecute(
            self._get_enrollment_lookup, [course_id, student_id]
        )
        row = result.one()
        return await self.get_enrollment_by_id(row.enrollment_id) if row else None

    async def get_enrollment_by_id(self, enrollment_id: UUID) -> Enrollment | None:
        """Get enrollment by ID."""
        result = await self.session.aexecute(self._get_enrollment_by_id, [enrollment_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def create_enrollment(self, enrollment: Enrollment) -> None:
        """Create an enrollment, guarded by the (course, student) lookup row."""
        result = await self.session.aexecute(
            self._insert_enrollment_lookup,
            [
                enrollment.course_id,
                enrollment.student_id,
                enrollment.id,
                enrollment.enrolled_at,
            ],
        )
        if not _was_applied(result):
            raise AlreadyEnrolledError(course_id=enrollment.course_id)

        await self.update_enrollment(enrollment)

    async def update_enrollment(self, enrollment: Enrollment) -> None:
        """Write all enrollment columns."""
        await self.session.aexecute(
            self._upsert_enrollment,
            [
                enrollment.id,
                enrollment.course_id,
                enrollment.student_id,
                enrollment.enrolled_at,
                enrollment.is_completed,
                enrollment.completed_at,
                enrollment.final_grade,
            ],
        )

    async def complete_enrollment(self, enrollment: Enrollment) -> bool:
        """Conditionally flag the enrollment completed."""
        result = await self.session.aexecute(
            self._complete_enrollment, [enrollment.completed_at, enrollment.id]
        )
        return _was_applied(result)

    # ==========================================================================
    # Lesson Progress
    # ==========================================================================

    async def get_lesson_progress(
        self, lesson_id: UUID, enrollment_id: UUID
    ) -> LessonProgress | None:
        """Get the progress row of a (lesson, enrollment) pair."""
        result = await self.session.aexecute(
            self._get_progress, [enrollment_id, lesson_id]
        )
        row = result.one()
        return LessonProgress.from_row(row) if row else None

    async def list_lesson_progress(self, enrollment_id: UUID) -> list[LessonProgress]:
        """Get every progress row of an enrollment."""
        rows = await self.session.aexecute(self._list_progress, [enrollment_id])
        return [LessonProgress.from_row(row) for row in rows]

    async def get_or_create_lesson_progress(
        self, lesson_id: UUID, enrollment_id: UUID
    ) -> LessonProgress:
        """Return the existing row or insert a fresh one (IF NOT EXISTS)."""
        existing = await self.get_lesson_progress(lesson_id, enrollment_id)
        if existing:
            return existing

        progress = LessonProgress(enrollment_id=enrollment_id, lesson_id=lesson_id)
        result = await self.session.aexecute(
            self._create_progress, self._progress_values(progress)
        )
        if _was_applied(result):
            return progress

        # Another request created the row between our read and insert
        logger.info(
            "lesson_progress_create_race",
            lesson_id=str(lesson_id),
            enrollment_id=str(enrollment_id),
        )
        winner = await self.get_lesson_progress(lesson_id, enrollment_id)
        if winner is None:
            raise LessonProgressNotFoundError(
                lesson_id=lesson_id, enrollment_id=enrollment_id
            )
        return winner

    async def update_quiz_score(self, progress: LessonProgress) -> None:
        """Overwrite the quiz score of a completed row."""
        result = await self.session.aexecute(
            self._update_quiz_score,
            [progress.quiz_score, progress.enrollment_id, progress.lesson_id],
        )
        if not _was_applied(result):
            raise ConflictError(
                "Aula ainda nao concluida",
                lesson_id=progress.lesson_id,
                enrollment_id=progress.enrollment_id,
            )

    async def complete_lesson_progress(self, progress: LessonProgress) -> None:
        """Conditionally flag the progress row completed and store its score."""
        result = await self.session.aexecute(
            self._complete_progress,
            [
                progress.completed_at,
                progress.quiz_score,
                progress.enrollment_id,
                progress.lesson_id,
            ],
        )
        if not _was_applied(result):
            raise ConflictError(
                "Aula ja concluida",
                lesson_id=progress.lesson_id,
                enrollment_id=progress.enrollment_id,
            )

    @staticmethod
    def _progress_values(progress: LessonProgress) -> list:
        return [
            progress.enrollment_id,
            progress.lesson_id,
            progress.id,
            progress.is_completed,
            progress.started_at,
            progress.completed_at,
            progress.quiz_score,
        ]

    # ==========================================================================
    # Certificates
    # ==========================================================================

    async def get_certificate(self, enrollment_id: UUID) -> Certificate | None:
        """Get the certificate issued for an enrollment, if any."""
        result = await self.session.aexecute(self._get_certificate, [enrollment_id])
        row = result.one()
        return Certificate.from_row(row) if row else None
