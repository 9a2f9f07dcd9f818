"""Course management service layer.

Business logic for:
- Course creation, lookup and cascading delete
- Lesson CRUD with sequence ordering
- Quiz question authoring

Cassandra has no foreign keys, so ownership cascades are explicit here:
deleting a lesson removes its questions, answers and progress rows, and
deleting a course removes its lessons, enrollments and certificates.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from src.courses.models import Course, Lesson, QuizAnswer, QuizQuestion
from src.courses.schemas import (
    CreateCourseRequest,
    CreateLessonRequest,
    CreateQuizQuestionRequest,
    UpdateLessonRequest,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CourseError(Exception):
    """Base course error."""

    def __init__(self, message: str, code: str = "course_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CourseNotFoundError(CourseError):
    """Course not found."""

    def __init__(self, message: str = "Curso nao encontrado"):
        super().__init__(message, "course_not_found")


class LessonNotFoundError(CourseError):
    """Lesson not found."""

    def __init__(self, message: str = "Aula nao encontrada"):
        super().__init__(message, "lesson_not_found")


class NotAQuizError(CourseError):
    """Questions can only be attached to quiz lessons."""

    def __init__(self, message: str = "Aula nao e um quiz"):
        super().__init__(message, "not_a_quiz")


class InvalidQuestionError(CourseError):
    """Question weight or answer key is invalid."""

    def __init__(self, message: str = "Questao invalida"):
        super().__init__(message, "invalid_question")


# ==============================================================================
# Lesson Service
# ==============================================================================


class LessonService:
    """Service for lesson and quiz management."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        ks = self.keyspace

        # Lesson CRUD
        self._get_lesson_by_id = self.session.prepare(
            f"SELECT * FROM {ks}.lessons WHERE id = ?"
        )
        self._upsert_lesson = self.session.prepare(f"""
            INSERT INTO {ks}.lessons
            (id, course_id, title, description, content, video_url,
             document_url, is_quiz, position, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._delete_lesson = self.session.prepare(
            f"DELETE FROM {ks}.lessons WHERE id = ?"
        )

        # Course ordering lookup
        self._get_course_lesson_ids = self.session.prepare(
            f"SELECT lesson_id FROM {ks}.lessons_by_course WHERE course_id = ?"
        )
        self._insert_lesson_by_course = self.session.prepare(f"""
            INSERT INTO {ks}.lessons_by_course (course_id, position, lesson_id)
            VALUES (?, ?, ?)
        """)
        self._delete_lesson_by_course = self.session.prepare(f"""
            DELETE FROM {ks}.lessons_by_course
            WHERE course_id = ? AND position = ? AND lesson_id = ?
        """)

        # Quiz
        self._get_questions = self.session.prepare(
            f"SELECT * FROM {ks}.quiz_questions WHERE lesson_id = ?"
        )
        self._get_answers = self.session.prepare(
            f"SELECT * FROM {ks}.quiz_answers WHERE lesson_id = ?"
        )
        self._insert_question = self.session.prepare(f"""
            INSERT INTO {ks}.quiz_questions
            (lesson_id, question_id, question_text, points, created_at)
            VALUES (?, ?, ?, ?, ?)
        """)
        self._insert_answer = self.session.prepare(f"""
            INSERT INTO {ks}.quiz_answers
            (lesson_id, question_id, answer_id, answer_text, is_correct)
            VALUES (?, ?, ?, ?, ?)
        """)
        self._delete_questions = self.session.prepare(
            f"DELETE FROM {ks}.quiz_questions WHERE lesson_id = ?"
        )
        self._delete_answers = self.session.prepare(
            f"DELETE FROM {ks}.quiz_answers WHERE lesson_id = ?"
        )

        # Progress cascade (lesson_progress_lesson_idx)
        self._get_progress_by_lesson = self.session.prepare(
            f"SELECT enrollment_id FROM {ks}.lesson_progress WHERE lesson_id = ?"
        )
        self._delete_progress = self.session.prepare(f"""
            DELETE FROM {ks}.lesson_progress
            WHERE enrollment_id = ? AND lesson_id = ?
        """)

    # ==========================================================================
    # Lesson CRUD
    # ==========================================================================

    async def create_lesson(self, data: CreateLessonRequest) -> Lesson:
        """Create a lesson at the requested position of its course."""
        lesson = Lesson(
            course_id=data.course_id,
            order=data.order,
            is_quiz=data.is_quiz,
            title=data.title,
            description=data.description,
            content=data.content,
            video_url=data.video_url,
            document_url=data.document_url,
        )

        await self._save_lesson(lesson)
        await self.session.aexecute(
            self._insert_lesson_by_course, [lesson.course_id, lesson.order, lesson.id]
        )

        logger.info(
            "lesson_created",
            lesson_id=str(lesson.id),
            course_id=str(lesson.course_id),
            is_quiz=lesson.is_quiz,
        )
        return lesson

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        """Get lesson by ID."""
        result = await self.session.aexecute(self._get_lesson_by_id, [lesson_id])
        row = result.one()
        return Lesson.from_row(row) if row else None

    async def list_lessons_by_course(self, course_id: UUID) -> list[Lesson]:
        """Get the lessons of a course in sequence order."""
        rows = await self.session.aexecute(self._get_course_lesson_ids, [course_id])
        lessons = []
        for row in rows:
            lesson = await self.get_lesson(row.lesson_id)
            if lesson:
                lessons.append(lesson)
        # Stable: equal positions keep lookup order
        return sorted(lessons, key=lambda lesson: lesson.order)

    async def update_lesson(self, lesson_id: UUID, data: UpdateLessonRequest) -> Lesson:
        """Update lesson.

        Raises:
            LessonNotFoundError: If lesson doesn't exist
        """
        lesson = await self.get_lesson(lesson_id)
        if not lesson:
            raise LessonNotFoundError

        previous_order = lesson.order

        # Update fields if provided
        if data.title is not None:
            lesson.title = data.title.strip()
        if data.description is not None:
            lesson.description = data.description
        if data.content is not None:
            lesson.content = data.content
        if data.video_url is not None:
            lesson.video_url = data.video_url
        if data.document_url is not None:
            lesson.document_url = data.document_url
        if data.is_quiz is not None:
            lesson.is_quiz = data.is_quiz
        if data.order is not None:
            lesson.order = data.order

        lesson.updated_at = datetime.now(UTC)
        await self._save_lesson(lesson)

        # Position is part of the lookup key: move the row
        if lesson.order != previous_order:
            await self.session.aexecute(
                self._delete_lesson_by_course,
                [lesson.course_id, previous_order, lesson.id],
            )
            await self.session.aexecute(
                self._insert_lesson_by_course,
                [lesson.course_id, lesson.order, lesson.id],
            )

        return lesson

    async def delete_lesson(self, lesson_id: UUID) -> int:
        """Delete a lesson with its questions, answers and progress rows.

        Returns:
            Number of progress rows removed

        Raises:
            LessonNotFoundError: If lesson doesn't exist
        """
        lesson = await self.get_lesson(lesson_id)
        if not lesson:
            raise LessonNotFoundError

        await self.session.aexecute(self._delete_answers, [lesson_id])
        await self.session.aexecute(self._delete_questions, [lesson_id])

        rows = await self.session.aexecute(self._get_progress_by_lesson, [lesson_id])
        enrollment_ids = [row.enrollment_id for row in rows]
        for enrollment_id in enrollment_ids:
            await self.session.aexecute(
                self._delete_progress, [enrollment_id, lesson_id]
            )

        await self.session.aexecute(
            self._delete_lesson_by_course, [lesson.course_id, lesson.order, lesson_id]
        )
        await self.session.aexecute(self._delete_lesson, [lesson_id])

        logger.info(
            "lesson_deleted",
            lesson_id=str(lesson_id),
            course_id=str(lesson.course_id),
            progress_rows=len(enrollment_ids),
        )
        return len(enrollment_ids)

    async def _save_lesson(self, lesson: Lesson) -> None:
        await self.session.aexecute(
            self._upsert_lesson,
            [
                lesson.id,
                lesson.course_id,
                lesson.title,
                lesson.description,
                lesson.content,
                lesson.video_url,
                lesson.document_url,
                lesson.is_quiz,
                lesson.order,
                lesson.created_at,
                lesson.updated_at,
            ],
        )

    # ==========================================================================
    # Quiz Authoring
    # ==========================================================================

    async def add_quiz_question(
        self, lesson_id: UUID, data: CreateQuizQuestionRequest
    ) -> QuizQuestion:
        """Attach a question and its answer options to a quiz lesson.

        Raises:
            LessonNotFoundError: If lesson doesn't exist
            NotAQuizError: If the lesson is not a quiz
            InvalidQuestionError: If points are not positive or the key is
                not exactly one correct answer
        """
        lesson = await self.get_lesson(lesson_id)
        if not lesson:
            raise LessonNotFoundError
        if not lesson.is_quiz:
            raise NotAQuizError
        if data.points <= 0:
            raise InvalidQuestionError("Pontuacao deve ser positiva")
        if sum(1 for answer in data.answers if answer.is_correct) != 1:
            raise InvalidQuestionError(
                "A questao deve ter exatamente uma resposta correta"
            )

        question = QuizQuestion(
            lesson_id=lesson_id,
            question_text=data.question_text,
            points=data.points,
        )
        question.answers = [
            QuizAnswer(
                question_id=question.id,
                answer_text=answer.answer_text,
                is_correct=answer.is_correct,
            )
            for answer in data.answers
        ]

        await self.session.aexecute(
            self._insert_question,
            [
                question.lesson_id,
                question.id,
                question.question_text,
                question.points,
                question.created_at,
            ],
        )
        for answer in question.answers:
            await self.session.aexecute(
                self._insert_answer,
                [
                    lesson_id,
                    question.id,
                    answer.id,
                    answer.answer_text,
                    answer.is_correct,
                ],
            )

        return question

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

        return sorted(questions.values(), key=lambda q: q.created_at)


# ==============================================================================
# Course Service
# ==============================================================================


class CourseService:
    """Service for course management."""

    def __init__(self, session: "Session", keyspace: str, lesson_service: LessonService):
        """Initialize with Cassandra session and the lesson service (cascade)."""
        self.session = session
        self.keyspace = keyspace
        self.lesson_service = lesson_service
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        ks = self.keyspace

        self._get_course_by_id = self.session.prepare(
            f"SELECT * FROM {ks}.courses WHERE id = ?"
        )
        self._insert_course = self.session.prepare(f"""
            INSERT INTO {ks}.courses
            (id, instructor_id, title, description, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """)
        self._delete_course = self.session.prepare(
            f"DELETE FROM {ks}.courses WHERE id = ?"
        )

        # Enrollment cascade
        self._get_course_enrollment_ids = self.session.prepare(
            f"SELECT enrollment_id FROM {ks}.enrollments_by_course WHERE course_id = ?"
        )
        self._delete_enrollment = self.session.prepare(
            f"DELETE FROM {ks}.enrollments WHERE id = ?"
        )
        self._delete_certificate = self.session.prepare(
            f"DELETE FROM {ks}.certificates WHERE enrollment_id = ?"
        )
        self._delete_course_enrollments = self.session.prepare(
            f"DELETE FROM {ks}.enrollments_by_course WHERE course_id = ?"
        )

    async def create_course(
        self, data: CreateCourseRequest, instructor_id: UUID
    ) -> Course:
        """Create a new course owned by an instructor."""
        course = Course(
            instructor_id=instructor_id,
            title=data.title,
            description=data.description,
        )

        await self.session.aexecute(
            self._insert_course,
            [
                course.id,
                course.instructor_id,
                course.title,
                course.description,
                course.created_at,
                course.updated_at,
            ],
        )

        logger.info(
            "course_created",
            course_id=str(course.id),
            instructor_id=str(instructor_id),
        )
        return course

    async def get_course(self, course_id: UUID) -> Course | None:
        """Get course by ID."""
        result = await self.session.aexecute(self._get_course_by_id, [course_id])
        row = result.one()
        return Course.from_row(row) if row else None

    async def delete_course(self, course_id: UUID) -> None:
        """Delete a course with its lessons, enrollments and certificates.

        Raises:
            CourseNotFoundError: If course doesn't exist
        """
        course = await self.get_course(course_id)
        if not course:
            raise CourseNotFoundError

        lessons = await self.lesson_service.list_lessons_by_course(course_id)
        for lesson in lessons:
            await self.lesson_service.delete_lesson(lesson.id)

        rows = await self.session.aexecute(self._get_course_enrollment_ids, [course_id])
        enrollment_ids = [row.enrollment_id for row in rows]
        for enrollment_id in enrollment_ids:
            await self.session.aexecute(self._delete_certificate, [enrollment_id])
            await self.session.aexecute(self._delete_enrollment, [enrollment_id])
        await self.session.aexecute(self._delete_course_enrollments, [course_id])

        await self.session.aexecute(self._delete_course, [course_id])

        logger.info(
            "course_deleted",
            course_id=str(course_id),
            lessons=len(lessons),
            enrollments=len(enrollment_ids),
        )
