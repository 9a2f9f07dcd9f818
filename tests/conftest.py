"""Shared test fixtures.

Provides an in-memory EntityStore with the same conditional-write
semantics as the Cassandra store (IF NOT EXISTS, IF is_completed = false),
plus an app/client wired to it.
"""

import asyncio
import copy
import os
import tempfile
from collections.abc import Callable
from uuid import UUID, uuid4

import pytest


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="coursetrack-logs-"))
os.environ.setdefault("LOG_REQUESTS", "false")

from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from src.auth.permissions import UserRole  # noqa: E402
from src.auth.security import create_access_token  # noqa: E402
from src.courses.models import Course, Lesson, QuizAnswer, QuizQuestion  # noqa: E402
from src.progress.errors import AlreadyEnrolledError, ConflictError  # noqa: E402
from src.progress.models import (  # noqa: E402
    Certificate,
    Enrollment,
    LessonProgress,
)
from src.progress.service import ProgressService  # noqa: E402


# ==============================================================================
# In-memory Entity Store
# ==============================================================================


class InMemoryEntityStore:
    """EntityStore fake keeping entities in dicts.

    Reads return copies, so callers never share state with the store.
    Each write yields to the event loop first, which lets concurrent
    coroutines interleave between their reads and writes.
    """

    def __init__(self):
        self.courses: dict[UUID, Course] = {}
        self.lessons: dict[UUID, Lesson] = {}
        self.questions: dict[UUID, list[QuizQuestion]] = {}
        self.enrollments: dict[UUID, Enrollment] = {}
        self.enrollment_lookup: dict[tuple[UUID, UUID], UUID] = {}
        self.progress: dict[tuple[UUID, UUID], LessonProgress] = {}
        self.certificates: dict[UUID, Certificate] = {}
        self.fail_progress_saves = False
        self.progress_writes = 0

    # Seeding helpers

    def add_course(self, course: Course) -> Course:
        self.courses[course.id] = course
        return course

    def add_lesson(self, lesson: Lesson) -> Lesson:
        self.lessons[lesson.id] = lesson
        return lesson

    def add_questions(self, lesson_id: UUID, questions: list[QuizQuestion]) -> None:
        self.questions[lesson_id] = questions

    def add_enrollment(self, enrollment: Enrollment) -> Enrollment:
        self.enrollments[enrollment.id] = enrollment
        self.enrollment_lookup[(enrollment.course_id, enrollment.student_id)] = (
            enrollment.id
        )
        return enrollment

    # Course content

    async def get_lesson_by_id(self, lesson_id: UUID) -> Lesson | None:
        lesson = self.lessons.get(lesson_id)
        return copy.copy(lesson) if lesson else None

    async def get_lessons_by_course(self, course_id: UUID) -> list[Lesson]:
        lessons = [
            copy.copy(lesson)
            for lesson in self.lessons.values()
            if lesson.course_id == course_id
        ]
        return sorted(lessons, key=lambda lesson: lesson.order)

    async def get_quiz_questions(self, lesson_id: UUID) -> list[QuizQuestion]:
        return copy.deepcopy(self.questions.get(lesson_id, []))

    # Enrollments

    async def get_enrollment(
        self, course_id: UUID, student_id: UUID
    ) -> Enrollment | None:
        enrollment_id = self.enrollment_lookup.get((course_id, student_id))
        return await self.get_enrollment_by_id(enrollment_id) if enrollment_id else None

    async def get_enrollment_by_id(self, enrollment_id: UUID) -> Enrollment | None:
        enrollment = self.enrollments.get(enrollment_id)
        return copy.copy(enrollment) if enrollment else None

    async def create_enrollment(self, enrollment: Enrollment) -> None:
        await asyncio.sleep(0)
        key = (enrollment.course_id, enrollment.student_id)
        if key in self.enrollment_lookup:
            raise AlreadyEnrolledError(course_id=enrollment.course_id)
        self.add_enrollment(copy.copy(enrollment))

    async def update_enrollment(self, enrollment: Enrollment) -> None:
        await asyncio.sleep(0)
        self.enrollments[enrollment.id] = copy.copy(enrollment)

    async def complete_enrollment(self, enrollment: Enrollment) -> bool:
        await asyncio.sleep(0)
        stored = self.enrollments.get(enrollment.id)
        if stored is None or stored.is_completed:
            return False
        stored.is_completed = True
        stored.completed_at = enrollment.completed_at
        return True

    # Lesson progress

    async def get_lesson_progress(
        self, lesson_id: UUID, enrollment_id: UUID
    ) -> LessonProgress | None:
        progress = self.progress.get((enrollment_id, lesson_id))
        return copy.copy(progress) if progress else None

    async def list_lesson_progress(self, enrollment_id: UUID) -> list[LessonProgress]:
        return [
            copy.copy(p)
            for (e_id, _), p in self.progress.items()
            if e_id == enrollment_id
        ]

    async def get_or_create_lesson_progress(
        self, lesson_id: UUID, enrollment_id: UUID
    ) -> LessonProgress:
        existing = await self.get_lesson_progress(lesson_id, enrollment_id)
        if existing:
            return existing

        await asyncio.sleep(0)
        key = (enrollment_id, lesson_id)
        if key not in self.progress:
            self.progress_writes += 1
            self.progress[key] = LessonProgress(
                enrollment_id=enrollment_id, lesson_id=lesson_id
            )
        return copy.copy(self.progress[key])

    async def update_quiz_score(self, progress: LessonProgress) -> None:
        await asyncio.sleep(0)
        if self.fail_progress_saves:
            raise ConnectionError("store unavailable")
        stored = self.progress[(progress.enrollment_id, progress.lesson_id)]
        if not stored.is_completed:
            raise ConflictError(
                lesson_id=progress.lesson_id, enrollment_id=progress.enrollment_id
            )
        self.progress_writes += 1
        stored.quiz_score = progress.quiz_score

    async def complete_lesson_progress(self, progress: LessonProgress) -> None:
        await asyncio.sleep(0)
        if self.fail_progress_saves:
            raise ConnectionError("store unavailable")
        stored = self.progress[(progress.enrollment_id, progress.lesson_id)]
        if stored.is_completed:
            raise ConflictError(
                lesson_id=progress.lesson_id, enrollment_id=progress.enrollment_id
            )
        self.progress_writes += 1
        stored.is_completed = True
        stored.completed_at = progress.completed_at
        stored.quiz_score = progress.quiz_score

    # Certificates

    async def get_certificate(self, enrollment_id: UUID) -> Certificate | None:
        certificate = self.certificates.get(enrollment_id)
        return copy.copy(certificate) if certificate else None


# ==============================================================================
# Entity Builders
# ==============================================================================


def make_question(
    lesson_id: UUID, points: int = 1, options: int = 3
) -> QuizQuestion:
    """Question whose first option is the correct one."""
    question = QuizQuestion(
        lesson_id=lesson_id, question_text=f"Pergunta {uuid4()}", points=points
    )
    question.answers = [
        QuizAnswer(question_id=question.id, answer_text=f"Opcao {i}", is_correct=i == 0)
        for i in range(options)
    ]
    return question


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def question_factory() -> Callable[..., QuizQuestion]:
    """Build questions whose first option is the correct one."""
    return make_question


@pytest.fixture
def store() -> InMemoryEntityStore:
    """Empty in-memory store."""
    return InMemoryEntityStore()


@pytest.fixture
def instructor_id() -> UUID:
    return uuid4()


@pytest.fixture
def student_id() -> UUID:
    return uuid4()


@pytest.fixture
def course(store: InMemoryEntityStore, instructor_id: UUID) -> Course:
    """A course with no lessons yet."""
    return store.add_course(Course(instructor_id=instructor_id, title="Farmacologia"))


@pytest.fixture
def lessons(store: InMemoryEntityStore, course: Course) -> list[Lesson]:
    """Three regular lessons and one quiz lesson, in order."""
    created = [
        store.add_lesson(Lesson(course_id=course.id, order=i, title=f"Aula {i}"))
        for i in range(1, 4)
    ]
    created.append(
        store.add_lesson(
            Lesson(course_id=course.id, order=4, title="Avaliacao", is_quiz=True)
        )
    )
    return created


@pytest.fixture
def quiz_lesson(lessons: list[Lesson]) -> Lesson:
    return lessons[-1]


@pytest.fixture
def quiz_questions(
    store: InMemoryEntityStore, quiz_lesson: Lesson
) -> list[QuizQuestion]:
    """Three equally weighted questions on the quiz lesson."""
    questions = [make_question(quiz_lesson.id) for _ in range(3)]
    store.add_questions(quiz_lesson.id, questions)
    return questions


@pytest.fixture
def enrollment(
    store: InMemoryEntityStore, course: Course, student_id: UUID
) -> Enrollment:
    return store.add_enrollment(Enrollment(course_id=course.id, student_id=student_id))


@pytest.fixture
def progress_service(store: InMemoryEntityStore) -> ProgressService:
    return ProgressService(store)


# ==============================================================================
# HTTP Fixtures
# ==============================================================================


class StoreBackedLessonService:
    """Read side of LessonService served from the in-memory store."""

    def __init__(self, store: InMemoryEntityStore):
        self.store = store

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        return await self.store.get_lesson_by_id(lesson_id)


class StoreBackedCourseService:
    """Read side of CourseService served from the in-memory store."""

    def __init__(self, store: InMemoryEntityStore):
        self.store = store

    async def get_course(self, course_id: UUID) -> Course | None:
        return self.store.courses.get(course_id)


@pytest.fixture
def app(store: InMemoryEntityStore, progress_service: ProgressService) -> FastAPI:
    """Application wired to the in-memory store (lifespan not run)."""
    from src.courses.dependencies import get_course_service, get_lesson_service
    from src.main import create_app

    application = create_app()
    application.state.progress_service = progress_service
    application.dependency_overrides[get_lesson_service] = (
        lambda: StoreBackedLessonService(store)
    )
    application.dependency_overrides[get_course_service] = (
        lambda: StoreBackedCourseService(store)
    )
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def auth_headers() -> Callable[[UUID, UserRole], dict[str, str]]:
    """Build an Authorization header for a user id and role."""

    def _headers(user_id: UUID, role: UserRole = UserRole.STUDENT) -> dict[str, str]:
        token = create_access_token(
            {"sub": str(user_id), "email": "aluno@example.com", "role": role.value}
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers
