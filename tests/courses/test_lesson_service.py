"""Tests for the course and lesson services.

The Cassandra session is mocked; each prepared statement is a distinct
Mock, so writes are asserted by the statement they executed.
"""

from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, Mock
from uuid import uuid4

import pytest
from cassandra.cluster import Session

from src.courses.schemas import (
    CreateCourseRequest,
    CreateLessonRequest,
    CreateQuizAnswerRequest,
    CreateQuizQuestionRequest,
    UpdateLessonRequest,
)
from src.courses.service import (
    CourseNotFoundError,
    CourseService,
    InvalidQuestionError,
    LessonNotFoundError,
    LessonService,
    NotAQuizError,
)


def _result(rows=()) -> Mock:
    rows = list(rows)
    result = MagicMock()
    result.one.return_value = rows[0] if rows else None
    result.__iter__.side_effect = lambda: iter(rows)
    return result


def _lesson_row(course_id, position: int = 1, **overrides) -> SimpleNamespace:
    values = {
        "id": uuid4(),
        "course_id": course_id,
        "title": f"Aula {position}",
        "description": None,
        "content": None,
        "video_url": None,
        "document_url": None,
        "is_quiz": False,
        "position": position,
        "created_at": datetime(2024, 1, 1),
        "updated_at": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def _executed(session, statement) -> list[list]:
    """Parameters of every execution of a prepared statement."""
    return [
        call.args[1]
        for call in session.aexecute.call_args_list
        if call.args[0] is statement
    ]


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    session = Mock(spec=Session)
    session.prepare = Mock(side_effect=lambda query: Mock(query_string=query))
    session.aexecute = AsyncMock(return_value=_result())
    return session


@pytest.fixture
def lesson_service(mock_session) -> LessonService:
    return LessonService(session=mock_session, keyspace="test_keyspace")


@pytest.fixture
def course_service(mock_session, lesson_service) -> CourseService:
    return CourseService(
        session=mock_session, keyspace="test_keyspace", lesson_service=lesson_service
    )


def _route(mock_session, responses: dict) -> None:
    """Answer each prepared statement with its configured result."""

    async def _aexecute(statement, params=None):
        return responses.get(id(statement), _result())

    mock_session.aexecute.side_effect = _aexecute


def _question_request(**overrides) -> CreateQuizQuestionRequest:
    values = {
        "question_text": "Qual a dose maxima?",
        "points": 2,
        "answers": [
            CreateQuizAnswerRequest(answer_text="500mg", is_correct=True),
            CreateQuizAnswerRequest(answer_text="5g", is_correct=False),
        ],
    }
    values.update(overrides)
    return CreateQuizQuestionRequest.model_construct(**values)


class TestLessonCrud:
    """Tests for lesson create, update and delete."""

    @pytest.mark.asyncio
    async def test_create_writes_lookup_row(self, lesson_service, mock_session) -> None:
        course_id = uuid4()
        lesson = await lesson_service.create_lesson(
            CreateLessonRequest(course_id=course_id, title="Introducao", order=3)
        )

        assert lesson.order == 3
        assert lesson.is_quiz is False
        assert _executed(mock_session, lesson_service._insert_lesson_by_course) == [
            [course_id, 3, lesson.id]
        ]
        (params,) = _executed(mock_session, lesson_service._upsert_lesson)
        assert params[0] == lesson.id
        assert params[8] == 3

    @pytest.mark.asyncio
    async def test_get_missing_lesson(self, lesson_service) -> None:
        assert await lesson_service.get_lesson(uuid4()) is None

    @pytest.mark.asyncio
    async def test_list_sorted_by_order(self, lesson_service, mock_session) -> None:
        course_id = uuid4()
        second = _lesson_row(course_id, position=2)
        first = _lesson_row(course_id, position=1)
        rows = {second.id: second, first.id: first}

        async def _aexecute(statement, params=None):
            if statement is lesson_service._get_course_lesson_ids:
                return _result(
                    [
                        SimpleNamespace(lesson_id=second.id),
                        SimpleNamespace(lesson_id=first.id),
                    ]
                )
            if statement is lesson_service._get_lesson_by_id:
                return _result([rows[params[0]]])
            return _result()

        mock_session.aexecute.side_effect = _aexecute

        lessons = await lesson_service.list_lessons_by_course(course_id)

        assert [lesson.id for lesson in lessons] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_update_moves_lookup_row(self, lesson_service, mock_session) -> None:
        course_id = uuid4()
        row = _lesson_row(course_id, position=1)
        _route(mock_session, {id(lesson_service._get_lesson_by_id): _result([row])})

        lesson = await lesson_service.update_lesson(
            row.id, UpdateLessonRequest(order=5, title="  Renomeada  ")
        )

        assert lesson.order == 5
        assert lesson.title == "Renomeada"
        assert lesson.updated_at is not None
        assert _executed(mock_session, lesson_service._delete_lesson_by_course) == [
            [course_id, 1, row.id]
        ]
        assert _executed(mock_session, lesson_service._insert_lesson_by_course) == [
            [course_id, 5, row.id]
        ]

    @pytest.mark.asyncio
    async def test_update_same_order_keeps_lookup_row(
        self, lesson_service, mock_session
    ) -> None:
        row = _lesson_row(uuid4(), position=1)
        _route(mock_session, {id(lesson_service._get_lesson_by_id): _result([row])})

        await lesson_service.update_lesson(row.id, UpdateLessonRequest(content="Texto"))

        assert _executed(mock_session, lesson_service._delete_lesson_by_course) == []
        assert _executed(mock_session, lesson_service._insert_lesson_by_course) == []

    @pytest.mark.asyncio
    async def test_update_missing_lesson(self, lesson_service) -> None:
        with pytest.raises(LessonNotFoundError):
            await lesson_service.update_lesson(uuid4(), UpdateLessonRequest(order=1))

    @pytest.mark.asyncio
    async def test_delete_cascades_to_progress(self, lesson_service, mock_session) -> None:
        course_id = uuid4()
        row = _lesson_row(course_id, position=2)
        enrollment_ids = [uuid4(), uuid4()]
        _route(
            mock_session,
            {
                id(lesson_service._get_lesson_by_id): _result([row]),
                id(lesson_service._get_progress_by_lesson): _result(
                    [SimpleNamespace(enrollment_id=e) for e in enrollment_ids]
                ),
            },
        )

        removed = await lesson_service.delete_lesson(row.id)

        assert removed == 2
        assert _executed(mock_session, lesson_service._delete_answers) == [[row.id]]
        assert _executed(mock_session, lesson_service._delete_questions) == [[row.id]]
        assert _executed(mock_session, lesson_service._delete_progress) == [
            [enrollment_ids[0], row.id],
            [enrollment_ids[1], row.id],
        ]
        assert _executed(mock_session, lesson_service._delete_lesson_by_course) == [
            [course_id, 2, row.id]
        ]
        assert _executed(mock_session, lesson_service._delete_lesson) == [[row.id]]

    @pytest.mark.asyncio
    async def test_delete_missing_lesson(self, lesson_service, mock_session) -> None:
        with pytest.raises(LessonNotFoundError):
            await lesson_service.delete_lesson(uuid4())
        assert _executed(mock_session, lesson_service._delete_lesson) == []


class TestQuizAuthoring:
    """Tests for quiz question authoring."""

    @pytest.mark.asyncio
    async def test_add_question_writes_answers(self, lesson_service, mock_session) -> None:
        row = _lesson_row(uuid4(), is_quiz=True)
        _route(mock_session, {id(lesson_service._get_lesson_by_id): _result([row])})

        question = await lesson_service.add_quiz_question(row.id, _question_request())

        assert question.points == 2
        assert len(question.answers) == 2
        assert len(question.correct_answer_ids) == 1
        assert len(_executed(mock_session, lesson_service._insert_question)) == 1
        answers = _executed(mock_session, lesson_service._insert_answer)
        assert [params[4] for params in answers] == [True, False]
        assert all(params[1] == question.id for params in answers)

    @pytest.mark.asyncio
    async def test_missing_lesson(self, lesson_service) -> None:
        with pytest.raises(LessonNotFoundError):
            await lesson_service.add_quiz_question(uuid4(), _question_request())

    @pytest.mark.asyncio
    async def test_regular_lesson_rejected(self, lesson_service, mock_session) -> None:
        row = _lesson_row(uuid4(), is_quiz=False)
        _route(mock_session, {id(lesson_service._get_lesson_by_id): _result([row])})

        with pytest.raises(NotAQuizError):
            await lesson_service.add_quiz_question(row.id, _question_request())
        assert _executed(mock_session, lesson_service._insert_question) == []

    @pytest.mark.asyncio
    async def test_zero_points_rejected(self, lesson_service, mock_session) -> None:
        row = _lesson_row(uuid4(), is_quiz=True)
        _route(mock_session, {id(lesson_service._get_lesson_by_id): _result([row])})

        with pytest.raises(InvalidQuestionError):
            await lesson_service.add_quiz_question(row.id, _question_request(points=0))

    @pytest.mark.asyncio
    async def test_two_correct_answers_rejected(
        self, lesson_service, mock_session
    ) -> None:
        row = _lesson_row(uuid4(), is_quiz=True)
        _route(mock_session, {id(lesson_service._get_lesson_by_id): _result([row])})
        answers = [
            CreateQuizAnswerRequest(answer_text="A", is_correct=True),
            CreateQuizAnswerRequest(answer_text="B", is_correct=True),
        ]

        with pytest.raises(InvalidQuestionError):
            await lesson_service.add_quiz_question(
                row.id, _question_request(answers=answers)
            )

    @pytest.mark.asyncio
    async def test_get_questions_attaches_answers(
        self, lesson_service, mock_session
    ) -> None:
        lesson_id = uuid4()
        older = SimpleNamespace(
            lesson_id=lesson_id,
            question_id=uuid4(),
            question_text="Primeira",
            points=1,
            created_at=datetime(2024, 1, 1),
        )
        newer = SimpleNamespace(
            lesson_id=lesson_id,
            question_id=uuid4(),
            question_text="Segunda",
            points=3,
            created_at=datetime(2024, 2, 1),
        )
        answers = [
            SimpleNamespace(
                question_id=older.question_id,
                answer_id=uuid4(),
                answer_text="Sim",
                is_correct=True,
            ),
            SimpleNamespace(
                question_id=newer.question_id,
                answer_id=uuid4(),
                answer_text="Nao",
                is_correct=False,
            ),
            SimpleNamespace(
                question_id=uuid4(),
                answer_id=uuid4(),
                answer_text="Orfa",
                is_correct=True,
            ),
        ]
        _route(
            mock_session,
            {
                id(lesson_service._get_questions): _result([newer, older]),
                id(lesson_service._get_answers): _result(answers),
            },
        )

        questions = await lesson_service.get_quiz_questions(lesson_id)

        assert [q.question_text for q in questions] == ["Primeira", "Segunda"]
        assert [len(q.answers) for q in questions] == [1, 1]
        assert questions[0].is_correct(answers[0].answer_id)

    @pytest.mark.asyncio
    async def test_get_questions_empty(self, lesson_service, mock_session) -> None:
        assert await lesson_service.get_quiz_questions(uuid4()) == []
        assert _executed(mock_session, lesson_service._get_answers) == []


class TestCourseService:
    """Tests for course creation and cascading delete."""

    @pytest.mark.asyncio
    async def test_create_course(self, course_service, mock_session) -> None:
        instructor_id = uuid4()
        course = await course_service.create_course(
            CreateCourseRequest(title="Farmacologia Basica"), instructor_id
        )

        assert course.instructor_id == instructor_id
        (params,) = _executed(mock_session, course_service._insert_course)
        assert params[:3] == [course.id, instructor_id, "Farmacologia Basica"]

    @pytest.mark.asyncio
    async def test_delete_missing_course(self, course_service) -> None:
        with pytest.raises(CourseNotFoundError):
            await course_service.delete_course(uuid4())

    @pytest.mark.asyncio
    async def test_delete_cascades(
        self, course_service, lesson_service, mock_session
    ) -> None:
        course_id = uuid4()
        course_row = SimpleNamespace(
            id=course_id,
            instructor_id=uuid4(),
            title="Curso",
            description=None,
            created_at=datetime(2024, 1, 1),
            updated_at=None,
        )
        enrollment_ids = [uuid4(), uuid4(), uuid4()]
        _route(
            mock_session,
            {
                id(course_service._get_course_by_id): _result([course_row]),
                id(course_service._get_course_enrollment_ids): _result(
                    [SimpleNamespace(enrollment_id=e) for e in enrollment_ids]
                ),
            },
        )
        lessons = [Mock(id=uuid4()), Mock(id=uuid4())]
        lesson_service.list_lessons_by_course = AsyncMock(return_value=lessons)
        lesson_service.delete_lesson = AsyncMock(return_value=0)

        await course_service.delete_course(course_id)

        assert [c.args[0] for c in lesson_service.delete_lesson.call_args_list] == [
            lesson.id for lesson in lessons
        ]
        assert _executed(mock_session, course_service._delete_certificate) == [
            [e] for e in enrollment_ids
        ]
        assert _executed(mock_session, course_service._delete_enrollment) == [
            [e] for e in enrollment_ids
        ]
        assert _executed(mock_session, course_service._delete_course_enrollments) == [
            [course_id]
        ]
        assert _executed(mock_session, course_service._delete_course) == [[course_id]]
