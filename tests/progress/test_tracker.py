"""Tests for lesson completion tracking."""

import asyncio
from uuid import uuid4

import pytest

from src.courses.models import Course, Lesson
from src.progress.errors import (
    EnrollmentNotFoundError,
    InvalidOperationError,
    LessonNotFoundError,
    LessonProgressNotFoundError,
    QuizNotConfiguredError,
)
from src.progress.grading import QuizGrader
from src.progress.models import LessonProgressStatus
from src.progress.tracker import LessonCompletionTracker


@pytest.fixture
def tracker(store) -> LessonCompletionTracker:
    return LessonCompletionTracker(store, QuizGrader(store))


@pytest.fixture
def lesson(lessons) -> Lesson:
    return lessons[0]


def _correct(question):
    return next(iter(question.correct_answer_ids))


class TestMarkCompleted:
    """Tests for marking non-quiz lessons complete."""

    @pytest.mark.asyncio
    async def test_creates_completed_row(
        self, tracker, store, lesson, enrollment
    ) -> None:
        progress = await tracker.mark_completed(lesson.id, enrollment.id)

        assert progress.is_completed is True
        assert progress.completed_at is not None
        assert progress.quiz_score is None
        assert progress.status == LessonProgressStatus.COMPLETED
        assert list(store.progress) == [(enrollment.id, lesson.id)]

    @pytest.mark.asyncio
    async def test_marking_twice_keeps_first_timestamp(
        self, tracker, store, lesson, enrollment
    ) -> None:
        first = await tracker.mark_completed(lesson.id, enrollment.id)
        second = await tracker.mark_completed(lesson.id, enrollment.id)

        assert len(store.progress) == 1
        assert second.id == first.id
        assert second.completed_at == first.completed_at
        stored = store.progress[(enrollment.id, lesson.id)]
        assert stored.completed_at == first.completed_at

    @pytest.mark.asyncio
    async def test_concurrent_completions_produce_one_row(
        self, tracker, store, lesson, enrollment
    ) -> None:
        results = await asyncio.gather(
            *(tracker.mark_completed(lesson.id, enrollment.id) for _ in range(5))
        )

        assert len(store.progress) == 1
        stored = store.progress[(enrollment.id, lesson.id)]
        assert all(r.is_completed for r in results)
        assert {r.completed_at for r in results} == {stored.completed_at}
        assert {r.id for r in results} == {stored.id}

    @pytest.mark.asyncio
    async def test_quiz_lesson_is_rejected(
        self, tracker, store, quiz_lesson, enrollment
    ) -> None:
        with pytest.raises(InvalidOperationError):
            await tracker.mark_completed(quiz_lesson.id, enrollment.id)
        assert store.progress == {}

    @pytest.mark.asyncio
    async def test_unknown_lesson(self, tracker, enrollment) -> None:
        with pytest.raises(LessonNotFoundError):
            await tracker.mark_completed(uuid4(), enrollment.id)

    @pytest.mark.asyncio
    async def test_unknown_enrollment(self, tracker, lesson) -> None:
        with pytest.raises(EnrollmentNotFoundError):
            await tracker.mark_completed(lesson.id, uuid4())

    @pytest.mark.asyncio
    async def test_lesson_of_another_course(
        self, tracker, store, enrollment, instructor_id
    ) -> None:
        other = store.add_course(Course(instructor_id=instructor_id, title="Outro"))
        foreign = store.add_lesson(Lesson(course_id=other.id, order=1, title="Aula X"))

        with pytest.raises(InvalidOperationError):
            await tracker.mark_completed(foreign.id, enrollment.id)
        assert store.progress == {}


class TestSubmitQuizAnswers:
    """Tests for quiz submission."""

    @pytest.mark.asyncio
    async def test_stores_score_and_completes(
        self, tracker, store, quiz_lesson, quiz_questions, enrollment
    ) -> None:
        answers = {q.id: _correct(q) for q in quiz_questions[:2]}

        score = await tracker.submit_quiz_answers(quiz_lesson.id, enrollment.id, answers)

        assert score == 67
        stored = store.progress[(enrollment.id, quiz_lesson.id)]
        assert stored.quiz_score == 67
        assert stored.is_completed is True
        assert stored.completed_at is not None

    @pytest.mark.asyncio
    async def test_zero_score_still_completes(
        self, tracker, store, quiz_lesson, quiz_questions, enrollment
    ) -> None:
        score = await tracker.submit_quiz_answers(quiz_lesson.id, enrollment.id, {})

        assert score == 0
        assert await tracker.is_completed(quiz_lesson.id, enrollment.id) is True

    @pytest.mark.asyncio
    async def test_resubmission_updates_score_keeps_completed_at(
        self, tracker, store, quiz_lesson, quiz_questions, enrollment
    ) -> None:
        await tracker.submit_quiz_answers(quiz_lesson.id, enrollment.id, {})
        first = store.progress[(enrollment.id, quiz_lesson.id)].completed_at

        answers = {q.id: _correct(q) for q in quiz_questions}
        score = await tracker.submit_quiz_answers(quiz_lesson.id, enrollment.id, answers)

        stored = store.progress[(enrollment.id, quiz_lesson.id)]
        assert score == 100
        assert stored.quiz_score == 100
        assert stored.completed_at == first
        assert len(store.progress) == 1

    @pytest.mark.asyncio
    async def test_non_quiz_lesson_rejected_without_writes(
        self, tracker, store, lesson, enrollment
    ) -> None:
        with pytest.raises(InvalidOperationError):
            await tracker.submit_quiz_answers(lesson.id, enrollment.id, {})

        assert store.progress == {}
        assert store.progress_writes == 0

    @pytest.mark.asyncio
    async def test_quiz_without_questions_writes_nothing(
        self, tracker, store, quiz_lesson, enrollment
    ) -> None:
        with pytest.raises(QuizNotConfiguredError):
            await tracker.submit_quiz_answers(quiz_lesson.id, enrollment.id, {})
        assert store.progress == {}

    @pytest.mark.asyncio
    async def test_failed_write_leaves_quiz_incomplete(
        self, tracker, store, quiz_lesson, quiz_questions, enrollment
    ) -> None:
        store.fail_progress_saves = True

        with pytest.raises(ConnectionError):
            await tracker.submit_quiz_answers(quiz_lesson.id, enrollment.id, {})

        stored = store.progress[(enrollment.id, quiz_lesson.id)]
        assert stored.is_completed is False
        assert stored.completed_at is None
        assert stored.quiz_score is None
        assert await tracker.is_completed(quiz_lesson.id, enrollment.id) is False

    @pytest.mark.asyncio
    async def test_failed_resubmission_keeps_previous_score(
        self, tracker, store, quiz_lesson, quiz_questions, enrollment
    ) -> None:
        answers = {q.id: _correct(q) for q in quiz_questions}
        await tracker.submit_quiz_answers(quiz_lesson.id, enrollment.id, answers)
        store.fail_progress_saves = True

        with pytest.raises(ConnectionError):
            await tracker.submit_quiz_answers(quiz_lesson.id, enrollment.id, {})

        stored = store.progress[(enrollment.id, quiz_lesson.id)]
        assert stored.is_completed is True
        assert stored.quiz_score == 100

    @pytest.mark.asyncio
    async def test_concurrent_submissions_complete_once_with_a_score(
        self, tracker, store, quiz_lesson, quiz_questions, enrollment
    ) -> None:
        answers = {q.id: _correct(q) for q in quiz_questions}

        scores = await asyncio.gather(
            tracker.submit_quiz_answers(quiz_lesson.id, enrollment.id, answers),
            tracker.submit_quiz_answers(quiz_lesson.id, enrollment.id, {}),
        )

        assert sorted(scores) == [0, 100]
        assert len(store.progress) == 1
        stored = store.progress[(enrollment.id, quiz_lesson.id)]
        assert stored.is_completed is True
        assert stored.quiz_score in (0, 100)


class TestQueries:
    """Tests for progress reads."""

    @pytest.mark.asyncio
    async def test_is_completed_false_without_row(
        self, tracker, lesson, enrollment
    ) -> None:
        assert await tracker.is_completed(lesson.id, enrollment.id) is False

    @pytest.mark.asyncio
    async def test_get_progress_without_row_raises(
        self, tracker, lesson, enrollment
    ) -> None:
        with pytest.raises(LessonProgressNotFoundError):
            await tracker.get_progress(lesson.id, enrollment.id)

    @pytest.mark.asyncio
    async def test_get_progress_returns_snapshot(
        self, tracker, lesson, enrollment
    ) -> None:
        completed = await tracker.mark_completed(lesson.id, enrollment.id)

        progress = await tracker.get_progress(lesson.id, enrollment.id)

        assert progress.id == completed.id
        assert progress.is_completed is True
        assert await tracker.is_completed(lesson.id, enrollment.id) is True
