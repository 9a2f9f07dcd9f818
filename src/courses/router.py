"""Course management API endpoints.

Provides routes for:
- Courses: create, read, cascading delete
- Lessons: CRUD operations and course listing
- Quiz questions: authoring and listing
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from src.auth.dependencies import CurrentUser, InstructorUser
from src.auth.permissions import is_at_least_instructor
from src.courses.dependencies import (
    CourseServiceDep,
    LessonServiceDep,
    can_manage_course,
    handle_course_error,
    require_managed_course,
    verify_course_edit_access,
)
from src.courses.models import Course, Lesson
from src.courses.schemas import (
    CourseResponse,
    CreateCourseRequest,
    CreateLessonRequest,
    CreateQuizQuestionRequest,
    LessonListResponse,
    LessonResponse,
    QuizQuestionListResponse,
    QuizQuestionResponse,
    UpdateLessonRequest,
)
from src.courses.service import CourseError


# ==============================================================================
# Courses Router
# ==============================================================================

router_courses = APIRouter(prefix="/v1/courses", tags=["courses"])


@router_courses.post(
    "",
    response_model=CourseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new course",
)
async def create_course(
    data: CreateCourseRequest,
    course_service: CourseServiceDep,
    user: InstructorUser,
) -> CourseResponse:
    """Create a new course (INSTRUCTOR or ADMIN only)."""
    course = await course_service.create_course(data, user.id)
    return CourseResponse.from_entity(course)


@router_courses.get(
    "/{course_id}",
    response_model=CourseResponse,
    summary="Get course details",
)
async def get_course(
    course_id: UUID,
    course_service: CourseServiceDep,
    lesson_service: LessonServiceDep,
    user: CurrentUser,
) -> CourseResponse:
    """Get course details with its lesson count."""
    course = await course_service.get_course(course_id)
    if not course:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Curso nao encontrado",
        )

    lessons = await lesson_service.list_lessons_by_course(course_id)
    return CourseResponse.from_entity(course, lesson_count=len(lessons))


@router_courses.delete(
    "/{course_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete course",
)
async def delete_course(
    course: Annotated[Course, Depends(verify_course_edit_access)],
    course_service: CourseServiceDep,
) -> None:
    """Delete course with its lessons and enrollments (owner or ADMIN only)."""
    try:
        await course_service.delete_course(course.id)
    except CourseError as e:
        raise handle_course_error(e) from e


# ==============================================================================
# Lessons Router
# ==============================================================================

router_lessons = APIRouter(prefix="/v1/lessons", tags=["lessons"])


async def require_managed_lesson(
    lesson_id: UUID,
    lesson_service: LessonServiceDep,
    course_service: CourseServiceDep,
    user: InstructorUser,
) -> Lesson:
    """Get a lesson whose course the user may edit."""
    lesson = await lesson_service.get_lesson(lesson_id)
    if not lesson:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Aula nao encontrada",
        )
    await require_managed_course(lesson.course_id, course_service, user)
    return lesson


ManagedLesson = Annotated[Lesson, Depends(require_managed_lesson)]


@router_lessons.post(
    "",
    response_model=LessonResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new lesson",
)
async def create_lesson(
    data: CreateLessonRequest,
    lesson_service: LessonServiceDep,
    course_service: CourseServiceDep,
    user: InstructorUser,
) -> LessonResponse:
    """Create a lesson in a course (owning INSTRUCTOR or ADMIN only)."""
    await require_managed_course(data.course_id, course_service, user)
    lesson = await lesson_service.create_lesson(data)
    return LessonResponse.from_entity(lesson)


@router_lessons.get(
    "/course/{course_id}",
    response_model=LessonListResponse,
    summary="List lessons of a course",
)
async def list_course_lessons(
    course_id: UUID,
    lesson_service: LessonServiceDep,
    user: CurrentUser,
) -> LessonListResponse:
    """List the lessons of a course ordered by sequence position."""
    lessons = await lesson_service.list_lessons_by_course(course_id)
    return LessonListResponse(
        items=[LessonResponse.from_entity(lesson) for lesson in lessons],
        total=len(lessons),
    )


@router_lessons.get(
    "/{lesson_id}",
    response_model=LessonResponse,
    summary="Get lesson details",
)
async def get_lesson(
    lesson_id: UUID,
    lesson_service: LessonServiceDep,
    user: CurrentUser,
) -> LessonResponse:
    """Get lesson details."""
    lesson = await lesson_service.get_lesson(lesson_id)
    if not lesson:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Aula nao encontrada",
        )
    return LessonResponse.from_entity(lesson)


@router_lessons.put(
    "/{lesson_id}",
    response_model=LessonResponse,
    summary="Update lesson",
)
async def update_lesson(
    lesson: ManagedLesson,
    data: UpdateLessonRequest,
    lesson_service: LessonServiceDep,
) -> LessonResponse:
    """Update lesson (course owner or ADMIN only)."""
    try:
        updated = await lesson_service.update_lesson(lesson.id, data)
        return LessonResponse.from_entity(updated)
    except CourseError as e:
        raise handle_course_error(e) from e


@router_lessons.delete(
    "/{lesson_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete lesson",
)
async def delete_lesson(
    lesson: ManagedLesson,
    lesson_service: LessonServiceDep,
) -> None:
    """Delete lesson with its questions and progress (course owner or ADMIN)."""
    try:
        await lesson_service.delete_lesson(lesson.id)
    except CourseError as e:
        raise handle_course_error(e) from e


# --------------------------------------------------------------------------
# Quiz Questions
# --------------------------------------------------------------------------


@router_lessons.post(
    "/{lesson_id}/questions",
    response_model=QuizQuestionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add quiz question",
)
async def add_quiz_question(
    lesson: ManagedLesson,
    data: CreateQuizQuestionRequest,
    lesson_service: LessonServiceDep,
) -> QuizQuestionResponse:
    """Add a question with its answer options to a quiz lesson."""
    try:
        question = await lesson_service.add_quiz_question(lesson.id, data)
    except CourseError as e:
        raise handle_course_error(e) from e
    return QuizQuestionResponse.from_entity(question, include_key=True)


@router_lessons.get(
    "/{lesson_id}/questions",
    response_model=QuizQuestionListResponse,
    summary="List quiz questions",
)
async def list_quiz_questions(
    lesson_id: UUID,
    lesson_service: LessonServiceDep,
    course_service: CourseServiceDep,
    user: CurrentUser,
) -> QuizQuestionListResponse:
    """List the questions of a quiz lesson.

    The answer key is only included for the course owner and admins.
    """
    lesson = await lesson_service.get_lesson(lesson_id)
    if not lesson:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Aula nao encontrada",
        )

    include_key = False
    if is_at_least_instructor(user.role):
        course = await course_service.get_course(lesson.course_id)
        include_key = course is not None and can_manage_course(user, course)

    questions = await lesson_service.get_quiz_questions(lesson_id)
    return QuizQuestionListResponse(
        items=[
            QuizQuestionResponse.from_entity(q, include_key=include_key)
            for q in questions
        ],
        total=len(questions),
        total_points=sum(q.points for q in questions),
    )
