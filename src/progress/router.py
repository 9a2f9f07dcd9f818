"""Student progress tracking API endpoints.

Provides routes for:
- Lesson completion (non-quiz lessons)
- Quiz submission and grading
- Course enrollment
- Progress queries
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from src.auth.dependencies import StudentUser
from src.auth.schemas import AuthenticatedUser
from src.courses.dependencies import CourseServiceDep, LessonServiceDep
from src.courses.models import Lesson

from .dependencies import ProgressServiceDep, handle_progress_error
from .errors import ProgressError
from .models import Enrollment
from .schemas import (
    CourseProgressResponse,
    EnrollmentResponse,
    EnrollRequest,
    LessonProgressResponse,
    QuizResultResponse,
    SubmitQuizAnswersRequest,
)
from .service import ProgressService


router = APIRouter(prefix="/v1/progress", tags=["progress"])
enrollments_router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


# ==============================================================================
# Enrollment Resolution Helper
# ==============================================================================


async def resolve_enrollment(
    course_id: UUID,
    user: AuthenticatedUser,
    progress_service: ProgressService,
) -> Enrollment:
    """Get the acting student's enrollment in a course.

    Raises:
        HTTPException 403: If the student is not enrolled
    """
    enrollment = await progress_service.get_enrollment(course_id, user.id)
    if enrollment is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Voce nao esta inscrito neste curso",
        )
    return enrollment


async def resolve_lesson_enrollment(
    lesson_id: UUID,
    user: AuthenticatedUser,
    lesson_service: LessonServiceDep,
    progress_service: ProgressService,
) -> tuple[Lesson, Enrollment]:
    """Get a lesson and the acting student's enrollment in its course.

    Raises:
        HTTPException 404: If the lesson doesn't exist
        HTTPException 403: If the student is not enrolled in the course
    """
    lesson = await lesson_service.get_lesson(lesson_id)
    if lesson is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Aula nao encontrada",
        )
    enrollment = await resolve_enrollment(lesson.course_id, user, progress_service)
    return lesson, enrollment


# ==============================================================================
# Lesson Completion Endpoints
# ==============================================================================


@router.post(
    "/lessons/{lesson_id}/complete",
    response_model=LessonProgressResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark lesson as complete",
)
async def mark_lesson_complete(
    lesson_id: UUID,
    progress_service: ProgressServiceDep,
    lesson_service: LessonServiceDep,
    user: StudentUser,
) -> LessonProgressResponse:
    """Mark a non-quiz lesson as complete.

    Idempotent: completing twice keeps the first completion time.
    Quiz lessons are completed by submitting answers instead.
    """
    _, enrollment = await resolve_lesson_enrollment(
        lesson_id, user, lesson_service, progress_service
    )

    try:
        progress = await progress_service.mark_lesson_completed(
            lesson_id, enrollment.id
        )
        return LessonProgressResponse.from_entity(progress)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@router.post(
    "/lessons/{lesson_id}/quiz",
    response_model=QuizResultResponse,
    status_code=status.HTTP_200_OK,
    summary="Submit quiz answers",
)
async def submit_quiz_answers(
    lesson_id: UUID,
    data: SubmitQuizAnswersRequest,
    progress_service: ProgressServiceDep,
    lesson_service: LessonServiceDep,
    user: StudentUser,
) -> QuizResultResponse:
    """Grade a quiz submission and complete the quiz lesson.

    Any graded attempt completes the lesson; the score is stored as is.
    """
    _, enrollment = await resolve_lesson_enrollment(
        lesson_id, user, lesson_service, progress_service
    )

    try:
        score = await progress_service.submit_quiz_answers(
            lesson_id, enrollment.id, data.answers
        )
    except ProgressError as e:
        raise handle_progress_error(e) from e

    return QuizResultResponse(
        lesson_id=lesson_id,
        enrollment_id=enrollment.id,
        score=score,
    )


# ==============================================================================
# Progress Query Endpoints
# ==============================================================================


@router.get(
    "/lessons/{lesson_id}",
    response_model=LessonProgressResponse,
    summary="Get lesson progress",
)
async def get_lesson_progress(
    lesson_id: UUID,
    progress_service: ProgressServiceDep,
    lesson_service: LessonServiceDep,
    user: StudentUser,
) -> LessonProgressResponse:
    """Get progress for a specific lesson (404 until the lesson is started)."""
    _, enrollment = await resolve_lesson_enrollment(
        lesson_id, user, lesson_service, progress_service
    )

    try:
        progress = await progress_service.get_lesson_progress(lesson_id, enrollment.id)
        return LessonProgressResponse.from_entity(progress)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@router.get(
    "/courses/{course_id}",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: StudentUser,
) -> CourseProgressResponse:
    """Get the completion percentage of a course.

    Reaching 100% marks the enrollment completed.
    """
    enrollment = await resolve_enrollment(course_id, user, progress_service)

    try:
        result = await progress_service.get_course_progress(course_id, enrollment.id)
        refreshed = await progress_service.require_enrollment(course_id, user.id)
    except ProgressError as e:
        raise handle_progress_error(e) from e

    certificate = await progress_service.get_certificate(enrollment.id)
    return CourseProgressResponse.build(
        result,
        refreshed,
        certificate_number=certificate.certificate_number if certificate else None,
    )


# ==============================================================================
# Enrollment Endpoints
# ==============================================================================


@enrollments_router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in course",
)
async def enroll_in_course(
    data: EnrollRequest,
    progress_service: ProgressServiceDep,
    course_service: CourseServiceDep,
    user: StudentUser,
) -> EnrollmentResponse:
    """Enroll the current student in a course."""
    course = await course_service.get_course(data.course_id)
    if course is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Curso nao encontrado",
        )

    try:
        enrollment = await progress_service.enroll_student(data.course_id, user.id)
        return EnrollmentResponse.from_entity(enrollment)
    except ProgressError as e:
        raise handle_progress_error(e) from e


@enrollments_router.get(
    "/course/{course_id}",
    response_model=EnrollmentResponse,
    summary="Get enrollment for course",
)
async def get_enrollment(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: StudentUser,
) -> EnrollmentResponse:
    """Get the current student's enrollment in a course."""
    enrollment = await progress_service.get_enrollment(course_id, user.id)
    if enrollment is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Inscricao nao encontrada",
        )
    return EnrollmentResponse.from_entity(enrollment)
