"""FastAPI dependencies for course management.

Provides dependency injection for:
- Service instances
- Course ownership verification
- Error handlers
"""

from collections.abc import Callable
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status

from src.auth.dependencies import InstructorUser
from src.auth.permissions import is_admin
from src.auth.schemas import AuthenticatedUser
from src.courses.models import Course
from src.courses.service import CourseError, CourseService, LessonService


# ==============================================================================
# Service Getters (set by main.py)
# ==============================================================================

_course_service_getter: Callable[[], CourseService] | None = None
_lesson_service_getter: Callable[[], LessonService] | None = None


def set_course_service_getter(getter: Callable[[], CourseService]) -> None:
    """Set the course service getter function."""
    global _course_service_getter
    _course_service_getter = getter


def set_lesson_service_getter(getter: Callable[[], LessonService]) -> None:
    """Set the lesson service getter function."""
    global _lesson_service_getter
    _lesson_service_getter = getter


def get_course_service() -> CourseService:
    """Get CourseService instance from app state."""
    if _course_service_getter is None:
        msg = "CourseService not configured"
        raise RuntimeError(msg)
    return _course_service_getter()


def get_lesson_service() -> LessonService:
    """Get LessonService instance from app state."""
    if _lesson_service_getter is None:
        msg = "LessonService not configured"
        raise RuntimeError(msg)
    return _lesson_service_getter()


# ==============================================================================
# Type Aliases for Dependencies
# ==============================================================================

CourseServiceDep = Annotated[CourseService, Depends(get_course_service)]
LessonServiceDep = Annotated[LessonService, Depends(get_lesson_service)]


# ==============================================================================
# Ownership Verification
# ==============================================================================


def can_manage_course(user: AuthenticatedUser, course: Course) -> bool:
    """Instructors manage their own courses, admins manage any."""
    if is_admin(user.role):
        return True
    return user.id == course.instructor_id


async def require_managed_course(
    course_id: UUID,
    course_service: CourseService,
    user: AuthenticatedUser,
) -> Course:
    """Get a course the user may edit.

    Raises:
        HTTPException 404: If course doesn't exist
        HTTPException 403: If user does not own the course
    """
    course = await course_service.get_course(course_id)
    if not course:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Curso nao encontrado",
        )

    if not can_manage_course(user, course):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Sem permissao para editar este curso",
        )

    return course


async def verify_course_edit_access(
    course_id: UUID,
    course_service: CourseServiceDep,
    user: InstructorUser,
) -> Course:
    """Verify user can edit a course (owning INSTRUCTOR or ADMIN)."""
    return await require_managed_course(course_id, course_service, user)


# ==============================================================================
# Error Handlers
# ==============================================================================


def handle_course_error(error: CourseError) -> HTTPException:
    """Convert course errors to HTTPException."""
    status_map = {
        "course_not_found": status.HTTP_404_NOT_FOUND,
        "lesson_not_found": status.HTTP_404_NOT_FOUND,
        "not_a_quiz": status.HTTP_400_BAD_REQUEST,
        "invalid_question": status.HTTP_422_UNPROCESSABLE_ENTITY,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail=error.message,
    )
