"""Progress domain errors.

Every error carries a machine readable ``code`` (mapped to an HTTP status
by ``dependencies.handle_progress_error``) and the ids it relates to, so a
caller can act on it without parsing the message.
"""

from typing import Any
from uuid import UUID


class ProgressError(Exception):
    """Base progress error."""

    code = "progress_error"
    default_message = "Erro de progresso"

    def __init__(
        self,
        message: str | None = None,
        *,
        lesson_id: UUID | None = None,
        enrollment_id: UUID | None = None,
        course_id: UUID | None = None,
    ):
        self.message = message or self.default_message
        self.lesson_id = lesson_id
        self.enrollment_id = enrollment_id
        self.course_id = course_id
        super().__init__(self.message)

    @property
    def context(self) -> dict[str, Any]:
        """Related ids, for logging and error payloads."""
        ids = {
            "lesson_id": self.lesson_id,
            "enrollment_id": self.enrollment_id,
            "course_id": self.course_id,
        }
        return {k: str(v) for k, v in ids.items() if v is not None}


# ==============================================================================
# Not found
# ==============================================================================


class NotFoundError(ProgressError):
    """A lesson, enrollment or progress record is absent."""

    code = "not_found"
    default_message = "Registro nao encontrado"


class LessonNotFoundError(NotFoundError):
    code = "lesson_not_found"
    default_message = "Aula nao encontrada"


class EnrollmentNotFoundError(NotFoundError):
    code = "enrollment_not_found"
    default_message = "Inscricao nao encontrada"


class LessonProgressNotFoundError(NotFoundError):
    """No progress exists yet (the lesson was never started)."""

    code = "progress_not_found"
    default_message = "Progresso da aula nao encontrado"


class QuizNotConfiguredError(NotFoundError):
    """The quiz lesson has no questions."""

    code = "quiz_questions_not_found"
    default_message = "Questionario sem perguntas"


# ==============================================================================
# Invalid operation / state
# ==============================================================================


class InvalidOperationError(ProgressError):
    """The operation does not apply to this lesson or enrollment."""

    code = "invalid_operation"
    default_message = "Operacao invalida para esta aula"


class InvalidStateError(ProgressError):
    """Stored configuration makes the computation impossible."""

    code = "invalid_state"
    default_message = "Configuracao invalida"


# ==============================================================================
# Conflicts
# ==============================================================================


class ConflictError(ProgressError):
    """A concurrent writer got there first (lost a conditional write)."""

    code = "conflict"
    default_message = "Registro alterado concorrentemente"


class AlreadyEnrolledError(ConflictError):
    code = "already_enrolled"
    default_message = "Aluno ja inscrito no curso"
