"""FastAPI dependencies for progress tracking.

Provides dependency injection for:
- Progress service
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .errors import (
    ConflictError,
    InvalidOperationError,
    InvalidStateError,
    NotFoundError,
    ProgressError,
)
from .service import ProgressService


async def get_progress_service(request: Request) -> ProgressService:
    """Get progress service from app state."""
    progress_service = getattr(request.app.state, "progress_service", None)
    if progress_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Servico de progresso nao disponivel",
        )
    return progress_service


# Type alias for dependency injection
ProgressServiceDep = Annotated[ProgressService, Depends(get_progress_service)]


# Most specific first: subclasses share their parent's status
_STATUS_BY_ERROR: list[tuple[type[ProgressError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidOperationError, status.HTTP_400_BAD_REQUEST),
    (InvalidStateError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ConflictError, status.HTTP_409_CONFLICT),
]


def handle_progress_error(error: ProgressError) -> HTTPException:
    """Convert progress errors to HTTP exceptions."""
    status_code = next(
        (code for error_type, code in _STATUS_BY_ERROR if isinstance(error, error_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    return HTTPException(status_code=status_code, detail=error.message)
