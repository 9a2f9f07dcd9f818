"""Request context management using contextvars.

Each request gets a unique ID plus optional user and correlation
information that can be read anywhere in the call stack (the structlog
processors pick it up for every log line).
"""

from contextvars import ContextVar, Token
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

_CONTEXT_VARS: dict[str, ContextVar[Any]] = {
    "request_id": request_id_var,
    "user_id": user_id_var,
    "correlation_id": correlation_id_var,
}


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, generates a new one.

    Returns:
        The request ID that was set.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    """Get the current user ID."""
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None) -> None:
    """Set the user ID for the current context."""
    user_id_var.set(str(user_id) if user_id is not None else None)


def get_correlation_id() -> str | None:
    """Get the current correlation ID."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation ID for the current context."""
    correlation_id_var.set(correlation_id)


def get_context() -> dict[str, Any]:
    """Get all non-empty context variables as a dictionary."""
    return {name: var.get() for name, var in _CONTEXT_VARS.items() if var.get()}


def clear_context() -> None:
    """Clear all context variables.

    Called at the end of each request to prevent context leakage between
    requests.
    """
    request_id_var.set("")
    user_id_var.set(None)
    correlation_id_var.set(None)


class RequestContext:
    """Context manager for a request scope outside of HTTP (scripts, tests).

    Usage:
        with RequestContext(user_id=student_id):
            await service.mark_lesson_completed(lesson_id, enrollment_id)
    """

    def __init__(
        self,
        request_id: str | None = None,
        user_id: str | UUID | None = None,
        correlation_id: str | None = None,
    ) -> None:
        self._values: dict[str, str | None] = {
            "request_id": request_id or generate_request_id(),
            "user_id": str(user_id) if user_id is not None else None,
            "correlation_id": correlation_id,
        }
        self._tokens: dict[str, Token[Any]] = {}

    @property
    def request_id(self) -> str:
        return self._values["request_id"] or ""

    def __enter__(self) -> "RequestContext":
        for name, value in self._values.items():
            if value is not None:
                self._tokens[name] = _CONTEXT_VARS[name].set(value)
        return self

    def __exit__(self, *_: object) -> None:
        for name, token in self._tokens.items():
            _CONTEXT_VARS[name].reset(token)
        self._tokens.clear()
