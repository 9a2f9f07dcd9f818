"""Course Tracking API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.config import get_settings
from src.core.context import get_request_id
from src.core.database import init_async_cassandra, shutdown_async_cassandra
from src.core.logging import configure_structlog, get_logger
from src.core.middleware import RequestContextMiddleware
from src.courses.dependencies import (
    set_course_service_getter,
    set_lesson_service_getter,
)
from src.courses.router import router_courses, router_lessons
from src.courses.service import CourseService, LessonService
from src.health import router as health_router
from src.progress.certification import CertificateEligibility
from src.progress.router import enrollments_router
from src.progress.router import router as progress_router
from src.progress.service import ProgressService
from src.progress.store import CassandraEntityStore


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


# Application state for dependency injection
class AppState:
    """Application state container."""

    cassandra_session: Any = None
    course_service: CourseService | None = None
    lesson_service: LessonService | None = None
    progress_service: ProgressService | None = None


app_state = AppState()


def get_course_service() -> CourseService:
    """Get CourseService instance from app state."""
    if app_state.course_service is None:
        msg = "CourseService not initialized"
        raise RuntimeError(msg)
    return app_state.course_service


def get_lesson_service() -> LessonService:
    """Get LessonService instance from app state."""
    if app_state.lesson_service is None:
        msg = "LessonService not initialized"
        raise RuntimeError(msg)
    return app_state.lesson_service


async def log_certificate_eligibility(event: CertificateEligibility) -> None:
    """Default eligibility listener; certificate issuance happens downstream."""
    logger.info(
        "certificate_eligible",
        enrollment_id=str(event.enrollment_id),
        course_id=str(event.course_id),
        student_id=str(event.student_id),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "starting_application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Initialize Cassandra (async)
    try:
        app_state.cassandra_session = await init_async_cassandra()
        logger.info("cassandra_initialized")

        # Initialize Course Services
        app_state.lesson_service = LessonService(
            session=app_state.cassandra_session,
            keyspace=settings.cassandra_keyspace,
        )
        app_state.course_service = CourseService(
            session=app_state.cassandra_session,
            keyspace=settings.cassandra_keyspace,
            lesson_service=app_state.lesson_service,
        )
        logger.info("course_services_initialized")

        # Initialize Progress Service
        store = CassandraEntityStore(
            session=app_state.cassandra_session,
            keyspace=settings.cassandra_keyspace,
        )
        app_state.progress_service = ProgressService(
            store,
            recompute_on_completion=settings.progress_recompute_on_completion,
            listeners=[log_certificate_eligibility],
        )
        app.state.progress_service = app_state.progress_service
        logger.info("progress_service_initialized")
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # SECURITY: debug=False keeps Starlette's ServerErrorMiddleware from
    # exposing stack traces; the handlers below log details internally.
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Acompanhamento de progresso em cursos - API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    # Global exception handlers (security: never expose stack traces)
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": request_id,
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
        request_id = _get_request_id_safe(request)

        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "status_code": 422,
                "request_id": request_id,
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions.

        SECURITY: Never expose stack traces or internal error details to users.
        """
        request_id = _get_request_id_safe(request)

        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )

        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": request_id,
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(router_courses)
    app.include_router(router_lessons)
    app.include_router(progress_router)
    app.include_router(enrollments_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "Course Tracking API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


# Configure router dependencies before creating app
set_course_service_getter(get_course_service)
set_lesson_service_getter(get_lesson_service)


app = create_app()
