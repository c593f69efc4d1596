"""Comment System API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from comment_system.auth.repository import (
    CassandraUserRepository,
    InMemoryUserRepository,
    UserRepository,
)
from comment_system.auth.router import router as auth_router
from comment_system.auth.service import AuthService
from comment_system.comments.repository import (
    CassandraCommentRepository,
    CommentRepository,
    InMemoryCommentRepository,
)
from comment_system.comments.router import router as comments_router
from comment_system.comments.service import CommentService
from comment_system.config import Settings, get_settings
from comment_system.core.context import get_request_id
from comment_system.core.database import init_async_cassandra, shutdown_async_cassandra
from comment_system.core.logging import configure_structlog, get_logger
from comment_system.core.middleware import (
    RequestContextMiddleware,
    SecurityHeadersMiddleware,
)
from comment_system.core.rate_limit import RateLimitConfig, RateLimitMiddleware
from comment_system.core.redis import init_redis, shutdown_redis
from comment_system.health.router import router as health_router
from comment_system.notifications.publisher import (
    EventPublisher,
    NullEventPublisher,
    RedisEventPublisher,
)
from comment_system.notifications.router import router as realtime_router
from comment_system.notifications.websocket_router import router as realtime_ws_router


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(settings, log_dir=Path(settings.log_dir))

logger = get_logger(__name__)


async def _build_repositories(
    settings: Settings,
) -> tuple[UserRepository, CommentRepository]:
    """Pick the user and comment stores for the configured backend."""
    if settings.storage_backend == "memory":
        logger.info("memory_storage_selected")
        return InMemoryUserRepository(), InMemoryCommentRepository()

    session = await init_async_cassandra()
    logger.info("cassandra_initialized")
    return (
        CassandraUserRepository(session, settings.cassandra_keyspace),
        CassandraCommentRepository(session, settings.cassandra_keyspace),
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
        storage_backend=settings.storage_backend,
    )

    # Initialize Redis (non-critical - app works without it)
    publisher: EventPublisher = NullEventPublisher()
    try:
        redis_client = await init_redis()
        publisher = RedisEventPublisher(redis_client)
        logger.info("redis_initialized")
    except Exception as e:
        logger.warning(
            "redis_init_skipped",
            error=str(e),
            message="Running without Redis - realtime events and rate limiting disabled",
        )
    app.state.event_publisher = publisher

    try:
        users, comments = await _build_repositories(settings)

        app.state.auth_service = AuthService(users=users)
        logger.info("auth_service_initialized")

        app.state.comment_service = CommentService(
            comments=comments,
            users=users,
            publisher=publisher,
            channel=settings.realtime_channel,
        )
        logger.info(
            "comment_service_initialized",
            realtime_enabled=isinstance(publisher, RedisEventPublisher),
        )
    except Exception as e:
        logger.warning(
            "database_init_skipped",
            error=str(e),
            message="Running without database connection",
        )

    yield

    # Shutdown
    logger.info("shutting_down_application")
    await shutdown_redis()
    await shutdown_async_cassandra()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # debug stays False so Starlette never renders stack traces in responses;
    # the handlers below log full details and return safe messages.
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Threaded comments with reactions and realtime updates",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Rate limiting runs inside the request context so rejections carry a request_id
    app.add_middleware(
        RateLimitMiddleware,
        config=RateLimitConfig(
            requests=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
            path_prefix=settings.rate_limit_path_prefix,
            trust_forwarded=settings.rate_limit_trust_forwarded,
        ),
        enabled=settings.rate_limit_enabled,
    )

    # Request context middleware (wraps the rate limiter)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    # Security headers on every response, including rate-limit rejections
    app.add_middleware(SecurityHeadersMiddleware)

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

    # Global exception handlers (never expose stack traces)
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
        """Handle validation errors with field-level details."""
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
        """Catch-all handler for unhandled exceptions."""
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
    app.include_router(auth_router)
    app.include_router(comments_router)
    app.include_router(realtime_router)
    app.include_router(realtime_ws_router)

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, str | dict[str, str]]:
        """Root endpoint."""
        return {
            "message": "Comment System API",
            "version": settings.app_version,
            "endpoints": {
                "health": "/health",
                "auth": "/v1/auth",
                "comments": "/v1/comments",
                "realtime_test": "/v1/realtime/test",
                "websocket": "/ws/comments",
            },
        }

    return app


app = create_app()
