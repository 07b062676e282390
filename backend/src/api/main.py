"""
FastAPI application factory with CORS, error handlers, and middleware.
"""

import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.src.api.routes.auth import router as auth_router
from backend.src.api.routes.products import router as products_router
from backend.src.core.config import settings
from backend.src.core.database import check_database_connection, close_db
from backend.src.core.exceptions import APIException
from backend.src.core.logging import clear_request_id, get_logger, set_request_id
from backend.src.core.realtime import product_log_stream
from backend.src.models.base import ErrorDetail
from backend.src.services.event_publisher import event_publisher

logger = get_logger(__name__)

# Reported instead of the real detail outside development
GENERIC_ERROR = "Something went wrong"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager for startup and shutdown events.

    The relational store must be reachable for the API to start. The realtime
    store is only probed; audit events are best effort.

    Args:
        app: FastAPI application instance
    """
    # Startup
    logger.info(
        "Starting Stockroom API",
        extra={
            "environment": settings.ENVIRONMENT,
            "debug": settings.DEBUG,
        },
    )

    if not await check_database_connection():
        raise RuntimeError("Database connection failed")

    if settings.firebase_configured:
        if not await product_log_stream.check_connection():
            logger.warning("Realtime database unreachable, audit events may be lost")
    else:
        logger.warning("Firebase credentials not configured, audit events will not be published")

    await event_publisher.start()

    logger.info("Application started successfully")

    yield

    # Shutdown
    logger.info("Shutting down application")
    await event_publisher.stop()
    await close_db()
    logger.info("Application shutdown complete")


def create_application() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title=settings.APP_NAME,
        description="Inventory management with a live product activity feed",
        version="0.1.0",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    # Configure CORS
    configure_cors(app)

    # Register middleware
    register_middleware(app)

    # Register exception handlers
    register_exception_handlers(app)

    # Register routes
    register_routes(app)

    return app


def configure_cors(app: FastAPI) -> None:
    """
    Configure CORS middleware.

    Args:
        app: FastAPI application
    """
    origins = settings.cors_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Response-Time"],
    )

    logger.info(
        "CORS configured",
        extra={"allowed_origins": origins},
    )


def register_middleware(app: FastAPI) -> None:
    """
    Register application middleware.

    Args:
        app: FastAPI application
    """

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Log all requests with timing information."""
        start_time = time.time()

        logger.info(
            "Request started",
            extra={
                "method": request.method,
                "path": request.url.path,
                "client_ip": request.client.host if request.client else None,
            },
        )

        response = await call_next(request)

        duration_ms = round((time.time() - start_time) * 1000, 2)

        logger.info(
            "Request completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        return response

    # Registered last so it wraps the timing middleware and the ID is set
    # before "Request started" is logged
    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Add request ID to all requests for tracing."""
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        request.state.request_id = request_id

        try:
            response = await call_next(request)
        finally:
            clear_request_id()

        response.headers["X-Request-ID"] = request_id
        return response

    logger.info("Middleware registered")


def error_body(message: str, error: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    """Envelope for a failed request."""
    body: Dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    body.update(extra)
    return body


def _public_error(status_code: int, error: Optional[str]) -> Optional[str]:
    if error is None or status_code < 500 or settings.is_development:
        return error
    return GENERIC_ERROR


def _validation_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    return [
        ErrorDetail(
            loc=list(err.get("loc", ())),
            msg=err.get("msg", ""),
            type=err.get("type", "value_error"),
        ).model_dump()
        for err in exc.errors()
    ]


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers.

    Every failure is answered with ``{success: false, message, error?}``.

    Args:
        app: FastAPI application
    """

    @app.exception_handler(APIException)
    async def api_exception_handler(request: Request, exc: APIException):
        """Handle custom API exceptions."""
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "API exception occurred",
            extra={
                "error_code": exc.error_code,
                "status_code": exc.status_code,
                "error_message": exc.message,
                "error": exc.error,
                "path": request.url.path,
            },
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.message, _public_error(exc.status_code, exc.error)),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        logger.warning(
            "HTTP exception occurred",
            extra={
                "status_code": exc.status_code,
                "detail": exc.detail,
                "path": request.url.path,
            },
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors."""
        errors = _validation_errors(exc)
        logger.warning(
            "Validation error occurred",
            extra={
                "errors": errors,
                "path": request.url.path,
            },
        )

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body("Validation error", errors=errors),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(
            "Unexpected exception occurred",
            extra={
                "error": str(exc),
                "path": request.url.path,
            },
            exc_info=True,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(
                "Internal server error",
                _public_error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc)),
            ),
        )

    logger.info("Exception handlers registered")


def register_routes(app: FastAPI) -> None:
    """
    Register API routes.

    Args:
        app: FastAPI application
    """
    app.include_router(products_router)
    app.include_router(auth_router)

    logger.info("Routes registered")


# Create application instance
app = create_application()


# Export app
__all__ = ["app", "create_application"]
