"""FastAPI application entry point."""

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatledger import __version__
from chatledger.api.router import api_router
from chatledger.bootstrap import build_engine, close_engine
from chatledger.config import get_settings
from chatledger.observability.metrics import setup_metrics
from chatledger.shared.exceptions import (
    AuthenticationError,
    ChatLedgerError,
    ChatNotFoundError,
    ForbiddenError,
    SequenceIntegrityError,
    StorageError,
    UpstreamError,
    ValidationError,
)
from chatledger.shared.logging import (
    REQUEST_ID_HEADER,
    get_logger,
    new_request_context,
    setup_logging,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan - startup and shutdown events."""
    # Startup
    settings = get_settings()
    setup_logging(settings)
    logger.info("chatledger_starting", version=__version__)

    if getattr(app.state, "auth_provider", None) is None:
        from chatledger.api.middleware.auth import build_auth_provider

        app.state.auth_provider = build_auth_provider(settings)
    if getattr(app.state, "engine", None) is None:
        app.state.engine = await build_engine(settings)

    yield

    # Shutdown
    logger.info("chatledger_stopping")
    await close_engine(getattr(app.state, "engine", None), settings)

    auth_provider = getattr(app.state, "auth_provider", None)
    if auth_provider is not None:
        await auth_provider.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="ChatLedger API",
        description="Chat sessions with durable, ordered message history",
        version=__version__,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    # Serializes lazy engine construction in get_engine
    app.state.engine_lock = asyncio.Lock()

    # CORS middleware
    if settings.is_production:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        )
    else:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def bind_request_id(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = new_request_context(request.headers.get(REQUEST_ID_HEADER))
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    # Exception handlers
    register_exception_handlers(app)

    # Include routers
    app.include_router(api_router, prefix="/api/v1")

    # Observability
    setup_metrics(app)

    return app


def _error_response(status_code: int, exc: ChatLedgerError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.code,
            "message": exc.message,
            "details": exc.details,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers."""

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        _ = request
        return _error_response(422, exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        _ = request
        return JSONResponse(
            status_code=422,
            content={
                "error": "invalid_request",
                "message": "Request validation failed",
                "details": {"errors": exc.errors()},
            },
        )

    @app.exception_handler(AuthenticationError)
    async def auth_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
        _ = request
        return JSONResponse(
            status_code=401,
            content={
                "error": exc.code,
                "message": exc.message,
            },
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(ForbiddenError)
    async def forbidden_handler(request: Request, exc: ForbiddenError) -> JSONResponse:
        _ = request
        return _error_response(403, exc)

    @app.exception_handler(ChatNotFoundError)
    async def not_found_handler(request: Request, exc: ChatNotFoundError) -> JSONResponse:
        _ = request
        return _error_response(404, exc)

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError) -> JSONResponse:
        _ = request
        return _error_response(502, exc)

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        _ = request
        return _error_response(503, exc)

    @app.exception_handler(SequenceIntegrityError)
    async def integrity_error_handler(
        request: Request, exc: SequenceIntegrityError
    ) -> JSONResponse:
        _ = request
        logger.critical("integrity_fault_returned", error=exc.message, details=exc.details)
        return _error_response(500, exc)

    @app.exception_handler(ChatLedgerError)
    async def chatledger_error_handler(request: Request, exc: ChatLedgerError) -> JSONResponse:
        _ = request
        logger.error("unhandled_error", error=exc.message, details=exc.details)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_error",
                "message": "An internal error occurred",
            },
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        _ = request
        logger.exception("unexpected_error", error=str(exc))
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_error",
                "message": "An unexpected error occurred",
            },
        )


# Create app instance
app = create_app()
