"""FastAPI application initialization."""

from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from authcore import __version__
from authcore.api.auth import router as auth_router
from authcore.api.middleware import CorrelationIdMiddleware
from authcore.config import get_settings
from authcore.errors import AuthError, ValidationFailed
from authcore.models.auth import ErrorResponse
from authcore.services.logging_service import configure_logging, get_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    from authcore.database import close_database, init_database, run_migrations
    from authcore.services.redis_service import close_redis, get_redis

    await init_database()
    await run_migrations()
    logger.info("database_initialized")

    # The revocation ledger fails closed per request if Redis is down
    if await get_redis() is None:
        logger.warning(
            "redis_initialization_failed",
            note="Token refresh and logout will return 503 until Redis is reachable",
        )

    logger.info("application_started", log_level=settings.log_level)

    yield

    await close_database()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title="Auth Core",
    description="Signup, login, JWT refresh/revocation and password reset",
    version=__version__,
    lifespan=lifespan,
)


def _error_response(request: Request, error: ErrorResponse) -> JSONResponse:
    headers = {}
    correlation_id = getattr(request.state, "correlation_id", None)
    if correlation_id:
        headers["X-Correlation-Id"] = correlation_id
    return JSONResponse(
        status_code=error.status,
        content=error.model_dump(exclude_none=True),
        headers=headers,
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render any domain error with its fixed status code."""
    logger = structlog.get_logger()
    logger.info(
        "request_failed",
        kind=exc.kind.value,
        status=exc.status_code,
    )
    return _error_response(
        request,
        ErrorResponse(status=exc.status_code, message=exc.message, errors=exc.errors),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors, reporting every violation.

    Returns 400 with ``errors`` listing one message per failing field.
    """
    messages = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", []) if part != "body"]
        field = ".".join(loc) or "body"
        messages.append(f"{field}: {error.get('msg', 'invalid value')}")

    structlog.get_logger().warning("validation_error", errors=messages)

    failure = ValidationFailed(errors=messages)
    return _error_response(
        request,
        ErrorResponse(status=failure.status_code, message=failure.message, errors=messages),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Render framework HTTP errors (404 route, 405 method) in the same shape."""
    return _error_response(
        request,
        ErrorResponse(status=exc.status_code, message=str(exc.detail)),
    )


@app.get("/health")
async def health() -> dict:
    """Report database connectivity."""
    from authcore.database import health_check

    healthy = await health_check()
    return {"status": "ok" if healthy else "degraded", "database": healthy}


# CORS middleware for browser clients
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Correlation ID middleware for request tracking and observability
app.add_middleware(CorrelationIdMiddleware)

app.include_router(auth_router)
