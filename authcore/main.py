"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from authcore import database
from authcore.api.auth import router as auth_router
from authcore.api.middleware import CorrelationIdMiddleware
from authcore.config import get_settings
from authcore.exceptions import AuthError
from authcore.services.auth_service import AuthService
from authcore.services.logging_service import configure_logging, get_logger
from authcore.stores.base import CredentialStore
from authcore.stores.memory import InMemoryCredentialStore
from authcore.stores.postgres import PostgresCredentialStore


async def _open_store(backend: str) -> CredentialStore:
    if backend == "memory":
        return InMemoryCredentialStore()

    pool = await database.init_database()
    await database.run_migrations(pool)
    return PostgresCredentialStore(pool)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    store = await _open_store(settings.credential_store)
    app.state.store_backend = settings.credential_store
    app.state.auth_service = AuthService.from_settings(settings, store)

    logger.info(
        "application_started",
        credential_store=settings.credential_store,
        access_ttl_minutes=settings.access_token_expire_minutes,
        refresh_ttl_days=settings.refresh_token_expire_days,
        log_level=settings.log_level,
    )

    yield

    if settings.credential_store != "memory":
        await database.close_database()

    logger.info("application_shutdown")


app = FastAPI(
    title="authcore - Credential API",
    description="Registration, login, JWT access tokens and rotating refresh tokens",
    version="0.1.0",
    lifespan=lifespan,
)


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or str(uuid4())


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map typed auth errors to JSON responses.

    Deployment errors (5xx) are logged in full and returned with a
    generic body.
    """
    correlation_id = _correlation_id(request)
    logger = structlog.get_logger()

    if exc.is_client_error:
        logger.info("auth_request_rejected", error=exc.code, path=request.url.path)
    else:
        logger.error("auth_request_failed", error=exc.code, message=exc.message, path=request.url.path)

    headers = {"X-Correlation-Id": correlation_id}
    if exc.status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"

    return JSONResponse(
        status_code=exc.status_code,
        content={**exc.to_dict(), "correlation_id": correlation_id},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors with a 400 and the first failing field."""
    correlation_id = _correlation_id(request)
    logger = structlog.get_logger()

    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = first_error.get("msg", "Validation failed")
        detail = f"Field '{field}': {message}"
    else:
        detail = "Request validation failed"

    logger.warning("validation_error", correlation_id=correlation_id, detail=detail)

    return JSONResponse(
        status_code=400,
        content={
            "error": "validation_error",
            "detail": detail,
            "correlation_id": correlation_id,
        },
        headers={"X-Correlation-Id": correlation_id},
    )


@app.get("/health")
async def health(request: Request) -> dict:
    """Report process and storage health."""
    backend = request.app.state.store_backend
    healthy = True if backend == "memory" else await database.health_check()
    return {"status": "ok" if healthy else "degraded", "credential_store": backend}


# Correlation ID middleware for request tracking and observability
app.add_middleware(CorrelationIdMiddleware)

app.include_router(auth_router)
