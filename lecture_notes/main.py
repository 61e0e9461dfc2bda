"""
Main entry point for the lecture notes API server.
"""

import json
import logging
import re
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.engine import make_url
from sqlmodel import SQLModel, Session, select
from starlette.exceptions import HTTPException as StarletteHTTPException

from lecture_notes.config import Config, get_config
from lecture_notes.api.dependencies import engine, validate_configuration
from lecture_notes.api.models import User, utcnow
from lecture_notes.api.routes import api_key_router, folders_router, limiter, notes_router
from lecture_notes.api.schemas import HealthCheckResponse, ReadinessCheckResponse
from lecture_notes.generation import SecretVault
from lecture_notes.generation.errors import NotesPipelineError

logger = logging.getLogger(__name__)


class RedactSecretsFilter(logging.Filter):
    """Scrub API keys, encrypted tokens and bearer sessions from log records."""

    PATTERNS = [
        (re.compile(r"AIza[0-9A-Za-z_\-]{10,}"), "AIza***REDACTED***"),
        (re.compile(r"gAAAAA[0-9A-Za-z_\-=]{20,}"), "***REDACTED-TOKEN***"),
        (re.compile(r"Bearer [a-zA-Z0-9_\-\.]+"), "Bearer ***REDACTED***"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = message
        for pattern, replacement in self.PATTERNS:
            redacted = pattern.sub(replacement, redacted)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record):
        return json.dumps({
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        })


def configure_logging(config: Config) -> None:
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # Structured JSON logging for production
    for handler in logging.root.handlers:
        handler.addFilter(RedactSecretsFilter())
        if config.log_format == "json":
            handler.setFormatter(JSONFormatter())

    # Reduce noise from HTTP libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    config = get_config()
    logger.info("Starting Lecture Notes API...")

    # A missing vault key is fatal: stored credentials would be unusable.
    app.state.vault = SecretVault(config.encryption_key)

    # Ensure database tables exist
    _ensure_sqlite_directory(config.database_url)
    SQLModel.metadata.create_all(engine)

    yield

    logger.info("Shutting down Lecture Notes API...")


config = get_config()
configure_logging(config)

# Create FastAPI application
app = FastAPI(
    title="Lecture Notes API",
    description="Turns lecture caption transcripts into structured lecture notes",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Slowapi rate limiting error handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(NotesPipelineError)
async def pipeline_error_handler(request: Request, exc: NotesPipelineError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if any(e.get("type") == "json_invalid" for e in errors):
        message = "Invalid JSON body"
    elif errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid request: {location} {first.get('msg', '')}".strip()
    else:
        message = "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


# Include routers
app.include_router(notes_router)
app.include_router(folders_router)
app.include_router(api_key_router)


@app.get("/health", response_model=HealthCheckResponse, tags=["General"])
def health_check():
    """
    Health check endpoint.

    Checks database connectivity and that the vault is configured.
    """
    checks = {
        "api": True,
        "database": False,
        "vault": bool(getattr(app.state, "vault", None)) or bool(config.encryption_key),
    }

    # Check database
    try:
        with Session(engine) as session:
            # Simple query to verify DB is accessible
            session.exec(select(User).limit(1)).first()
        checks["database"] = True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")

    overall_status = "healthy" if all(checks.values()) else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        service="lecture-notes",
        checks=checks,
        timestamp=utcnow(),
    )


@app.get("/ready", response_model=ReadinessCheckResponse, tags=["General"])
def readiness_check():
    """
    Readiness check endpoint.

    Checks that the settings required to serve requests are present.
    """
    checks = {"api": True}
    configured = validate_configuration(config)
    checks.update(configured)

    missing = [k for k, v in configured.items() if not v]

    return ReadinessCheckResponse(
        ready=all(checks.values()),
        checks=checks,
        missing=missing if missing else None,
    )


def run():
    import uvicorn

    uvicorn.run(
        "lecture_notes.main:app",
        host=config.api_host,
        port=config.api_port,
        reload=config.debug,
    )


if __name__ == "__main__":
    run()
