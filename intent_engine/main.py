from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
import logging

from intent_engine.api.v1.router import router as api_v1_router
from intent_engine.core.exceptions import (
    InvalidArgumentError,
    NotFoundError,
    EventNotFoundError,
    RuleNotFoundError,
    LeadNotFoundError,
    UnauthenticatedError,
    PersistenceUnavailableError,
)
from intent_engine.core.config import settings as app_settings
from intent_engine.core.rate_limit import limiter
from intent_engine.core.database import AsyncSessionLocal

# Configure logging
logging.basicConfig(level=app_settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


async def seed_default_rules(session_factory=AsyncSessionLocal) -> None:
    """Seed intent and stage rules into empty tables (best-effort)."""
    from intent_engine.repositories.intent_rule_repository import IntentRuleRepository
    from intent_engine.repositories.stage_rule_repository import StageRuleRepository

    try:
        async with session_factory() as session:
            await IntentRuleRepository(session).seed_if_empty()
            await StageRuleRepository(session).seed_if_empty()
            await session.commit()
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("Could not seed default rules at startup: %s", exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Seed default rules before serving traffic."""
    await seed_default_rules()
    yield


app = FastAPI(
    title="Intent Scoring Engine",
    description="Behavioral intent scoring, threshold signals and sales auto-push",
    version="0.1.0",
    lifespan=lifespan,
)

# Attach rate limiter state so slowapi middleware can find it
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware: restricted to configured origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in app_settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_v1_router)


@app.exception_handler(InvalidArgumentError)
async def invalid_argument_handler(request: Request, exc: InvalidArgumentError):
    logger.warning("Invalid argument: %s %s", exc.detail, exc.errors)
    return JSONResponse(
        status_code=400,
        content={"detail": exc.detail, "errors": exc.errors, "type": "invalid_argument"},
    )


@app.exception_handler(EventNotFoundError)
async def event_not_found_handler(request: Request, exc: EventNotFoundError):
    logger.warning("Event not found: %s", exc.detail)
    return JSONResponse(
        status_code=404,
        content={"detail": exc.detail, "type": "event_not_found"},
    )


@app.exception_handler(RuleNotFoundError)
async def rule_not_found_handler(request: Request, exc: RuleNotFoundError):
    logger.warning("Rule not found: %s", exc.detail)
    return JSONResponse(
        status_code=404,
        content={"detail": exc.detail, "type": "rule_not_found"},
    )


@app.exception_handler(LeadNotFoundError)
async def lead_not_found_handler(request: Request, exc: LeadNotFoundError):
    logger.warning("Lead not found: %s", exc.detail)
    return JSONResponse(
        status_code=404,
        content={"detail": exc.detail, "type": "lead_not_found"},
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    logger.warning("Not found: %s", exc.detail)
    return JSONResponse(
        status_code=404,
        content={"detail": exc.detail, "type": "not_found"},
    )


@app.exception_handler(UnauthenticatedError)
async def unauthenticated_handler(request: Request, exc: UnauthenticatedError):
    logger.warning("Rejected API key on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=401,
        content={"detail": exc.detail, "type": "unauthenticated"},
    )


@app.exception_handler(PersistenceUnavailableError)
async def persistence_unavailable_handler(
    request: Request, exc: PersistenceUnavailableError
):
    logger.error("Persistence unavailable: %s", exc.detail)
    return JSONResponse(
        status_code=503,
        content={"detail": exc.detail, "type": "persistence_unavailable"},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return request validation failures as 400 with a field-keyed map."""
    errors = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "body"
        errors.setdefault(field, error.get("msg", "Invalid value"))
    logger.warning("Request validation error: %s", errors)
    return JSONResponse(
        status_code=400,
        content={
            "detail": "Request validation failed",
            "errors": errors,
            "type": "validation_error",
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unexpected/unhandled exceptions.

    Returns a generic 500 response so that raw stack traces are never
    leaked to the client.
    """
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected internal error occurred. Please try again later.",
            "type": "internal_server_error",
        },
    )
