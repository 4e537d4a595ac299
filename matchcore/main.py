"""
Matchcore — FastAPI Application Entry Point

Production-ready application with:
- Async lifespan management (DB pool, service construction)
- CORS, timeout, and structured-logging middleware
- Error-taxonomy exception handlers
- Health-check endpoints (liveness + deep readiness)
- Active-request tracking for graceful shutdown
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from matchcore.api.router import router as api_router
from matchcore.config import get_settings
from matchcore.database import dispose_engine, get_engine, get_session_factory
from matchcore.exceptions import MatchingError
from matchcore.services.compatibility_service import CompatibilityScorer
from matchcore.services.gemini_service import GeminiService
from matchcore.services.interest_service import InterestService
from matchcore.services.mutual_match_service import MutualMatchDetector
from matchcore.services.notification_service import NotificationService
from matchcore.services.preference_learner import PreferenceLearner
from matchcore.services.profile_service import ProfileService
from matchcore.services.recommendation_service import RecommendationEngine
from matchcore.services.score_oracle import ScoreOracleAdapter

# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(get_settings().LOG_LEVEL.upper())
    ),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger("matchcore")

# ---------------------------------------------------------------------------
# Active request counter for graceful shutdown
# ---------------------------------------------------------------------------

_active_requests: int = 0
_active_requests_lock = asyncio.Lock()

DRAIN_TIMEOUT_SECONDS = 15


async def _increment_active() -> None:
    global _active_requests
    async with _active_requests_lock:
        _active_requests += 1


async def _decrement_active() -> None:
    global _active_requests
    async with _active_requests_lock:
        _active_requests -= 1


async def _drain_active_requests() -> None:
    """Wait until all in-flight requests complete or timeout expires."""
    deadline = time.monotonic() + DRAIN_TIMEOUT_SECONDS
    while True:
        async with _active_requests_lock:
            if _active_requests <= 0:
                break
        if time.monotonic() >= deadline:
            logger.warning("drain_timeout_exceeded", remaining_requests=_active_requests)
            break
        await asyncio.sleep(0.25)


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------

def build_services(app: FastAPI, oracle=None) -> None:
    """Construct the service graph once and attach it to ``app.state``.

    ``oracle`` defaults to the Gemini-backed scoring oracle.
    """
    profile_service = ProfileService()
    scorer = CompatibilityScorer(ScoreOracleAdapter(oracle or GeminiService()))
    learner = PreferenceLearner(profile_service, scorer)

    app.state.profile_service = profile_service
    app.state.compatibility_scorer = scorer
    app.state.preference_learner = learner
    app.state.recommendation_engine = RecommendationEngine(profile_service, scorer, learner)
    app.state.mutual_match_detector = MutualMatchDetector(InterestService(), NotificationService())


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup and shutdown of long-lived resources."""
    settings = get_settings()

    # -- Startup --------------------------------------------------------- #
    logger.info("startup_begin", environment=settings.ENVIRONMENT, log_level=settings.LOG_LEVEL)

    async with get_engine().begin() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("database_pool_initialised")

    if not hasattr(app.state, "recommendation_engine"):
        build_services(app)
    logger.info("startup_complete")

    yield

    # -- Shutdown -------------------------------------------------------- #
    logger.info("shutdown_begin")
    await _drain_active_requests()
    await dispose_engine()
    logger.info("database_pool_closed")
    logger.info("shutdown_complete")


# ---------------------------------------------------------------------------
# Middleware classes
# ---------------------------------------------------------------------------

class TimeoutMiddleware(BaseHTTPMiddleware):
    """Abort requests that exceed a configurable wall-clock timeout."""

    def __init__(self, app, timeout_seconds: float = 70.0) -> None:
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "request_timeout",
                method=request.method,
                path=request.url.path,
                timeout=self.timeout_seconds,
            )
            return JSONResponse(
                status_code=504,
                content={
                    "error": {
                        "code": "TIMEOUT",
                        "message": "Request timed out",
                        "suggestion": "Could not generate matches right now. Please try again shortly.",
                    }
                },
            )


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with method, path, status code, and duration."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()

        await _increment_active()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.exception(
                "request_error",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration_ms, 2),
            )
            raise
        finally:
            await _decrement_active()

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "request_handled",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        return response


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    settings = get_settings()

    application = FastAPI(
        title="Matchcore",
        description="Compatibility scoring, recommendations and mutual-match detection",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
    )

    # -- Middleware (applied in reverse order; last added runs first) ------ #
    application.add_middleware(StructuredLoggingMiddleware)
    application.add_middleware(TimeoutMiddleware, timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.exception_handler(MatchingError)
    async def _matching_error_handler(request: Request, exc: MatchingError) -> JSONResponse:
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "request_failed",
            method=request.method,
            path=request.url.path,
            code=exc.code,
            error=exc.message,
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

    # -- Health-check endpoints ------------------------------------------- #

    @application.get("/health", tags=["health"])
    async def health_liveness() -> dict:
        """Liveness probe: healthy whenever the process is running."""
        return {"status": "healthy"}

    @application.get("/health/deep", tags=["health"])
    async def health_deep() -> dict:
        """Readiness probe: verifies database connectivity."""
        result: dict = {"status": "healthy", "database": "connected"}
        try:
            async with get_session_factory()() as session:
                await session.execute(text("SELECT 1"))
        except Exception as exc:
            logger.error("health_db_failure", error=str(exc))
            result["database"] = f"error: {exc}"
            result["status"] = "degraded"
        return result

    application.include_router(api_router, prefix="/api/v1")
    return application


app = create_app()
