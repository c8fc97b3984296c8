"""
CF Curriculum Planner

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cfplanner.api.middleware.rate_limit import RateLimitMiddleware
from cfplanner.api.middleware.request_id import RequestIdMiddleware
from cfplanner.api.v1 import router as api_router
from cfplanner.config import get_settings
from cfplanner.database import async_session_maker, close_db, init_db
from cfplanner.engines.errors import (
    AlreadyTrackedError,
    MasteryInvariantError,
    NotFoundError,
    NotYetConfirmedError,
    PlannerError,
    UpstreamUnavailableError,
)
from cfplanner.engines.judge.codeforces import CodeforcesJudge
from cfplanner.engines.mastery.decay import DecayPolicy
from cfplanner.engines.mastery.store import SqlMasteryStore
from cfplanner.logging_config import configure_logging, get_logger
from cfplanner.pedagogy.topic_graph import load_topic_graph
from cfplanner.schemas.common import HealthResponse
from cfplanner.services import build_services

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Startup order: logging, topic graph (a bad graph aborts startup),
    database, judge client, services.
    """
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    graph = load_topic_graph(settings.topic_graph_file)
    await init_db()
    logger.info("Database initialized")

    client = httpx.AsyncClient(
        timeout=settings.judge_timeout_seconds,
        headers={"User-Agent": f"cf-planner/{settings.version}"},
    )
    judge = CodeforcesJudge.from_settings(client, graph, settings)
    store = SqlMasteryStore(
        async_session_maker,
        DecayPolicy(
            grace_days=settings.decay_grace_days,
            half_life_days=settings.decay_half_life_days,
        ),
    )
    app.state.services = build_services(settings, graph, store, judge)

    yield

    logger.info("Shutting down...")
    await client.aclose()
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    CF Curriculum Planner

    Tracks per-topic competitive-programming mastery from verified Codeforces
    solves, decays it when topics are neglected, and recommends problems at
    the right difficulty.
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# add_middleware stacks innermost-first: the last one added is the outermost.
_cors_origins = [
    "http://localhost:3000",
    "http://localhost:5173",  # Vite default
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]

app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestIdMiddleware)

# CORS outermost so error responses carry the headers too
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _cors_headers(request: Request) -> dict:
    """CORS headers for error responses (500s often bypass CORS middleware)."""
    origin = request.headers.get("origin") or ""
    allow_origin = origin if origin in _cors_origins else _cors_origins[0]
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "*",
        "Access-Control-Allow-Headers": "*",
    }


def _error_response(
    request: Request,
    status_code: int,
    detail,
    extra_headers: Optional[dict] = None,
    **extra_content,
) -> JSONResponse:
    headers = _cors_headers(request)
    if extra_headers:
        headers.update(extra_headers)
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        headers["X-Request-ID"] = req_id
    content = {"detail": detail, **extra_content}
    if req_id and status_code >= 500:
        content["request_id"] = req_id
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return _error_response(request, exc.status_code, exc.detail, exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })
    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        errors=errors,
    )


@app.exception_handler(PlannerError)
async def planner_exception_handler(request: Request, exc: PlannerError):
    """Map domain errors to status codes; the message is the response detail."""
    if isinstance(exc, NotFoundError):
        return _error_response(request, status.HTTP_404_NOT_FOUND, str(exc))
    if isinstance(exc, AlreadyTrackedError):
        return _error_response(request, status.HTTP_409_CONFLICT, str(exc))
    if isinstance(exc, NotYetConfirmedError):
        return _error_response(request, status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc))
    if isinstance(exc, UpstreamUnavailableError):
        headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else None
        return _error_response(request, status.HTTP_503_SERVICE_UNAVAILABLE, str(exc), headers)
    if isinstance(exc, MasteryInvariantError):
        logger.exception("Mastery invariant violated: %s", exc)
    else:
        logger.exception("Unhandled planner error: %s", exc)
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception("Unhandled exception: %s", exc)
    detail = str(exc) if settings.debug else "Internal server error"
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, detail)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(request: Request):
    """Check application health."""
    services = getattr(request.app.state, "services", None)
    return HealthResponse(
        status="ok" if services is not None else "starting",
        version=settings.version,
        database="connected" if services is not None else "unknown",
        topics=len(services.graph.topic_ids()) if services is not None else 0,
    )


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.project_name,
        "version": settings.version,
        "docs": "/docs" if settings.debug else "disabled",
        "api": settings.api_prefix,
    }


app.include_router(api_router, prefix=settings.api_prefix)


# Main entry point for development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cfplanner.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
