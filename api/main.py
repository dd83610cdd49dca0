"""
api/main.py -- FastAPI application entry point for TodoGate.

Exposes ownership-gated todo CRUD over HTTP. Every mutating route is gated by
a relation-tuple check against Keto; rows live in a PostgREST record store.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware    -- adds CORS headers for allowed browser origins
  2. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter

Lifespan builds every backend client from get_settings() and stores them on
app.state. Clients receive explicit URLs; none of them read the environment.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.admin import router as admin_router
from api.routes.v1.todos import router as todos_router
from api.routes.v1.users import router as users_router
from authz.identity import IdentityClient
from authz.tuples import TupleStoreClient
from core.config import get_settings
from core.errors import Forbidden, ResourceNotFound, TodoGateError
from ownership.orchestrator import OwnershipOrchestrator
from ownership.roles import AdminResolver
from records.store import RecordStore
from records.users import UserDirectory

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("todogate.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build backend clients on startup; nothing to tear down beyond logging.

    The identity client is optional: without KRATOS_ADMIN_URL /
    KRATOS_PUBLIC_URL admin status comes from the tuple store alone and
    owner emails are left empty.
    """
    logger.info("TodoGate API starting up")
    tuples = TupleStoreClient.from_settings(_settings)
    records = RecordStore.from_settings(_settings)
    identity = IdentityClient.from_settings(_settings)
    app.state.tuples = tuples
    app.state.identity = identity
    app.state.orchestrator = OwnershipOrchestrator(tuples, records, table=_settings.todo_table)
    app.state.admin_resolver = AdminResolver(tuples, identity)
    app.state.users = UserDirectory(records, table=_settings.user_table)
    logger.info(
        "Backends configured (keto read=%s write=%s, records=%s, identity=%s)",
        tuples.read_url,
        tuples.write_url,
        records.base_url,
        identity.admin_url if identity else "disabled",
    )

    yield

    logger.info("TodoGate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="TodoGate API",
    description="Todo CRUD gated by relationship-based ownership tuples.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-User-Id"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(todos_router, prefix="/api/v1", tags=["Todos"])
app.include_router(admin_router, prefix="/api/v1", tags=["Admin"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope. Backend error text
# (tuple store, identity service, record store) is logged, never returned.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(Forbidden)
async def forbidden_handler(request: Request, exc: Forbidden) -> JSONResponse:
    return _error(403, "forbidden", "Forbidden.")


@app.exception_handler(ResourceNotFound)
async def not_found_handler(request: Request, exc: ResourceNotFound) -> JSONResponse:
    return _error(404, "not_found", "Todo not found.")


@app.exception_handler(TodoGateError)
async def backend_error_handler(request: Request, exc: TodoGateError) -> JSONResponse:
    """Tuple store, identity and record store failures: logged in full, returned as a bare 500."""
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return _error(500, "internal_error", "Internal server error.")


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Structured error for HTTPException. Dict details are used as the error field directly."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all. The exception goes to the log with its traceback, never to the client."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint -- unauthenticated, not rate limited
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)
