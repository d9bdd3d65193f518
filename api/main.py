"""
api/main.py -- FastAPI application entry point for the KGL Groceries API.

Run with:      python main.py serve
               uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds every shared service once and parks it on app.state:
  store          RecordStore        (records/store.py)
  credentials    CredentialVerifier (auth/passwords.py)
  token_service  TokenService       (auth/tokens.py)
  validator      FieldValidator     (core/validation.py)
Route handlers and dependencies read them from request.app.state, never from
module globals, so tests can swap any of them.

Every error leaves the app as {"message": "..."}.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse, RootResponse
from api.routes.procurement import router as procurement_router
from api.routes.sales import router as sales_router
from api.routes.users import router as users_router
from auth.passwords import CredentialVerifier
from auth.tokens import TokenConfig, TokenService
from core.config import Settings, get_settings
from core.errors import AppError
from core.validation import DEFAULT_SCHEMAS, FieldValidator
from records.store import RecordKind, RecordStore

VERSION = "1.0.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.DEBUG if _settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("kgl.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def init_services(app: FastAPI, settings: Settings) -> None:
    """Build the shared services from settings and attach them to app.state."""
    app.state.store = RecordStore(settings.database_url)
    app.state.credentials = CredentialVerifier(rounds=settings.bcrypt_rounds)
    app.state.token_service = TokenService(TokenConfig(secret_key=settings.secret_key))
    app.state.validator = FieldValidator(DEFAULT_SCHEMAS)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create services on startup; dispose the database engine on shutdown."""
    logger.info("KGL Groceries API starting up")
    settings = get_settings()
    init_services(app, settings)
    if settings.using_default_secret:
        logger.warning("Tokens are signed with the default secret")
    if not app.state.store.has_records(RecordKind.USER):
        logger.warning("No user accounts exist -- create one with: python main.py create-user")

    yield

    app.state.store.close()
    logger.info("KGL Groceries API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="KGL Groceries API",
    description="Procurement, sales and user management for Karibu Groceries Ltd branches.",
    version=VERSION,
    lifespan=lifespan,
    docs_url="/api-docs",
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


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

app.include_router(users_router, tags=["Users"])
app.include_router(procurement_router, tags=["Procurement"])
app.include_router(sales_router, tags=["Sales"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly.
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(message=message).model_dump())


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return _error(exc.status_code, exc.message)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429; Retry-After carries slowapi's retry hint in seconds."""
    response = _error(429, "Too many requests, please try again later")
    response.headers["Retry-After"] = str(int(getattr(exc, "retry_after", 60)))
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed path or query parameters are a 400, like any other bad input."""
    errors = exc.errors()
    if not errors:
        return _error(400, "Invalid request")
    field = errors[0].get("loc", ("request",))[-1]
    return _error(400, f"Invalid value for {field}")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return _error(404, "Route not found")
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors. The traceback goes to the log only."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "Internal Server Error")


# ---------------------------------------------------------------------------
# Health and root
#
# No rate limit applied -- health checks from load balancers must not be
# throttled.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"], response_model=HealthResponse)
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and database reachability."""
    db_ok = request.app.state.store.ping()
    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        version=VERSION,
        components={"database": "ok" if db_ok else "unavailable"},
    )


@app.get("/", tags=["Health"], response_model=RootResponse)
def root() -> RootResponse:
    return RootResponse(message="KGL Groceries API", version=VERSION, documentation="/api-docs")
