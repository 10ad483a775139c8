"""
api/main.py -- FastAPI application entry point for usergate.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Authentication is NOT middleware here: the session gates are FastAPI
dependencies (auth/dependencies.py) installed on the routers that need them,
so their exceptions flow through the handlers registered below.

Lifespan handles startup (store, token codec, resolver) and shutdown (dispose
the DB engine) symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response, WebSocket, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import HTTPConnection

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.socket import router as socket_router
from api.routes.v1.users import public_router as users_public_router
from api.routes.v1.users import router as users_router
from auth.dependencies import require_auth, session
from auth.errors import InvalidToken, ResolutionError, Unauthorized
from auth.models import User
from auth.session import IdentityResolver
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.config import get_settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("usergate.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order matters: the resolver needs both the store and the codec,
    so it is built last.
    """
    # Startup
    logger.info("usergate API starting up")
    app.state.user_store = UserStore(db_url=_settings.database_url)
    app.state.token_codec = TokenCodec.from_settings(_settings)
    app.state.resolver = IdentityResolver(app.state.user_store, app.state.token_codec)
    logger.info("Auth initialized (users_present=%s)", app.state.user_store.has_users())

    yield

    # Shutdown
    app.state.user_store.close()
    logger.info("usergate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="usergate API",
    description="Credential verification and session establishment.",
    version=__version__,
    lifespan=lifespan,
    # Disable built-in /docs and /redoc so we can add auth protection.
    # Auth-protected equivalents are registered below.
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every HTTP request passes through this coroutine before reaching any route
# handler. WebSocket scopes bypass it.
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

app.include_router(users_public_router, prefix="/api/v1", tags=["Users"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(socket_router, prefix="/api/v1", tags=["Socket"])


# ---------------------------------------------------------------------------
# Auth-protected API documentation
# ---------------------------------------------------------------------------


@app.get("/docs", include_in_schema=False, dependencies=[Depends(session)])
async def docs(user: User = Depends(require_auth)):
    """Swagger UI -- requires authentication."""
    return get_swagger_ui_html(openapi_url="/openapi.json", title="usergate API")


@app.get("/redoc", include_in_schema=False, dependencies=[Depends(session)])
async def redoc(user: User = Depends(require_auth)):
    """ReDoc UI -- requires authentication."""
    return get_redoc_html(openapi_url="/openapi.json", title="usergate API")


# ---------------------------------------------------------------------------
# Exception handlers
#
# Gate rejections (Unauthorized, InvalidToken) answer with a bare 401 -- no
# body, so a caller learns nothing about why. Everything else returns the
# ErrorResponse envelope.
# ---------------------------------------------------------------------------


@app.exception_handler(Unauthorized)
async def unauthorized_handler(request: Request, exc: Unauthorized) -> Response:
    return Response(status_code=401)


@app.exception_handler(ResolutionError)
async def resolution_error_handler(conn: HTTPConnection, exc: ResolutionError) -> Response | None:
    """Classify errors forwarded by the session gates.

    InvalidToken is the caller's fault: 401 (HTTP) or close 1008 (WebSocket).
    Anything else means the store failed: logged, then 500 or close 1011.
    Never turns an outage into a 401.

    Starlette calls this with a WebSocket for socket scopes and ignores the
    return value, so the socket branch closes the connection itself.
    """
    invalid = isinstance(exc, InvalidToken)
    if not invalid:
        logger.error("Session resolution failed on %s", conn.url.path, exc_info=exc)

    if isinstance(conn, WebSocket):
        code = status.WS_1008_POLICY_VIOLATION if invalid else status.WS_1011_INTERNAL_ERROR
        await conn.close(code=code)
        return None

    if invalid:
        return Response(status_code=401)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Retry-After tells clients exactly how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for HTTP exceptions, including routing 404/405."""
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    Security note: the raw exception is written to the log only, never to the
    response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# No rate limit and no session gate -- load balancer checks must not be
# throttled or authenticated.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=__version__)
