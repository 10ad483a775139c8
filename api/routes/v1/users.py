"""
api/routes/v1/users.py -- Login and session endpoints.

Routes:
  POST /api/v1/users/login    -- email/password login; returns user + bearer token
  GET  /api/v1/users/me       -- current user (session gate + require_auth)
  GET  /api/v1/users/session  -- resolved session, anonymous allowed (session gate only)

Security:
  [H2] POST /login is rate-limited per client address (LOGIN_RATE_LIMIT).
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on every login response.
  Unknown email, missing credential and wrong password all return the same
  bare 401 so the endpoint cannot be used to enumerate registered emails.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from api.limiter import limiter
from api.models import LoginRequest, LoginResponse, MeResponse, MessageResponse, SessionResponse, UserResponse
from auth.dependencies import require_auth, session
from auth.models import User
from auth.store import UserStore
from auth.tokens import TokenCodec, authenticate_user
from core.config import get_settings

logger = logging.getLogger("usergate.api")

_settings = get_settings()

# Auth policy:
# - POST /api/v1/users/login:    public -- the login endpoint must be unauthenticated.
#                                Not behind session(): a stale token must not block re-login.
# - GET  /api/v1/users/me:       session() + require_auth
# - GET  /api/v1/users/session:  session() only -- anonymous callers pass through
public_router = APIRouter()
router = APIRouter(dependencies=[Depends(session)])


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@public_router.post(
    "/users/login",
    response_model=LoginResponse,
    responses={400: {"model": MessageResponse}, 401: {"description": "Invalid credentials"}},
)
@limiter.limit(_settings.login_rate_limit)  # [H2] must sit BELOW @router so the route registers the limited wrapper
async def login(request: Request) -> Response:
    """Verify email and password; on success return the redacted user and a new token.

    The body is parsed by hand rather than declared as a parameter: a missing
    or non-string field must produce a 400 with a field-specific message, not
    FastAPI's generic 422. Email is checked before password.
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None
    try:
        body = LoginRequest.model_validate(payload)
    except ValidationError as exc:
        return _no_store(
            JSONResponse(status_code=400, content=MessageResponse(message=_login_error_message(exc)).model_dump())
        )

    user_store: UserStore = request.app.state.user_store
    user = await run_in_threadpool(authenticate_user, user_store, body.email, body.password)
    if user is None:
        return _no_store(Response(status_code=401))

    codec: TokenCodec = request.app.state.token_codec
    token = codec.encode(user.id)
    logger.info("Login succeeded for user %s", user.id)
    return _no_store(
        JSONResponse(
            status_code=200,
            content=LoginResponse(data=UserResponse.from_user(user), token=token).model_dump(by_alias=True),
        )
    )


# ---------------------------------------------------------------------------
# Session-gated endpoints
# ---------------------------------------------------------------------------


@router.get("/users/me", response_model=MeResponse)
async def me(current_user: User = Depends(require_auth)) -> MeResponse:
    """Return the authenticated user. 401 when the request carries no token."""
    return MeResponse(data=UserResponse.from_user(current_user))


@router.get("/users/session", response_model=SessionResponse)
async def current_session(user: User | None = Depends(session)) -> SessionResponse:
    """Report who the caller is, if anyone. Anonymous callers get authenticated=false."""
    if user is None:
        return SessionResponse(authenticated=False)
    return SessionResponse(authenticated=True, data=UserResponse.from_user(user))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _login_error_message(exc: ValidationError) -> str:
    failed = {err["loc"][0] for err in exc.errors() if err["loc"]}
    if "password" in failed and "email" not in failed:
        return "password required"
    return "email required"


def _no_store(response: Response) -> Response:
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return response
