"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Three gates:
  session(request)          HTTP Session Gate. Install router-wide via
                            APIRouter(dependencies=[Depends(session)]).
  socket_session(websocket) Handshake Session Gate for WebSocket routes.
  require_auth(request)     Authentication Requirement Gate. Per-route, after
                            a Session Gate has run.

Token transport:
  HTTP      -- the raw token is the whole Authorization header value. There
               is no "Bearer " scheme prefix.
  WebSocket -- the "token" query parameter of the handshake request.

Outcome handling (see auth/session.py for the resolution itself):

                     HTTP session          socket_session
  NoToken            continue, anonymous   close 1008
  ResolutionError    re-raise              re-raise
  user found         attach, continue      attach, continue
  user not found     401                   close 1008

Re-raised ResolutionErrors reach the exception handlers registered in
api/main.py, which decide between 401 and 500 (or close codes). The gates do
not classify errors themselves.

Layer rule: no imports from api/. auth/dependencies.py may import from
fastapi because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from typing import NoReturn

from fastapi import Request, WebSocket, WebSocketException, status

from auth.errors import ResolutionError, Unauthorized
from auth.models import User
from auth.session import GateActions, IdentityResolver, run_gate

TOKEN_HEADER = "Authorization"
TOKEN_QUERY_PARAM = "token"


def _forward(exc: ResolutionError) -> NoReturn:
    raise exc


async def session(request: Request) -> User | None:
    """Resolve the request's token and attach the user to request.state.user.

    Returns None (and attaches nothing) when no token was sent -- routes that
    need a user must also depend on require_auth().
    """
    resolver: IdentityResolver = request.app.state.resolver

    def on_result(user: User | None) -> User:
        if user is None:
            raise Unauthorized()
        request.state.user = user
        return user

    actions: GateActions[User | None] = GateActions(
        on_no_token=lambda: None,
        on_error=_forward,
        on_result=on_result,
    )
    return await run_gate(resolver, request.headers.get(TOKEN_HEADER), actions)


async def socket_session(websocket: WebSocket) -> User:
    """Resolve the handshake's token; refuse the connection unless a user is found.

    Unlike session(), a missing token is a rejection: every socket must belong
    to an authenticated user.
    """
    resolver: IdentityResolver = websocket.app.state.resolver

    def reject() -> NoReturn:
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION)

    def on_result(user: User | None) -> User:
        if user is None:
            reject()
        websocket.state.user = user
        return user

    actions: GateActions[User] = GateActions(
        on_no_token=reject,
        on_error=_forward,
        on_result=on_result,
    )
    return await run_gate(resolver, websocket.query_params.get(TOKEN_QUERY_PARAM), actions)


def require_auth(request: Request) -> User:
    """Require a user attached by session(). Raises Unauthorized (401) otherwise.

    Use as a FastAPI dependency on routes under a session-gated router:
        @router.get("/protected")
        async def route(user: User = Depends(require_auth)): ...
    """
    user = getattr(request.state, "user", None)
    if user is None:
        raise Unauthorized()
    return user
