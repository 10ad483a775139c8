"""
auth/session.py -- Identity resolution shared by the HTTP and WebSocket gates.

IdentityResolver.resolve() turns a raw token into one of three outcomes:

  NO_TOKEN            nothing was presented
  raises              ResolutionError (InvalidToken / StoreUnavailable)
  Resolved(user)      the token decoded; user is the User, or None if the
                      referenced identity does not exist

The gates differ only in what they do with each outcome, so each gate supplies
a GateActions table and run_gate() does the dispatch. Resolution itself is
written once, here.

Layer rule: no imports from api/. starlette is allowed for run_in_threadpool
because the store is synchronous and must not block the event loop.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar, Union

from starlette.concurrency import run_in_threadpool

from auth.errors import ResolutionError, StoreUnavailable
from auth.models import User
from auth.store import UserStore
from auth.tokens import USER_ID_CLAIM, TokenCodec

T = TypeVar("T")


@dataclass(frozen=True)
class NoToken:
    """Outcome: the caller presented no token."""


NO_TOKEN = NoToken()


@dataclass(frozen=True)
class Resolved:
    """Outcome: the token verified. user is None for a dangling reference."""

    user: User | None


Session = Union[NoToken, Resolved]


class IdentityResolver:
    """Resolve bearer tokens against the user store.

    One instance per application (app.state.resolver). Holds no per-request
    state, so concurrent resolve() calls are independent.
    """

    def __init__(self, store: UserStore, codec: TokenCodec) -> None:
        self.store = store
        self.codec = codec

    async def resolve(self, raw_token: str | None) -> Session:
        if not raw_token:
            return NO_TOKEN

        # Raises InvalidToken, which is already a ResolutionError.
        claims = self.codec.decode(raw_token)

        try:
            user = await run_in_threadpool(self.store.get_by_id, claims[USER_ID_CLAIM])
        except Exception as exc:
            # Timeouts land here too: a slow store is an outage, not a miss.
            raise StoreUnavailable("user lookup failed") from exc
        return Resolved(user)


@dataclass(frozen=True)
class GateActions(Generic[T]):
    """What a gate does for each resolution outcome.

    on_no_token -- no token was presented
    on_error    -- resolution raised a ResolutionError
    on_result   -- the token verified; receives the User or None
    """

    on_no_token: Callable[[], T]
    on_error: Callable[[ResolutionError], T]
    on_result: Callable[[User | None], T]


async def run_gate(resolver: IdentityResolver, raw_token: str | None, actions: GateActions[T]) -> T:
    """Resolve raw_token and hand the outcome to the matching action."""
    try:
        session = await resolver.resolve(raw_token)
    except ResolutionError as exc:
        return actions.on_error(exc)
    if isinstance(session, NoToken):
        return actions.on_no_token()
    return actions.on_result(session.user)
