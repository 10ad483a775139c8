"""Unit tests for auth/session.py -- IdentityResolver and run_gate().

The resolver's three-way split is the contract every gate relies on:
  - absent/empty token           -> NO_TOKEN, never an error
  - undecodable/unsigned token   -> InvalidToken (a ResolutionError)
  - store failure                -> StoreUnavailable (a ResolutionError)
  - decodable, user missing      -> Resolved(None)
  - decodable, user present      -> Resolved(user)

Coroutines are driven with asyncio.run() so these stay plain sync tests.
"""

import asyncio

import pytest
from jose import jwt

from auth.errors import InvalidToken, ResolutionError, StoreUnavailable
from auth.models import User
from auth.session import NO_TOKEN, GateActions, IdentityResolver, NoToken, Resolved, run_gate
from auth.tokens import TokenCodec
from tests.helpers import TEST_SIGNING_KEY, UNKNOWN_USER_ID, FailingStore


def _resolve(resolver: IdentityResolver, token):
    return asyncio.run(resolver.resolve(token))


class TestResolve:
    @pytest.mark.parametrize("token", [None, ""])
    def test_absent_token_is_no_token(self, resolver: IdentityResolver, token) -> None:
        assert _resolve(resolver, token) is NO_TOKEN

    def test_no_token_skips_the_store(self, codec: TokenCodec) -> None:
        """An absent token must not reach the store -- even a broken one."""
        resolver = IdentityResolver(FailingStore(), codec)
        assert isinstance(_resolve(resolver, None), NoToken)

    @pytest.mark.parametrize("token", ["garbage", "a.b.c"])
    def test_malformed_token_raises_invalid_token(self, resolver: IdentityResolver, token: str) -> None:
        with pytest.raises(InvalidToken):
            _resolve(resolver, token)

    def test_wrongly_signed_token_raises_invalid_token(self, resolver: IdentityResolver, user: User) -> None:
        forged = TokenCodec("someone-elses-signing-key-000000000000000").encode(user.id)
        with pytest.raises(ResolutionError):
            _resolve(resolver, forged)

    def test_dangling_token_resolves_to_none(self, resolver: IdentityResolver, codec: TokenCodec) -> None:
        assert _resolve(resolver, codec.encode(UNKNOWN_USER_ID)) == Resolved(None)

    def test_deleted_user_resolves_to_none(self, resolver: IdentityResolver, codec: TokenCodec, store, user: User) -> None:
        token = codec.encode(user.id)
        store.delete_user(user.id)
        assert _resolve(resolver, token) == Resolved(None)

    @pytest.mark.parametrize("claim", ["not-a-user-id", "0123", 123, None, ["x"]])
    def test_malformed_user_id_resolves_to_none(self, resolver: IdentityResolver, claim) -> None:
        """A userId the store cannot address is 'not found', never an error."""
        token = jwt.encode({"userId": claim}, TEST_SIGNING_KEY, algorithm="HS256")
        assert _resolve(resolver, token) == Resolved(None)

    def test_valid_token_resolves_to_user(self, resolver: IdentityResolver, codec: TokenCodec, user: User) -> None:
        assert _resolve(resolver, codec.encode(user.id)) == Resolved(user)

    def test_resolution_is_repeatable(self, resolver: IdentityResolver, codec: TokenCodec, user: User) -> None:
        token = codec.encode(user.id)
        assert _resolve(resolver, token) == _resolve(resolver, token)

    def test_store_failure_raises_store_unavailable(self, codec: TokenCodec) -> None:
        resolver = IdentityResolver(FailingStore(), codec)
        with pytest.raises(StoreUnavailable) as excinfo:
            _resolve(resolver, codec.encode(UNKNOWN_USER_ID))
        assert excinfo.value.__cause__ is not None

    def test_store_timeout_is_not_a_miss(self, codec: TokenCodec) -> None:
        class SlowStore:
            def get_by_id(self, user_id):
                raise TimeoutError("lookup timed out")

        resolver = IdentityResolver(SlowStore(), codec)
        with pytest.raises(StoreUnavailable):
            _resolve(resolver, codec.encode(UNKNOWN_USER_ID))


class TestRunGate:
    """run_gate() must call exactly one action, the one matching the outcome."""

    @staticmethod
    def _recording_actions(calls: list) -> GateActions:
        return GateActions(
            on_no_token=lambda: calls.append(("no_token",)) or "no_token",
            on_error=lambda exc: calls.append(("error", type(exc))) or "error",
            on_result=lambda user: calls.append(("result", user)) or "result",
        )

    def test_no_token(self, resolver: IdentityResolver) -> None:
        calls: list = []
        assert asyncio.run(run_gate(resolver, None, self._recording_actions(calls))) == "no_token"
        assert calls == [("no_token",)]

    def test_error(self, resolver: IdentityResolver) -> None:
        calls: list = []
        assert asyncio.run(run_gate(resolver, "garbage", self._recording_actions(calls))) == "error"
        assert calls == [("error", InvalidToken)]

    def test_store_error(self, codec: TokenCodec) -> None:
        calls: list = []
        resolver = IdentityResolver(FailingStore(), codec)
        asyncio.run(run_gate(resolver, codec.encode(UNKNOWN_USER_ID), self._recording_actions(calls)))
        assert calls == [("error", StoreUnavailable)]

    def test_result_found(self, resolver: IdentityResolver, codec: TokenCodec, user: User) -> None:
        calls: list = []
        asyncio.run(run_gate(resolver, codec.encode(user.id), self._recording_actions(calls)))
        assert calls == [("result", user)]

    def test_result_missing(self, resolver: IdentityResolver, codec: TokenCodec) -> None:
        calls: list = []
        asyncio.run(run_gate(resolver, codec.encode(UNKNOWN_USER_ID), self._recording_actions(calls)))
        assert calls == [("result", None)]

    def test_action_exceptions_propagate(self, resolver: IdentityResolver) -> None:
        def reject():
            raise PermissionError("rejected")

        actions = GateActions(on_no_token=reject, on_error=lambda exc: None, on_result=lambda user: None)
        with pytest.raises(PermissionError):
            asyncio.run(run_gate(resolver, "", actions))
