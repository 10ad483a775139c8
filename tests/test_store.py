"""Unit tests for auth/store.py -- UserStore lookups and writes.

Covers:
- create_user() assigns a 32-char hex id and a creation timestamp
- get_by_email() is an exact match
- get_by_id() treats malformed ids as not found (no query, no exception)
- get_credential() returns the hash only when one was written
- duplicate email raises IntegrityError
- delete_user() removes the user and its credential
"""

import pytest
from sqlalchemy.exc import IntegrityError

from auth.models import Credential, User
from auth.store import UserStore, is_valid_user_id
from tests.helpers import EMAIL, UNKNOWN_USER_ID


def test_create_and_fetch(store: UserStore) -> None:
    uid = store.create_user(User(email=EMAIL, display_name="Ada"), "hashed-value")
    assert is_valid_user_id(uid)

    by_id = store.get_by_id(uid)
    by_email = store.get_by_email(EMAIL)
    assert by_id == by_email
    assert by_id.display_name == "Ada"
    assert by_id.created_at


def test_get_by_email_is_exact(store: UserStore, user: User) -> None:
    assert store.get_by_email(EMAIL.upper()) is None
    assert store.get_by_email(" " + EMAIL) is None


def test_unknown_id_is_none(store: UserStore) -> None:
    assert store.get_by_id(UNKNOWN_USER_ID) is None


@pytest.mark.parametrize("bad_id", ["", "xyz", UNKNOWN_USER_ID.upper(), UNKNOWN_USER_ID + "0", 42, None, {"$ne": 1}])
def test_malformed_id_is_none(store: UserStore, user: User, bad_id) -> None:
    assert store.get_by_id(bad_id) is None


def test_credential_round_trip(store: UserStore) -> None:
    uid = store.create_user(User(email=EMAIL, display_name="Ada"), "hashed-value")
    assert store.get_credential(uid) == Credential(user_id=uid, hashed_password="hashed-value")


def test_user_without_credential(store: UserStore) -> None:
    uid = store.create_user(User(email=EMAIL, display_name="Ada"))
    assert store.get_credential(uid) is None


def test_duplicate_email_rejected(store: UserStore, user: User) -> None:
    with pytest.raises(IntegrityError):
        store.create_user(User(email=EMAIL, display_name="Someone Else"), "other-hash")


def test_delete_user(store: UserStore, user: User) -> None:
    assert store.delete_user(user.id) is True
    assert store.get_by_id(user.id) is None
    assert store.get_credential(user.id) is None
    assert store.delete_user(user.id) is False


def test_has_users(store: UserStore) -> None:
    assert store.has_users() is False
    store.create_user(User(email=EMAIL, display_name="Ada"))
    assert store.has_users() is True
