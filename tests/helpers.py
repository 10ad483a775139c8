"""
tests/helpers.py -- Constants and fakes shared by the test modules and conftest.
"""

from __future__ import annotations

from sqlalchemy.exc import OperationalError

EMAIL = "a@x.com"
PASSWORD = "right"
TEST_SIGNING_KEY = "usergate-test-signing-key-0123456789abcdef"

# Well-formed (32 lowercase hex chars) but never inserted into any store.
UNKNOWN_USER_ID = "0123456789abcdef0123456789abcdef"


class FailingStore:
    """Stand-in for UserStore whose every lookup raises, as if the DB were down."""

    def _fail(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is unreachable"))

    get_by_id = _fail
    get_by_email = _fail
    get_credential = _fail

    def close(self) -> None:
        pass
