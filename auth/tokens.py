"""
auth/tokens.py -- Bearer token codec and password hashing.

Security design decisions:
  JWT: python-jose, HMAC family (HS256 by default). A token carries exactly
       one claim, userId. There is no exp claim and no revocation list: a
       token stays valid for as long as the signing key does and the user
       record exists. The signing key and algorithm are injected into
       TokenCodec at construction -- nothing here reads a global secret.

  Passwords: bcrypt directly (no passlib wrapper). Bcrypt's cost factor makes
       brute-force of low-entropy secrets expensive. The _DUMMY_HASH constant
       enables timing equalization in authenticate_user() so response time
       does not reveal whether an email is registered [C1].

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is the
kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.errors import InvalidToken

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore
    from core.config import Settings

logger = logging.getLogger("usergate.auth")

USER_ID_CLAIM = "userId"

# bcrypt only reads the first 72 bytes; bcrypt>=5 raises ValueError beyond that.
MAX_PASSWORD_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt raises ValueError for a corrupt stored hash and, in recent
    releases, for passwords over 72 bytes. Both count as a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("bcrypt rejected a password check; treating it as a mismatch")
        return False


# Timing equalization dummy hash [C1].
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("usergate_timing_dummy")


# ---------------------------------------------------------------------------
# Token codec
# ---------------------------------------------------------------------------


class TokenCodec:
    """Encode and verify single-claim bearer tokens.

    Stateless apart from its key material, so one instance is shared by every
    request (stored on app.state.token_codec).
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256") -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenCodec:
        return cls(settings.secret_key, settings.jwt_algorithm)

    def encode(self, user_id: str) -> str:
        """Return a signed token whose sole claim is the user's id."""
        return jwt.encode({USER_ID_CLAIM: user_id}, self._secret_key, algorithm=self._algorithm)

    def decode(self, token: str) -> dict:
        """Verify a token and return its claims.

        Raises InvalidToken on a bad signature, a malformed token, an expired
        token, or a payload without the userId claim. Callers must handle the
        "no token at all" case themselves before calling this.
        """
        try:
            claims = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except JWTError as exc:
            raise InvalidToken(str(exc)) from exc
        if USER_ID_CLAIM not in claims:
            raise InvalidToken(f"token has no {USER_ID_CLAIM} claim")
        return claims


# ---------------------------------------------------------------------------
# Password login (constant-time) [C1]
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Verify an email/password pair. Returns the User on success, None otherwise.

    Every failure mode -- unknown email, missing credential record, wrong
    password -- returns the same None so the caller cannot leak which one
    happened. bcrypt always runs once, against _DUMMY_HASH when there is no
    real hash to compare, so response time does not leak it either.

    An email that cannot be encoded as UTF-8 (a lone surrogate from a JSON
    escape) can match no stored user, so it is treated as unknown without
    reaching the store.

    Store exceptions are NOT caught: an unreachable database is a server
    error, not a failed login.
    """
    user = store.get_by_email(email) if _is_utf8_encodable(email) else None
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    credential = store.get_credential(user.id)
    if credential is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, credential.hashed_password):
        return None
    return user


def _is_utf8_encodable(value: str) -> bool:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True
