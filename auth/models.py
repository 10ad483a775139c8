"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; the store and routes do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """An authenticated principal (identity).

    id is a 32-char lowercase hex string assigned by the store at insert time.
    It is opaque to callers and never changes. email is unique across users.

    The password hash is deliberately NOT a field here -- it lives in a
    separate Credential record so a User can be serialized or attached to a
    request without ever carrying secret material.
    """

    email: str
    display_name: str
    id: str | None = None
    created_at: str | None = None


@dataclass
class Credential:
    """Stored password hash for one user (one-to-one with User).

    Only the login flow reads this record. Token-based session resolution
    never touches it.
    """

    user_id: str
    hashed_password: str  # bcrypt hash
