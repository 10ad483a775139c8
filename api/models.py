"""
API request and response models for usergate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Wire format uses camelCase keys (createdAt, displayName); Python attributes
stay snake_case via an alias generator.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, StrictStr
from pydantic.alias_generators import to_camel

from auth.models import User

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/users/login.

    StrictStr rejects numbers, lists and null outright instead of coercing
    them, so {"email": 123} fails validation like a missing field does.
    """

    model_config = ConfigDict(extra="ignore")

    email: StrictStr
    password: StrictStr


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Redacted projection of a User. Never includes credential material."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    created_at: str
    display_name: str
    email: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            created_at=user.created_at or "",
            display_name=user.display_name,
            email=user.email,
        )


class LoginResponse(BaseModel):
    """Response for a successful POST /api/v1/users/login."""

    model_config = ConfigDict(frozen=True)

    data: UserResponse
    token: str


class MeResponse(BaseModel):
    """Response for GET /api/v1/users/me."""

    model_config = ConfigDict(frozen=True)

    data: UserResponse


class SessionResponse(BaseModel):
    """Response for GET /api/v1/users/session."""

    model_config = ConfigDict(frozen=True)

    authenticated: bool
    data: Optional[UserResponse] = None


class MessageResponse(BaseModel):
    """Field-level validation message (login 400s)."""

    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses (except gate 401s)."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
