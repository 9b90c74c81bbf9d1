"""
API request and response models for the account REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

JSON field names are camelCase (accessToken, confirmPassword, ...) to match
the existing web frontend; Python attribute names stay snake_case.

Request fields are typed and length-capped here. Semantic rules (required
fields, minimum password length, email format) are enforced by AuthService so
the same rules apply to every caller, not only to HTTP.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import TokenPair, UserView

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    model_config = _CAMEL

    name: Optional[str] = Field(None, max_length=255, description="Full name; split into first/last.")
    email: Optional[str] = Field(None, max_length=255)
    password: Optional[str] = Field(None, max_length=128)
    confirm_password: Optional[str] = Field(None, max_length=128)
    username: Optional[str] = Field(
        None,
        max_length=255,
        description="Defaults to the part of the email before '@'.",
    )


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = _CAMEL

    email: Optional[str] = Field(None, max_length=255)
    password: Optional[str] = Field(None, max_length=128)


class ProfileUpdate(BaseModel):
    """Request body for PUT /api/v1/auth/profile.

    Only name and email are declared. Any other key (role, password, ...) is
    ignored by pydantic and never reaches the service.
    """

    model_config = _CAMEL

    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255)


class LogoutRequest(BaseModel):
    """Request body for POST /api/v1/auth/logout. Omit refreshToken to end every session."""

    model_config = _CAMEL

    refresh_token: Optional[str] = None


class RefreshRequest(BaseModel):
    """Request body for POST /api/v1/auth/refresh."""

    model_config = _CAMEL

    refresh_token: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Client-safe user view. Has no password or token fields by construction."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    name: str
    email: str
    username: str
    role: str
    last_login: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_view(cls, view: UserView) -> "UserResponse":
        return cls(
            id=view.id,
            name=view.name,
            email=view.email,
            username=view.username,
            role=view.role,
            last_login=view.last_login,
            created_at=view.created_at,
            updated_at=view.updated_at,
        )


class TokenResponse(BaseModel):
    """Response for POST /api/v1/auth/refresh."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenResponse":
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            token_type=pair.token_type,
            expires_in=pair.expires_in,
        )


class AuthResponse(TokenResponse):
    """Response for POST /register and POST /login: user view plus a token pair."""

    user: UserResponse


class ProfileResponse(BaseModel):
    """Response for GET /me and PUT /profile."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse


class LogoutResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "Logged out."
    revoked: int


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
