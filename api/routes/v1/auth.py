"""
api/routes/v1/auth.py -- Account REST endpoints.

Routes:
  POST /api/v1/auth/register  -- create account; returns user + token pair (201)
  POST /api/v1/auth/login     -- password login; returns user + token pair
  GET  /api/v1/auth/me        -- current user view (requires auth)
  PUT  /api/v1/auth/profile   -- change name/email (requires auth)
  POST /api/v1/auth/logout    -- revoke one or all refresh tokens (requires auth)
  POST /api/v1/auth/refresh   -- rotate a refresh token; returns a new pair

Handlers are thin: they unpack the request model, call AuthService, and map
the result onto a response model. Core errors (AccountError) propagate to the
handler registered in api/main.py, which turns them into status + message.

Security:
  [T1] Cache-Control: no-store on every response that carries tokens.
  Login returns one generic error for unknown email, wrong password and
  inactive account (AuthService guarantees this; do not add branches here).
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response

from api.models import (
    AuthResponse,
    LoginRequest,
    LogoutRequest,
    LogoutResponse,
    ProfileResponse,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from auth.dependencies import get_auth_service, get_current_user
from auth.models import AuthResult, User
from auth.service import AuthService

# Auth policy:
# - POST /api/v1/auth/register: public
# - POST /api/v1/auth/login:    public
# - POST /api/v1/auth/refresh:  public -- the refresh token itself is the credential
# - GET  /api/v1/auth/me:       requires auth (get_current_user)
# - PUT  /api/v1/auth/profile:  requires auth (get_current_user)
# - POST /api/v1/auth/logout:   requires auth (get_current_user)
router = APIRouter()


def _auth_response(result: AuthResult) -> AuthResponse:
    pair = result.tokens
    return AuthResponse(
        user=UserResponse.from_view(result.user),
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        token_type=pair.token_type,
        expires_in=pair.expires_in,
    )


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(
    body: RegisterRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Create an account and return the user view with a fresh token pair."""
    result = service.register(
        name=body.name,
        email=body.email,
        password=body.password,
        confirm_password=body.confirm_password,
        username=body.username,
    )
    response.headers["Cache-Control"] = "no-store"  # [T1]
    return _auth_response(result)


@router.post("/auth/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Authenticate with email and password."""
    result = service.login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"  # [T1]
    return _auth_response(result)


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(
    body: RefreshRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    """Exchange a refresh token for a new pair. The presented token is consumed."""
    pair = service.refresh(body.refresh_token)
    response.headers["Cache-Control"] = "no-store"  # [T1]
    return TokenResponse.from_pair(pair)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=ProfileResponse)
def me(
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> ProfileResponse:
    """Return the profile of the currently authenticated user."""
    return ProfileResponse(user=UserResponse.from_view(service.get_profile(current_user)))


@router.put("/auth/profile", response_model=ProfileResponse)
def update_profile(
    body: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> ProfileResponse:
    """Update display name and/or email."""
    view = service.update_profile(current_user, name=body.name, email=body.email)
    return ProfileResponse(user=UserResponse.from_view(view))


@router.post("/auth/logout", response_model=LogoutResponse)
def logout(
    body: Optional[LogoutRequest] = None,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> LogoutResponse:
    """End one session (refreshToken given) or every session of the user."""
    token = body.refresh_token if body is not None else None
    revoked = service.logout(current_user, token)
    return LogoutResponse(revoked=revoked)
