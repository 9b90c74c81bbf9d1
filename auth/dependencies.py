"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Accounts authenticate with an "Authorization: Bearer <access token>" header.
The token is resolved to an active User through AuthService.authenticate().

get_current_user() raises HTTP 401 if unauthenticated.
require_admin() wraps get_current_user() and raises HTTP 403 if not admin.

Layer rule: no imports from api/. This module may import from fastapi because
it is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.exceptions import InvalidTokenError
from auth.models import User
from auth.service import AuthService

_UNAUTHENTICATED = {"code": "unauthenticated", "message": "Authentication required."}


def get_auth_service(request: Request) -> AuthService:
    """Return the AuthService built in the application lifespan."""
    return request.app.state.auth_service


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(request: Request) -> User:
    """Require a valid bearer access token for an active account.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise HTTPException(status_code=401, detail=_UNAUTHENTICATED, headers={"WWW-Authenticate": "Bearer"})
    try:
        return get_auth_service(request).authenticate(token)
    except InvalidTokenError as exc:
        raise HTTPException(
            status_code=401, detail=_UNAUTHENTICATED, headers={"WWW-Authenticate": "Bearer"}
        ) from exc


def require_admin(request: Request) -> User:
    """Require admin role. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin."""
    user = get_current_user(request)
    if user.role != "admin":
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return user
