"""
api/errors.py -- Map account error kinds onto HTTP statuses and localized text.

The core (auth/) raises typed errors carrying a code and structured details.
This module is the only place that knows which status a kind maps to and what
the user is told. Messages exist in English and Swedish; Swedish is picked
when the Accept-Language header prefers it.

Error bodies never contain password hashes or token values.
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse
from auth.exceptions import (
    AccountError,
    AuthError,
    DuplicateError,
    InternalError,
    InvalidTokenError,
    NotFoundError,
    RevokedError,
    ValidationError,
)

DEFAULT_LANGUAGE = "en"

MESSAGES: dict[str, dict[str, str]] = {
    "missing_fields": {
        "en": "All required fields must be provided.",
        "sv": "Alla obligatoriska fält måste fyllas i.",
    },
    "password_mismatch": {
        "en": "Passwords do not match.",
        "sv": "Lösenorden matchar inte.",
    },
    "password_too_short": {
        "en": "Password is too short.",
        "sv": "Lösenordet är för kort.",
    },
    "invalid_email": {
        "en": "Please enter a valid email.",
        "sv": "Ange en giltig e-postadress.",
    },
    "validation_error": {
        "en": "Request validation failed.",
        "sv": "Valideringsfel.",
    },
    "duplicate_email": {
        "en": "Email already exists.",
        "sv": "E-postadressen finns redan.",
    },
    "duplicate_username": {
        "en": "Username already exists.",
        "sv": "Användarnamnet finns redan.",
    },
    "invalid_credentials": {
        "en": "Invalid email or password.",
        "sv": "Ogiltig e-postadress eller lösenord.",
    },
    "invalid_token": {
        "en": "Invalid or expired token.",
        "sv": "Ogiltig eller utgången token.",
    },
    "revoked_token": {
        "en": "Token has been revoked.",
        "sv": "Token har återkallats.",
    },
    "unauthenticated": {
        "en": "Authentication required.",
        "sv": "Autentisering krävs.",
    },
    "forbidden": {
        "en": "Admin access required.",
        "sv": "Administratörsbehörighet krävs.",
    },
    "not_found": {
        "en": "Resource not found.",
        "sv": "Resursen hittades inte.",
    },
    "internal_error": {
        "en": "An unexpected error occurred.",
        "sv": "Internt serverfel.",
    },
}

# Order matters: first isinstance match wins.
_STATUS: list[tuple[type[AccountError], int]] = [
    (ValidationError, 400),
    (DuplicateError, 409),
    (AuthError, 401),
    (RevokedError, 401),
    (InvalidTokenError, 401),
    (NotFoundError, 404),
    (InternalError, 500),
]


def _quality(params: list[str]) -> float:
    for param in params:
        key, _, value = param.strip().partition("=")
        if key.strip().lower() == "q":
            try:
                return float(value)
            except ValueError:
                return 0.0
    return 1.0


def preferred_language(request: Request) -> str:
    """Pick "sv" or "en" from Accept-Language.

    Ranges are ranked by quality value (default 1); ties keep header order.
    A range with q=0 is never chosen.
    """
    header = request.headers.get("Accept-Language", "")
    ranked: list[tuple[float, int, str]] = []
    for index, part in enumerate(header.split(",")):
        lang, *params = part.split(";")
        primary = lang.strip().lower().split("-")[0]
        quality = _quality(params)
        if primary in ("sv", "en") and quality > 0:
            ranked.append((-quality, index, primary))
    return min(ranked)[2] if ranked else DEFAULT_LANGUAGE


def localize(key: str, request: Request) -> str:
    texts = MESSAGES.get(key) or MESSAGES["internal_error"]
    return texts.get(preferred_language(request), texts[DEFAULT_LANGUAGE])


def error_code(exc: AccountError) -> str:
    """Public error code for exc. Duplicates name the conflicting field."""
    if isinstance(exc, DuplicateError):
        return f"duplicate_{exc.field}"
    return exc.code


def status_for(exc: AccountError) -> int:
    for kind, status in _STATUS:
        if isinstance(exc, kind):
            return status
    return 500


def account_error_response(request: Request, exc: AccountError) -> JSONResponse:
    """Build the JSON error envelope for a core error."""
    code = error_code(exc)
    status = status_for(exc)
    if isinstance(exc, ValidationError):
        message = localize(exc.reason, request)
        detail = exc.field
    else:
        message = localize(code, request)
        detail = None
    headers = {"WWW-Authenticate": "Bearer"} if status == 401 else None
    return JSONResponse(
        status_code=status,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
        headers=headers,
    )
