"""
auth/service.py -- Account workflows: register, login, profile, logout, refresh.

Every public method follows the same shape:
  validate input -> authenticate -> mutate store -> issue/rotate tokens -> return.
All caller-input errors (ValidationError) are raised before the store is
touched. Storage, hashing and signing failures are logged and re-raised as
InternalError; nothing is retried.

Layer rule: no imports from api/. Collaborators are injected, so tests can run
the whole workflow against an in-memory SQLite store.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from jose import JWTError
from sqlalchemy.exc import SQLAlchemyError

from auth.exceptions import AccountError, AuthError, InternalError, InvalidTokenError, ValidationError
from auth.models import AuthResult, TokenPair, User, UserView, split_name

if TYPE_CHECKING:
    from auth.passwords import PasswordHasher
    from auth.store import UserStore
    from auth.tokens import TokenService
    from core.config import Settings

logger = logging.getLogger("wateraccounts.auth")

# Words joined by single "." or "-", then "@", then a domain ending in one or
# more 2-3 character labels. Written without nested optional repeats so a long
# non-matching input cannot trigger exponential backtracking.
EMAIL_RE = re.compile(r"\w+(?:[.-]\w+)*@\w+(?:[.-]\w+)*(?:\.\w{2,3})+")


@contextmanager
def _internal_errors(operation: str) -> Iterator[None]:
    """Convert infrastructure failures inside the block into InternalError.

    AccountError subclasses pass through untouched. ValueError covers bcrypt
    rejecting a malformed stored hash.
    """
    try:
        yield
    except AccountError:
        raise
    except (SQLAlchemyError, JWTError, ValueError) as exc:
        logger.exception("%s failed", operation)
        raise InternalError(f"{operation} failed") from exc


def check_email(email: str) -> None:
    if not EMAIL_RE.fullmatch(email):
        raise ValidationError("invalid_email", "email is not well-formed", field="email")


class AuthService:
    """Orchestrates the store, the password hasher and the token service.

    Each call is independent; the only state shared between requests is what
    the store persists.
    """

    def __init__(self, store: UserStore, hasher: PasswordHasher, tokens: TokenService, settings: Settings) -> None:
        self._store = store
        self._hasher = hasher
        self._tokens = tokens
        self._password_min_length = settings.password_min_length

    # ------------------------------------------------------------------
    # Public workflows
    # ------------------------------------------------------------------

    def register(
        self,
        name: str | None,
        email: str | None,
        password: str | None,
        confirm_password: str | None = None,
        username: str | None = None,
    ) -> AuthResult:
        """Create an account and sign the user in.

        The username defaults to the local part of the email. A taken email or
        username raises DuplicateError and leaves no record behind.
        """
        name = (name or "").strip()
        if not name or not email or not password:
            raise ValidationError("missing_fields", "name, email and password are required")
        if confirm_password and password != confirm_password:
            raise ValidationError("password_mismatch", "passwords do not match", field="confirmPassword")
        if len(password) < self._password_min_length:
            raise ValidationError(
                "password_too_short",
                f"password must be at least {self._password_min_length} characters",
                field="password",
            )
        check_email(email)
        username = (username or "").strip() or email.split("@")[0]
        first_name, last_name = split_name(name)

        with _internal_errors("register"):
            user = self._store.create_user(
                email=email,
                username=username,
                password=password,
                first_name=first_name,
                last_name=last_name,
            )
            tokens = self._tokens.issue(user.id)
        logger.info("Registered user %s", user.id)
        return AuthResult(user=UserView.from_user(user), tokens=tokens)

    def login(self, email: str | None, password: str | None) -> AuthResult:
        """Check credentials and issue a fresh token pair.

        Unknown email, wrong password and inactive account all raise the same
        AuthError. bcrypt runs in every branch so timing does not leak which.
        """
        if not email or not password:
            raise ValidationError("missing_fields", "email and password are required")

        with _internal_errors("login"):
            user = self._store.get_by_email(email)
            if user is None:
                self._hasher.verify_dummy(password)
                logger.warning("Login failed: unknown email")
                raise AuthError()
            if not self._hasher.verify(password, user.hashed_password):
                logger.warning("Login failed for user %s: bad password", user.id)
                raise AuthError()
            if not user.is_active:
                logger.warning("Login failed for user %s: account inactive", user.id)
                raise AuthError()
            self._store.record_login(user.id)
            tokens = self._tokens.issue(user.id)
            user = self._store.get_by_id(user.id)
        logger.info("User %s logged in", user.id)
        return AuthResult(user=UserView.from_user(user), tokens=tokens)

    def get_profile(self, user: User) -> UserView:
        return UserView.from_user(user)

    def update_profile(self, user: User, name: str | None = None, email: str | None = None) -> UserView:
        """Change display name and/or email. Nothing else is mutable here.

        Role, password and activation status cannot be reached through this
        path: only the fields collected below are ever passed to the store.
        """
        fields: dict[str, str] = {}
        if name is not None and name.strip():
            fields["first_name"], fields["last_name"] = split_name(name)
        if email and email != user.email:
            check_email(email)
            fields["email"] = email

        with _internal_errors("update_profile"):
            updated = self._store.update_user(user.id, **fields)
        logger.info("User %s updated profile fields %s", user.id, sorted(fields))
        return UserView.from_user(updated)

    def logout(self, user: User, refresh_token: str | None = None) -> int:
        """Revoke one refresh token, or every refresh token when none (or a blank one) is given."""
        with _internal_errors("logout"):
            revoked = self._tokens.revoke(user.id, refresh_token)
        logger.info("User %s logged out (%d refresh token(s) revoked)", user.id, revoked)
        return revoked

    def refresh(self, refresh_token: str | None) -> TokenPair:
        """Rotate a refresh token: the presented token is consumed, a new pair issued."""
        if not refresh_token:
            raise ValidationError("missing_fields", "refresh token is required", field="refreshToken")

        with _internal_errors("refresh"):
            user_id, _jti = self._tokens.verify_refresh(refresh_token)
            user = self._store.get_by_id(user_id)
            if user is None or not user.is_active:
                raise InvalidTokenError("account is unavailable")
            _user_id, tokens = self._tokens.rotate(refresh_token)
        logger.info("Rotated refresh token for user %s", user_id)
        return tokens

    def authenticate(self, access_token: str) -> User:
        """Resolve a bearer access token to an active User or raise InvalidTokenError."""
        user_id = self._tokens.verify_access(access_token)
        with _internal_errors("authenticate"):
            user = self._store.get_by_id(user_id)
        if user is None or not user.is_active:
            raise InvalidTokenError("account is unavailable")
        return user
