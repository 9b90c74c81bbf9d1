"""
auth/tokens.py -- JWT access/refresh token issuance, verification and rotation.

Security design decisions:
  JWT: python-jose with HS256. Access and refresh tokens are signed with two
       different secrets and carry a "type" claim, so one kind can never be
       accepted in place of the other.

  Access tokens are short-lived (15 minutes by default) and stateless: a valid
       signature plus an unexpired "exp" is enough.

  Refresh tokens are long-lived (7 days by default) and stateful: each carries
       a random "jti" that must also be present in the user's stored token set.
       Rotation consumes the old jti with a conditional delete before a new
       pair is issued, so a refresh token works exactly once. Replaying a
       consumed token raises RevokedError.

Layer rule: no imports from api/. Settings are passed in, not read globally.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import ExpiredSignatureError, JWTError, jwt

from auth.exceptions import InvalidTokenError, RevokedError
from auth.models import TokenPair

if TYPE_CHECKING:
    from auth.store import UserStore
    from core.config import Settings

logger = logging.getLogger("wateraccounts.tokens")

_ALGORITHM = "HS256"
_ACCESS = "access"
_REFRESH = "refresh"


class TokenService:
    """Mints, verifies and rotates token pairs bound to a user id.

    Usage:
        tokens = TokenService(store, settings)
        pair = tokens.issue(user.id)
        user_id = tokens.verify_access(pair.access_token)
        user_id, new_pair = tokens.rotate(pair.refresh_token)
    """

    def __init__(self, store: UserStore, settings: Settings) -> None:
        self._store = store
        self._access_secret = settings.access_token_secret
        self._refresh_secret = settings.refresh_token_secret
        self.access_ttl = timedelta(seconds=settings.access_token_expire_seconds)
        self.refresh_ttl = timedelta(seconds=settings.refresh_token_expire_seconds)

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue(self, user_id: str) -> TokenPair:
        """Sign a new access/refresh pair and record the refresh jti for user_id."""
        now = datetime.now(timezone.utc)
        access_token = jwt.encode(
            {"sub": user_id, "type": _ACCESS, "iat": now, "exp": now + self.access_ttl},
            self._access_secret,
            algorithm=_ALGORITHM,
        )
        jti = uuid.uuid4().hex
        refresh_expires = now + self.refresh_ttl
        refresh_token = jwt.encode(
            {"sub": user_id, "type": _REFRESH, "jti": jti, "iat": now, "exp": refresh_expires},
            self._refresh_secret,
            algorithm=_ALGORITHM,
        )
        self._store.add_refresh_token(user_id, jti, refresh_expires)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int(self.access_ttl.total_seconds()),
        )

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify_access(self, token: str) -> str:
        """Return the user id carried by a valid access token.

        Raises InvalidTokenError on a bad signature, expiry, wrong token type
        or missing subject.
        """
        payload = _decode(token, self._access_secret, _ACCESS)
        return payload["sub"]

    def verify_refresh(self, token: str) -> tuple[str, str]:
        """Return (user_id, jti) for a refresh token that is still in the user's set.

        Raises InvalidTokenError for signature/expiry/type problems and
        RevokedError when the jti has been consumed or revoked.
        """
        payload = _decode(token, self._refresh_secret, _REFRESH)
        user_id, jti = payload["sub"], payload.get("jti")
        if not jti:
            raise InvalidTokenError("refresh token has no jti")
        if not self._store.has_refresh_token(user_id, jti):
            raise RevokedError("refresh token has been revoked")
        return user_id, jti

    # ------------------------------------------------------------------
    # Rotate / revoke
    # ------------------------------------------------------------------

    def rotate(self, refresh_token: str) -> tuple[str, TokenPair]:
        """Exchange a refresh token for a new pair. The old token stops working.

        The delete of the old jti doubles as the ownership check: if another
        request consumed it first, this call gets rowcount 0 and fails.
        """
        user_id, jti = self.verify_refresh(refresh_token)
        if not self._store.remove_refresh_token(user_id, jti):
            raise RevokedError("refresh token has been revoked")
        return user_id, self.issue(user_id)

    def revoke(self, user_id: str, refresh_token: str | None = None) -> int:
        """Revoke one refresh token of user_id, or all of them when none is given.

        An empty or blank token counts as none given. A token that cannot be
        decoded, or that belongs to someone else, revokes nothing. Expired
        tokens are still accepted here so a client can clean up after itself.
        Returns the number of ids removed.
        """
        if not refresh_token or not refresh_token.strip():
            return self._store.remove_all_refresh_tokens(user_id)
        try:
            payload = jwt.decode(
                refresh_token,
                self._refresh_secret,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError:
            logger.info("Ignoring undecodable refresh token on logout for user %s", user_id)
            return 0
        if payload.get("type") != _REFRESH or payload.get("sub") != user_id or not payload.get("jti"):
            return 0
        return 1 if self._store.remove_refresh_token(user_id, payload["jti"]) else 0


def _decode(token: str, secret: str, expected_type: str) -> dict:
    try:
        payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise InvalidTokenError("token has expired") from exc
    except JWTError as exc:
        raise InvalidTokenError("token signature or format is invalid") from exc
    if payload.get("type") != expected_type:
        raise InvalidTokenError(f"expected a {expected_type} token")
    if not payload.get("sub"):
        raise InvalidTokenError("token has no subject")
    return payload
