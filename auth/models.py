"""
auth/models.py -- Domain dataclasses for account entities.

Pattern: Data class (pure data container, near-zero logic). Stores and the
auth service do the work; the API layer maps these onto pydantic transport
models.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field

ROLES = ("user", "admin")


@dataclass
class User:
    """A persisted account.

    hashed_password is the bcrypt hash and must never leave the auth package.
    refresh_tokens holds the jti of every refresh token currently valid for
    this user; it is loaded from the refresh_tokens table by the store.
    """

    id: str
    email: str
    username: str
    hashed_password: str
    first_name: str = ""
    last_name: str = ""
    role: str = "user"  # "user" or "admin"
    is_active: bool = True
    last_login: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    refresh_tokens: set[str] = field(default_factory=set)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class UserView:
    """The client-safe projection of a User. No hash, no token set."""

    id: str
    name: str
    email: str
    username: str
    role: str
    last_login: str | None
    created_at: str | None
    updated_at: str | None

    @classmethod
    def from_user(cls, user: User) -> UserView:
        return cls(
            id=user.id,
            name=user.display_name,
            email=user.email,
            username=user.username,
            role=user.role,
            last_login=user.last_login,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


@dataclass(frozen=True)
class TokenPair:
    """Signed access + refresh tokens handed to a client after login or refresh."""

    access_token: str
    refresh_token: str
    expires_in: int  # access token lifetime in seconds
    token_type: str = "bearer"


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful register or login."""

    user: UserView
    tokens: TokenPair


def split_name(name: str) -> tuple[str, str]:
    """Split a full name into (first, last). Extra whitespace is collapsed."""
    parts = name.split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])
