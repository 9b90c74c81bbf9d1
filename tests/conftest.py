"""
tests/conftest.py -- Shared test fixtures for the account service.

This module provides:
  - hasher / store / tokens / service: unit-level collaborators on a private
    in-memory SQLite database per test
  - api_client: TestClient running the real FastAPI app with a patched
    lifespan that wires in an isolated in-memory store

Design: stores use named shared-memory SQLite URIs (not plain :memory:)
because TestClient runs sync route handlers and dependencies in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to each
worker thread.

DEBUG, BCRYPT_ROUNDS and ALLOWED_HOSTS must be set before any api/auth/core
import: get_settings() auto-generates token secrets in debug mode, accepts the
cheap bcrypt cost, and lets TestClient's "testserver" host through.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any project import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import Settings, get_settings

# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


def _memory_url(prefix: str) -> str:
    """Named shared-memory SQLite URL, unique per call, visible to every thread."""
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


@pytest.fixture
def store(hasher: PasswordHasher) -> Generator[UserStore, None, None]:
    s = UserStore(_memory_url("test_unit"), hasher, max_refresh_tokens=3)
    yield s
    s.close()


@pytest.fixture
def tokens(store: UserStore, settings: Settings) -> TokenService:
    return TokenService(store, settings)


@pytest.fixture
def service(store: UserStore, hasher: PasswordHasher, tokens: TokenService, settings: Settings) -> AuthService:
    return AuthService(store, hasher, tokens, settings)


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(store: UserStore, service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test collaborators into app.state so TestClient routes
    see an isolated test DB rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = store
        app.state.auth_service = service
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, UserStore], None, None]:
    """Yield (client, store) for API integration tests.

    One client per test module; tests use distinct emails so they do not
    collide within the shared database.
    """
    settings = get_settings()
    hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    store = UserStore(_memory_url("test_api"), hasher, max_refresh_tokens=settings.max_refresh_tokens)
    service = AuthService(store, hasher, TokenService(store, settings), settings)

    app.router.lifespan_context = _patch_lifespan(store, service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, store

    store.close()
