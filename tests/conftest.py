"""
tests/conftest.py -- Shared test fixtures for the Acquisitions API tests.

This module provides:
  - _make_test_store(): an isolated named shared-memory SQLite UserStore
  - _patch_lifespan(): wires test collaborators into app.state, bypassing real startup
  - api_client: (client, store, tokens) -- TestClient on the real app
  - make_user: factory that inserts a user directly and mints a token for it

Named shared-memory SQLite URIs (not plain :memory:) are required because
TestClient runs sync route handlers in a thread pool. Plain :memory: DBs are
per-connection and would present a blank schema to each worker thread.

DEBUG must be set before any core/auth/api import so get_settings()
auto-generates SECRET_KEY instead of raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# Set before any project import -- get_settings() is cached on first call.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite:///file:acquisitions_unused?mode=memory&cache=shared&uri=true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService, hash_password

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"
TEST_ROUNDS = 4


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_test_store() -> UserStore:
    """Create an isolated UserStore on a uniquely named shared-memory database."""
    name = f"test_users_{uuid.uuid4().hex}"
    return UserStore(f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true", bcrypt_rounds=TEST_ROUNDS)


def _patch_lifespan(store: UserStore, tokens: TokenService):
    """Return a lifespan that installs the given test collaborators on app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.started_at = 0.0
        app.state.user_store = store
        app.state.tokens = tokens
        app.state.auth_service = AuthService(store, bcrypt_rounds=TEST_ROUNDS)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(secret_key=TEST_SECRET)


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = _make_test_store()
    yield s
    s.close()


@pytest.fixture
def api_client(store: UserStore, tokens: TokenService) -> Generator[tuple[TestClient, UserStore, TokenService], None, None]:
    """Yield (client, store, tokens) for API integration tests.

    Each test gets a fresh database, so tests may create users freely.
    """
    app.router.lifespan_context = _patch_lifespan(store, tokens)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, store, tokens


@pytest.fixture
def make_user(store: UserStore, tokens: TokenService) -> Callable[..., tuple[User, str]]:
    """Return a factory: make_user(role="user", ...) -> (User, token).

    Inserts straight into the store (no HTTP), so the client's cookie jar
    stays empty and tests choose how the token travels.
    """
    counter = {"n": 0}

    def _make(role: str = "user", name: str | None = None, email: str | None = None, password: str = "secret123"):
        counter["n"] += 1
        n = counter["n"]
        user = store.create_user(
            name=name or f"User {n}",
            email=email or f"user{n}@acme.io",
            hashed_password=hash_password(password, TEST_ROUNDS),
            role=role,
        )
        token = tokens.sign({"id": user.id, "email": user.email, "role": user.role})
        return user, token

    return _make
