"""
tests/conftest.py -- Shared test fixtures for the user service.

This module provides:
  - hasher / token_service: fast, deterministic building blocks
  - user_store / role_store: isolated in-memory SQLite stores, roles seeded
  - auth_service: AuthService composed from the above
  - secret_key / signing_config_factory: the shared HS256 test signing material
  - api_client: TestClient over the real app with a patched lifespan and a
    pre-registered admin
  - lenient_api_client: same wiring, unhandled errors returned as responses

Design: Named shared-memory SQLite URIs (not plain :memory:) are used for the
API fixture because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. Unit fixtures run in one thread and use plain :memory:.

bcrypt rounds are set to the minimum (4) -- the cost factor does not change
behaviour, only speed.

The DEBUG env var must be set before any app import so get_settings() can
auto-generate SECRET_KEY instead of raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any api/core import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import RoleName
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import RoleStore, UserStore, create_db_engine
from auth.tokens import SigningConfig, TokenService

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters-long"

ADMIN_USERNAME = "testadmin"
ADMIN_PASSWORD = "testpass123"


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


def make_signing_config(**overrides) -> SigningConfig:
    fields = {
        "algorithm": "HS256",
        "signing_key": TEST_SECRET,
        "verification_key": TEST_SECRET,
        "expire_seconds": 3600,
        "issuer": "",
    }
    fields.update(overrides)
    return SigningConfig(**fields)


@pytest.fixture(scope="session")
def secret_key() -> str:
    return TEST_SECRET


@pytest.fixture(scope="session")
def signing_config_factory() -> Callable[..., SigningConfig]:
    """make_signing_config for tests that need non-default signing material."""
    return make_signing_config


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(make_signing_config())


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    eng = create_db_engine("sqlite:///:memory:")
    yield eng
    eng.dispose()


@pytest.fixture
def role_store(engine) -> RoleStore:
    store = RoleStore(engine)
    store.seed_defaults()
    return store


@pytest.fixture
def user_store(engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def auth_service(user_store, role_store, hasher, token_service) -> AuthService:
    return AuthService(users=user_store, roles=role_store, hasher=hasher, tokens=token_service)


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


def _patch_lifespan(auth_service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-built test components into app.state so TestClient routes see
    the isolated test database rather than the configured one. The previous
    wiring is restored on exit: a function-scoped client opened inside a
    module that already holds api_client must not leave its database behind.
    """
    wired = {
        "user_store": auth_service.users,
        "role_store": auth_service.roles,
        "token_service": auth_service.tokens,
        "auth_service": auth_service,
    }

    @asynccontextmanager
    async def test_lifespan(app):
        previous = {name: getattr(app.state, name, None) for name in wired}
        for name, value in wired.items():
            setattr(app.state, name, value)
        yield
        for name, value in previous.items():
            setattr(app.state, name, value)

    return test_lifespan


def make_api_service(hasher: PasswordHasher, seed_roles: bool = True) -> AuthService:
    """AuthService over a fresh named shared-memory database."""
    url = f"sqlite:///file:test_users_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    eng = create_db_engine(url)
    roles = RoleStore(eng)
    if seed_roles:
        roles.seed_defaults()
    return AuthService(
        users=UserStore(eng),
        roles=roles,
        hasher=hasher,
        tokens=TokenService(make_signing_config()),
    )


@pytest.fixture(scope="module")
def api_client(hasher) -> Generator[tuple[TestClient, str], None, None]:
    """Yield (client, admin_token) for API integration tests.

    The admin account is registered through AuthService before the client
    starts, then logged in to obtain a real token.
    """
    service = make_api_service(hasher)
    service.register(ADMIN_USERNAME, ADMIN_PASSWORD, "admin@example.com", RoleName.ADMIN)
    token = service.login(ADMIN_USERNAME, ADMIN_PASSWORD).token

    app.router.lifespan_context = _patch_lifespan(service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token

    service.users.close()


@pytest.fixture
def empty_api_client(hasher) -> Generator[TestClient, None, None]:
    """TestClient over an empty database (roles seeded, no users)."""
    service = make_api_service(hasher)
    app.router.lifespan_context = _patch_lifespan(service)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client
    service.users.close()


@pytest.fixture
def unseeded_api_client(hasher) -> Generator[TestClient, None, None]:
    """TestClient over a database with no role records at all."""
    service = make_api_service(hasher, seed_roles=False)
    app.router.lifespan_context = _patch_lifespan(service)
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client
    service.users.close()


@pytest.fixture
def lenient_api_client(hasher) -> Generator[tuple[TestClient, AuthService], None, None]:
    """Yield (client, service) with server exceptions turned into responses.

    Tests patch methods on service.users / service.roles to simulate store
    failures and assert on the catch-all 500 envelope.
    """
    service = make_api_service(hasher)
    app.router.lifespan_context = _patch_lifespan(service)
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client, service
    service.users.close()
