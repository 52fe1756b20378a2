"""
Test fixtures for the ZoneGuard test suite.

This module provides shared fixtures used across all test files:

  - db_engine: Fresh file-backed SQLite database for each test
  - repository / token_issuer / user_service: The real service stack
  - admin_identity / zone_admin_identity: Validated identities for calling
    the service directly
  - client: Async HTTP test client (unauthenticated)
  - admin_client: Test client logged in as a bootstrapped ADMIN
  - zone_admin_client: Test client logged in as a ZONE_ADMIN

Key design decisions:
  - A SQLite file under tmp_path (not :memory:) so concurrent sessions
    really are separate connections and the UNIQUE constraint arbitrates
    races the way a production database does.
  - We override the get_user_service dependency to inject a service wired
    to the test database. httpx's ASGITransport doesn't run the lifespan,
    so the production wiring is never triggered.
  - admin_client creates its admin through ensure_bootstrap_admin and logs
    in through the real endpoint, exercising the production login flow.
"""

import os

# Settings are read at import time; give the suite a signing key before any
# zoneguard module is imported.
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from zoneguard.database import create_engine, create_session_factory, init_models
from zoneguard.dependencies import get_user_service
from zoneguard.main import app
from zoneguard.models.user import Role
from zoneguard.repositories.user_repository import UserRepository
from zoneguard.security import TokenIssuer
from zoneguard.services.user_service import UserService

TEST_SECRET_KEY = "test-secret-key-not-for-production"

ADMIN_USERNAME = "root"
ADMIN_PASSWORD = "RootPass123!"
ZONE_ADMIN_USERNAME = "operator"
ZONE_ADMIN_PASSWORD = "OperatorPass123!"


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create a fresh async engine with all tables for each test."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'zoneguard_test.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def repository(db_engine):
    return UserRepository(create_session_factory(db_engine))


@pytest.fixture
def token_issuer():
    return TokenIssuer(secret_key=TEST_SECRET_KEY, expire_minutes=30)


@pytest.fixture
def user_service(repository, token_issuer):
    return UserService(repository=repository, token_issuer=token_issuer)


@pytest.fixture
def admin_identity(token_issuer):
    """A validated ADMIN identity, as the HTTP layer would produce it."""
    return token_issuer.validate_token(token_issuer.generate_token(ADMIN_USERNAME, Role.ADMIN))


@pytest.fixture
def zone_admin_identity(token_issuer):
    """A validated ZONE_ADMIN identity."""
    return token_issuer.validate_token(
        token_issuer.generate_token(ZONE_ADMIN_USERNAME, Role.ZONE_ADMIN)
    )


@pytest_asyncio.fixture
async def client(user_service):
    """
    Async HTTP test client with the test service injected.

    All requests hit the test database through the overridden
    get_user_service dependency.
    """
    app.dependency_overrides[get_user_service] = lambda: user_service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


async def login(client, username: str, password: str) -> str:
    """Log in through the real endpoint and return the token."""
    response = await client.post(
        "/auth/login",
        json={"username": username, "password": password},
    )
    assert response.status_code == 200, f"Login failed: {response.text}"
    return response.json()["token"]


@pytest_asyncio.fixture
async def admin_client(client, user_service):
    """
    Test client logged in as an ADMIN.

    The admin is created the way a fresh deployment creates its first
    operator: by bootstrapping an empty store.
    """
    await user_service.ensure_bootstrap_admin(ADMIN_USERNAME, ADMIN_PASSWORD)
    token = await login(client, ADMIN_USERNAME, ADMIN_PASSWORD)
    client.headers["Authorization"] = f"Bearer {token}"
    return client


@pytest_asyncio.fixture
async def zone_admin_client(client, user_service, admin_identity):
    """Test client logged in as a ZONE_ADMIN (valid identity, insufficient role)."""
    await user_service.create_user(
        admin_identity,
        username=ZONE_ADMIN_USERNAME,
        password=ZONE_ADMIN_PASSWORD,
        role=Role.ZONE_ADMIN,
        zones=["z1"],
    )
    token = await login(client, ZONE_ADMIN_USERNAME, ZONE_ADMIN_PASSWORD)
    client.headers["Authorization"] = f"Bearer {token}"
    return client
