"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A controllable clock and self-describing test tokens
- In-memory credential storage
- Mocked gateway and wired session/registration objects
"""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from src.adapters.storage.memory import InMemoryStorage
from src.domain.credential_store import CredentialStore
from src.domain.expiry import ExpiryPolicy
from src.domain.models import AuthGrant, Role, UserProfile
from src.domain.registration import RegistrationFlow
from src.domain.session import SessionController
from tests.helpers import FakeClock, token_expiring_in


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def store(storage: InMemoryStorage) -> CredentialStore:
    return CredentialStore(storage)


@pytest.fixture
def policy(clock: FakeClock) -> ExpiryPolicy:
    return ExpiryPolicy(clock=clock)


@pytest.fixture
def profile() -> UserProfile:
    return UserProfile(
        id="u1",
        email="user@example.com",
        role=Role.CUSTOMER,
        extra={"first_name": "Ada", "last_name": "Lovelace"},
    )


@pytest.fixture
def fresh_token(clock: FakeClock) -> str:
    """Token valid for another hour."""
    return token_expiring_in(clock, hours=1)


@pytest.fixture
def grant(fresh_token: str, profile: UserProfile) -> AuthGrant:
    return AuthGrant(token=fresh_token, profile=profile)


@pytest.fixture
def gateway() -> AsyncMock:
    """Gateway double; every protocol method is an AsyncMock."""
    return AsyncMock()


@pytest_asyncio.fixture
async def session(
    gateway: AsyncMock, store: CredentialStore, policy: ExpiryPolicy
) -> AsyncGenerator[SessionController, None]:
    controller = SessionController(
        gateway=gateway,
        store=store,
        expiry=policy,
        bootstrap_timeout=0.05,
        renewal_interval=3600,
    )
    yield controller
    await controller.close()


@pytest_asyncio.fixture
async def flow(
    gateway: AsyncMock, session: SessionController, clock: FakeClock
) -> RegistrationFlow:
    return RegistrationFlow(gateway=gateway, session=session, clock=clock)
