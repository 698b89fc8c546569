"""
Shared fixtures for adversarial tests.

Provides a gateway whose calls can be held open, so tests can interleave
session operations at exactly the points where a race would occur.
"""

import asyncio
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from src.domain.credential_store import CredentialStore
from src.domain.expiry import ExpiryPolicy
from src.domain.models import AuthGrant
from src.domain.session import SessionController

# Module-level marker for all adversarial tests
pytestmark = pytest.mark.adversarial


class HeldGateway:
    """
    Gateway double whose login and fetch_profile block until released.

    Each call records its arguments and waits on its own Event, so a test
    decides the order in which responses land.
    """

    def __init__(self) -> None:
        self.login_grants: list[AuthGrant] = []
        self.profile_grants: list[AuthGrant] = []
        self.login_gate = asyncio.Event()
        self.profile_gate = asyncio.Event()
        self.login_calls = 0
        self.profile_calls: list[str | None] = []
        self.logout_calls: list[str | None] = []

    async def login(self, email: str, password: str) -> AuthGrant:
        self.login_calls += 1
        grant = self.login_grants.pop(0)
        await self.login_gate.wait()
        return grant

    async def fetch_profile(self, token: str | None) -> AuthGrant:
        self.profile_calls.append(token)
        grant = self.profile_grants.pop(0)
        await self.profile_gate.wait()
        return grant

    async def logout(self, token: str | None) -> None:
        self.logout_calls.append(token)

    async def register(self, email, password, role):
        raise NotImplementedError

    async def verify(self, email, code, password, role):
        raise NotImplementedError

    async def resend_verification(self, email, password, role):
        raise NotImplementedError


@pytest.fixture
def held_gateway() -> HeldGateway:
    return HeldGateway()


@pytest_asyncio.fixture
async def held_session(
    held_gateway: HeldGateway, store: CredentialStore, policy: ExpiryPolicy
) -> AsyncGenerator[SessionController, None]:
    controller = SessionController(
        gateway=held_gateway, store=store, expiry=policy, renewal_interval=3600
    )
    yield controller
    await controller.close()
