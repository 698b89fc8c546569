"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.
"""

from typing import Protocol

from .models import AuthGrant, VerificationRequired


class KeyValueStorage(Protocol):
    """
    Port interface for the client-local persistence medium.

    String keys to string values, shaped after browser localStorage.
    Implementations raise StorageFailure when the medium is unavailable.
    """

    def get_item(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        ...

    def remove_item(self, key: str) -> None:
        """Remove key. Removing an absent key is not an error."""
        ...


class AuthGateway(Protocol):
    """
    Port interface for the remote authentication API.

    Every method raises a GatewayError subclass on failure:
    - AuthRejected: server denied the credential or token
    - Unreachable: timeout, network failure or malformed response
    - RequestRefused: any other refusal (bad code, email in use, ...)
    """

    async def register(
        self, email: str, password: str, role: str
    ) -> AuthGrant | VerificationRequired:
        """
        Submit a registration.

        Returns:
            AuthGrant when the server opens a session immediately,
            VerificationRequired when a one-time code was sent
        """
        ...

    async def login(self, email: str, password: str) -> AuthGrant:
        """Exchange credentials for a token and profile."""
        ...

    async def verify(self, email: str, code: str, password: str, role: str) -> AuthGrant:
        """
        Complete a pending registration with its one-time code.

        The original registration payload is re-sent because the server's
        verification endpoint keeps no state about the pending registration.
        """
        ...

    async def resend_verification(self, email: str, password: str, role: str) -> None:
        """Ask the server to issue a new code for a pending registration."""
        ...

    async def fetch_profile(self, token: str | None) -> AuthGrant:
        """
        Fetch the current user's profile.

        Args:
            token: Credential to present, or None to send the request bare

        Returns:
            AuthGrant whose token is the rotated credential, or None when the
            server did not issue a new one
        """
        ...

    async def logout(self, token: str | None) -> None:
        """Tell the server the session is over. Advisory only."""
        ...
