"""
HTTP gateway adapter - Implements AuthGateway protocol over httpx.

Endpoint map of the marketplace API:

- POST /auth/register  registration; verification when ``otp`` is included;
                       resend when the pending payload is posted again
- POST /auth/login     credential exchange
- POST /auth/logout    advisory session end
- GET  /profile        current user, optionally with a rotated token

Responses are decoded with pydantic into domain values at this boundary.
Failures are classified into the domain's GatewayError subclasses:

- 401/403                          -> AuthRejected
- timeout, network error, 5xx,
  non-JSON or malformed body       -> Unreachable
- any other 4xx                    -> RequestRefused
"""

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

from src.domain.exceptions import AuthRejected, RequestRefused, Unreachable
from src.domain.models import AuthGrant, UserProfile, VerificationRequired

logger = logging.getLogger(__name__)

REGISTER_PATH = "/auth/register"
LOGIN_PATH = "/auth/login"
LOGOUT_PATH = "/auth/logout"
PROFILE_PATH = "/profile"


class AuthResponse(BaseModel):
    """Body shape shared by the auth endpoints."""

    model_config = ConfigDict(extra="ignore")

    token: str | None = None
    user: dict[str, Any] | None = None
    message: str | None = None
    email: str | None = None


class HttpAuthGateway:
    """
    Implements AuthGateway protocol via httpx.AsyncClient.

    Uses structural subtyping - no explicit inheritance from Protocol.
    The client is owned by the caller; bearer tokens are attached per call
    only where the protocol passes one.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        """
        Args:
            client: AsyncClient configured with the API base URL and timeout
        """
        self._client = client

    async def register(
        self, email: str, password: str, role: str
    ) -> AuthGrant | VerificationRequired:
        body = await self._send(
            "POST", REGISTER_PATH, json={"email": email, "password": password, "role": role}
        )
        response = self._decode(body)
        if response.token:
            return self._grant(response, require_token=True)
        if response.message:
            return VerificationRequired(message=response.message, email=response.email)
        raise Unreachable("Malformed registration response")

    async def login(self, email: str, password: str) -> AuthGrant:
        body = await self._send("POST", LOGIN_PATH, json={"email": email, "password": password})
        return self._grant(self._decode(body), require_token=True)

    async def verify(self, email: str, code: str, password: str, role: str) -> AuthGrant:
        payload = {"email": email, "otp": code, "password": password, "role": role}
        body = await self._send("POST", REGISTER_PATH, json=payload)
        return self._grant(self._decode(body), require_token=True)

    async def resend_verification(self, email: str, password: str, role: str) -> None:
        await self._send(
            "POST", REGISTER_PATH, json={"email": email, "password": password, "role": role}
        )

    async def fetch_profile(self, token: str | None) -> AuthGrant:
        body = await self._send("GET", PROFILE_PATH, token=token)
        return self._grant(self._decode(body), require_token=False)

    async def logout(self, token: str | None) -> None:
        await self._send("POST", LOGOUT_PATH, token=token, expect_body=False)

    async def _send(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        token: str | None = None,
        expect_body: bool = True,
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            response = await self._client.request(method, path, json=json, headers=headers)
        except httpx.TimeoutException as e:
            raise Unreachable(f"{method} {path} timed out") from e
        except httpx.HTTPError as e:
            raise Unreachable(f"{method} {path} failed: {e}") from e

        status = response.status_code
        if status >= 400:
            message = _error_message(response)
            logger.debug("%s %s returned %s", method, path, status)
            if status in (401, 403):
                raise AuthRejected(message)
            if status >= 500:
                raise Unreachable(message or f"Server error ({status})")
            raise RequestRefused(message)

        if not expect_body:
            return {}
        try:
            body = response.json()
        except ValueError as e:
            raise Unreachable(f"{method} {path} returned a non-JSON body") from e
        if not isinstance(body, dict):
            raise Unreachable(f"{method} {path} returned an unexpected body")
        return body

    def _decode(self, body: dict[str, Any]) -> AuthResponse:
        try:
            return AuthResponse.model_validate(body)
        except ValueError as e:
            raise Unreachable("Malformed response body") from e

    def _grant(self, response: AuthResponse, require_token: bool) -> AuthGrant:
        if require_token and not response.token:
            raise Unreachable("Response carried no token")
        if response.user is None:
            raise Unreachable("Response carried no user")
        try:
            profile = UserProfile.from_dict(response.user)
        except ValueError as e:
            raise Unreachable(f"Malformed user record: {e}") from e
        return AuthGrant(token=response.token, profile=profile)


def _error_message(response: httpx.Response) -> str:
    """Server-provided message from an error body, or an empty string."""
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str):
                return value
    return ""
