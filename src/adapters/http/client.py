"""
Authorized API client - Outbound-request authorization policy.

The CRUD screens talk to the marketplace API through a client built here.
Every request passes through SessionAuth, which:

- attaches ``Authorization: Bearer <token>`` only while the session reports
  a usable token (a known-stale token is never sent);
- on a 401/403 for any path except the profile endpoint, forces the session
  to log out. The profile endpoint is exempt because the session validates
  itself through it and handles its own rejections; routing those through
  here would turn a boot-time validation failure into a redirect loop.
"""

import logging
from collections.abc import AsyncGenerator, Generator

import httpx

from src.adapters.http.gateway import PROFILE_PATH
from src.config.settings import Settings
from src.domain.session import SessionController

logger = logging.getLogger(__name__)


class SessionAuth(httpx.Auth):
    """httpx auth flow backed by a SessionController."""

    def __init__(self, session: SessionController, exempt_paths: tuple[str, ...] = (PROFILE_PATH,)) -> None:
        self.session = session
        self.exempt_paths = exempt_paths

    def sync_auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        raise RuntimeError("SessionAuth requires an httpx.AsyncClient")

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        token = self.session.bearer_token()
        if token:
            request.headers["Authorization"] = f"Bearer {token}"

        response = yield request

        if response.status_code in (401, 403) and not self._is_exempt(request):
            logger.info("Request to %s rejected with %s, logging out", request.url.path, response.status_code)
            await self.session.force_logout("Authentication rejected by server")

    def _is_exempt(self, request: httpx.Request) -> bool:
        # base_url may carry a prefix such as /api
        path = request.url.path.rstrip("/")
        return any(path.endswith(exempt) for exempt in self.exempt_paths)


def create_api_client(settings: Settings, session: SessionController) -> httpx.AsyncClient:
    """Build the AsyncClient used for authenticated marketplace calls."""
    return httpx.AsyncClient(
        base_url=settings.api_base_url,
        timeout=settings.request_timeout_seconds,
        headers={"Content-Type": "application/json"},
        auth=SessionAuth(session),
    )


def create_gateway_client(settings: Settings) -> httpx.AsyncClient:
    """Build the AsyncClient used by HttpAuthGateway. Carries no session auth."""
    return httpx.AsyncClient(
        base_url=settings.api_base_url,
        timeout=settings.request_timeout_seconds,
        headers={"Content-Type": "application/json"},
    )
