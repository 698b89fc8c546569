"""
Session controller - Owns the in-memory session state machine.

Session States
==============

- UNBOOTSTRAPPED: Initial state, stored credentials not yet examined
- BOOTSTRAPPING: Stored credentials being validated
- ANONYMOUS: No usable credential
- AUTHENTICATED: Credential and profile held in memory

Valid Transitions:
    UNBOOTSTRAPPED -> BOOTSTRAPPING
    BOOTSTRAPPING  -> ANONYMOUS | AUTHENTICATED
    ANONYMOUS      -> ANONYMOUS | AUTHENTICATED
    AUTHENTICATED  -> AUTHENTICATED | ANONYMOUS

Every mutation (bootstrap, login, logout, forced logout, session install,
silent renewal) runs under one asyncio.Lock around
"evaluate state -> call gateway -> commit new state", so a login and a
renewal tick can never interleave their writes to the CredentialStore.
CredentialStore calls are blocking (file or database I/O) and run in a
worker thread through asyncio.to_thread, so holding the lock never stalls
the event loop.

Bootstrap decision table:

    stored token | usable | remember me | outcome
    -------------+--------+-------------+------------------------------------
    absent       |   -    |      -      | ANONYMOUS, no network call
    present      |  yes   |      -      | fetch profile (bounded timeout):
                 |        |             |   ok          -> AUTHENTICATED (fresh)
                 |        |             |   rejected    -> clear, ANONYMOUS
                 |        |             |   unreachable -> AUTHENTICATED (stored)
    present      |  no    |     yes     | fetch profile once:
                 |        |             |   ok          -> AUTHENTICATED
                 |        |             |   any failure -> clear, ANONYMOUS
    present      |  no    |     no      | ANONYMOUS, no network call
"""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .credential_store import CredentialStore
from .exceptions import AuthRejected, GatewayError, Unreachable
from .expiry import ExpiryPolicy
from .models import AuthGrant, OperationResult, Role, UserProfile
from .ports import AuthGateway

logger = logging.getLogger(__name__)

UNREACHABLE_MESSAGE = "Unable to reach the server. Please try again."
STORAGE_WARNING = "Session could not be saved and will not survive a restart"

ForcedLogoutListener = Callable[[str], Any]


class SessionPhase(str, Enum):
    """Phase tag of the session state machine."""

    UNBOOTSTRAPPED = "unbootstrapped"
    BOOTSTRAPPING = "bootstrapping"
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


_ALLOWED_TRANSITIONS: dict[SessionPhase, frozenset[SessionPhase]] = {
    SessionPhase.UNBOOTSTRAPPED: frozenset({SessionPhase.BOOTSTRAPPING}),
    SessionPhase.BOOTSTRAPPING: frozenset({SessionPhase.ANONYMOUS, SessionPhase.AUTHENTICATED}),
    SessionPhase.ANONYMOUS: frozenset({SessionPhase.ANONYMOUS, SessionPhase.AUTHENTICATED}),
    SessionPhase.AUTHENTICATED: frozenset({SessionPhase.AUTHENTICATED, SessionPhase.ANONYMOUS}),
}


class InvalidTransition(RuntimeError):
    """A state change skipped a required intermediate phase."""

    pass


@dataclass(frozen=True)
class SessionState:
    """
    Tagged session state. Only AUTHENTICATED carries a token and profile.
    """

    phase: SessionPhase
    token: str | None = None
    profile: UserProfile | None = None

    def __post_init__(self) -> None:
        if self.phase is SessionPhase.AUTHENTICATED:
            if not self.token or self.profile is None:
                raise ValueError("authenticated state requires token and profile")
        elif self.token is not None or self.profile is not None:
            raise ValueError(f"{self.phase.value} state carries no credential")


class SessionController:
    """
    Single owner of the session.

    UI surfaces read ``is_authenticated``, ``current_user`` and ``role()``;
    the outbound-request authorizer reads ``bearer_token()``. All operations
    return an OperationResult and never raise to their caller.

    Example:
        session = SessionController(gateway, CredentialStore(storage))
        await session.bootstrap()
        result = await session.login("user@example.com", "secret1", remember_me=True)
    """

    def __init__(
        self,
        gateway: AuthGateway,
        store: CredentialStore,
        expiry: ExpiryPolicy | None = None,
        bootstrap_timeout: float = 5.0,
        renewal_interval: float = 300.0,
    ) -> None:
        """
        Args:
            gateway: Remote authentication API
            store: Durable credential storage
            expiry: Usability policy (default: 5 min grace, 10 min renew)
            bootstrap_timeout: Seconds allowed for the bootstrap profile check
            renewal_interval: Seconds between silent renewal ticks
        """
        self.gateway = gateway
        self.store = store
        self.expiry = expiry or ExpiryPolicy()
        self.bootstrap_timeout = bootstrap_timeout
        self.renewal_interval = renewal_interval

        self._state = SessionState(SessionPhase.UNBOOTSTRAPPED)
        self._lock = asyncio.Lock()
        self._renewal_task: asyncio.Task | None = None
        self._renewal_in_flight = False
        self._forced_logout_listeners: list[ForcedLogoutListener] = []

    # ------------------------------------------------------------------
    # Read surface
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def phase(self) -> SessionPhase:
        return self._state.phase

    @property
    def is_authenticated(self) -> bool:
        """True while a credential is held and still usable."""
        return self._state.phase is SessionPhase.AUTHENTICATED and self.expiry.is_usable(
            self._state.token
        )

    @property
    def current_user(self) -> UserProfile | None:
        return self._state.profile

    def role(self) -> Role | None:
        profile = self._state.profile
        return profile.role if profile else None

    def is_seller(self) -> bool:
        return self.role() is Role.SELLER

    def bearer_token(self) -> str | None:
        """Token to attach to outbound calls, or None if it must be omitted."""
        token = self._state.token
        if token and self.expiry.is_usable(token):
            return token
        return None

    @property
    def renewal_running(self) -> bool:
        return self._renewal_task is not None and not self._renewal_task.done()

    def on_forced_logout(self, listener: ForcedLogoutListener) -> None:
        """Register a callback invoked with a reason when the session is revoked."""
        self._forced_logout_listeners.append(listener)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def bootstrap(self) -> OperationResult:
        """Examine stored credentials once per process lifetime."""
        async with self._lock:
            if self._state.phase is not SessionPhase.UNBOOTSTRAPPED:
                return OperationResult.ok()
            return await self._bootstrap_locked()

    async def login(
        self, email: str, password: str, remember_me: bool = False
    ) -> OperationResult:
        """
        Exchange credentials for a session. Never retried automatically.

        On failure the session state is left unchanged and the server's
        message is returned verbatim.
        """
        if not email or not password:
            return OperationResult.fail("Email and password are required")

        async with self._lock:
            await self._ensure_bootstrapped()
            try:
                grant = await self.gateway.login(email, password)
            except Unreachable as e:
                logger.warning("Login failed, server unreachable: %s", e.message)
                return OperationResult.fail(UNREACHABLE_MESSAGE)
            except GatewayError as e:
                logger.info("Login refused by server")
                return OperationResult.fail(e.message or "Login failed")

            if not grant.token:
                return OperationResult.fail("Login failed")

            logger.info("Login succeeded for user %s", grant.profile.id)
            return await self._commit_authenticated(grant.token, grant.profile, remember_me=remember_me)

    async def install_session(
        self, grant: AuthGrant, remember_me: bool | None = None
    ) -> OperationResult:
        """
        Adopt a credential obtained outside login(), e.g. by registration.

        Args:
            grant: Token and profile returned by the server
            remember_me: New remember-me flag, or None to leave it untouched
        """
        async with self._lock:
            await self._ensure_bootstrapped()
            if not grant.token:
                return OperationResult.fail("Server did not issue a session")
            return await self._commit_authenticated(grant.token, grant.profile, remember_me=remember_me)

    async def logout(self) -> OperationResult:
        """
        End the session.

        The remote call is advisory: local state and storage are always
        cleared, whatever the network does. Idempotent.
        """
        async with self._lock:
            token = self._state.token
            try:
                if token:
                    await self._remote_logout()
            finally:
                cleared = await self._clear_local()
                if self._state.phase is SessionPhase.UNBOOTSTRAPPED:
                    self._transition(SessionState(SessionPhase.BOOTSTRAPPING))
                self._transition(SessionState(SessionPhase.ANONYMOUS))
                self._stop_renewal()

        logger.info("Logged out")
        if not cleared:
            return OperationResult.ok(warning=STORAGE_WARNING)
        return OperationResult.ok()

    async def force_logout(self, reason: str = "Session expired") -> OperationResult:
        """
        Demote to ANONYMOUS after the server rejected the credential.

        Called by the transport on an authentication rejection. Listeners
        are only notified when an authenticated session was actually ended.
        """
        async with self._lock:
            if self._state.phase is SessionPhase.AUTHENTICATED:
                await self._demote(reason)
            else:
                await self._clear_local()
        return OperationResult.ok()

    async def renew(self) -> OperationResult:
        """
        One silent-renewal tick.

        Refreshes the session when the token is inside the renew window.
        A failure is logged only; an AuthRejected for a request that carried
        the token is the one outcome that ends the session. A tick arriving
        while another is still in flight is skipped.
        """
        if self._renewal_in_flight:
            logger.debug("Renewal already in flight, skipping tick")
            return OperationResult.fail("Renewal already in progress")

        self._renewal_in_flight = True
        try:
            async with self._lock:
                state = self._state
                if state.phase is not SessionPhase.AUTHENTICATED:
                    return OperationResult.fail("No active session")
                if not self.expiry.is_near_expiry(state.token):
                    logger.debug("Token outside renew window, nothing to do")
                    return OperationResult.ok()

                token = self.bearer_token()
                try:
                    grant = await self.gateway.fetch_profile(token)
                except AuthRejected as e:
                    if token is None:
                        # bare request: the credential itself was never rejected
                        logger.warning("Bare renewal request refused: %s", e.message)
                        return OperationResult.fail("Silent renewal failed")
                    await self._demote(e.message or "Session rejected during renewal")
                    return OperationResult.fail("Session expired")
                except GatewayError as e:
                    logger.warning("Silent renewal failed: %s", e.message)
                    return OperationResult.fail("Silent renewal failed")

                logger.debug("Silent renewal succeeded")
                return await self._commit_authenticated(grant.token or state.token, grant.profile)
        finally:
            self._renewal_in_flight = False

    async def close(self) -> None:
        """Stop the renewal loop at process teardown."""
        task = self._renewal_task
        self._stop_renewal()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # ------------------------------------------------------------------
    # Bootstrap internals
    # ------------------------------------------------------------------

    async def _ensure_bootstrapped(self) -> None:
        if self._state.phase is SessionPhase.UNBOOTSTRAPPED:
            await self._bootstrap_locked()

    async def _bootstrap_locked(self) -> OperationResult:
        self._transition(SessionState(SessionPhase.BOOTSTRAPPING))
        token, profile = await asyncio.to_thread(self.store.get)

        if token is None:
            logger.info("No stored credential, starting anonymous")
            return self._settle_anonymous()

        if self.expiry.is_usable(token):
            return await self._validate_stored(token, profile)

        if await asyncio.to_thread(self.store.remember_me):
            return await self._revive_stored(token)

        logger.info("Stored credential expired, starting anonymous")
        return self._settle_anonymous()

    async def _validate_stored(self, token: str, profile: UserProfile | None) -> OperationResult:
        try:
            grant = await self._fetch_with_timeout(token)
        except AuthRejected:
            logger.info("Stored credential rejected by server, clearing")
            await self._clear_local()
            return self._settle_anonymous()
        except GatewayError as e:
            if profile is None:
                logger.warning("Server unreachable and stored profile unreadable: %s", e.message)
                return self._settle_anonymous()
            logger.warning("Server unreachable during bootstrap, trusting stored session: %s", e.message)
            self._transition(SessionState(SessionPhase.AUTHENTICATED, token, profile))
            self._start_renewal()
            return OperationResult.ok()

        logger.info("Stored credential validated")
        return await self._commit_authenticated(grant.token or token, grant.profile)

    async def _revive_stored(self, token: str) -> OperationResult:
        try:
            grant = await self._fetch_with_timeout(token)
        except GatewayError as e:
            logger.info("Expired credential could not be revived: %s", e.message)
            await self._clear_local()
            return self._settle_anonymous()

        logger.info("Expired credential revived by server")
        return await self._commit_authenticated(grant.token or token, grant.profile)

    async def _fetch_with_timeout(self, token: str) -> AuthGrant:
        try:
            return await asyncio.wait_for(
                self.gateway.fetch_profile(token), timeout=self.bootstrap_timeout
            )
        except asyncio.TimeoutError as e:
            raise Unreachable("Profile check timed out") from e

    def _settle_anonymous(self) -> OperationResult:
        self._transition(SessionState(SessionPhase.ANONYMOUS))
        return OperationResult.ok()

    # ------------------------------------------------------------------
    # State commits (caller holds the lock)
    # ------------------------------------------------------------------

    def _transition(self, new_state: SessionState) -> None:
        current = self._state.phase
        if new_state.phase not in _ALLOWED_TRANSITIONS[current]:
            raise InvalidTransition(f"{current.value} -> {new_state.phase.value}")
        if new_state.phase is not current:
            logger.info("Session %s -> %s", current.value, new_state.phase.value)
        self._state = new_state

    async def _commit_authenticated(
        self, token: str, profile: UserProfile, remember_me: bool | None = None
    ) -> OperationResult:
        stored = await asyncio.to_thread(self.store.put, token, profile)
        if remember_me is not None:
            stored = await asyncio.to_thread(self.store.set_remember_me, remember_me) and stored

        self._transition(SessionState(SessionPhase.AUTHENTICATED, token, profile))
        self._start_renewal()

        if not stored:
            logger.warning("Credential not persisted, session limited to this process")
            return OperationResult.ok(warning=STORAGE_WARNING)
        return OperationResult.ok()

    async def _clear_local(self) -> bool:
        cleared = await asyncio.to_thread(self.store.clear)
        return await asyncio.to_thread(self.store.set_remember_me, False) and cleared

    async def _demote(self, reason: str) -> None:
        logger.info("Session revoked: %s", reason)
        await self._clear_local()
        self._transition(SessionState(SessionPhase.ANONYMOUS))
        self._stop_renewal()
        for listener in list(self._forced_logout_listeners):
            try:
                listener(reason)
            except Exception:
                logger.exception("Forced-logout listener failed")

    async def _remote_logout(self) -> None:
        try:
            await self.gateway.logout(self.bearer_token())
        except GatewayError as e:
            logger.warning("Remote logout failed, clearing locally anyway: %s", e.message)

    # ------------------------------------------------------------------
    # Silent renewal loop
    # ------------------------------------------------------------------

    def _start_renewal(self) -> None:
        if self.renewal_running:
            return
        try:
            self._renewal_task = asyncio.get_running_loop().create_task(
                self._renewal_loop(), name="session-renewal"
            )
        except RuntimeError:
            logger.warning("No running event loop, silent renewal disabled")

    def _stop_renewal(self) -> None:
        task = self._renewal_task
        self._renewal_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _renewal_loop(self) -> None:
        while self._state.phase is SessionPhase.AUTHENTICATED:
            await asyncio.sleep(self.renewal_interval)
            if self._state.phase is not SessionPhase.AUTHENTICATED:
                break
            await self.renew()
        logger.debug("Renewal loop stopped")
