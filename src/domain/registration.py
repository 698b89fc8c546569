"""
Registration flow - Two-step register / one-time-code protocol.

Registration Steps
==================

- COLLECTING: Credentials being entered, nothing pending
- PENDING_VERIFICATION: Server sent a one-time code, attempt held in memory
- COMPLETE: Session installed, attempt destroyed

Valid Transitions:
    COLLECTING           -> COMPLETE              (server opened a session at once)
    COLLECTING           -> PENDING_VERIFICATION  (server requires a code)
    PENDING_VERIFICATION -> COMPLETE              (code accepted)
    PENDING_VERIFICATION -> COLLECTING            (abandoned or resubmitted)

The pending RegistrationAttempt keeps the plaintext password because the
server's verification endpoint is stateless and needs the original payload
again. It lives in memory only and is destroyed on completion or abandon.

Stale responses: every submit and abandon bumps a generation counter.
A response whose generation no longer matches is discarded, so a reply
arriving after the user walked away has no effect.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from .exceptions import GatewayError, Unreachable, ValidationFailed
from .expiry import Clock, utc_now
from .models import OperationResult, Role, VerificationRequired
from .ports import AuthGateway
from .session import UNREACHABLE_MESSAGE, SessionController

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Registration was cancelled"
NOT_PENDING_MESSAGE = "No registration is awaiting verification"


class RegistrationStep(str, Enum):
    """Step of the registration protocol."""

    COLLECTING = "collecting"
    PENDING_VERIFICATION = "pending_verification"
    COMPLETE = "complete"


@dataclass
class RegistrationAttempt:
    """In-memory record of a registration awaiting its code. Never persisted."""

    email: str
    password: str = field(repr=False)
    role: Role
    pending_since: datetime
    code_expires_at: datetime


@dataclass
class RegistrationFlow:
    """
    Drives one registration from form submission to an installed session.

    Local validation failures return immediately without a gateway call.
    """

    gateway: AuthGateway
    session: SessionController
    countdown: timedelta = timedelta(minutes=10)
    min_password_length: int = 6
    code_length: int = 6
    clock: Clock = utc_now

    step: RegistrationStep = field(default=RegistrationStep.COLLECTING, init=False)
    attempt: RegistrationAttempt | None = field(default=None, init=False, repr=False)
    _digits: list[str] = field(default_factory=list, init=False, repr=False)
    _generation: int = field(default=0, init=False, repr=False)
    _resend_in_flight: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        self._digits = [""] * self.code_length

    async def submit(
        self,
        email: str,
        password: str,
        role: Role | str | None,
        confirm_password: str | None = None,
    ) -> OperationResult:
        """
        Submit the registration form.

        Args:
            email: Address to register
            password: Chosen password
            role: Seller or customer
            confirm_password: Repeated password; checked when given

        Returns:
            OperationResult; ``requires_verification`` is set when a code
            was sent and the flow moved to PENDING_VERIFICATION
        """
        if self.step is RegistrationStep.COMPLETE:
            return OperationResult.fail("Registration already completed")

        try:
            chosen_role = self._validate(email, password, role, confirm_password)
        except ValidationFailed as e:
            return OperationResult.fail(e.message)

        # A new submission supersedes anything still pending
        self._destroy_attempt()
        self.step = RegistrationStep.COLLECTING
        generation = self._generation
        email = email.strip()

        try:
            outcome = await self.gateway.register(email, password, chosen_role.value)
        except Unreachable as e:
            logger.warning("Registration failed, server unreachable: %s", e.message)
            return OperationResult.fail(UNREACHABLE_MESSAGE)
        except GatewayError as e:
            logger.info("Registration refused by server")
            return OperationResult.fail(e.message or "Registration failed")

        if generation != self._generation:
            logger.info("Discarding registration response for an abandoned flow")
            return OperationResult.fail(CANCELLED_MESSAGE)

        if isinstance(outcome, VerificationRequired):
            now = self.clock()
            self.attempt = RegistrationAttempt(
                email=email,
                password=password,
                role=chosen_role,
                pending_since=now,
                code_expires_at=now + self.countdown,
            )
            self.step = RegistrationStep.PENDING_VERIFICATION
            logger.info("Registration pending verification")
            return OperationResult.ok(
                requires_verification=True,
                message=outcome.message,
                email=outcome.email or email,
            )

        result = await self.session.install_session(outcome)
        if result.success:
            self.step = RegistrationStep.COMPLETE
            logger.info("Registration complete without verification")
        return result

    async def verify(self, code: str | None = None) -> OperationResult:
        """
        Send the one-time code. Uses the entered digits when code is None.

        On failure the flow stays pending with its countdown and entered
        digits untouched.
        """
        attempt = self.attempt
        if self.step is not RegistrationStep.PENDING_VERIFICATION or attempt is None:
            return OperationResult.fail(NOT_PENDING_MESSAGE)

        code = self.entered_code if code is None else code.strip()
        if not re.fullmatch(rf"[0-9]{{{self.code_length}}}", code):
            return OperationResult.fail(f"Please enter the complete {self.code_length}-digit code")

        generation = self._generation
        try:
            grant = await self.gateway.verify(
                attempt.email, code, attempt.password, attempt.role.value
            )
        except Unreachable as e:
            logger.warning("Verification failed, server unreachable: %s", e.message)
            return OperationResult.fail(UNREACHABLE_MESSAGE)
        except GatewayError as e:
            logger.info("Verification code refused")
            return OperationResult.fail(e.message or "Verification failed")

        if generation != self._generation:
            logger.info("Discarding verification response for an abandoned flow")
            return OperationResult.fail(CANCELLED_MESSAGE)

        result = await self.session.install_session(grant)
        if not result.success:
            return result

        self._destroy_attempt()
        self.step = RegistrationStep.COMPLETE
        logger.info("Registration verified")
        return result

    async def resend(self) -> OperationResult:
        """
        Request a new code once the countdown has elapsed.

        Re-posts the stored registration payload. Success restarts the
        countdown and clears the entered digits; failure leaves both as is.
        """
        attempt = self.attempt
        if self.step is not RegistrationStep.PENDING_VERIFICATION or attempt is None:
            return OperationResult.fail(NOT_PENDING_MESSAGE)
        if self._resend_in_flight:
            return OperationResult.fail("A new code is already being sent")
        if not self.can_resend():
            return OperationResult.fail(f"You can request a new code in {self.format_time_left()}")

        generation = self._generation
        self._resend_in_flight = True
        try:
            await self.gateway.resend_verification(
                attempt.email, attempt.password, attempt.role.value
            )
        except Unreachable as e:
            logger.warning("Resend failed, server unreachable: %s", e.message)
            return OperationResult.fail(UNREACHABLE_MESSAGE)
        except GatewayError as e:
            logger.info("Resend refused by server")
            return OperationResult.fail(e.message or "Failed to resend verification code")
        finally:
            self._resend_in_flight = False

        if generation != self._generation or self.attempt is not attempt:
            logger.info("Discarding resend response for an abandoned flow")
            return OperationResult.fail(CANCELLED_MESSAGE)

        now = self.clock()
        attempt.pending_since = now
        attempt.code_expires_at = now + self.countdown
        self._clear_digits()
        logger.info("Verification code resent")
        return OperationResult.ok(message="A new verification code has been sent", email=attempt.email)

    def abandon(self) -> None:
        """Discard the pending attempt, plaintext password included."""
        if self.step is RegistrationStep.COMPLETE:
            return
        if self.attempt is not None:
            logger.info("Registration abandoned")
        self._destroy_attempt()
        self.step = RegistrationStep.COLLECTING

    # ------------------------------------------------------------------
    # Countdown and code entry
    # ------------------------------------------------------------------

    def seconds_left(self) -> int:
        if self.attempt is None:
            return 0
        remaining = (self.attempt.code_expires_at - self.clock()).total_seconds()
        return max(0, math.ceil(remaining))

    def format_time_left(self) -> str:
        minutes, seconds = divmod(self.seconds_left(), 60)
        return f"{minutes}:{seconds:02d}"

    def can_resend(self) -> bool:
        return (
            self.step is RegistrationStep.PENDING_VERIFICATION
            and self.attempt is not None
            and self.clock() >= self.attempt.code_expires_at
        )

    def enter_digit(self, index: int, digit: str) -> bool:
        """
        Set one box of the code entry. An empty string clears the box.

        Returns:
            False if the flow is not pending or the input is not a single digit
        """
        if self.step is not RegistrationStep.PENDING_VERIFICATION:
            return False
        if not 0 <= index < self.code_length:
            return False
        if digit and not re.fullmatch(r"[0-9]", digit):
            return False
        self._digits[index] = digit
        return True

    @property
    def entered_code(self) -> str:
        return "".join(self._digits)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _validate(
        self,
        email: str,
        password: str,
        role: Role | str | None,
        confirm_password: str | None,
    ) -> Role:
        if not email or not email.strip():
            raise ValidationFailed("Email is required")
        try:
            chosen_role = Role(role) if role else None
        except ValueError:
            chosen_role = None
        if chosen_role is None:
            raise ValidationFailed("Please select a role (Seller or Customer)")
        if len(password or "") < self.min_password_length:
            raise ValidationFailed(
                f"Password must be at least {self.min_password_length} characters long"
            )
        if confirm_password is not None and password != confirm_password:
            raise ValidationFailed("Passwords do not match")
        return chosen_role

    def _destroy_attempt(self) -> None:
        self.attempt = None
        self._clear_digits()
        self._generation += 1

    def _clear_digits(self) -> None:
        self._digits = [""] * self.code_length
