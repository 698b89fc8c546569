"""
Expiry policy - Decides whether a stored credential may be used.

Tokens are self-describing: three dot-separated base64 segments whose
middle segment is a JSON object with an ``exp`` claim in epoch seconds.
The signature is never checked here; the server remains the authority.

Two margins are applied against the decoded expiry:

- grace window: a token is usable only while ``now < exp - grace``. Requests
  in flight must not race the expiry boundary.
- renew window: strictly larger than the grace window; once
  ``now > exp - renew`` the silent renewal loop refreshes the session.

Both windows are bound at construction, so every caller shares the same
margins.
"""

import base64
import binascii
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

DEFAULT_GRACE_WINDOW = timedelta(minutes=5)
DEFAULT_RENEW_WINDOW = timedelta(minutes=10)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def decode_expiry(token: str | None) -> datetime | None:
    """
    Extract the expiry instant from a token's ``exp`` claim.

    Fails soft: any malformed structure yields None, never an exception.

    Args:
        token: Raw token string

    Returns:
        Aware UTC datetime of expiry, or None if it cannot be determined
    """
    if not token or not isinstance(token, str):
        return None

    segments = token.split(".")
    if len(segments) != 3:
        return None

    payload_segment = segments[1]
    padded = payload_segment + "=" * (-len(payload_segment) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(padded))
    except (binascii.Error, ValueError):
        # json.JSONDecodeError and UnicodeDecodeError are both ValueError
        return None

    if not isinstance(payload, dict):
        return None

    exp = payload.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None

    try:
        return datetime.fromtimestamp(exp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


@dataclass(frozen=True)
class ExpiryPolicy:
    """
    Single source of truth for credential usability.

    Example:
        policy = ExpiryPolicy()
        if policy.is_usable(token):
            headers["Authorization"] = f"Bearer {token}"
    """

    grace_window: timedelta = DEFAULT_GRACE_WINDOW
    renew_window: timedelta = DEFAULT_RENEW_WINDOW
    clock: Clock = field(default=utc_now, compare=False)

    def __post_init__(self) -> None:
        if self.renew_window <= self.grace_window:
            raise ValueError("renew_window must be strictly larger than grace_window")

    def decode_expiry(self, token: str | None) -> datetime | None:
        return decode_expiry(token)

    def is_usable(self, token: str | None) -> bool:
        """True iff the expiry decodes and now < expiry - grace window."""
        expires_at = decode_expiry(token)
        if expires_at is None:
            return False
        # compare remaining time; expires_at - window can underflow year 1
        return expires_at - self.clock() > self.grace_window

    def is_near_expiry(self, token: str | None) -> bool:
        """True iff the expiry decodes and now > expiry - renew window."""
        expires_at = decode_expiry(token)
        if expires_at is None:
            return False
        return expires_at - self.clock() < self.renew_window
