"""
Credential store - Durable token and profile persistence.

Pure storage, no policy. Every operation is total: failures of the
underlying medium are logged and reported as False/None, never raised.

Write ordering for put():
1. Serialize the profile first. A serialization error aborts before any
   write is attempted.
2. Snapshot the previous token and profile.
3. Write profile, then token. If either write fails, restore the
   snapshot so token and profile never come from different logins.
"""

import json
import logging
from dataclasses import dataclass

from .exceptions import StorageFailure
from .models import UserProfile
from .ports import KeyValueStorage

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
USER_KEY = "user"
REMEMBER_ME_KEY = "rememberMe"


@dataclass
class CredentialStore:
    """Token, profile and remember-me flag on top of a KeyValueStorage."""

    storage: KeyValueStorage

    def put(self, token: str, profile: UserProfile) -> bool:
        """
        Persist token and profile as a single logical write.

        Returns:
            True if both were written, False if nothing changed
        """
        if not token or not isinstance(token, str):
            logger.warning("Refusing to store an empty token")
            return False

        try:
            profile_json = json.dumps(profile.to_dict())
        except (TypeError, ValueError) as e:
            logger.error("Profile serialization failed: %s", e)
            return False

        try:
            previous_token = self.storage.get_item(TOKEN_KEY)
            previous_profile = self.storage.get_item(USER_KEY)
        except StorageFailure as e:
            logger.error("Credential snapshot failed: %s", e)
            return False

        try:
            self.storage.set_item(USER_KEY, profile_json)
            self.storage.set_item(TOKEN_KEY, token)
        except StorageFailure as e:
            logger.error("Credential write failed, rolling back: %s", e)
            self._restore(previous_token, previous_profile)
            return False

        return True

    def get(self) -> tuple[str | None, UserProfile | None]:
        """
        Read the stored token and profile.

        An unparsable profile record yields (token, None) rather than
        failing the whole read.
        """
        try:
            token = self.storage.get_item(TOKEN_KEY)
            raw_profile = self.storage.get_item(USER_KEY)
        except StorageFailure as e:
            logger.error("Credential read failed: %s", e)
            return None, None

        if not raw_profile:
            return token or None, None

        try:
            profile = UserProfile.from_dict(json.loads(raw_profile))
        except ValueError as e:
            logger.warning("Stored profile is unreadable: %s", e)
            profile = None

        return token or None, profile

    def clear(self) -> bool:
        """Remove token and profile. Returns False if the medium failed."""
        try:
            self.storage.remove_item(TOKEN_KEY)
            self.storage.remove_item(USER_KEY)
        except StorageFailure as e:
            logger.error("Credential clear failed: %s", e)
            return False
        return True

    def remember_me(self) -> bool:
        """Whether the user asked to stay signed in."""
        try:
            return self.storage.get_item(REMEMBER_ME_KEY) == "true"
        except StorageFailure as e:
            logger.error("Remember-me read failed: %s", e)
            return False

    def set_remember_me(self, enabled: bool) -> bool:
        """Set or clear the remember-me flag."""
        try:
            if enabled:
                self.storage.set_item(REMEMBER_ME_KEY, "true")
            else:
                self.storage.remove_item(REMEMBER_ME_KEY)
        except StorageFailure as e:
            logger.error("Remember-me write failed: %s", e)
            return False
        return True

    def _restore(self, token: str | None, profile_json: str | None) -> None:
        """Best-effort return to the snapshot taken before a failed put()."""
        try:
            for key, value in ((USER_KEY, profile_json), (TOKEN_KEY, token)):
                if value is None:
                    self.storage.remove_item(key)
                else:
                    self.storage.set_item(key, value)
        except StorageFailure as e:
            logger.error("Credential rollback failed: %s", e)
