"""
Domain value types - Profiles, gateway outcomes and operation results.

Gateway responses are decoded into these types at the adapter boundary,
so downstream logic never inspects untyped response shapes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Role(str, Enum):
    """Marketplace role attached to a user profile."""

    SELLER = "seller"
    CUSTOMER = "customer"


@dataclass(frozen=True)
class UserProfile:
    """
    Mirror of the server's user record.

    Staleness is tolerated: the profile is refreshed opportunistically and
    never has to be fresh for read access. Display fields the session
    manager does not interpret (names, avatar, ...) are kept in ``extra``
    so they survive a store/load cycle untouched.
    """

    id: str
    email: str
    role: Role | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "UserProfile":
        """
        Build a profile from a decoded JSON object.

        Raises:
            ValueError: If data is not an object, lacks id/email, or carries
                an unknown role
        """
        if not isinstance(data, dict):
            raise ValueError("profile must be a JSON object")

        user_id = data.get("id", data.get("_id"))
        email = data.get("email")
        if user_id is None or not email:
            raise ValueError("profile requires id and email")

        raw_role = data.get("role")
        role = Role(raw_role) if raw_role else None

        extra = {k: v for k, v in data.items() if k not in ("id", "_id", "email", "role")}
        return cls(id=str(user_id), email=str(email), role=role, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the JSON object layout used by the server."""
        data: dict[str, Any] = dict(self.extra)
        data["id"] = self.id
        data["email"] = self.email
        data["role"] = self.role.value if self.role else None
        return data


@dataclass(frozen=True)
class AuthGrant:
    """
    Successful authentication outcome: a credential plus its profile.

    ``token`` may be None for profile fetches where the server did not
    rotate the credential.
    """

    token: str | None
    profile: UserProfile


@dataclass(frozen=True)
class VerificationRequired:
    """Registration accepted, one-time code must be verified to finish."""

    message: str
    email: str | None = None


@dataclass
class OperationResult:
    """
    Uniform result returned by every UI-facing operation.

    Operations never raise to their caller; failures are reported through
    ``success=False`` and ``error``. ``warning`` carries non-fatal issues
    such as a StorageFailure.
    """

    success: bool
    error: str | None = None
    warning: str | None = None
    requires_verification: bool = False
    message: str | None = None
    email: str | None = None

    @classmethod
    def ok(cls, **extra: Any) -> "OperationResult":
        return cls(success=True, **extra)

    @classmethod
    def fail(cls, error: str) -> "OperationResult":
        return cls(success=False, error=error)

    def as_dict(self) -> dict[str, Any]:
        """Dictionary view with unset optional fields dropped."""
        data: dict[str, Any] = {"success": self.success}
        for key in ("error", "warning", "message", "email"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.requires_verification:
            data["requires_verification"] = True
        return data
