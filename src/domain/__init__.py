"""
Domain layer - Pure session logic with zero framework imports.

This package contains the client-side session and credential-lifecycle
manager: credential storage, expiry evaluation, the session state machine
with its silent renewal loop, and the two-step registration protocol.
It defines its own port interfaces for infrastructure abstraction.
"""

from .credential_store import CredentialStore
from .exceptions import (
    AuthRejected,
    GatewayError,
    RequestRefused,
    SessionError,
    StorageFailure,
    Unreachable,
    ValidationFailed,
)
from .expiry import ExpiryPolicy, decode_expiry
from .models import AuthGrant, OperationResult, Role, UserProfile, VerificationRequired
from .ports import AuthGateway, KeyValueStorage
from .registration import RegistrationAttempt, RegistrationFlow, RegistrationStep
from .session import SessionController, SessionPhase, SessionState

__all__ = [
    "AuthGateway",
    "AuthGrant",
    "AuthRejected",
    "CredentialStore",
    "ExpiryPolicy",
    "GatewayError",
    "KeyValueStorage",
    "OperationResult",
    "RegistrationAttempt",
    "RegistrationFlow",
    "RegistrationStep",
    "RequestRefused",
    "Role",
    "SessionController",
    "SessionError",
    "SessionPhase",
    "SessionState",
    "StorageFailure",
    "Unreachable",
    "UserProfile",
    "ValidationFailed",
    "VerificationRequired",
    "decode_expiry",
]
