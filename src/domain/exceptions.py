"""
Domain exceptions - Semantic error types for the session manager.

This module defines the error taxonomy shared by the session controller,
the registration flow and the infrastructure adapters. Adapters translate
their own failures into these types so the domain never sees transport
or storage details.
"""


class SessionError(Exception):
    """Base class for session domain errors."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class ValidationFailed(SessionError):
    """Local input check failed before any network call was made."""

    pass


class StorageFailure(SessionError):
    """Persistence medium unavailable or refused the write."""

    pass


class GatewayError(SessionError):
    """Remote call failed. Carries the server's message when one was sent."""

    pass


class AuthRejected(GatewayError):
    """Server explicitly denied the credential or token (401/403)."""

    pass


class Unreachable(GatewayError):
    """Timeout, network failure, server error or malformed response."""

    pass


class RequestRefused(GatewayError):
    """Server refused the request for a non-authentication reason."""

    pass
