"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Field checks are limited to types. Business validation (password
length, code format, ...) happens in the domain and is reported through
the uniform OperationResponse rather than a 422.
"""

from typing import Any

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    """Request model for signing in."""

    email: EmailStr
    password: str
    remember_me: bool = False


class RegisterRequest(BaseModel):
    """Request model for submitting the registration form."""

    email: EmailStr
    password: str
    confirm_password: str | None = None
    role: str | None = Field(None, description="seller or customer")


class VerifyRequest(BaseModel):
    """Request model for the one-time code. Omit code to use the entered digits."""

    code: str | None = Field(None, description="6-digit verification code")


class DigitRequest(BaseModel):
    """Request model for filling one box of the code entry."""

    index: int
    digit: str = Field("", max_length=1)


class OperationResponse(BaseModel):
    """Uniform result of every session and registration operation."""

    success: bool
    error: str | None = None
    warning: str | None = None
    requires_verification: bool = False
    message: str | None = None
    email: str | None = None


class SessionResponse(BaseModel):
    """Observable session state for the presentation layer."""

    phase: str
    is_authenticated: bool
    current_user: dict[str, Any] | None = None
    role: str | None = None


class RegistrationResponse(BaseModel):
    """Observable registration state for the verification screen."""

    step: str
    email: str | None = None
    seconds_left: int
    time_left: str
    can_resend: bool
    entered_code: str
