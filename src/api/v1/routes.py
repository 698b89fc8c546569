"""
API v1 routes.

Exposes the session manager to the presentation layer. Operation routes
always answer 200 with the uniform OperationResponse; success or failure
is carried in the body.
"""

from fastapi import APIRouter, Depends

from src.api.dependencies import get_registration_flow, get_session_controller
from src.api.models import (
    DigitRequest,
    LoginRequest,
    OperationResponse,
    RegisterRequest,
    RegistrationResponse,
    SessionResponse,
    VerifyRequest,
)
from src.domain.models import OperationResult
from src.domain.registration import RegistrationFlow
from src.domain.session import SessionController

router = APIRouter(tags=["v1"])


def _respond(result: OperationResult) -> OperationResponse:
    return OperationResponse(
        success=result.success,
        error=result.error,
        warning=result.warning,
        requires_verification=result.requires_verification,
        message=result.message,
        email=result.email,
    )


def _describe_registration(flow: RegistrationFlow) -> RegistrationResponse:
    return RegistrationResponse(
        step=flow.step.value,
        email=flow.attempt.email if flow.attempt else None,
        seconds_left=flow.seconds_left(),
        time_left=flow.format_time_left(),
        can_resend=flow.can_resend(),
        entered_code=flow.entered_code,
    )


@router.get(
    "/session",
    response_model=SessionResponse,
    summary="Current session state",
)
async def get_session(
    session: SessionController = Depends(get_session_controller),
) -> SessionResponse:
    """Return whether a usable session exists, and for whom."""
    user = session.current_user
    role = session.role()
    return SessionResponse(
        phase=session.phase.value,
        is_authenticated=session.is_authenticated,
        current_user=user.to_dict() if user else None,
        role=role.value if role else None,
    )


@router.post(
    "/session/login",
    response_model=OperationResponse,
    summary="Sign in",
    description="Exchange email and password for a session. "
    "With remember_me, an expired session is revived on the next start.",
)
async def login(
    request_data: LoginRequest,
    session: SessionController = Depends(get_session_controller),
) -> OperationResponse:
    result = await session.login(
        request_data.email, request_data.password, remember_me=request_data.remember_me
    )
    return _respond(result)


@router.post(
    "/session/logout",
    response_model=OperationResponse,
    summary="Sign out",
    description="Always clears the local session, even if the server cannot be reached.",
)
async def logout(
    session: SessionController = Depends(get_session_controller),
) -> OperationResponse:
    return _respond(await session.logout())


@router.get(
    "/registration",
    response_model=RegistrationResponse,
    summary="Registration progress",
)
async def get_registration(
    flow: RegistrationFlow = Depends(get_registration_flow),
) -> RegistrationResponse:
    return _describe_registration(flow)


@router.post(
    "/registration",
    response_model=OperationResponse,
    summary="Submit registration",
    description="Validate the form locally, then register. "
    "When the server sends a one-time code, requires_verification is true.",
)
async def submit_registration(
    request_data: RegisterRequest,
    flow: RegistrationFlow = Depends(get_registration_flow),
) -> OperationResponse:
    result = await flow.submit(
        request_data.email,
        request_data.password,
        request_data.role,
        confirm_password=request_data.confirm_password,
    )
    return _respond(result)


@router.post(
    "/registration/verify",
    response_model=OperationResponse,
    summary="Verify one-time code",
)
async def verify_registration(
    request_data: VerifyRequest,
    flow: RegistrationFlow = Depends(get_registration_flow),
) -> OperationResponse:
    return _respond(await flow.verify(request_data.code))


@router.post(
    "/registration/digits",
    response_model=RegistrationResponse,
    summary="Enter one digit of the code",
)
async def enter_digit(
    request_data: DigitRequest,
    flow: RegistrationFlow = Depends(get_registration_flow),
) -> RegistrationResponse:
    flow.enter_digit(request_data.index, request_data.digit)
    return _describe_registration(flow)


@router.post(
    "/registration/resend",
    response_model=OperationResponse,
    summary="Resend one-time code",
    description="Only allowed once the countdown has elapsed.",
)
async def resend_code(
    flow: RegistrationFlow = Depends(get_registration_flow),
) -> OperationResponse:
    return _respond(await flow.resend())


@router.delete(
    "/registration",
    response_model=OperationResponse,
    summary="Abandon registration",
    description="Discards the pending attempt, including its password.",
)
async def abandon_registration(
    flow: RegistrationFlow = Depends(get_registration_flow),
) -> OperationResponse:
    flow.abandon()
    return OperationResponse(success=True)
