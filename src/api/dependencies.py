"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting the session
controller and registration flow created during app lifespan startup.
"""

from fastapi import Request

from src.domain.registration import RegistrationFlow
from src.domain.session import SessionController


def get_session_controller(request: Request) -> SessionController:
    """
    Get the session controller from app state.

    One controller exists per process; it is created and bootstrapped
    during app lifespan startup and stored in app.state.
    """
    return request.app.state.session


def get_registration_flow(request: Request) -> RegistrationFlow:
    """Get the registration flow for the local user from app state."""
    return request.app.state.registration
