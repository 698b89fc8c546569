"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance that exposes the
session manager to the presentation layer, and wires the domain to its
adapters during lifespan startup.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.http import HttpAuthGateway, create_api_client, create_gateway_client
from src.adapters.storage import InMemoryStorage, JsonFileStorage, PostgresStorage, run_migrations
from src.api.v1 import router as v1_router
from src.config.settings import Settings, get_settings
from src.domain.credential_store import CredentialStore
from src.domain.expiry import ExpiryPolicy
from src.domain.ports import AuthGateway, KeyValueStorage
from src.domain.registration import RegistrationFlow
from src.domain.session import SessionController

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Session and registration API v1 - Sign in, sign out, register and verify",
    },
]


def create_storage(settings: Settings) -> tuple[KeyValueStorage, ConnectionPool | None]:
    """
    Build the configured persistence medium.

    Returns:
        Storage adapter and, for the postgres backend, the pool to close
        on shutdown
    """
    if settings.storage_backend == "memory":
        return InMemoryStorage(), None

    if settings.storage_backend == "postgres":
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )
        logger.info("Running database migrations...")
        run_migrations(pool)
        return PostgresStorage(pool, namespace=settings.storage_namespace), pool

    return JsonFileStorage(settings.storage_file), None


def create_session(
    settings: Settings, gateway: AuthGateway, storage: KeyValueStorage
) -> SessionController:
    """Wire a SessionController from settings."""
    expiry = ExpiryPolicy(
        grace_window=timedelta(seconds=settings.grace_window_seconds),
        renew_window=timedelta(seconds=settings.renew_window_seconds),
    )
    return SessionController(
        gateway=gateway,
        store=CredentialStore(storage),
        expiry=expiry,
        bootstrap_timeout=settings.bootstrap_timeout_seconds,
        renewal_interval=settings.renewal_interval_seconds,
    )


def create_registration(
    settings: Settings, gateway: AuthGateway, session: SessionController
) -> RegistrationFlow:
    """Wire a RegistrationFlow from settings."""
    return RegistrationFlow(
        gateway=gateway,
        session=session,
        countdown=timedelta(seconds=settings.verification_countdown_seconds),
        min_password_length=settings.min_password_length,
        code_length=settings.verification_code_length,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Opens the gateway HTTP client and the persistence medium on startup
    - Bootstraps the session once for the process lifetime
    - Stops the renewal loop and closes clients and pools on shutdown
    """
    settings = get_settings()

    logger.info("Starting application...")
    client = create_gateway_client(settings)
    storage, pool = create_storage(settings)
    gateway = HttpAuthGateway(client)

    session = create_session(settings, gateway, storage)
    app.state.session = session
    app.state.registration = create_registration(settings, gateway, session)
    # Authorized client for the marketplace screens
    app.state.api_client = create_api_client(settings, session)

    await session.bootstrap()
    logger.info("Application startup complete (session %s)", session.phase.value)

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await session.close()
    await app.state.api_client.aclose()
    await client.aclose()
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="minivutto-session",
    description="Client session manager - Credential storage, silent renewal "
    "and two-step registration for the Mini Vutto marketplace",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint.

    Returns 200 OK with the session phase once startup has completed.
    """
    session = getattr(request.app.state, "session", None)
    phase = session.phase.value if session is not None else "starting"
    return {"status": "healthy", "session": phase}
