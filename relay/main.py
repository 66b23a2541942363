"""Entry point for the relay service."""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from relay.cleanup_task import ExpiredSessionCleaner
from relay.config import (
    SESSION_BACKEND_MEMORY,
    SESSION_BACKEND_SQLITE,
    RelaySettings,
)
from relay.exceptions import (
    RelayException,
    SessionNotFoundError,
    SessionStoreUnavailableError,
)
from relay.membership import MembershipIndex
from relay.repositories.session_repository import (
    InMemorySessionRepository,
    SessionRepository,
    SqliteSessionRepository,
)
from relay.routes import health_router, session_router, signaling_router
from relay.services.session_service import SessionService
from relay.signaling_relay import SignalingRelay

logger = setup_logging('relay')


def build_repository(settings: RelaySettings) -> SessionRepository:
    """
    Construct the session repository named by the settings.

    Raises:
        ValueError: If the backend name is unknown
    """
    if settings.session_backend == SESSION_BACKEND_SQLITE:
        return SqliteSessionRepository(settings.database_path)
    if settings.session_backend == SESSION_BACKEND_MEMORY:
        return InMemorySessionRepository()
    raise ValueError(f"Unknown session backend '{settings.session_backend}'")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Start background tasks on startup and stop them on shutdown.
    """
    logger.info("Relay service starting up...")
    await app.state.cleanup_task.start()

    yield

    logger.info("Relay service shutting down...")
    await app.state.cleanup_task.stop()


async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(f"Request started: {request.method} {request.url.path} [request_id={request_id}]")

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


async def session_not_found_handler(request: Request, exc: SessionNotFoundError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Session not found error: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc), "code": "SESSION_NOT_FOUND"}
    )


async def session_store_unavailable_handler(request: Request, exc: SessionStoreUnavailableError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Session store unavailable: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc), "code": "SESSION_STORE_UNAVAILABLE"}
    )


async def relay_exception_handler(request: Request, exc: RelayException):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Relay exception: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc), "code": "INTERNAL_ERROR"}
    )


def create_app(
    settings: Optional[RelaySettings] = None,
    repository: Optional[SessionRepository] = None,
) -> FastAPI:
    """
    Build a relay application with its own session store and membership index.

    Args:
        settings: Relay settings (defaults to the RELAY_* environment)
        repository: Pre-built session repository, overriding settings.session_backend

    Returns:
        Configured FastAPI application
    """
    settings = settings or RelaySettings()
    repository = repository or build_repository(settings)

    app = FastAPI(
        title="PeerLink Relay",
        description="Session broker and WebSocket signaling relay for two-party peer connections",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(log_requests)

    membership = MembershipIndex()
    app.state.settings = settings
    app.state.repository = repository
    app.state.session_service = SessionService(repository, settings.session_ttl_seconds)
    app.state.membership = membership
    app.state.relay = SignalingRelay(membership)
    app.state.cleanup_task = ExpiredSessionCleaner(repository, settings.cleanup_interval_seconds)

    app.add_exception_handler(SessionNotFoundError, session_not_found_handler)
    app.add_exception_handler(SessionStoreUnavailableError, session_store_unavailable_handler)
    app.add_exception_handler(RelayException, relay_exception_handler)

    app.include_router(health_router)
    app.include_router(session_router)
    app.include_router(signaling_router)

    return app


def main() -> None:
    """
    Start the relay server with uvicorn.
    """
    settings = RelaySettings()
    uvicorn.run(
        "relay.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    main()
