"""Liveness and readiness routes."""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from relay.exceptions import SessionStoreUnavailableError

router = APIRouter(tags=["Health"])


@router.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "PeerLink signaling relay", "status": "running"}


@router.get("/health")
async def health_check():
    """
    Health check endpoint for container healthchecks.
    Returns 200 if service is alive.
    """
    return {"status": "healthy", "service": "relay"}


@router.get("/ready")
async def ready_check(request: Request):
    """
    Readiness check endpoint.
    Verifies the session store is reachable and reports live relay connections.
    """
    try:
        request.app.state.repository.ping()
        store_status = "ok"
    except SessionStoreUnavailableError as e:
        store_status = f"error: {e}"

    membership = request.app.state.membership
    ready = store_status == "ok"

    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "ready": ready,
            "session_store": store_status,
            "connections": membership.connection_count(),
            "active_sessions": membership.session_count(),
        }
    )
