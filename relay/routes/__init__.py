"""API routes package."""

from relay.routes.health_routes import router as health_router
from relay.routes.session_routes import router as session_router
from relay.routes.signaling_routes import router as signaling_router

__all__ = ["health_router", "session_router", "signaling_router"]
