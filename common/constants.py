"""Project-wide constants (default ports, timers, transfer sizes)."""

DEFAULT_RELAY_PORT: int = 3001

SESSION_ID_LENGTH: int = 8
SESSION_TTL_SECONDS: int = 30 * 24 * 3600  # 30 days

KEEPALIVE_INTERVAL_SECONDS: float = 3.0
RECONNECT_DELAY_SECONDS: float = 2.0

TRANSFER_CHUNK_SIZE_BYTES: int = 60 * 1024  # 60 KiB per data channel frame
DEFAULT_MIMETYPE: str = "application/octet-stream"

ROLE_INITIATOR: str = "initiator"
ROLE_RESPONDER: str = "responder"

# Legacy role names used by the desktop client.
ROLE_ALIASES: dict = {
    "initiator": ROLE_INITIATOR,
    "responder": ROLE_RESPONDER,
    "host": ROLE_INITIATOR,
    "viewer": ROLE_RESPONDER,
}

# WebSocket close codes used by the relay on admission failure.
CLOSE_MISSING_SESSION_ID: int = 4400
CLOSE_INVALID_PASSWORD: int = 4403
CLOSE_SESSION_NOT_FOUND: int = 4404
CLOSE_INVALID_ROLE: int = 4422
CLOSE_STORE_UNAVAILABLE: int = 1011

ADMISSION_CLOSE_CODES: frozenset = frozenset({
    CLOSE_MISSING_SESSION_ID,
    CLOSE_INVALID_PASSWORD,
    CLOSE_SESSION_NOT_FOUND,
    CLOSE_INVALID_ROLE,
})
