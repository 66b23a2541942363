"""Configuration settings for the relay server."""

import os
from dataclasses import dataclass

from common.constants import DEFAULT_RELAY_PORT, SESSION_TTL_SECONDS


SESSION_BACKEND_SQLITE = "sqlite"
SESSION_BACKEND_MEMORY = "memory"

RELAY_HOST = os.environ.get("RELAY_HOST", "0.0.0.0")

RELAY_PORT = int(os.environ.get("RELAY_PORT", str(DEFAULT_RELAY_PORT)))

SESSION_BACKEND = os.environ.get("RELAY_SESSION_BACKEND", SESSION_BACKEND_SQLITE)

DATABASE_PATH = os.environ.get("RELAY_DATABASE_PATH", "./data/sessions.db")

SESSION_TTL = int(os.environ.get("RELAY_SESSION_TTL_SECONDS", str(SESSION_TTL_SECONDS)))

CLEANUP_INTERVAL = int(os.environ.get("RELAY_CLEANUP_INTERVAL_SECONDS", "3600"))


@dataclass(frozen=True)
class RelaySettings:
    """
    Settings for one relay application instance.

    Defaults come from the RELAY_* environment variables; tests build
    their own instance instead of patching the environment.
    """
    host: str = RELAY_HOST
    port: int = RELAY_PORT
    session_backend: str = SESSION_BACKEND
    database_path: str = DATABASE_PATH
    session_ttl_seconds: int = SESSION_TTL
    cleanup_interval_seconds: int = CLEANUP_INTERVAL
