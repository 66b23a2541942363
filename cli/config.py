"""Configuration management for the PeerLink CLI and peer endpoint."""

import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import List
from urllib.parse import urlsplit

from common.constants import (
    DEFAULT_RELAY_PORT,
    KEEPALIVE_INTERVAL_SECONDS,
    RECONNECT_DELAY_SECONDS,
    TRANSFER_CHUNK_SIZE_BYTES,
)
from common.logging_config import get_logger

logger = get_logger(__name__)

MAX_RECENT_SESSIONS = 10


class Config:
    """Manages client configuration stored in a JSON file."""

    DEFAULT_CONFIG = {
        "relay_host": os.environ.get("PEERLINK_RELAY_HOST", "localhost"),
        "relay_port": int(os.environ.get("PEERLINK_RELAY_PORT", str(DEFAULT_RELAY_PORT))),
        "use_tls": False,
        "timeout": 10,
        "max_retries": 3,
        "retry_backoff_multiplier": 2,
        "keepalive_interval": KEEPALIVE_INTERVAL_SECONDS,
        "reconnect_delay": RECONNECT_DELAY_SECONDS,
        "chunk_size": TRANSFER_CHUNK_SIZE_BYTES,
        "require_approval": True,
        "recent_sessions": [],
    }

    def __init__(self, config_path: Path):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to config JSON file (typically ~/.peerlink/config.json)
        """
        self.config_path = config_path
        self.data = self._load()
        self.relay_override: dict = {}

    def _load(self) -> dict:
        """
        Load configuration from file, creating defaults if necessary.

        A corrupt file is backed up to ``config.json.bak`` and defaults are used.
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            self.config_path = Path(tempfile.gettempdir()) / '.peerlink' / 'config.json'
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

        config = self._defaults()
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("config root must be an object")
                config.update(data)
                return config
            except (json.JSONDecodeError, ValueError, IOError) as e:
                logger.warning(f"Invalid config file {self.config_path}: {e}, using defaults")
                backup_path = self.config_path.with_suffix('.json.bak')
                try:
                    shutil.copy(self.config_path, backup_path)
                except IOError as copy_error:
                    logger.warning(f"Could not back up config file: {copy_error}")
                return config

        try:
            with open(self.config_path, 'w') as f:
                json.dump(config, f, indent=2)
        except IOError as e:
            logger.warning(f"Could not write default config: {e}")
        return config

    def _defaults(self) -> dict:
        config = self.DEFAULT_CONFIG.copy()
        config['recent_sessions'] = []
        return config

    def save(self) -> None:
        """Save current configuration to file."""
        try:
            with open(self.config_path, 'w') as f:
                json.dump(self.data, f, indent=2)
        except IOError as e:
            logger.warning(f"Could not save config: {e}")

    def get_base_url(self) -> str:
        """
        Get relay HTTP base URL.

        Returns:
            Base URL string (e.g., "http://localhost:3001")
        """
        scheme = 'https' if self._relay_setting('use_tls', False) else 'http'
        return f"{scheme}://{self._address()}"

    def get_ws_url(self) -> str:
        """
        Get relay signaling WebSocket URL.

        Returns:
            URL string (e.g., "ws://localhost:3001/ws")
        """
        scheme = 'wss' if self._relay_setting('use_tls', False) else 'ws'
        return f"{scheme}://{self._address()}/ws"

    def set_relay_url(self, url: str) -> None:
        """
        Point this config at another relay for the current run (not saved).

        Args:
            url: Relay address such as ``https://relay.example.com`` or ``ws://10.0.0.5:3001``

        Raises:
            ValueError: If the URL has no host or an unsupported scheme
        """
        parts = urlsplit(url if '://' in url else f"http://{url}")
        if parts.scheme not in ('http', 'https', 'ws', 'wss'):
            raise ValueError(f"Unsupported relay scheme: {parts.scheme}")
        if not parts.hostname:
            raise ValueError(f"No host in relay URL: {url}")

        self.relay_override = {
            'relay_host': parts.hostname,
            'relay_port': parts.port or DEFAULT_RELAY_PORT,
            'use_tls': parts.scheme in ('https', 'wss'),
        }
        logger.info(f"Using relay {self.get_base_url()}")

    def _address(self) -> str:
        host = self._relay_setting('relay_host', 'localhost')
        port = self._relay_setting('relay_port', DEFAULT_RELAY_PORT)
        return f"{host}:{port}"

    def _relay_setting(self, key: str, default):
        if key in self.relay_override:
            return self.relay_override[key]
        return self.data.get(key, default)

    def get_timeout(self) -> int:
        return self.data.get('timeout', 10)

    def get_retry_config(self) -> dict:
        """
        Get retry configuration.

        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': self.data.get('max_retries', 3),
            'retry_backoff_multiplier': self.data.get('retry_backoff_multiplier', 2),
        }

    def get_keepalive_interval(self) -> float:
        return float(self.data.get('keepalive_interval', KEEPALIVE_INTERVAL_SECONDS))

    def get_reconnect_delay(self) -> float:
        return float(self.data.get('reconnect_delay', RECONNECT_DELAY_SECONDS))

    def get_chunk_size(self) -> int:
        return int(self.data.get('chunk_size', TRANSFER_CHUNK_SIZE_BYTES))

    def get_require_approval(self) -> bool:
        return bool(self.data.get('require_approval', True))

    def get_recent_sessions(self) -> List[str]:
        recent = self.data.get('recent_sessions') or []
        return [s for s in recent if isinstance(s, str)]

    def add_recent_session(self, session_id: str) -> None:
        """
        Remember a session id for completion, most recent first.

        Args:
            session_id: Session identifier returned by the relay
        """
        recent = [s for s in self.get_recent_sessions() if s != session_id]
        recent.insert(0, session_id)
        self.data['recent_sessions'] = recent[:MAX_RECENT_SESSIONS]
        self.save()
