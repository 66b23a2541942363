"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from cli.config import Config
from cli.models import CreateCommand, HealthCommand, ShowCommand
from cli.relay_client import RelayClient

logger = get_logger(__name__)

CONFIG_PATH = Path.home() / '.peerlink' / 'config.json'

_client: Optional[RelayClient] = None


def get_client(relay_url: Optional[str] = None) -> RelayClient:
    """
    Get or create global RelayClient instance.

    Args:
        relay_url: Relay address overriding the config file for this run

    Returns:
        RelayClient instance
    """
    global _client
    if _client is None:
        logger.debug("Creating new RelayClient instance")
        config = Config(CONFIG_PATH)
        if relay_url:
            config.set_relay_url(relay_url)
        _client = RelayClient(config)
    return _client


def handle_create(cmd: CreateCommand, client: Optional[RelayClient] = None) -> str:
    """
    Handle 'create' command.

    Args:
        cmd: CreateCommand with optional password
        client: Optional RelayClient for dependency injection (testing)

    Returns:
        Success or error message
    """
    logger.info(f"Executing create command (password={'yes' if cmd.password else 'no'})")
    if client is None:
        client = get_client()
    return client.create_session(cmd.password)


def handle_show(cmd: ShowCommand, client: Optional[RelayClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.show_session(cmd.session_id)


def handle_health(cmd: HealthCommand, client: Optional[RelayClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.health()
