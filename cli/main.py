"""CLI entry point."""

import argparse
import os
from typing import List, Optional

from common.logging_config import setup_logging
from cli.commands import get_client
from cli.repl import repl_loop


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='peerlink',
        description='Create and inspect PeerLink sessions on a signaling relay.',
    )
    parser.add_argument(
        '--relay',
        metavar='URL',
        default=os.getenv('PEERLINK_RELAY_URL'),
        help='relay address for this run, e.g. https://relay.example.com or localhost:3001',
    )
    parser.add_argument('--debug', action='store_true', help='enable debug logging')
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for CLI."""
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    log_level = 'DEBUG' if args.debug else os.getenv('LOG_LEVEL', 'WARNING')

    logger = setup_logging('cli', log_level=log_level)
    if args.debug:
        logger.info("Debug logging enabled")

    try:
        client = get_client(args.relay)
    except ValueError as e:
        parser.error(f"invalid --relay address: {e}")

    logger.info(f"CLI starting [relay={client.config.get_base_url()}]")
    try:
        repl_loop(relay_url=args.relay)
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise
    finally:
        logger.info("CLI exiting")


if __name__ == "__main__":
    main()
