"""Command parser for CLI input."""

import shlex

from cli.models import CommandRequest, CreateCommand, HealthCommand, ShowCommand


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object (one of Create/Show/Health)

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]

    if command_name == "create":
        return _parse_create(tokens[1:])
    elif command_name == "show":
        return _parse_show(tokens[1:])
    elif command_name == "health":
        return _parse_health(tokens[1:])
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _parse_create(args: list[str]) -> CreateCommand:
    """Parse 'create [password]' command."""
    if len(args) > 1:
        raise ParseError("create takes at most 1 argument: [password]")

    return CreateCommand(password=args[0] if args else None)


def _parse_show(args: list[str]) -> ShowCommand:
    """Parse 'show <session_id>' command."""
    if len(args) != 1:
        raise ParseError("show requires exactly 1 argument: <session_id>")

    return ShowCommand(session_id=args[0])


def _parse_health(args: list[str]) -> HealthCommand:
    if args:
        raise ParseError("health takes no arguments")
    return HealthCommand()
