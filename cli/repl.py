"""REPL with prompt_toolkit for user interaction."""

from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory

from cli.commands import get_client, handle_create, handle_health, handle_show
from cli.completer import PeerLinkCompleter
from cli.constants import HELP_TEXT, PROMPT_TEXT, STYLE
from cli.models import CreateCommand, HealthCommand, ShowCommand
from cli.parser import ParseError, parse_command
from cli.utils import clear_screen, show_welcome


def dispatch_command(cmd_obj, client=None) -> str:
    """Dispatch parsed command to appropriate handler."""
    if isinstance(cmd_obj, CreateCommand):
        return handle_create(cmd_obj, client)
    elif isinstance(cmd_obj, ShowCommand):
        return handle_show(cmd_obj, client)
    elif isinstance(cmd_obj, HealthCommand):
        return handle_health(cmd_obj, client)
    else:
        return f"Unknown command type: {type(cmd_obj)}"


def repl_loop(relay_url: Optional[str] = None) -> None:
    """Start interactive REPL with prompt_toolkit."""
    client = get_client(relay_url)
    completer = PeerLinkCompleter(client.config.get_recent_sessions)
    history = InMemoryHistory()
    session: PromptSession = PromptSession(
        completer=completer, history=history, style=STYLE
    )

    clear_screen()
    show_welcome()

    try:
        while True:
            try:
                user_input = session.prompt([("class:prompt", PROMPT_TEXT)])

                if not user_input.strip():
                    continue

                if user_input.strip() == "exit":
                    print("Goodbye!")
                    break

                if user_input.strip() == "help":
                    print(HELP_TEXT)
                    continue

                if user_input.strip() == "clear":
                    clear_screen()
                    show_welcome()
                    continue

                cmd_obj = parse_command(user_input)
                print(dispatch_command(cmd_obj, client))

            except ParseError as e:
                print(f"Error: {e}")
            except KeyboardInterrupt:
                continue
            except EOFError:
                print("\nGoodbye!")
                break
    finally:
        client.close()
