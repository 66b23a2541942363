"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["create", "show", "health", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#2BB673 bold",
        "command": "#0088ff bold",
    }
)

GREEN = "\033[32m"
TEAL = "\033[38;2;43;182;115m"
RESET = "\033[0m"

LOGO = f"""{TEAL}
 ██████╗ ███████╗███████╗██████╗ ██╗     ██╗███╗   ██╗██╗  ██╗
 ██╔══██╗██╔════╝██╔════╝██╔══██╗██║     ██║████╗  ██║██║ ██╔╝
 ██████╔╝█████╗  █████╗  ██████╔╝██║     ██║██╔██╗ ██║█████╔╝
 ██╔═══╝ ██╔══╝  ██╔══╝  ██╔══██╗██║     ██║██║╚██╗██║██╔═██╗
 ██║     ███████╗███████╗██║  ██║███████╗██║██║ ╚████║██║  ██╗
 ╚═╝     ╚══════╝╚══════╝╚═╝  ╚═╝╚══════╝╚═╝╚═╝  ╚═══╝╚═╝  ╚═╝
{RESET}"""

WELCOME_TITLE = "PeerLink CLI - screen sharing sessions"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "peerlink> "

HELP_TEXT = """Available commands:
  create [password]        Create a session on the relay (optionally password protected)
  show <session_id>        Show a session's id and password
  health                   Check that the relay and its session store are ready
  clear                    Clear screen and redisplay welcome message
  help                     Show this help
  exit                     Exit REPL

Session ids you create are remembered and offered as completions for 'show'.
Examples:
  create
  create hunter2
  show 3fa85f64"""
