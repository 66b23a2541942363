"""Utility functions for CLI output."""

import os
import sys

from cli.constants import LOGO, WELCOME_HELP, WELCOME_TITLE


def clear_screen() -> None:
    """Clear the terminal screen (cross-platform)."""
    if sys.platform == "win32":
        os.system("cls")
    else:
        os.system("clear")


def show_welcome() -> None:
    print(LOGO)
    print(WELCOME_TITLE)
    print(WELCOME_HELP)

