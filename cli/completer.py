"""Custom completer for the PeerLink CLI with session id completion."""

from typing import Callable, Iterable, List

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS


class PeerLinkCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - Recently created session ids for the 'show' command
    """

    def __init__(self, recent_sessions: Callable[[], List[str]]):
        self.recent_sessions = recent_sessions

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        command = tokens[0].lower()
        if command != "show":
            return

        args_typed = len(tokens) - 1 if is_typing_new_token else len(tokens) - 2
        if args_typed > 0:
            return

        current_word = "" if is_typing_new_token else tokens[-1]
        yield from self._complete_sessions(current_word)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_sessions(self, partial: str) -> Iterable[Completion]:
        sessions = self.recent_sessions()
        if not sessions:
            if not partial:
                yield Completion(
                    "",
                    start_position=0,
                    display="(no recent sessions - run 'create' first)",
                )
            return

        partial_lower = partial.lower()
        for session_id in sessions:
            if session_id.lower().startswith(partial_lower):
                yield Completion(session_id, start_position=-len(partial))
