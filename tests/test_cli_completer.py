"""Tests for PeerLinkCompleter."""

import pytest
from prompt_toolkit.document import Document

from cli.completer import PeerLinkCompleter
from cli.constants import COMMANDS


@pytest.fixture
def completer():
    return PeerLinkCompleter(lambda: ['3fa85f64', '3b0c1d2e', 'abcd1234'])


def get_completions_list(completer, text):
    """Helper to get list of completion texts from completer."""
    doc = Document(text, len(text))
    return [c.text for c in completer.get_completions(doc, None)]


def get_completions_display(completer, text):
    doc = Document(text, len(text))
    return [c.display_text for c in completer.get_completions(doc, None)]


class TestCommandCompletion:

    def test_empty_input_shows_all_commands(self, completer):
        completions = get_completions_list(completer, "")
        for cmd in COMMANDS:
            assert cmd in completions

    def test_partial_command_filters(self, completer):
        assert get_completions_list(completer, "cr") == ["create"]

    def test_case_insensitive(self, completer):
        assert get_completions_list(completer, "HE") == ["health", "help"]


class TestSessionCompletion:

    def test_show_offers_recent_sessions(self, completer):
        assert get_completions_list(completer, "show ") == ['3fa85f64', '3b0c1d2e', 'abcd1234']

    def test_show_filters_by_prefix(self, completer):
        assert get_completions_list(completer, "show 3f") == ['3fa85f64']

    def test_only_first_argument_completes(self, completer):
        assert get_completions_list(completer, "show 3fa85f64 ") == []

    def test_other_commands_have_no_argument_completion(self, completer):
        assert get_completions_list(completer, "create ") == []

    def test_hint_when_no_recent_sessions(self):
        completer = PeerLinkCompleter(lambda: [])

        displays = get_completions_display(completer, "show ")

        assert displays == ["(no recent sessions - run 'create' first)"]
