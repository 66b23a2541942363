"""Tests for CLI command handlers, parsing and dispatch."""

from unittest.mock import Mock

import pytest

from cli.commands import get_client, handle_create, handle_health, handle_show
from cli.main import build_arg_parser, main
from cli.models import CreateCommand, HealthCommand, ShowCommand
from cli.parser import ParseError, parse_command
from cli.relay_client import RelayClient
from cli.repl import dispatch_command


def test_handle_create():
    """Test create command handler with mocked client."""
    mock_client = Mock(spec=RelayClient)
    mock_client.create_session.return_value = "Session created: abcd1234"

    result = handle_create(CreateCommand(password='pw'), client=mock_client)

    assert 'Session created' in result
    mock_client.create_session.assert_called_once_with('pw')


def test_handle_show():
    mock_client = Mock(spec=RelayClient)
    mock_client.show_session.return_value = "Session: abcd1234"

    result = handle_show(ShowCommand(session_id='abcd1234'), client=mock_client)

    assert result == "Session: abcd1234"
    mock_client.show_session.assert_called_once_with('abcd1234')


def test_handle_health():
    mock_client = Mock(spec=RelayClient)
    mock_client.health.return_value = "Relay is ready"

    assert handle_health(HealthCommand(), client=mock_client) == "Relay is ready"


def test_dispatch_routes_by_command_type():
    mock_client = Mock(spec=RelayClient)
    mock_client.show_session.return_value = "shown"

    assert dispatch_command(ShowCommand('abcd1234'), mock_client) == "shown"


class TestParser:

    def test_create_without_password(self):
        assert parse_command('create') == CreateCommand()

    def test_create_with_quoted_password(self):
        assert parse_command('create "two words"') == CreateCommand(password='two words')

    def test_show(self):
        assert parse_command('show abcd1234') == ShowCommand(session_id='abcd1234')

    def test_health(self):
        assert parse_command('health') == HealthCommand()

    @pytest.mark.parametrize('line', [
        '',
        'create a b',
        'show',
        'show a b',
        'health now',
        'join abcd1234',
        'create "unterminated',
    ])
    def test_invalid_input(self, line):
        with pytest.raises(ParseError):
            parse_command(line)


class TestEntryPoint:

    @pytest.fixture(autouse=True)
    def isolated_client(self, tmp_path, monkeypatch):
        monkeypatch.setattr('cli.commands.CONFIG_PATH', tmp_path / 'config.json')
        monkeypatch.setattr('cli.commands._client', None)

    def test_get_client_uses_relay_override(self):
        client = get_client('wss://relay.example.com:8443')

        assert client.config.get_base_url() == 'https://relay.example.com:8443'
        client.close()

    def test_main_rejects_bad_relay_address(self):
        with pytest.raises(SystemExit) as exc_info:
            main(['--relay', 'ftp://relay.example.com'])

        assert exc_info.value.code == 2

    def test_relay_option_parsing(self):
        args = build_arg_parser().parse_args(['--relay', 'localhost:4000', '--debug'])

        assert args.relay == 'localhost:4000'
        assert args.debug is True
