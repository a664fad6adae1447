"""Tests for control line parsing."""

import pytest

from fileshare.errors import AuthError
from fileshare.session.commands import (
    CommandType, ErrorReason, error_reply, parse_auth, parse_command,
)


def test_parse_auth():
    assert parse_auth('AUTH alice alice123') == ('alice', 'alice123')


def test_parse_auth_ignores_extra_tokens_and_runs_of_spaces():
    assert parse_auth('AUTH   alice  alice123 trailing') == ('alice', 'alice123')


@pytest.mark.parametrize("line", ["", "AUTH", "AUTH alice", "LOGIN alice alice123", "auth a b"])
def test_parse_auth_rejects(line):
    with pytest.raises(AuthError):
        parse_auth(line)


def test_parse_command_with_argument():
    command = parse_command('GET report.txt')
    assert command.type is CommandType.GET
    assert command.argument == 'report.txt'


def test_parse_command_without_argument():
    command = parse_command('PUT')
    assert command.type is CommandType.PUT
    assert command.argument == ''


def test_unknown_and_empty_commands():
    assert parse_command('DELETE x').type is None
    assert parse_command('').type is None
    assert parse_command('list').type is None


def test_command_line_roundtrip():
    assert parse_command('GET  a.txt').to_line() == 'GET a.txt'


def test_error_reply():
    assert error_reply(ErrorReason.NOT_FOUND) == 'ERR NotFound'
    assert error_reply(ErrorReason.BAD_NAME) == 'ERR BadName'
    assert error_reply(ErrorReason.UNKNOWN_CMD) == 'ERR UnknownCmd'
