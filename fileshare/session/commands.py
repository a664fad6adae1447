"""
Control Message Vocabulary

Client → server:  AUTH <user> <password> | LIST | GET <name> | PUT <name> | QUIT
Server → client:  AUTH_OK | AUTH_FAIL | OK | ERR <reason> | BYE

Arguments are whitespace separated with no quoting, so user names,
passwords and filenames cannot contain spaces. Extra tokens are ignored.
"""

from enum import Enum
from typing import List, Tuple
from dataclasses import dataclass, field

from ..errors import AuthError


class CommandType(Enum):
    """Client commands."""
    AUTH = "AUTH"
    LIST = "LIST"
    GET = "GET"
    PUT = "PUT"
    QUIT = "QUIT"


class Reply(Enum):
    """Server replies."""
    AUTH_OK = "AUTH_OK"
    AUTH_FAIL = "AUTH_FAIL"
    OK = "OK"
    BYE = "BYE"


class ErrorReason(Enum):
    """Reasons carried by ERR replies."""
    BAD_NAME = "BadName"
    NOT_FOUND = "NotFound"
    UNKNOWN_CMD = "UnknownCmd"


def error_reply(reason: ErrorReason) -> str:
    return f"ERR {reason.value}"


@dataclass
class Command:
    """A parsed control line."""
    name: str
    args: List[str] = field(default_factory=list)

    @property
    def type(self):
        """The CommandType, or None for anything unrecognized."""
        try:
            return CommandType(self.name)
        except ValueError:
            return None

    @property
    def argument(self) -> str:
        """First argument, empty if absent."""
        return self.args[0] if self.args else ''

    def to_line(self) -> str:
        return ' '.join([self.name, *self.args])


def parse_command(line: str) -> Command:
    """Split a control line into command name and arguments."""
    tokens = line.split()
    if not tokens:
        return Command(name='')
    return Command(name=tokens[0], args=tokens[1:])


def parse_auth(line: str) -> Tuple[str, str]:
    """
    Parse "AUTH <user> <password>".

    Returns:
        (user, password)

    Raises:
        AuthError: wrong command or a missing field
    """
    command = parse_command(line)
    if command.type is not CommandType.AUTH:
        raise AuthError(f"Expected AUTH, got {command.name!r}")
    if len(command.args) < 2:
        raise AuthError("AUTH needs a user and a password")
    return command.args[0], command.args[1]
