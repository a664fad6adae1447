"""
Session Module - Command State Machine
"""

from .commands import Command, CommandType, ErrorReason, Reply, parse_auth, parse_command
from .machine import CommandSession, ServerStats, Session, SessionState

__all__ = [
    'Command',
    'CommandType',
    'ErrorReason',
    'Reply',
    'parse_auth',
    'parse_command',
    'CommandSession',
    'ServerStats',
    'Session',
    'SessionState',
]
