"""
Error Taxonomy

Every failure the server or client can hit maps onto one of these.
What happens next depends on the class:

- TransportError: the stream is unusable, the session is closed
- ProtocolError: reported to the peer as ``ERR <reason>``, session continues
- AuthError: reported as ``AUTH_FAIL``, session is closed
- FileIOError: local filesystem failure while a transfer is running
"""


class FileShareError(Exception):
    """Base class for all fileshare errors."""


class TransportError(FileShareError):
    """Stream closed early, or a read/write could not be completed."""


class FrameTooLargeError(TransportError):
    """Announced frame length exceeds the configured maximum."""

    def __init__(self, length: int, limit: int):
        super().__init__(f"Frame too large: {length} bytes (limit {limit})")
        self.length = length
        self.limit = limit


class ProtocolError(FileShareError):
    """A command the peer sent could not be served."""

    def __init__(self, reason: str, message: str = ''):
        super().__init__(message or reason)
        self.reason = reason


class AuthError(FileShareError):
    """Malformed AUTH line or rejected credentials."""


class FileIOError(FileShareError):
    """Reading or writing a transferred file failed locally."""


class ConfigError(FileShareError, ValueError):
    """Invalid configuration value."""


class RemoteError(FileShareError):
    """The server answered a client request with ``ERR <reason>``."""

    def __init__(self, reply: str):
        self.reply = reply
        self.reason = reply[4:] if reply.startswith('ERR ') else reply
        super().__init__(f"Server error: {self.reason}")
