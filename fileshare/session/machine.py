"""
Command State Machine

One instance per accepted connection.

States:
```
  UNAUTHENTICATED --AUTH ok--> AUTHENTICATED --QUIT / transport error--> CLOSED
        |                            ^    |
        +--AUTH bad--> CLOSED        +----+ LIST, GET, PUT, ERR replies
```

Error semantics:
- ProtocolError (bad name, missing file, unknown command): reply
  "ERR <reason>" and keep serving
- AuthError: reply "AUTH_FAIL" and close, one attempt per connection
- TransportError / FileIOError once a transfer started: close, since the
  stream position can no longer be trusted
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional
from dataclasses import dataclass

from .commands import (
    Command, CommandType, ErrorReason, Reply,
    error_reply, parse_auth, parse_command,
)
from ..errors import AuthError, FileIOError, ProtocolError, TransportError
from ..file.storage import FileStorage, is_valid_filename
from ..storage.credentials import CredentialStore
from ..transfer.engine import recv_file, send_file
from ..transfer.protocol import FrameStream
from ..transfer.transform import PayloadTransform

logger = logging.getLogger(__name__)


class SessionState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


@dataclass
class Session:
    """Per-connection state."""
    authenticated: bool = False
    user: Optional[str] = None


@dataclass
class ServerStats:
    """Counters shared by all sessions of one server."""
    sessions: int = 0
    auth_failures: int = 0
    files_sent: int = 0
    files_received: int = 0
    bytes_sent: int = 0
    bytes_received: int = 0

    def to_dict(self) -> dict:
        return {
            'sessions': self.sessions,
            'auth_failures': self.auth_failures,
            'files_sent': self.files_sent,
            'files_received': self.files_received,
            'bytes_sent': self.bytes_sent,
            'bytes_received': self.bytes_received,
        }


CommandHandler = Callable[[Command], Awaitable[None]]


class CommandSession:
    """
    Drives one connection from AUTH to close.

    The stream is always closed when run() returns, including on
    cancellation.
    """

    def __init__(self, stream: FrameStream, credentials: CredentialStore,
                 storage: FileStorage, transform: PayloadTransform,
                 discard_partial_uploads: bool = False,
                 stats: Optional[ServerStats] = None):
        self.stream = stream
        self.credentials = credentials
        self.storage = storage
        self.transform = transform
        self.discard_partial_uploads = discard_partial_uploads
        self.stats = stats or ServerStats()

        self.session = Session()
        self.state = SessionState.UNAUTHENTICATED

        self._handlers: Dict[CommandType, CommandHandler] = {}
        self._setup_handlers()

    def _setup_handlers(self):
        """Register command handlers."""
        self._handlers[CommandType.LIST] = self._handle_list
        self._handlers[CommandType.GET] = self._handle_get
        self._handlers[CommandType.PUT] = self._handle_put
        self._handlers[CommandType.QUIT] = self._handle_quit

    @property
    def peer(self) -> str:
        addr = self.stream.remote_address
        if not addr:
            return 'unknown'
        return f"{addr[0]}:{addr[1]}"

    async def run(self):
        """Serve the connection until it is closed."""
        try:
            await self._authenticate()
            while self.state is SessionState.AUTHENTICATED:
                await self._serve_one()
        except (TransportError, FileIOError) as e:
            logger.warning(f"Session {self.peer} aborted: {e}")
        finally:
            self.state = SessionState.CLOSED
            await self.stream.close()
            logger.info(f"Client disconnected: {self.peer}")

    async def _reply(self, text: str):
        await self.stream.send_text(text)

    # === UNAUTHENTICATED ===

    async def _authenticate(self):
        line = await self.stream.recv_text()
        try:
            user, password = parse_auth(line)
            if not await self.credentials.authenticate(user, password):
                raise AuthError(f"Bad credentials for {user!r}")
        except AuthError as e:
            self.stats.auth_failures += 1
            logger.info(f"Auth failed for {self.peer}: {e}")
            await self._reply(Reply.AUTH_FAIL.value)
            self.state = SessionState.CLOSED
            return

        self.session.authenticated = True
        self.session.user = user
        self.state = SessionState.AUTHENTICATED
        await self._reply(Reply.AUTH_OK.value)
        logger.info(f"Auth OK for user {user} ({self.peer})")

    # === AUTHENTICATED ===

    async def _serve_one(self):
        """Read and execute one command."""
        command = parse_command(await self.stream.recv_text())
        logger.debug(f"{self.session.user}@{self.peer}: {command.name} {command.args}")

        handler = self._handlers.get(command.type)
        try:
            if handler is None:
                raise ProtocolError(ErrorReason.UNKNOWN_CMD.value,
                                    f"Unknown command {command.name!r}")
            await handler(command)
        except ProtocolError as e:
            logger.debug(f"Rejected {command.name} from {self.peer}: {e}")
            await self._reply(f"ERR {e.reason}")

    def _require_filename(self, command: Command) -> str:
        name = command.argument
        if not is_valid_filename(name):
            raise ProtocolError(ErrorReason.BAD_NAME.value, f"Invalid filename {name!r}")
        return name

    async def _handle_list(self, command: Command):
        entries = await self.storage.list_entries()
        if entries is None:
            await self._reply(error_reply(ErrorReason.NOT_FOUND))
            return
        await self._reply(Reply.OK.value)
        # Names go out as the bytes on disk, valid UTF-8 or not
        await self.stream.send_frame(b''.join(os.fsencode(name) + b'\n' for name in entries))

    async def _handle_get(self, command: Command):
        name = self._require_filename(command)
        path = await self.storage.resolve_download(name)
        if path is None:
            raise ProtocolError(ErrorReason.NOT_FOUND.value, f"No such file {name!r}")

        async with self.storage.locks.lock(path):
            await self._reply(Reply.OK.value)
            descriptor = await send_file(self.stream, path, self.transform)

        self.stats.files_sent += 1
        self.stats.bytes_sent += descriptor.total_size
        logger.info(f"Sent {name} ({descriptor.total_size:,} bytes) to {self.session.user}")

    async def _handle_put(self, command: Command):
        name = self._require_filename(command)
        path = self.storage.resolve_upload(name)

        async with self.storage.locks.lock(path):
            await self._reply(Reply.OK.value)
            try:
                descriptor = await recv_file(self.stream, path, self.transform)
            except (TransportError, FileIOError):
                if self.discard_partial_uploads:
                    self._discard(path)
                raise

        self.stats.files_received += 1
        self.stats.bytes_received += descriptor.total_size
        logger.info(f"Received {name} ({descriptor.total_size:,} bytes) from {self.session.user}")

    def _discard(self, path: Path):
        try:
            path.unlink()
            logger.info(f"Removed partial upload {path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove partial upload {path}: {e}")

    async def _handle_quit(self, command: Command):
        await self._reply(Reply.BYE.value)
        self.state = SessionState.CLOSED
