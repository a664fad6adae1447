"""
File Client

Programmatic counterpart of the server's command state machine. Used by
the CLI and by the integration tests.

Typical use:
```
async with await FileClient.connect('127.0.0.1', 8080) as client:
    await client.authenticate('alice', 'alice123')
    names = await client.list_files()
    await client.download('sample.txt', Path('sample.txt'))
```
"""

import logging
from pathlib import Path
from typing import List, Optional

from .config import DEFAULT_MAX_FRAME_LENGTH, DEFAULT_TRANSFORM_KEY
from .errors import AuthError, FileIOError, RemoteError, TransportError
from .session.commands import Command, CommandType, Reply
from .transfer.engine import ProgressCallback, TransferDescriptor, recv_file, send_file
from .transfer.protocol import FrameStream, connect
from .transfer.transform import PayloadTransform, XorTransform

logger = logging.getLogger(__name__)


class FileClient:
    """
    One authenticated connection to a file server.

    Requests are strictly sequential: each method sends one command and
    consumes the complete reply (and payload) before returning.
    """

    def __init__(self, stream: FrameStream,
                 transform: Optional[PayloadTransform] = None):
        self.stream = stream
        self.transform = transform or XorTransform()
        self.user: Optional[str] = None

    @classmethod
    async def connect(cls, host: str, port: int,
                      transform_key: int = DEFAULT_TRANSFORM_KEY,
                      max_frame_length: int = DEFAULT_MAX_FRAME_LENGTH) -> 'FileClient':
        """Connect to a server. Raises TransportError on failure."""
        stream = await connect(host, port, max_frame_length)
        logger.debug(f"Connected to {host}:{port}")
        return cls(stream, XorTransform(transform_key))

    async def __aenter__(self) -> 'FileClient':
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _request(self, command: CommandType, *args: str) -> str:
        await self.stream.send_text(Command(command.value, list(args)).to_line())
        return await self.stream.recv_text()

    async def _expect_ok(self, command: CommandType, *args: str):
        reply = await self._request(command, *args)
        if reply != Reply.OK.value:
            raise RemoteError(reply)

    async def authenticate(self, user: str, password: str) -> bool:
        """
        Send AUTH.

        Returns:
            True on AUTH_OK. On failure the server closes the connection.
        """
        reply = await self._request(CommandType.AUTH, user, password)
        if reply == Reply.AUTH_OK.value:
            self.user = user
            return True
        logger.debug(f"Authentication as {user} rejected: {reply}")
        return False

    async def login(self, user: str, password: str):
        """Like authenticate(), but raises AuthError on rejection."""
        if not await self.authenticate(user, password):
            await self.close()
            raise AuthError(f"Authentication failed for {user}")

    async def list_files(self) -> List[str]:
        """List the server's listing root."""
        await self._expect_ok(CommandType.LIST)
        listing = await self.stream.recv_text()
        return [name for name in listing.split('\n') if name]

    async def download(self, name: str, destination: Path,
                       progress: Optional[ProgressCallback] = None) -> TransferDescriptor:
        """
        GET a remote file into destination.

        Raises:
            RemoteError: the server refused (BadName, NotFound)
            TransportError: the connection broke mid-transfer
        """
        await self._expect_ok(CommandType.GET, name)
        return await recv_file(self.stream, Path(destination), self.transform, progress)

    async def upload(self, path: Path, name: Optional[str] = None,
                     progress: Optional[ProgressCallback] = None) -> TransferDescriptor:
        """
        PUT a local file. The remote name defaults to the file's basename.

        Raises:
            RemoteError: the server refused the name
            FileIOError: the local file cannot be read
        """
        path = Path(path)
        if not path.is_file():
            raise FileIOError(f"Not a readable file: {path}")
        await self._expect_ok(CommandType.PUT, name or path.name)
        return await send_file(self.stream, path, self.transform, progress)

    async def quit(self) -> bool:
        """
        Send QUIT and close.

        Returns:
            True if the server answered BYE
        """
        try:
            reply = await self._request(CommandType.QUIT)
        except TransportError as e:
            logger.debug(f"QUIT failed: {e}")
            return False
        finally:
            await self.close()
        return reply == Reply.BYE.value

    async def close(self):
        await self.stream.close()
