"""
File Server - Connection Acceptor

Owns the listening socket and everything sessions share:
- Credential store (read-only)
- File storage with its per-path locks
- Payload transform
- Statistics

Design Decision: Session Scheduling
===================================

Options Considered:
1. Serve one connection at a time (accept, run to completion, repeat)
   - Matches existing clients' expectations, no shared-file races
   - One stalled peer blocks everybody

2. One task per connection, unbounded
   - Best throughput
   - Concurrent PUTs to one name race

3. One task per connection behind a semaphore
   - max_sessions=1 gives option 1, larger values give option 2
   - GET/PUT serialized per resolved path either way

Decision: Option 3 with max_sessions defaulting to 1

Shutdown is explicit: stop() closes the listener, cancels in-flight
sessions and waits for them. `async with FileServer(...)` guarantees it
runs on every exit path.
"""

import asyncio
import logging
from typing import Optional, Set, Tuple

from .config import Config
from .file.storage import FileStorage
from .session.machine import CommandSession, ServerStats
from .storage.credentials import CredentialStore
from .transfer.protocol import FrameStream
from .transfer.transform import XorTransform

logger = logging.getLogger(__name__)


class FileServer:
    """
    TCP server for authenticated file listing, upload and download.
    """

    def __init__(self, config: Optional[Config] = None):
        """
        Initialize the server.

        Args:
            config: Server configuration (uses defaults if not provided)
        """
        self.config = (config or Config()).validate()

        self.credentials = CredentialStore(self.config.users_file)
        self.storage = FileStorage(self.config.root_dir, self.config.upload_dir)
        self.transform = XorTransform(self.config.transform_key)
        self.stats = ServerStats()

        self.server: Optional[asyncio.AbstractServer] = None
        self._slots = asyncio.Semaphore(self.config.max_sessions)
        self._sessions: Set[asyncio.Task] = set()
        self._stopped = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self.server is not None

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        """Bound (host, port), useful when port 0 was requested."""
        if self.server is None or not self.server.sockets:
            return None
        return self.server.sockets[0].getsockname()[:2]

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    async def start(self):
        """Start listening."""
        if self.server is not None:
            return

        self.storage.ensure_directories()
        self._stopped.clear()

        self.server = await asyncio.start_server(
            self._handle_connection,
            self.config.host,
            self.config.port
        )

        host, port = self.address
        logger.info(f"File server listening on {host}:{port}")
        logger.info(f"  Listing root: {self.config.root_dir}")
        logger.info(f"  Upload root: {self.config.upload_dir}")
        logger.info(f"  Max sessions: {self.config.max_sessions}")

    async def stop(self):
        """Stop accepting, cancel in-flight sessions, release the listener."""
        if self.server is None:
            return

        logger.info("Stopping file server...")
        server, self.server = self.server, None
        server.close()

        tasks = list(self._sessions)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        await server.wait_closed()
        self._stopped.set()
        logger.info(f"File server stopped. Served {self.stats.sessions} sessions")

    async def serve_forever(self):
        """Start if needed and run until stop() is called."""
        await self.start()
        await self._stopped.wait()

    async def __aenter__(self) -> 'FileServer':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    async def _handle_connection(self, reader: asyncio.StreamReader,
                                 writer: asyncio.StreamWriter):
        """Handle an incoming connection."""
        task = asyncio.current_task()
        self._sessions.add(task)
        stream = FrameStream(reader, writer, self.config.max_frame_length)

        try:
            async with self._slots:
                self.stats.sessions += 1
                logger.info(f"Client connected from {stream.remote_address}")
                session = CommandSession(
                    stream,
                    credentials=self.credentials,
                    storage=self.storage,
                    transform=self.transform,
                    discard_partial_uploads=self.config.discard_partial_uploads,
                    stats=self.stats,
                )
                await session.run()
        except Exception as e:
            logger.exception(f"Error handling connection from {stream.remote_address}: {e}")
        finally:
            # Covers connections cancelled while still waiting for a slot
            await stream.close()
            self._sessions.discard(task)

    def get_stats(self) -> dict:
        """Get server statistics."""
        return {
            'running': self.is_running,
            'address': self.address,
            'active_sessions': self.active_sessions,
            **self.stats.to_dict(),
        }
