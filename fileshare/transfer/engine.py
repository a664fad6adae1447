"""
File Transfer Engine

Design Decision: Payload Encoding
=================================

Options Considered:
1. One frame per chunk
   - Reuses the control framing
   - 4 bytes of overhead per chunk, receiver must reassemble

2. Size prefix + raw byte stream
   - Receiver knows the total up front and reads exactly that much
   - No per-chunk overhead

Decision: 8-byte size prefix, then the raw transformed bytes
- Size is an unsigned 64-bit big-endian integer, NOT wrapped in a frame
- Payload follows immediately, streamed in fixed 64KB chunks
- Chunking is a local I/O detail: chunk boundaries are not visible on
  the wire, the receiver may see the bytes split differently

Wire Layout:
```
+----------------+------------------------------------+
| Size (8B BE)   | total_size transformed bytes       |
+----------------+------------------------------------+
```

There is no resumption marker. If the stream breaks mid-transfer the
operation fails and the receiver's destination file is left as written
so far: every complete chunk, minus the short read that hit the end of
the stream.
"""

import time
import struct
import logging
from pathlib import Path
from typing import Callable, Optional
from dataclasses import dataclass, field

import aiofiles
import aiofiles.os

from .protocol import FrameStream
from .transform import PayloadTransform
from ..errors import FileIOError

logger = logging.getLogger(__name__)

# Chunk size: 64KB, fixed
CHUNK_SIZE = 64 * 1024

SIZE_PREFIX = struct.Struct('>Q')


@dataclass
class TransferDescriptor:
    """State of one file transfer, live for a single GET or PUT."""
    total_size: int
    bytes_moved: int = 0
    chunk_size: int = CHUNK_SIZE
    start_time: float = field(default_factory=time.time)

    @property
    def remaining(self) -> int:
        return self.total_size - self.bytes_moved

    @property
    def complete(self) -> bool:
        return self.bytes_moved >= self.total_size

    @property
    def progress_percent(self) -> float:
        """Progress as percentage."""
        if self.total_size == 0:
            return 100.0
        return self.bytes_moved / self.total_size * 100

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.start_time

    @property
    def speed_bytes_per_sec(self) -> float:
        elapsed = self.elapsed_seconds
        if elapsed == 0:
            return 0
        return self.bytes_moved / elapsed


# Progress callback type
ProgressCallback = Callable[[TransferDescriptor], None]


async def send_file(stream: FrameStream, path: Path,
                    transform: PayloadTransform,
                    progress: Optional[ProgressCallback] = None) -> TransferDescriptor:
    """
    Stream a local file to the peer.

    Args:
        stream: Connected stream, positioned where the size prefix goes
        path: File to send
        transform: Payload transform applied to every chunk
        progress: Called after every chunk written

    Returns:
        The completed TransferDescriptor

    Raises:
        FileIOError: the file cannot be opened or read, or shrank mid-send
        TransportError: the stream failed
    """
    try:
        async with aiofiles.open(path, 'rb') as f:
            total_size = (await aiofiles.os.stat(path)).st_size
            descriptor = TransferDescriptor(total_size=total_size)

            await stream.write_all(SIZE_PREFIX.pack(total_size))

            while descriptor.remaining > 0:
                chunk = await f.read(min(CHUNK_SIZE, descriptor.remaining))
                if not chunk:
                    raise FileIOError(
                        f"{path.name} truncated during send: "
                        f"{descriptor.bytes_moved}/{total_size} bytes"
                    )
                await stream.write_all(transform.apply(chunk))
                descriptor.bytes_moved += len(chunk)
                if progress:
                    progress(descriptor)
    except OSError as e:
        raise FileIOError(f"Cannot read {path}: {e}") from e

    logger.debug(f"Sent {path.name}: {descriptor.total_size:,} bytes")
    return descriptor


async def recv_file(stream: FrameStream, destination: Path,
                    transform: PayloadTransform,
                    progress: Optional[ProgressCallback] = None) -> TransferDescriptor:
    """
    Receive a file from the peer into destination.

    The destination is truncated as soon as the size prefix has arrived.
    On failure whatever was written so far stays on disk.

    Returns:
        The completed TransferDescriptor

    Raises:
        TransportError: the stream ended before total_size bytes arrived
        FileIOError: the destination cannot be opened or written
    """
    (total_size,) = SIZE_PREFIX.unpack(await stream.read_exact(SIZE_PREFIX.size))
    descriptor = TransferDescriptor(total_size=total_size)

    try:
        async with aiofiles.open(destination, 'wb') as f:
            while descriptor.remaining > 0:
                chunk = await stream.read_exact(min(CHUNK_SIZE, descriptor.remaining))
                await f.write(transform.apply(chunk))
                descriptor.bytes_moved += len(chunk)
                if progress:
                    progress(descriptor)
    except OSError as e:
        raise FileIOError(f"Cannot write {destination}: {e}") from e

    logger.debug(f"Received {destination.name}: {descriptor.total_size:,} bytes")
    return descriptor
