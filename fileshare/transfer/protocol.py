"""
Control Channel Framing

Design Decision: Message Framing
================================

Options Considered:
1. Newline-delimited text
   - Trivial to debug with netcat
   - Needs delimiter scanning, breaks on embedded newlines

2. Length-prefixed opaque messages
   - Reader knows exactly how much to consume
   - No escaping, payload can be any bytes

3. JSON envelopes
   - Self-describing, but heavier than the command set needs

Decision: 4-byte big-endian length prefix + raw bytes
- Control messages are short UTF-8 strings ("AUTH ...", "OK", "ERR ...")
- The LIST reply is sent as one frame, newlines inside are fine
- File payloads do NOT use frames, see engine.py

Message Format:
```
+----------------+---------------------+
| Length (4B BE) | Payload (N bytes)   |
+----------------+---------------------+
```

A maximum frame length is checked before the payload buffer is
allocated, so a garbage length field cannot make us allocate 4GB.
"""

import asyncio
import struct
import logging
from typing import Optional, Tuple

from ..config import DEFAULT_MAX_FRAME_LENGTH
from ..errors import TransportError, FrameTooLargeError

logger = logging.getLogger(__name__)

FRAME_HEADER = struct.Struct('>I')


async def read_exact(reader: asyncio.StreamReader, n: int) -> bytes:
    """
    Read exactly n bytes from the stream.

    Raises:
        TransportError: if the stream ends or fails before n bytes arrive
    """
    if n == 0:
        return b''
    try:
        return await reader.readexactly(n)
    except asyncio.IncompleteReadError as e:
        raise TransportError(
            f"Stream closed after {len(e.partial)} of {n} bytes"
        ) from e
    except (ConnectionError, OSError) as e:
        raise TransportError(f"Read failed: {e}") from e


async def write_all(writer: asyncio.StreamWriter, data: bytes):
    """
    Write data and wait until the transport has accepted all of it.

    Raises:
        TransportError: if the peer closed the stream or the write failed
    """
    if writer.is_closing():
        raise TransportError("Connection closed")
    try:
        writer.write(data)
        await writer.drain()
    except (ConnectionError, OSError) as e:
        raise TransportError(f"Write failed: {e}") from e


async def send_frame(writer: asyncio.StreamWriter, payload: bytes):
    """Send one length-prefixed frame."""
    await write_all(writer, FRAME_HEADER.pack(len(payload)) + payload)


async def recv_frame(reader: asyncio.StreamReader,
                     max_length: int = DEFAULT_MAX_FRAME_LENGTH) -> bytes:
    """
    Receive one length-prefixed frame.

    Raises:
        FrameTooLargeError: announced length exceeds max_length
        TransportError: stream closed mid-header or mid-payload
    """
    header = await read_exact(reader, FRAME_HEADER.size)
    (length,) = FRAME_HEADER.unpack(header)

    # Sanity check
    if length > max_length:
        raise FrameTooLargeError(length, max_length)

    return await read_exact(reader, length)


class FrameStream:
    """
    One side of a control connection.

    Wraps an asyncio reader/writer pair and exposes framed text messages
    plus the raw byte primitives the transfer engine streams payloads with.
    Both peers use the same class.
    """

    def __init__(self, reader: asyncio.StreamReader,
                 writer: asyncio.StreamWriter,
                 max_frame_length: int = DEFAULT_MAX_FRAME_LENGTH):
        self.reader = reader
        self.writer = writer
        self.max_frame_length = max_frame_length
        self._closed = False

    @property
    def remote_address(self) -> Optional[Tuple[str, int]]:
        """Get remote peer address."""
        return self.writer.get_extra_info('peername')

    @property
    def closed(self) -> bool:
        return self._closed

    # === Framed messages ===

    async def send_frame(self, payload: bytes):
        if self._closed:
            raise TransportError("Connection closed")
        await send_frame(self.writer, payload)

    async def recv_frame(self) -> bytes:
        if self._closed:
            raise TransportError("Connection closed")
        return await recv_frame(self.reader, self.max_frame_length)

    async def send_text(self, text: str):
        """Send a control message."""
        await self.send_frame(text.encode('utf-8'))

    async def recv_text(self) -> str:
        """Receive a control message. Invalid UTF-8 is replaced, not fatal."""
        return (await self.recv_frame()).decode('utf-8', errors='replace')

    # === Raw stream access (file payloads) ===

    async def read_exact(self, n: int) -> bytes:
        return await read_exact(self.reader, n)

    async def write_all(self, data: bytes):
        await write_all(self.writer, data)

    async def close(self):
        """Close the connection."""
        if self._closed:
            return
        self._closed = True
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug(f"Error while closing connection: {e}")


async def connect(host: str, port: int,
                  max_frame_length: int = DEFAULT_MAX_FRAME_LENGTH) -> FrameStream:
    """
    Open a control connection to a server.

    Raises:
        TransportError: if the connection could not be established
    """
    try:
        reader, writer = await asyncio.open_connection(host, port)
    except (ConnectionError, OSError) as e:
        raise TransportError(f"Failed to connect to {host}:{port}: {e}") from e
    return FrameStream(reader, writer, max_frame_length)
