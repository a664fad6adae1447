"""Shared fixtures: in-memory streams and a ready-to-serve server layout."""

import asyncio
import struct
from pathlib import Path
from typing import List

import pytest

from fileshare.config import Config
from fileshare.transfer.protocol import FrameStream

USERS = "alice:alice123\nbob:builder\n"


class FakeWriter:
    """Collects everything written, mimicking asyncio.StreamWriter."""

    def __init__(self, fail_after: int = -1):
        self.buffer = bytearray()
        self.closed = False
        self.fail_after = fail_after

    def write(self, data: bytes):
        if 0 <= self.fail_after <= len(self.buffer):
            raise ConnectionResetError("peer went away")
        self.buffer.extend(data)

    async def drain(self):
        pass

    def is_closing(self) -> bool:
        return self.closed

    def close(self):
        self.closed = True

    async def wait_closed(self):
        pass

    def get_extra_info(self, name, default=None):
        if name == 'peername':
            return ('127.0.0.1', 40000)
        return default


def make_reader(data: bytes = b'', eof: bool = True) -> asyncio.StreamReader:
    """StreamReader pre-loaded with data. Call from inside a running loop."""
    reader = asyncio.StreamReader()
    if data:
        reader.feed_data(data)
    if eof:
        reader.feed_eof()
    return reader


def frame(payload) -> bytes:
    if isinstance(payload, str):
        payload = payload.encode('utf-8')
    return struct.pack('>I', len(payload)) + payload


def split_frames(data: bytes) -> List[bytes]:
    """Split a buffer made only of frames back into payloads."""
    frames = []
    offset = 0
    while offset < len(data):
        (length,) = struct.unpack_from('>I', data, offset)
        offset += 4
        frames.append(bytes(data[offset:offset + length]))
        offset += length
    return frames


@pytest.fixture
def memory_stream():
    """Factory for a FrameStream over a pre-loaded reader and a FakeWriter."""
    def factory(data: bytes = b'', eof: bool = True, **kwargs) -> FrameStream:
        return FrameStream(make_reader(data, eof), FakeWriter(), **kwargs)
    return factory


@pytest.fixture
def server_dirs(tmp_path: Path):
    """Listing root holding only sample.txt, upload root inside it, users file."""
    root = tmp_path / 'server_files'
    root.mkdir()
    (root / 'sample.txt').write_bytes(b'hello from the server\n')
    users = tmp_path / 'users.txt'
    users.write_text(USERS)
    return root, root / 'uploads', users


@pytest.fixture
def server_config(server_dirs) -> Config:
    root, uploads, users = server_dirs
    return Config(
        host='127.0.0.1',
        port=0,
        root_dir=root,
        upload_dir=uploads,
        users_file=users,
    )
