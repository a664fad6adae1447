"""Tests for length-prefixed control frames."""

import struct

import pytest

from fileshare.errors import FrameTooLargeError, TransportError
from fileshare.transfer.protocol import recv_frame, send_frame

from conftest import FakeWriter, make_reader


@pytest.mark.asyncio
@pytest.mark.parametrize("size", [0, 1, 4096, 65536, 10_000_000])
async def test_frame_roundtrip(size):
    payload = (bytes(range(251)) * (size // 251 + 1))[:size]
    writer = FakeWriter()
    await send_frame(writer, payload)

    assert len(writer.buffer) == 4 + size
    received = await recv_frame(make_reader(bytes(writer.buffer)))
    assert received == payload


@pytest.mark.asyncio
async def test_length_is_big_endian():
    writer = FakeWriter()
    await send_frame(writer, b'LIST')
    assert bytes(writer.buffer) == b'\x00\x00\x00\x04LIST'


@pytest.mark.asyncio
async def test_frames_are_read_in_order():
    reader = make_reader(b'\x00\x00\x00\x02OK\x00\x00\x00\x03BYE')
    assert await recv_frame(reader) == b'OK'
    assert await recv_frame(reader) == b'BYE'


@pytest.mark.asyncio
async def test_close_mid_length_field():
    with pytest.raises(TransportError):
        await recv_frame(make_reader(b'\x00\x00'))


@pytest.mark.asyncio
async def test_close_mid_payload():
    with pytest.raises(TransportError):
        await recv_frame(make_reader(b'\x00\x00\x00\x10short'))


@pytest.mark.asyncio
async def test_close_before_anything():
    with pytest.raises(TransportError):
        await recv_frame(make_reader(b''))


@pytest.mark.asyncio
async def test_oversized_length_rejected_before_payload():
    # No payload follows: the bound must trip on the header alone
    reader = make_reader(struct.pack('>I', 2048), eof=False)
    with pytest.raises(FrameTooLargeError) as exc_info:
        await recv_frame(reader, max_length=1024)
    assert exc_info.value.length == 2048


@pytest.mark.asyncio
async def test_write_to_closed_peer():
    writer = FakeWriter(fail_after=0)
    with pytest.raises(TransportError):
        await send_frame(writer, b'OK')


@pytest.mark.asyncio
async def test_frame_stream_text(memory_stream):
    stream = memory_stream(b'\x00\x00\x00\x07AUTH_OK')
    assert await stream.recv_text() == 'AUTH_OK'

    await stream.send_text('LIST')
    assert bytes(stream.writer.buffer) == b'\x00\x00\x00\x04LIST'

    await stream.close()
    assert stream.closed
    with pytest.raises(TransportError):
        await stream.send_text('LIST')
