"""
Transfer Module - Framing and File Streaming

Handles the control-channel framing and the chunked payload transfer.
"""

from .protocol import FrameStream, send_frame, recv_frame, connect
from .transform import PayloadTransform, XorTransform, transform
from .engine import CHUNK_SIZE, TransferDescriptor, send_file, recv_file

__all__ = [
    'FrameStream',
    'send_frame',
    'recv_frame',
    'connect',
    'PayloadTransform',
    'XorTransform',
    'transform',
    'CHUNK_SIZE',
    'TransferDescriptor',
    'send_file',
    'recv_file',
]
