"""
Payload Transform

File contents are XORed with a single-byte key while in transit. This is
a compatibility transform, NOT encryption: it hides nothing from anyone
who has seen one byte of plaintext. Applying it twice restores the input,
so sender and receiver run the exact same function.

Anything implementing ``apply(chunk) -> chunk`` with the same
self-inverse, length-preserving contract can replace it without touching
the framing or the session logic.
"""

from typing import Protocol

from ..config import DEFAULT_TRANSFORM_KEY


class PayloadTransform(Protocol):
    """Length-preserving, self-inverse chunk transform."""

    def apply(self, chunk: bytes) -> bytes:
        ...


class XorTransform:
    """XOR every byte with a constant key."""

    def __init__(self, key: int = DEFAULT_TRANSFORM_KEY):
        if not 0 <= key <= 0xFF:
            raise ValueError(f"XOR key must fit in one byte, got {key}")
        self.key = key
        # bytes.translate runs the per-byte XOR in C
        self._table = bytes(b ^ key for b in range(256))

    def transform_byte(self, value: int) -> int:
        return value ^ self.key

    def apply(self, chunk: bytes) -> bytes:
        return chunk.translate(self._table)

    def __repr__(self) -> str:
        return f"XorTransform(key=0x{self.key:02X})"


def transform(data: bytes, key: int = DEFAULT_TRANSFORM_KEY) -> bytes:
    """Apply the XOR transform to a byte string."""
    return XorTransform(key).apply(data)
