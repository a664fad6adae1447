"""Tests for the XOR payload transform."""

import random

import pytest

from fileshare.transfer.transform import XorTransform, transform


def test_every_byte_is_self_inverse():
    t = XorTransform()
    for b in range(256):
        assert t.transform_byte(t.transform_byte(b)) == b


def test_default_key_is_0x5a():
    assert transform(b'\x00\xff') == b'\x5a\xa5'


def test_apply_twice_restores_random_data():
    data = random.Random(7).randbytes(10_000)
    t = XorTransform(0x5A)
    once = t.apply(data)
    assert once != data
    assert t.apply(once) == data


def test_apply_preserves_length_and_empty():
    t = XorTransform(0x11)
    assert t.apply(b'') == b''
    assert len(t.apply(b'abc')) == 3


def test_each_byte_depends_only_on_itself():
    t = XorTransform(0x33)
    data = bytes(range(256))
    assert t.apply(data) == bytes(t.transform_byte(b) for b in data)


@pytest.mark.parametrize("key", [-1, 256])
def test_key_must_fit_in_a_byte(key):
    with pytest.raises(ValueError):
        XorTransform(key)
