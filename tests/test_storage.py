"""Tests for filename validation, listing and path locks."""

import asyncio

import pytest

from fileshare.file.storage import FileStorage, PathLocks, is_valid_filename


@pytest.mark.parametrize("name", ["", "../etc/passwd", "a/b", "a\\b", "..", "x..y", "a\x00b"])
def test_rejects_unsafe_names(name):
    assert not is_valid_filename(name)


@pytest.mark.parametrize("name", ["report.txt", "data-1.bin", ".hidden", "a.b.c"])
def test_accepts_plain_names(name):
    assert is_valid_filename(name)


@pytest.mark.asyncio
async def test_listing_hides_upload_dir(server_dirs):
    root, uploads, _ = server_dirs
    storage = FileStorage(root, uploads)
    storage.ensure_directories()

    assert await storage.list_entries() == ['sample.txt']


@pytest.mark.asyncio
async def test_listing_missing_root(tmp_path):
    storage = FileStorage(tmp_path / 'nope', tmp_path / 'nope' / 'uploads')
    assert await storage.list_entries() is None


@pytest.mark.asyncio
async def test_download_resolution_prefers_listing_root(server_dirs):
    root, uploads, _ = server_dirs
    storage = FileStorage(root, uploads)
    storage.ensure_directories()
    (uploads / 'sample.txt').write_bytes(b'shadow')
    (uploads / 'only-uploaded.bin').write_bytes(b'up')

    assert await storage.resolve_download('sample.txt') == root / 'sample.txt'
    assert await storage.resolve_download('only-uploaded.bin') == uploads / 'only-uploaded.bin'
    assert await storage.resolve_download('missing.txt') is None


@pytest.mark.asyncio
async def test_directories_are_not_downloadable(server_dirs):
    root, uploads, _ = server_dirs
    storage = FileStorage(root, uploads)
    (root / 'subdir').mkdir()
    assert await storage.resolve_download('subdir') is None


def test_upload_goes_to_upload_root(server_dirs):
    root, uploads, _ = server_dirs
    assert FileStorage(root, uploads).resolve_upload('x.bin') == uploads / 'x.bin'


@pytest.mark.asyncio
async def test_path_lock_serializes_same_path(tmp_path):
    locks = PathLocks()
    order = []

    async def worker(tag, delay):
        async with locks.lock(tmp_path / 'same.bin'):
            order.append(f"{tag}-in")
            await asyncio.sleep(delay)
            order.append(f"{tag}-out")

    await asyncio.gather(worker('a', 0.05), worker('b', 0))

    assert order == ['a-in', 'a-out', 'b-in', 'b-out']
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_path_lock_independent_paths(tmp_path):
    locks = PathLocks()

    async def take_second():
        async with locks.lock(tmp_path / 'two'):
            return len(locks)

    async with locks.lock(tmp_path / 'one'):
        # Would time out if both paths shared a lock
        assert await asyncio.wait_for(take_second(), timeout=1) == 2

    assert len(locks) == 0


@pytest.mark.asyncio
async def test_path_lock_shared_by_symlink_alias(tmp_path):
    target = tmp_path / 'real.bin'
    target.write_bytes(b'data')
    alias = tmp_path / 'alias.bin'
    alias.symlink_to(target)
    locks = PathLocks()

    async def take_alias():
        async with locks.lock(alias):
            return 'done'

    async with locks.lock(target):
        waiter = asyncio.ensure_future(take_alias())
        await asyncio.sleep(0.05)
        # Same resolved path: one lock, and the alias is still waiting
        assert len(locks) == 1
        assert not waiter.done()

    assert await waiter == 'done'
    assert len(locks) == 0
