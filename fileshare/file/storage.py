"""
File Storage - Sandbox Roots

Design Decision: Filename Sandbox
=================================

Options Considered:
1. Resolve the requested path and check it stays under the root
   - Allows subdirectories
   - Symlink and normalization corner cases

2. Reject anything that could leave the root
   - No subdirectories at all
   - Trivial to reason about

Decision: Reject-list validation
- A filename is rejected if it is empty or contains "..", "/", "\\" or NUL
- Valid names are joined directly onto the root, never resolved first
- Downloads come from the listing root, uploads go to the upload root

Storage Layout (defaults):
```
server_files/          # listing root, served by LIST and GET
├── sample.txt
└── uploads/           # upload root, target of PUT, hidden from LIST
    └── big.bin
```
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

import aiofiles.os

logger = logging.getLogger(__name__)

FORBIDDEN_SEQUENCES = ('..', '/', '\\', '\x00')


def is_valid_filename(name: str) -> bool:
    """True if name is non-empty and cannot escape a sandbox root."""
    if not name:
        return False
    return not any(seq in name for seq in FORBIDDEN_SEQUENCES)


class PathLocks:
    """
    One asyncio.Lock per resolved path.

    Serializes GET/PUT on the same file when sessions run concurrently.
    Locks are dropped once nobody holds or waits on them.
    """

    def __init__(self):
        self._locks: Dict[Path, asyncio.Lock] = {}
        self._users: Dict[Path, int] = {}

    def _key(self, path: Path) -> Path:
        # Symlinked aliases of one file share a lock
        return Path(path).resolve()

    def lock(self, path: Path) -> '_PathLockContext':
        return _PathLockContext(self, self._key(path))

    def __len__(self) -> int:
        return len(self._locks)


class _PathLockContext:
    def __init__(self, owner: PathLocks, key: Path):
        self._owner = owner
        self._key = key

    async def __aenter__(self):
        owner = self._owner
        lock = owner._locks.setdefault(self._key, asyncio.Lock())
        owner._users[self._key] = owner._users.get(self._key, 0) + 1
        try:
            await lock.acquire()
        except BaseException:
            self._release_user()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self._owner._locks[self._key].release()
        self._release_user()

    def _release_user(self):
        owner = self._owner
        owner._users[self._key] -= 1
        if owner._users[self._key] == 0:
            del owner._users[self._key]
            del owner._locks[self._key]


class FileStorage:
    """
    Maps validated filenames onto the listing and upload roots.

    Provides:
    - Directory listing for LIST
    - Path resolution for GET (listing root, then upload root)
    - Path resolution for PUT (upload root)
    - Per-path locks shared by every session of one server
    """

    def __init__(self, root_dir: Path, upload_dir: Path):
        """
        Initialize file storage.

        Args:
            root_dir: Listing root, served by LIST and GET
            upload_dir: Upload root, written by PUT
        """
        self.root_dir = Path(root_dir)
        self.upload_dir = Path(upload_dir)
        self.locks = PathLocks()

    def ensure_directories(self):
        """Create the roots if they don't exist."""
        for dir_path in [self.root_dir, self.upload_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)

    def _is_upload_dir(self, path: Path) -> bool:
        try:
            return path.resolve() == self.upload_dir.resolve()
        except OSError:
            return False

    async def list_entries(self) -> Optional[List[str]]:
        """
        List the listing root in directory order.

        The upload root is left out when it lives inside the listing root.

        Returns:
            Entry names, or None if the listing root cannot be read
        """
        try:
            names = await aiofiles.os.listdir(self.root_dir)
        except OSError as e:
            logger.warning(f"Cannot list {self.root_dir}: {e}")
            return None

        return [
            name for name in names
            if name not in ('.', '..') and not self._is_upload_dir(self.root_dir / name)
        ]

    async def resolve_download(self, name: str) -> Optional[Path]:
        """
        Find a readable file for GET.

        Callers validate the name first.

        Returns:
            Path in the listing root or, failing that, the upload root;
            None if neither holds a readable regular file
        """
        for root in (self.root_dir, self.upload_dir):
            path = root / name
            if await aiofiles.os.path.isfile(path) and os.access(path, os.R_OK):
                return path
        return None

    def resolve_upload(self, name: str) -> Path:
        """Destination path for PUT. Callers validate the name first."""
        return self.upload_dir / name
