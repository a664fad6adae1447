"""
Credential Store

Design Decision: Why a flat file?
=================================

Options Considered:
1. Flat "name:password" file - what existing deployments already have
2. SQLite users table - queryable, but a migration for every deployment
3. External directory (LDAP etc.) - overkill for a handful of accounts

Decision: Flat file, re-read on every AUTH attempt
- Edits take effect without a restart
- No caching, so nothing to invalidate
- One record per line: "name:password", split on the first ':'
- The password part may instead be a salted hash:
  "pbkdf2_sha256$<iterations>$<salt hex>$<hash hex>"

This gives no protection against credential harvesting: plaintext
records are plaintext on disk and on the wire (AUTH is not transformed).
Hashed records only keep the file itself from leaking passwords.
"""

import hashlib
import hmac
import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple
from dataclasses import dataclass

import aiofiles

logger = logging.getLogger(__name__)

HASH_SCHEME = 'pbkdf2_sha256'
HASH_ITERATIONS = 200_000
SALT_BYTES = 16


@dataclass(frozen=True)
class Credential:
    """One record of the credential file."""
    user: str
    password: str

    @property
    def is_hashed(self) -> bool:
        return _parse_hash(self.password) is not None

    def verify(self, password: str) -> bool:
        """
        Check a candidate password against this record.

        A password part that only looks like a hash (right prefix, bad
        fields) is compared as plaintext.
        """
        if self.is_hashed:
            return verify_password(password, self.password)
        return hmac.compare_digest(_encode(self.password), _encode(password))


def _encode(text: str) -> bytes:
    # Undecodable bytes from the users file come back out unchanged
    return text.encode('utf-8', 'surrogateescape')


def hash_password(password: str, salt: Optional[bytes] = None,
                  iterations: int = HASH_ITERATIONS) -> str:
    """
    Produce a salted hash usable as the password part of a record.

    Args:
        password: Plaintext password
        salt: Random salt (generated if not provided)
        iterations: PBKDF2 iteration count

    Returns:
        "pbkdf2_sha256$<iterations>$<salt hex>$<hash hex>"
    """
    salt = salt if salt is not None else os.urandom(SALT_BYTES)
    digest = hashlib.pbkdf2_hmac('sha256', password.encode('utf-8'), salt, iterations)
    return f"{HASH_SCHEME}${iterations}${salt.hex()}${digest.hex()}"


def _parse_hash(encoded: str) -> Optional[Tuple[int, bytes, bytes]]:
    """Split a hash_password() string into (rounds, salt, digest), None if malformed."""
    try:
        scheme, iterations, salt_hex, hash_hex = encoded.split('$')
        if scheme != HASH_SCHEME:
            return None
        rounds = int(iterations)
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(hash_hex)
    except ValueError:
        return None
    if rounds < 1 or not expected:
        return None
    return rounds, salt, expected


def verify_password(password: str, encoded: str) -> bool:
    """Verify a password against a hash_password() string."""
    parsed = _parse_hash(encoded)
    if parsed is None:
        logger.warning("Malformed password hash in credential store")
        return False

    rounds, salt, expected = parsed
    try:
        actual = hashlib.pbkdf2_hmac('sha256', _encode(password), salt, rounds)
    except (ValueError, OverflowError) as e:
        logger.warning(f"Unusable password hash in credential store: {e}")
        return False
    return hmac.compare_digest(actual, expected)


def parse_credentials(text: str) -> List[Credential]:
    """Parse credential file contents. Lines without ':' are skipped."""
    records = []
    for line in text.splitlines():
        user, sep, password = line.partition(':')
        if not sep:
            continue
        records.append(Credential(user=user, password=password))
    return records


class CredentialStore:
    """
    Read-only user lookup backed by a flat file.

    Safe to share between sessions: nothing is cached and nothing is
    written.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    async def load(self) -> List[Credential]:
        """
        Read all records.

        Bytes that are not valid UTF-8 are kept as surrogate escapes, so one
        bad line cannot hide the others.

        Returns:
            Records in file order, empty if the file is missing or unreadable
        """
        try:
            async with aiofiles.open(self.path, 'r', encoding='utf-8',
                                     errors='surrogateescape') as f:
                text = await f.read()
        except OSError as e:
            logger.warning(f"Cannot read credential store {self.path}: {e}")
            return []
        return parse_credentials(text)

    async def authenticate(self, user: str, password: str) -> bool:
        """
        Check a user/password pair.

        Returns:
            True if any record for user accepts password
        """
        if not user or not password:
            return False

        for record in await self.load():
            if record.user == user and record.verify(password):
                return True
        return False
