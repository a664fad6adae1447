"""
File Module - Sandbox Roots and Path Locks
"""

from .storage import FileStorage, PathLocks, is_valid_filename

__all__ = ['FileStorage', 'PathLocks', 'is_valid_filename']
