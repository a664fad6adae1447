"""
Storage Module - Credential Store

Flat-file user/password lookup.
"""

from .credentials import Credential, CredentialStore, hash_password, verify_password

__all__ = ['Credential', 'CredentialStore', 'hash_password', 'verify_password']
