"""
fileshare - Authenticated TCP File Sharing

A small file server and client speaking a length-prefixed control
protocol with a reversible (non-confidential) payload transform.
"""

from .config import Config, load_config
from .client import FileClient
from .server import FileServer

__version__ = '0.1.0'

__all__ = ['Config', 'load_config', 'FileClient', 'FileServer']
