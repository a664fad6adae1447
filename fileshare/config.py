"""
Configuration Management

Handles loading configuration from environment variables and config files.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional
import json

from dotenv import load_dotenv

from .errors import ConfigError

DEFAULT_PORT = 8080
DEFAULT_TRANSFORM_KEY = 0x5A
DEFAULT_MAX_FRAME_LENGTH = 16 * 1024 * 1024  # 16MB


def _parse_int(value: str, name: str) -> int:
    """Parse a decimal or 0x-prefixed hex integer from a string."""
    try:
        return int(value, 0)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class Config:
    """
    File server configuration.

    Configuration priority (highest to lowest):
    1. Environment variables (FILESHARE_*)
    2. Config file (config.json)
    3. Default values
    """
    # Network
    host: str = '0.0.0.0'
    port: int = DEFAULT_PORT

    # Sandbox roots
    root_dir: Path = field(default_factory=lambda: Path('server_files'))
    upload_dir: Path = field(default_factory=lambda: Path('server_files/uploads'))

    # Credential store
    users_file: Path = field(default_factory=lambda: Path('users.txt'))

    # Protocol
    transform_key: int = DEFAULT_TRANSFORM_KEY
    max_frame_length: int = DEFAULT_MAX_FRAME_LENGTH

    # Sessions
    max_sessions: int = 1  # 1 = serve connections one at a time
    discard_partial_uploads: bool = False

    # Logging
    log_level: str = 'INFO'

    def validate(self) -> 'Config':
        """Check value ranges. Returns self so calls can be chained."""
        if not 0 <= self.transform_key <= 0xFF:
            raise ConfigError(f"transform_key must be a single byte, got {self.transform_key}")
        if self.max_frame_length <= 0:
            raise ConfigError("max_frame_length must be positive")
        if self.max_sessions < 1:
            raise ConfigError("max_sessions must be at least 1")
        if not 0 <= self.port <= 65535:
            raise ConfigError(f"port out of range: {self.port}")
        return self

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        load_dotenv()

        config = cls()

        # Network
        config.host = os.getenv('FILESHARE_HOST', config.host)
        config.port = _parse_int(os.getenv('FILESHARE_PORT', str(config.port)), 'port')

        # Sandbox roots
        root_dir = os.getenv('FILESHARE_ROOT_DIR')
        if root_dir:
            config.root_dir = Path(root_dir)
        upload_dir = os.getenv('FILESHARE_UPLOAD_DIR')
        if upload_dir:
            config.upload_dir = Path(upload_dir)

        users_file = os.getenv('FILESHARE_USERS_FILE')
        if users_file:
            config.users_file = Path(users_file)

        # Protocol
        key = os.getenv('FILESHARE_TRANSFORM_KEY')
        if key:
            config.transform_key = _parse_int(key, 'transform_key')
        max_frame = os.getenv('FILESHARE_MAX_FRAME_LENGTH')
        if max_frame:
            config.max_frame_length = _parse_int(max_frame, 'max_frame_length')

        # Sessions
        max_sessions = os.getenv('FILESHARE_MAX_SESSIONS')
        if max_sessions:
            config.max_sessions = _parse_int(max_sessions, 'max_sessions')
        discard = os.getenv('FILESHARE_DISCARD_PARTIAL_UPLOADS')
        if discard:
            config.discard_partial_uploads = _parse_bool(discard)

        # Logging
        config.log_level = os.getenv('FILESHARE_LOG_LEVEL', config.log_level)

        return config

    @classmethod
    def from_file(cls, path: Path) -> 'Config':
        """Load configuration from a JSON file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigError(f"Invalid config file {path}: {e}") from e

        config = cls()

        config.host = data.get('host', config.host)
        config.port = data.get('port', config.port)

        if 'root_dir' in data:
            config.root_dir = Path(data['root_dir'])
        if 'upload_dir' in data:
            config.upload_dir = Path(data['upload_dir'])
        if 'users_file' in data:
            config.users_file = Path(data['users_file'])

        key = data.get('transform_key', config.transform_key)
        config.transform_key = _parse_int(key, 'transform_key') if isinstance(key, str) else key
        config.max_frame_length = data.get('max_frame_length', config.max_frame_length)

        config.max_sessions = data.get('max_sessions', config.max_sessions)
        config.discard_partial_uploads = data.get(
            'discard_partial_uploads', config.discard_partial_uploads
        )

        config.log_level = data.get('log_level', config.log_level)

        return config

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'host': self.host,
            'port': self.port,
            'root_dir': str(self.root_dir),
            'upload_dir': str(self.upload_dir),
            'users_file': str(self.users_file),
            'transform_key': self.transform_key,
            'max_frame_length': self.max_frame_length,
            'max_sessions': self.max_sessions,
            'discard_partial_uploads': self.discard_partial_uploads,
            'log_level': self.log_level,
        }

    def save(self, path: Path):
        """Save configuration to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


_MERGED_KEYS = [
    'host', 'port', 'root_dir', 'upload_dir', 'users_file', 'transform_key',
    'max_frame_length', 'max_sessions', 'discard_partial_uploads', 'log_level',
]


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from file and environment.

    Environment variables override file settings.
    """
    # Start with defaults
    config = Config()

    # Load from file if provided
    if config_path and config_path.exists():
        config = Config.from_file(config_path)

    # Override with environment variables
    env_config = Config.from_env()

    # Merge (env takes precedence for non-default values)
    defaults = Config()
    for key in _MERGED_KEYS:
        env_val = getattr(env_config, key)
        if env_val != getattr(defaults, key):
            setattr(config, key, env_val)

    return config.validate()


# Example config file template
EXAMPLE_CONFIG = """
{
  "host": "0.0.0.0",
  "port": 8080,
  "root_dir": "./server_files",
  "upload_dir": "./server_files/uploads",
  "users_file": "./users.txt",
  "transform_key": 90,
  "max_frame_length": 16777216,
  "max_sessions": 1,
  "discard_partial_uploads": false,
  "log_level": "INFO"
}
"""
