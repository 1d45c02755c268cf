"""
Configuration Management

Handles loading configuration from environment variables and config files.
"""

import os
import json
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from . import __version__

DEFAULT_SERVER_URL = 'ws://localhost:8765'


@dataclass
class Config:
    """
    Client Configuration.

    Configuration priority (highest to lowest):
    1. Environment variables (FILESENDER_*)
    2. Config file (config.json)
    3. Default values
    """
    # Connection
    server_url: str = DEFAULT_SERVER_URL
    client_name: str = field(default_factory=lambda: os.getenv('USER', 'filesender'))
    client_version: str = __version__
    legacy_class_names: bool = False
    open_timeout: float = 10.0
    max_message_size: int = 16 * 1024 * 1024  # 16MB

    # Transfers
    download_dir: Path = field(default_factory=lambda: Path('./downloads'))
    auto_accept: bool = True
    write_queue_size: int = 64
    stall_timeout: Optional[float] = None  # seconds, None disables

    # Local API
    api_host: str = '127.0.0.1'
    api_port: int = 8080

    # Logging
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        load_dotenv()

        config = cls()
        config.apply_env()
        return config

    def apply_env(self):
        """Override fields that are set in the environment."""
        # Connection
        self.server_url = os.getenv('FILESENDER_SERVER_URL', self.server_url)
        self.client_name = os.getenv('FILESENDER_CLIENT_NAME', self.client_name)
        if 'FILESENDER_LEGACY_CLASS_NAMES' in os.environ:
            self.legacy_class_names = _env_flag('FILESENDER_LEGACY_CLASS_NAMES')
        self.open_timeout = float(os.getenv('FILESENDER_OPEN_TIMEOUT', self.open_timeout))

        # Transfers
        download_dir = os.getenv('FILESENDER_DOWNLOAD_DIR')
        if download_dir:
            self.download_dir = Path(download_dir)
        if 'FILESENDER_AUTO_ACCEPT' in os.environ:
            self.auto_accept = _env_flag('FILESENDER_AUTO_ACCEPT')
        self.write_queue_size = int(
            os.getenv('FILESENDER_WRITE_QUEUE_SIZE', self.write_queue_size)
        )
        stall_timeout = os.getenv('FILESENDER_STALL_TIMEOUT')
        if stall_timeout:
            self.stall_timeout = float(stall_timeout) or None

        # Local API
        self.api_host = os.getenv('FILESENDER_API_HOST', self.api_host)
        self.api_port = int(os.getenv('FILESENDER_API_PORT', self.api_port))

        # Logging
        self.log_level = os.getenv('FILESENDER_LOG_LEVEL', self.log_level)

    @classmethod
    def from_file(cls, path: Path) -> 'Config':
        """Load configuration from a JSON file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        config = cls()

        # Connection
        config.server_url = data.get('server_url', config.server_url)
        config.client_name = data.get('client_name', config.client_name)
        config.legacy_class_names = data.get('legacy_class_names', config.legacy_class_names)
        config.open_timeout = data.get('open_timeout', config.open_timeout)
        config.max_message_size = data.get('max_message_size', config.max_message_size)

        # Transfers
        if 'download_dir' in data:
            config.download_dir = Path(data['download_dir'])
        config.auto_accept = data.get('auto_accept', config.auto_accept)
        config.write_queue_size = data.get('write_queue_size', config.write_queue_size)
        config.stall_timeout = data.get('stall_timeout', config.stall_timeout)

        # Local API
        config.api_host = data.get('api_host', config.api_host)
        config.api_port = data.get('api_port', config.api_port)

        # Logging
        config.log_level = data.get('log_level', config.log_level)

        return config

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'server_url': self.server_url,
            'client_name': self.client_name,
            'client_version': self.client_version,
            'legacy_class_names': self.legacy_class_names,
            'open_timeout': self.open_timeout,
            'max_message_size': self.max_message_size,
            'download_dir': str(self.download_dir),
            'auto_accept': self.auto_accept,
            'write_queue_size': self.write_queue_size,
            'stall_timeout': self.stall_timeout,
            'api_host': self.api_host,
            'api_port': self.api_port,
            'log_level': self.log_level,
        }

    def save(self, path: Path):
        """Save configuration to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def _env_flag(name: str) -> bool:
    return os.getenv(name, '').lower() in ('1', 'true', 'yes')


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from file and environment.

    Environment variables override file settings.
    """
    load_dotenv()

    if config_path and config_path.exists():
        config = Config.from_file(config_path)
    else:
        config = Config()

    config.apply_env()
    return config


# Example config file template
EXAMPLE_CONFIG = """
{
  "server_url": "ws://192.168.1.100:8765",
  "client_name": "laptop",
  "download_dir": "./downloads",
  "auto_accept": true,
  "write_queue_size": 64,
  "stall_timeout": 60,
  "api_port": 8080,
  "log_level": "INFO"
}
"""
