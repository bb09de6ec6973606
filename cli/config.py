"""Persistent settings for the vault CLI (~/.vault/config.json)."""

import json
import os
import shutil
import tempfile
from pathlib import Path

from common.constants import DEFAULT_SERVER_PORT
from common.logging_config import get_logger

logger = get_logger(__name__)


class Config:
    """JSON-backed settings: server address, timeout and retry policy."""

    DEFAULT_CONFIG = {
        "server_host": os.environ.get("VAULT_SERVER_HOST", "localhost"),
        "server_port": int(os.environ.get("VAULT_SERVER_PORT", str(DEFAULT_SERVER_PORT))),
        "timeout": 30,
        "max_retries": 3,
        "retry_backoff_multiplier": 2,
    }

    def __init__(self, config_path: Path):
        self.config_path = self._writable_path(Path(config_path))
        self.data = self._load()

    @staticmethod
    def _writable_path(path: Path) -> Path:
        """Fall back to the system temp dir when the home directory is read-only."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            return path
        except PermissionError:
            fallback = Path(tempfile.gettempdir()) / '.vault' / path.name
            logger.warning(f"Cannot create {path.parent}, using {fallback}")
            fallback.parent.mkdir(parents=True, exist_ok=True)
            return fallback

    def _load(self) -> dict:
        """
        Read the settings file over a copy of the defaults.

        A missing file is created with the defaults. A file that cannot be
        parsed is preserved as config.json.bak and ignored.
        """
        settings = dict(self.DEFAULT_CONFIG)

        if not self.config_path.exists():
            self.data = settings
            self.save()
            return settings

        try:
            settings.update(json.loads(self.config_path.read_text()))
        except (json.JSONDecodeError, OSError) as e:
            backup = self.config_path.with_suffix('.json.bak')
            logger.warning(f"Ignoring unreadable config {self.config_path} ({e}), copy kept at {backup}")
            try:
                shutil.copy(self.config_path, backup)
            except OSError:
                logger.warning(f"Could not back up config to {backup}")
        return settings

    def save(self) -> None:
        try:
            self.config_path.write_text(json.dumps(self.data, indent=2))
        except OSError as e:
            logger.warning(f"Could not save config {self.config_path}: {e}")

    def set_server(self, host: str, port: int) -> None:
        self.data['server_host'] = host
        self.data['server_port'] = port
        self.save()

    def get_base_url(self) -> str:
        host = self.data.get('server_host', 'localhost')
        port = self.data.get('server_port', DEFAULT_SERVER_PORT)
        return f"http://{host}:{port}"

    def get_timeout(self) -> int:
        return self.data.get('timeout', 30)

    def get_retry_config(self) -> dict:
        """
        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            'max_retries': self.data.get('max_retries', 3),
            'retry_backoff_multiplier': self.data.get('retry_backoff_multiplier', 2),
        }
