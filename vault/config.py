"""Configuration settings for the vault server."""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Tuple

from common.constants import (
    DEFAULT_SERVER_PORT,
    ENCRYPTION_KEY_BYTES,
    UPLOAD_DELAY_SECONDS,
)
from vault.exceptions import ConfigurationError


DATABASE_PATH = os.environ.get("VAULT_DATABASE_PATH", "./metadata.db")

VAULT_HOST = os.environ.get("VAULT_HOST", "0.0.0.0")

VAULT_PORT = int(os.environ.get("VAULT_PORT", str(DEFAULT_SERVER_PORT)))

WEB_DIR = os.environ.get("VAULT_WEB_DIR", "./web")


class MissingChunkPolicy(str, Enum):
    """What a download does when a chunk cannot be fetched from the backend."""

    SKIP = "skip"
    ABORT = "abort"


@dataclass(frozen=True)
class VaultConfig:
    """
    Validated process configuration.
    """
    discord_token: str
    channel_id: str
    encryption_key: bytes = field(repr=False)
    allowed_users: Tuple[str, ...] = ()
    public_key: Optional[str] = None
    application_id: Optional[str] = None
    upload_delay: float = UPLOAD_DELAY_SECONDS
    missing_chunk_policy: MissingChunkPolicy = MissingChunkPolicy.SKIP


def _require(environ: Mapping[str, str], name: str) -> str:
    value = environ.get(name, "").strip()
    if not value:
        raise ConfigurationError(f"{name} environment variable not set")
    return value


def parse_allowed_users(raw: str) -> Tuple[str, ...]:
    """
    Parse a comma-separated allow-list of caller ids.

    Args:
        raw: Comma-separated ids (e.g., "123, 456")

    Returns:
        Tuple of trimmed, non-empty ids
    """
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def load_config(environ: Optional[Mapping[str, str]] = None) -> VaultConfig:
    """
    Load and validate configuration from the environment.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        VaultConfig instance

    Raises:
        ConfigurationError: If a required value is absent or malformed
    """
    if environ is None:
        environ = os.environ

    token = _require(environ, "DISCORD_TOKEN")
    channel_id = _require(environ, "DISCORD_CHANNEL_ID")

    key = environ.get("ENCRYPTION_KEY", "").encode("utf-8")
    if len(key) != ENCRYPTION_KEY_BYTES:
        raise ConfigurationError(
            f"ENCRYPTION_KEY must be exactly {ENCRYPTION_KEY_BYTES} bytes (got {len(key)})"
        )

    raw_delay = environ.get("VAULT_UPLOAD_DELAY_SECONDS", str(UPLOAD_DELAY_SECONDS))
    try:
        upload_delay = float(raw_delay)
    except ValueError:
        raise ConfigurationError(f"VAULT_UPLOAD_DELAY_SECONDS is not a number: {raw_delay!r}")
    if upload_delay < 0:
        raise ConfigurationError("VAULT_UPLOAD_DELAY_SECONDS must not be negative")

    raw_policy = environ.get("VAULT_MISSING_CHUNK_POLICY", MissingChunkPolicy.SKIP.value)
    try:
        policy = MissingChunkPolicy(raw_policy.strip().lower())
    except ValueError:
        raise ConfigurationError(
            f"VAULT_MISSING_CHUNK_POLICY must be 'skip' or 'abort' (got {raw_policy!r})"
        )

    public_key = environ.get("DISCORD_PUBLIC_KEY", "").strip() or None
    if public_key is not None:
        try:
            bytes.fromhex(public_key)
        except ValueError:
            raise ConfigurationError("DISCORD_PUBLIC_KEY must be hex encoded")

    return VaultConfig(
        discord_token=token,
        channel_id=channel_id,
        encryption_key=key,
        allowed_users=parse_allowed_users(environ.get("ALLOWED_USERS", "")),
        public_key=public_key,
        application_id=environ.get("DISCORD_APPLICATION_ID", "").strip() or None,
        upload_delay=upload_delay,
        missing_chunk_policy=policy,
    )
