"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from cli.models import (
    DeleteCommand,
    DownloadCommand,
    ListCommand,
    UploadCommand,
)
from cli.config import Config
from cli.vault_client import VaultClient

logger = get_logger(__name__)


_client: Optional[VaultClient] = None


def get_client() -> VaultClient:
    """
    Get or create global VaultClient instance.

    Returns:
        VaultClient instance
    """
    global _client
    if _client is None:
        logger.debug("Creating new VaultClient instance")
        config = Config(Path.home() / '.vault' / 'config.json')
        _client = VaultClient(config)
    return _client


def handle_upload(cmd: UploadCommand, client: Optional[VaultClient] = None) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with the local path
        client: Optional VaultClient for dependency injection (testing)

    Returns:
        Success or error message
    """
    logger.info(f"Executing upload command: path={cmd.path}")
    if client is None:
        client = get_client()
    return client.upload(cmd.path)


def handle_list(cmd: ListCommand, client: Optional[VaultClient] = None) -> str:
    """
    Handle 'list' command.

    Returns:
        Formatted list of files
    """
    if client is None:
        client = get_client()
    return client.list_files()


def handle_download(cmd: DownloadCommand, client: Optional[VaultClient] = None) -> str:
    """
    Handle 'download' command.

    Args:
        cmd: DownloadCommand with file_id and optional output_path
        client: Optional VaultClient for dependency injection (testing)

    Returns:
        Success or error message with download results
    """
    logger.info(f"Executing download command: file_id={cmd.file_id} output_path={cmd.output_path}")
    if client is None:
        client = get_client()
    return client.download(cmd.file_id, cmd.output_path)


def handle_delete(cmd: DeleteCommand, client: Optional[VaultClient] = None) -> str:
    """
    Handle 'delete' command.

    Args:
        cmd: DeleteCommand with file_id
        client: Optional VaultClient for dependency injection (testing)

    Returns:
        Success or error message
    """
    logger.info(f"Executing delete command: file_id={cmd.file_id}")
    if client is None:
        client = get_client()
    return client.delete(cmd.file_id)
