"""Service locator for long-lived components shared by the routes."""

from typing import Optional, TYPE_CHECKING

from vault.config import VaultConfig
from vault.services.object_pipeline import ObjectPipeline

if TYPE_CHECKING:
    from vault.commands import CommandDispatcher

_config: Optional[VaultConfig] = None
_pipeline: Optional[ObjectPipeline] = None
_dispatcher: Optional['CommandDispatcher'] = None


def set_config(config: Optional[VaultConfig]):
    """Set global configuration"""
    global _config
    _config = config


def get_config() -> Optional[VaultConfig]:
    """Get global configuration"""
    return _config


def set_pipeline(pipeline: Optional[ObjectPipeline]):
    """Set global object pipeline instance"""
    global _pipeline
    _pipeline = pipeline


def get_pipeline() -> ObjectPipeline:
    """Get global object pipeline instance"""
    if _pipeline is None:
        raise RuntimeError("Object pipeline not initialized")
    return _pipeline


def set_dispatcher(dispatcher: Optional['CommandDispatcher']):
    """Set global command dispatcher instance"""
    global _dispatcher
    _dispatcher = dispatcher


def get_dispatcher() -> Optional['CommandDispatcher']:
    """Get global command dispatcher instance"""
    return _dispatcher
