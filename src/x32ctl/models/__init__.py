"""Data models for console connections, scenes, discovery and transfers."""

from x32ctl.models.connection import ConnectionConfig, ConnectionState
from x32ctl.models.console import ConsoleInfo, DiscoveryResult
from x32ctl.models.scene import Scene
from x32ctl.models.transfer import BackupDocument, BackupResult, ImportResult

__all__ = [
    "BackupDocument",
    "BackupResult",
    "ConnectionConfig",
    "ConnectionState",
    "ConsoleInfo",
    "DiscoveryResult",
    "ImportResult",
    "Scene",
]
