"""Core application services.

This module contains the console-facing jobs (connection, discovery, scene
import, backup export) and the layer that bridges them with Qt.

Classes:
    ConnectionManager: Session state machine and scene operations.
    SceneImporter: Replays scene files to a console.
    BackupExporter: Reads the full parameter tree into a backup.
    StateStore: Central state store with Qt signals.
    ConsoleWorker: QThread worker for the async session.
    ConfigManager: QSettings wrapper for configuration.
"""

from x32ctl.core.backup import BackupExporter
from x32ctl.core.config import ConfigManager
from x32ctl.core.connection import ConnectionManager
from x32ctl.core.scene_import import SceneImporter
from x32ctl.core.state import StateStore
from x32ctl.core.worker import ConsoleWorker

__all__ = [
    "BackupExporter",
    "ConfigManager",
    "ConnectionManager",
    "ConsoleWorker",
    "SceneImporter",
    "StateStore",
]
