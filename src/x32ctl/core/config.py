"""Configuration manager using QSettings for persistent storage."""

import logging
from typing import cast

from PySide6.QtCore import QSettings

from x32ctl.api.addresses import DEFAULT_LOCAL_PORT, DEFAULT_PORT
from x32ctl.core.backup import NODE_TIMEOUT
from x32ctl.core.discovery import DISCOVERY_TIMEOUT
from x32ctl.core.scene_import import COMMAND_DELAY
from x32ctl.models.connection import ConnectionConfig
from x32ctl.models.console import DiscoveryResult

logger = logging.getLogger(__name__)

# Connection
_KEY_HOST = "connection/host"
_KEY_PORT = "connection/port"
_KEY_LOCAL_PORT = "connection/local_port"
_KEY_MOCK_MODE = "connection/mock_mode"

# Jobs
_KEY_COMMAND_DELAY = "import/command_delay"
_KEY_DISCOVERY_TIMEOUT = "discovery/timeout"
_KEY_BACKUP_TIMEOUT = "backup/timeout"

_KEY_RECENT_CONSOLES = "recent_consoles"

MAX_RECENT_CONSOLES = 10


def _clamp_port(value: int, default: int) -> int:
    return value if 0 <= value <= 65535 else default


class ConfigManager:
    """Wrapper around QSettings for type-safe config access.

    QSettings stores config in platform-specific locations:
    - Windows: HKEY_CURRENT_USER\\Software\\X32Ctl\\X32Ctl
    - macOS: ~/Library/Preferences/com.X32Ctl.X32Ctl.plist
    - Linux: ~/.config/X32Ctl/X32Ctl.conf

    Example:
        config = ConfigManager()
        connection = config.get_connection_config()
        config.save_connection_config(replace(connection, mock_mode=False))
    """

    def __init__(self, organization: str = "X32Ctl", application: str = "X32Ctl") -> None:
        """Initialize the config manager.

        Args:
            organization: Organization name for QSettings.
            application: Application name for QSettings.
        """
        self._settings = QSettings(organization, application)

    @property
    def settings(self) -> QSettings:
        """Return the underlying QSettings instance."""
        return self._settings

    # -- Connection ------------------------------------------------------------

    def get_connection_config(self) -> ConnectionConfig:
        """Load the console connection settings.

        Returns:
            Stored settings, with defaults for anything missing or invalid.
        """
        defaults = ConnectionConfig()
        host = self._settings.value(_KEY_HOST, defaults.host, str)
        try:
            port = int(self._settings.value(_KEY_PORT, DEFAULT_PORT, int))  # type: ignore[arg-type]
            local_port = int(self._settings.value(_KEY_LOCAL_PORT, DEFAULT_LOCAL_PORT, int))  # type: ignore[arg-type]
        except (TypeError, ValueError) as e:
            logger.warning("Invalid stored port, using defaults: %s", e)
            port, local_port = DEFAULT_PORT, DEFAULT_LOCAL_PORT

        return ConnectionConfig(
            host=str(host) if host else defaults.host,
            port=_clamp_port(port, DEFAULT_PORT) or DEFAULT_PORT,
            local_port=_clamp_port(local_port, DEFAULT_LOCAL_PORT),
            mock_mode=bool(self._settings.value(_KEY_MOCK_MODE, defaults.mock_mode, bool)),
        )

    def save_connection_config(self, config: ConnectionConfig) -> None:
        """Persist the console connection settings.

        Args:
            config: Settings to save.
        """
        self._settings.setValue(_KEY_HOST, config.host)
        self._settings.setValue(_KEY_PORT, config.port)
        self._settings.setValue(_KEY_LOCAL_PORT, config.local_port)
        self._settings.setValue(_KEY_MOCK_MODE, config.mock_mode)

    # -- Job tuning ------------------------------------------------------------

    def _get_seconds(self, key: str, default: float, low: float, high: float) -> float:
        try:
            value = float(self._settings.value(key, default, float))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return default
        return max(low, min(high, value))

    def get_command_delay(self) -> float:
        """Return the scene import delay between commands in seconds.

        Returns:
            Delay in seconds (default 0.005, 0-1).
        """
        return self._get_seconds(_KEY_COMMAND_DELAY, COMMAND_DELAY, 0.0, 1.0)

    def set_command_delay(self, seconds: float) -> None:
        """Set the scene import delay between commands.

        Args:
            seconds: Delay in seconds (0-1).
        """
        self._settings.setValue(_KEY_COMMAND_DELAY, max(0.0, min(1.0, seconds)))

    def get_discovery_timeout(self) -> float:
        """Return the per-probe discovery timeout in seconds.

        Returns:
            Timeout in seconds (default 0.5, 0.1-10).
        """
        return self._get_seconds(_KEY_DISCOVERY_TIMEOUT, DISCOVERY_TIMEOUT, 0.1, 10.0)

    def set_discovery_timeout(self, seconds: float) -> None:
        """Set the per-probe discovery timeout.

        Args:
            seconds: Timeout in seconds (0.1-10).
        """
        self._settings.setValue(_KEY_DISCOVERY_TIMEOUT, max(0.1, min(10.0, seconds)))

    def get_backup_timeout(self) -> float:
        """Return the per-node backup timeout in seconds.

        Returns:
            Timeout in seconds (default 1.0, 0.1-10).
        """
        return self._get_seconds(_KEY_BACKUP_TIMEOUT, NODE_TIMEOUT, 0.1, 10.0)

    def set_backup_timeout(self, seconds: float) -> None:
        """Set the per-node backup timeout.

        Args:
            seconds: Timeout in seconds (0.1-10).
        """
        self._settings.setValue(_KEY_BACKUP_TIMEOUT, max(0.1, min(10.0, seconds)))

    # -- Recent consoles -------------------------------------------------------

    def get_recent_consoles(self) -> list[DiscoveryResult]:
        """Load recently used consoles, newest first.

        Returns:
            List of DiscoveryResult objects, or empty list if none saved.
        """
        raw_data = self._settings.value(_KEY_RECENT_CONSOLES, [], list)
        consoles: list[DiscoveryResult] = []

        if not isinstance(raw_data, list):
            return consoles

        data = cast(list[object], raw_data)
        for raw_item in data:
            if not isinstance(raw_item, dict):
                continue
            item = cast(dict[str, object], raw_item)
            source_ip = item.get("source_ip") or item.get("ip")
            if not source_ip:
                logger.warning("Skipping recent console entry without an address")
                continue
            consoles.append(
                DiscoveryResult(
                    ip=str(item.get("ip") or source_ip),
                    name=str(item.get("name") or ""),
                    model=str(item.get("model") or ""),
                    firmware=str(item.get("firmware") or ""),
                    source_ip=str(source_ip),
                )
            )

        return consoles

    def add_recent_console(self, console: DiscoveryResult) -> None:
        """Remember a console (moving it to the front if already known).

        Args:
            console: Console to remember.
        """
        consoles = [c for c in self.get_recent_consoles() if c.source_ip != console.source_ip]
        consoles.insert(0, console)
        data = [
            {
                "ip": c.ip,
                "name": c.name,
                "model": c.model,
                "firmware": c.firmware,
                "source_ip": c.source_ip,
            }
            for c in consoles[:MAX_RECENT_CONSOLES]
        ]
        self._settings.setValue(_KEY_RECENT_CONSOLES, data)

    # -- General settings ------------------------------------------------------

    def clear(self) -> None:
        """Clear all settings (useful for testing or reset)."""
        self._settings.clear()

    def sync(self) -> None:
        """Force settings to be written to disk."""
        self._settings.sync()
