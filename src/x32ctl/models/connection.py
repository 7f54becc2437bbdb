"""Connection configuration and state models."""

from dataclasses import dataclass
from enum import StrEnum

from x32ctl.api.addresses import DEFAULT_LOCAL_PORT, DEFAULT_PORT


class ConnectionState(StrEnum):
    """Lifecycle state of a console session.

    MOCK is entered instead of CONNECTING when mock mode is enabled; it
    never touches the network.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    MOCK = "mock"

    @property
    def is_active(self) -> bool:
        """Return True if calls can be made in this state."""
        return self in (ConnectionState.CONNECTED, ConnectionState.MOCK)


@dataclass(frozen=True, slots=True)
class ConnectionConfig:
    """Console connection settings.

    Immutable: changing any field means building a new config, which
    forces the owning session to disconnect.

    Attributes:
        host: Console IP address.
        port: Console OSC port (default 10023).
        local_port: Local UDP port for the session socket (0 = ephemeral).
        mock_mode: Route all calls to the in-process simulated console.
    """

    host: str = "192.168.0.64"
    port: int = DEFAULT_PORT
    local_port: int = DEFAULT_LOCAL_PORT
    mock_mode: bool = True

    @property
    def address(self) -> str:
        """Return the console address (host:port)."""
        return f"{self.host}:{self.port}"
