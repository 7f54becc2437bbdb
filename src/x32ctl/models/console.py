"""Console identification models."""

from dataclasses import dataclass

from x32ctl.api.osc import OscMessage


@dataclass(frozen=True, slots=True)
class ConsoleInfo:
    """Identification reported by a console's /xinfo reply.

    Attributes:
        ip: IP address the console reports for itself.
        name: Console name.
        model: Console model (e.g. "X32", "X32RACK", "M32").
        firmware: Firmware version string.
    """

    ip: str
    name: str
    model: str
    firmware: str

    @classmethod
    def from_message(cls, message: OscMessage) -> "ConsoleInfo | None":
        """Parse an /xinfo reply, or return None if it is too short."""
        if len(message.args) < 4:
            return None
        values = [message.string_arg(i) for i in range(4)]
        return cls(*(v or "" for v in values))


@dataclass(frozen=True, slots=True)
class DiscoveryResult:
    """A console found on the network.

    Attributes:
        ip: IP address the console reports in its /xinfo reply.
        name: Console name.
        model: Console model.
        firmware: Firmware version string.
        source_ip: Address the reply actually came from. Differs from `ip`
            behind NAT or on multihomed hosts; use it to connect.
    """

    ip: str
    name: str
    model: str
    firmware: str
    source_ip: str

    @property
    def info(self) -> ConsoleInfo:
        """Return the reported identification without the source address."""
        return ConsoleInfo(ip=self.ip, name=self.name, model=self.model, firmware=self.firmware)

    @property
    def display_name(self) -> str:
        """Return a display-friendly name."""
        name = self.name or self.source_ip
        return f"{name} ({self.model})" if self.model else name
