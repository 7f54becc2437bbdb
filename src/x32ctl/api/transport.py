"""UDP transport for OSC datagrams.

Each component that talks to the console owns exactly one UdpTransport
(its "role": session, discovery, importer, exporter). The transport knows
nothing about request/response semantics; it sends encoded messages and
hands decoded ones to subscribers.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Self

from x32ctl.api.events import EventChannel, Unsubscribe
from x32ctl.api.osc import OscDecodeError, OscMessage, decode_message, encode_message

logger = logging.getLogger(__name__)

Address = tuple[str, int]
MessageHandler = Callable[[tuple[OscMessage, Address]], None]
ErrorHandler = Callable[[Exception], None]


class _OscDatagramProtocol(asyncio.DatagramProtocol):
    """asyncio protocol forwarding datagrams to the owning transport."""

    def __init__(self, owner: "UdpTransport") -> None:
        self._owner = owner

    def datagram_received(self, data: bytes, addr: Address) -> None:
        self._owner._on_datagram(data, addr)

    def error_received(self, exc: Exception) -> None:
        self._owner._on_error(exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None:
            self._owner._on_error(exc)


class UdpTransport:
    """One UDP socket carrying OSC messages.

    Example:
        async with UdpTransport("session") as transport:
            transport.subscribe(lambda item: print(item[0].format()))
            transport.send(OscMessage.create("/xinfo"), "192.168.0.64", 10023)
    """

    def __init__(
        self,
        role: str,
        local_host: str = "0.0.0.0",
        local_port: int = 0,
    ) -> None:
        """Initialize the transport (no socket is opened yet).

        Args:
            role: Component owning this socket, used in logs.
            local_host: Local bind address.
            local_port: Local bind port (0 for an ephemeral port).
        """
        self._role = role
        self._local_host = local_host
        self._local_port = local_port
        self._transport: asyncio.DatagramTransport | None = None
        self._messages: EventChannel[tuple[OscMessage, Address]] = EventChannel(
            f"{role}.message"
        )
        self._errors: EventChannel[Exception] = EventChannel(f"{role}.error")

    @property
    def role(self) -> str:
        """Return the socket role."""
        return self._role

    @property
    def is_open(self) -> bool:
        """Return True if the socket is bound and not closing."""
        return self._transport is not None and not self._transport.is_closing()

    @property
    def local_address(self) -> Address | None:
        """Return the bound (host, port), or None if closed."""
        if self._transport is None:
            return None
        sockname = self._transport.get_extra_info("sockname")
        return (sockname[0], sockname[1]) if sockname else None

    async def open(self) -> None:
        """Bind the socket. Does nothing if already open.

        Raises:
            ConnectionError: If the socket cannot be bound.
        """
        if self.is_open:
            return

        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _OscDatagramProtocol(self),
                local_addr=(self._local_host, self._local_port),
            )
        except OSError as e:
            raise ConnectionError(
                f"Failed to bind {self._role} socket on "
                f"{self._local_host}:{self._local_port}: {e}"
            ) from e

        self._transport = transport
        logger.debug("Opened %s socket on %s", self._role, self.local_address)

    def close(self) -> None:
        """Close the socket. Safe to call more than once."""
        if self._transport is not None:
            self._transport.close()
            self._transport = None
            logger.debug("Closed %s socket", self._role)

    async def __aenter__(self) -> Self:
        """Async context manager entry (opens the socket)."""
        await self.open()
        return self

    async def __aexit__(self, *_: object) -> None:
        """Async context manager exit (closes the socket)."""
        self.close()

    def subscribe(self, handler: MessageHandler) -> Unsubscribe:
        """Receive every decoded inbound message with its source address."""
        return self._messages.subscribe(handler)

    def subscribe_errors(self, handler: ErrorHandler) -> Unsubscribe:
        """Receive socket errors reported by the network stack."""
        return self._errors.subscribe(handler)

    def send(self, message: OscMessage, host: str, port: int) -> None:
        """Encode and send a message.

        Raises:
            ConnectionError: If the socket is not open.
            OscEncodeError: If the message cannot be encoded.
            OSError: If the network stack rejects the datagram.
        """
        self.send_raw(encode_message(message), host, port)

    def send_raw(self, data: bytes, host: str, port: int) -> None:
        """Send a pre-encoded datagram.

        Raises:
            ConnectionError: If the socket is not open.
            OSError: If the network stack rejects the datagram.
        """
        if self._transport is None or self._transport.is_closing():
            raise ConnectionError(f"{self._role} socket is not open")
        self._transport.sendto(data, (host, port))

    def _on_datagram(self, data: bytes, addr: Address) -> None:
        try:
            message = decode_message(data)
        except OscDecodeError as e:
            logger.debug("Dropping malformed datagram from %s:%d: %s", addr[0], addr[1], e)
            return
        self._messages.emit((message, (addr[0], addr[1])))

    def _on_error(self, exc: Exception) -> None:
        logger.warning("%s socket error: %s", self._role, exc)
        self._errors.emit(exc)
