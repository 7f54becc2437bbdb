"""Device sessions: the seam between console logic and the wire.

A DeviceSession offers call/cast on OSC messages. NetworkSession talks to
a real console over UDP; SimulatedSession answers from an in-process
SimulatedDevice. Both speak exactly the same OscMessage shapes, so code
above this layer cannot tell them apart.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from x32ctl.api.correlator import DEFAULT_TIMEOUT, RequestCorrelator, RequestTimeoutError
from x32ctl.api.events import EventChannel, Unsubscribe
from x32ctl.api.osc import OscMessage, decode_message, encode_message
from x32ctl.api.simulator import SimulatedDevice
from x32ctl.api.transport import Address, UdpTransport
from x32ctl.models.connection import ConnectionConfig

logger = logging.getLogger(__name__)

MessageHandler = Callable[[OscMessage], None]


class NotConnectedError(ConnectionError):
    """A call was made on a session that is not open."""


class DeviceSession(ABC):
    """Request/response access to one console."""

    def __init__(self) -> None:
        self._messages: EventChannel[OscMessage] = EventChannel("message")

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Return True if calls can be made."""

    @property
    @abstractmethod
    def pending_count(self) -> int:
        """Return the number of calls awaiting a reply."""

    @abstractmethod
    async def open(self) -> None:
        """Open the session."""

    @abstractmethod
    async def close(self) -> None:
        """Cancel outstanding calls and release the session's resources."""

    @abstractmethod
    async def call(
        self,
        message: OscMessage,
        timeout: float | None = None,
        reply_address: str | None = None,
    ) -> OscMessage:
        """Send a request and return the correlated reply.

        Raises:
            NotConnectedError: If the session is not open.
            RequestTimeoutError: If no reply arrives in time.
        """

    @abstractmethod
    async def cast(self, message: OscMessage) -> None:
        """Send a message that the console never acknowledges.

        Raises:
            NotConnectedError: If the session is not open.
        """

    def subscribe(self, handler: MessageHandler) -> Unsubscribe:
        """Receive every inbound message."""
        return self._messages.subscribe(handler)


class NetworkSession(DeviceSession):
    """Session over the dedicated "session" UDP socket."""

    def __init__(self, config: ConnectionConfig, default_timeout: float = DEFAULT_TIMEOUT) -> None:
        """Initialize the session (no socket is opened yet).

        Args:
            config: Console address and local bind port.
            default_timeout: Default call timeout in seconds.
        """
        super().__init__()
        self._config = config
        self._default_timeout = default_timeout
        self._transport: UdpTransport | None = None
        self._correlator: RequestCorrelator | None = None

    @property
    def is_open(self) -> bool:
        """Return True if the socket is open."""
        return self._transport is not None and self._transport.is_open

    @property
    def pending_count(self) -> int:
        """Return the number of calls awaiting a reply."""
        return self._correlator.pending_count if self._correlator else 0

    async def open(self) -> None:
        """Bind the session socket.

        Raises:
            ConnectionError: If the socket cannot be bound.
        """
        if self.is_open:
            return

        transport = UdpTransport("session", local_port=self._config.local_port)
        await transport.open()
        transport.subscribe(self._on_message)
        self._transport = transport
        self._correlator = RequestCorrelator(
            transport, self._config.host, self._config.port, self._default_timeout
        )

    async def close(self) -> None:
        """Cancel every pending call, then close the socket."""
        if self._correlator is not None:
            self._correlator.close()
            self._correlator = None
        if self._transport is not None:
            self._transport.close()
            self._transport = None

    async def call(
        self,
        message: OscMessage,
        timeout: float | None = None,
        reply_address: str | None = None,
    ) -> OscMessage:
        """Send a request and await the reply on the session socket."""
        return await self._require_correlator().call(message, timeout, reply_address)

    async def cast(self, message: OscMessage) -> None:
        """Send a message without waiting for a reply.

        Raises:
            NotConnectedError: If the session is not open.
            ConnectionError: If the network stack rejects the datagram.
        """
        try:
            self._require_correlator().cast(message)
        except OSError as e:
            raise ConnectionError(f"Failed to send {message.address} to {self._config.address}: {e}") from e

    def _require_correlator(self) -> RequestCorrelator:
        if self._correlator is None or not self.is_open:
            raise NotConnectedError(f"Not connected to X32 at {self._config.address}")
        return self._correlator

    def _on_message(self, item: tuple[OscMessage, Address]) -> None:
        message, _ = item
        self._messages.emit(message)


class SimulatedSession(DeviceSession):
    """Session answered by an in-process SimulatedDevice.

    Requests and replies are passed through the codec so the device sees
    exactly what a real console would. A request the device does not answer
    fails with RequestTimeoutError straight away rather than after the timeout.
    """

    def __init__(self, device: SimulatedDevice | None = None) -> None:
        """Initialize the session.

        Args:
            device: Device to talk to (a fresh one if None).
        """
        super().__init__()
        self.device = device or SimulatedDevice()
        self._open = False

    @property
    def is_open(self) -> bool:
        """Return True once opened."""
        return self._open

    @property
    def pending_count(self) -> int:
        """Simulated calls complete immediately, so nothing is ever pending."""
        return 0

    async def open(self) -> None:
        """Open the session."""
        self._open = True

    async def close(self) -> None:
        """Close the session."""
        self._open = False

    async def call(
        self,
        message: OscMessage,
        timeout: float | None = None,
        reply_address: str | None = None,
    ) -> OscMessage:
        """Ask the simulated device and return its reply."""
        self._require_open()
        # Yield like a real round trip would
        await asyncio.sleep(0)

        reply = self._exchange(message)
        if reply is None or reply.address != (reply_address or message.address):
            raise RequestTimeoutError(message.address, DEFAULT_TIMEOUT if timeout is None else timeout)
        return reply

    async def cast(self, message: OscMessage) -> None:
        """Deliver a message to the simulated device."""
        self._require_open()
        self._exchange(message)

    def _require_open(self) -> None:
        if not self._open:
            raise NotConnectedError("Simulated session is not open")

    def _exchange(self, message: OscMessage) -> OscMessage | None:
        request = decode_message(encode_message(message))
        reply = self.device.handle(request)
        if reply is None:
            return None
        reply = decode_message(encode_message(reply, strict=False))
        self._messages.emit(reply)
        return reply
