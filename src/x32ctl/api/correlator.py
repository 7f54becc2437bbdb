"""Request/response correlation over a UDP transport.

OSC has no request id, so a reply is matched to its request by address
text alone. To keep two concurrent requests for the same address from
receiving each other's replies, calls are single-flight per address: a
second caller waits until the first one has resolved before sending.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from x32ctl.api.osc import OscMessage
from x32ctl.api.transport import Address, UdpTransport

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


class RequestTimeoutError(TimeoutError):
    """No reply arrived for a request within its timeout."""

    def __init__(self, address: str, timeout: float) -> None:
        self.address = address
        self.timeout = timeout
        super().__init__(f"OSC request timeout after {timeout:.3f}s: {address}")


class RequestCancelledError(ConnectionError):
    """A pending request was cancelled because its session closed."""

    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__(f"OSC request cancelled: {address}")


@dataclass(eq=False)
class PendingRequest:
    """An outstanding call awaiting its reply.

    Attributes:
        address: Correlation key (reply address).
        future: Completed with the reply message or an exception.
        timer: Timeout handle, cancelled when the request completes.
    """

    address: str
    future: asyncio.Future[OscMessage]
    timer: asyncio.TimerHandle | None = field(default=None)

    def complete(self, reply: OscMessage) -> None:
        """Resolve with a reply."""
        self._cancel_timer()
        if not self.future.done():
            self.future.set_result(reply)

    def fail(self, error: Exception) -> None:
        """Resolve with an error."""
        self._cancel_timer()
        if not self.future.done():
            self.future.set_exception(error)

    def discard(self) -> None:
        """Drop the request without an outcome (its caller went away)."""
        self._cancel_timer()
        if not self.future.done():
            self.future.cancel()

    def _cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class RequestCorrelator:
    """Turns fire-and-forget UDP into awaitable calls to one console.

    Example:
        correlator = RequestCorrelator(transport, "192.168.0.64", 10023)
        reply = await correlator.call(OscMessage.create("/xinfo"))
        correlator.cast(OscMessage.create("/xremote"))
    """

    def __init__(
        self,
        transport: UdpTransport,
        host: str,
        port: int,
        default_timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the correlator and attach it to the transport.

        Args:
            transport: Transport to send on and receive from.
            host: Console address.
            port: Console OSC port.
            default_timeout: Timeout for calls that do not pass one.
        """
        self._transport = transport
        self._host = host
        self._port = port
        self._default_timeout = default_timeout
        self._pending: dict[str, PendingRequest] = {}
        # Bumped by cancel_all so queued callers know their turn was cancelled
        self._epoch = 0
        self._closed = False
        self._unsubscribe = [
            transport.subscribe(self._on_message),
            transport.subscribe_errors(self._on_transport_error),
        ]

    @property
    def pending_count(self) -> int:
        """Return the number of requests awaiting a reply."""
        return len(self._pending)

    async def call(
        self,
        message: OscMessage,
        timeout: float | None = None,
        reply_address: str | None = None,
    ) -> OscMessage:
        """Send a message and wait for the reply with the matching address.

        Args:
            message: Request to send.
            timeout: Seconds to wait for the reply (default_timeout if None).
            reply_address: Address the reply arrives on, when it differs from
                the request address (e.g. "node" for "/node").

        Returns:
            The reply message.

        Raises:
            RequestTimeoutError: If no reply arrives in time.
            RequestCancelledError: If cancel_all or close runs while the call
                is in flight or queued.
            ConnectionError: If sending fails or the socket reports an error.
        """
        key = reply_address or message.address
        wait = self._default_timeout if timeout is None else timeout

        # Single-flight: queue behind an in-flight request for the same key.
        epoch = self._epoch
        while (current := self._pending.get(key)) is not None:
            await asyncio.wait([current.future])
        if self._closed or self._epoch != epoch:
            raise RequestCancelledError(key)

        loop = asyncio.get_running_loop()
        pending = PendingRequest(key, loop.create_future())
        self._pending[key] = pending
        pending.timer = loop.call_later(wait, self._expire, pending, wait)

        try:
            self._transport.send(message, self._host, self._port)
        except (OSError, ValueError) as e:
            self._remove(pending)
            pending.fail(
                ConnectionError(f"Failed to send {message.address} to {self._host}:{self._port}: {e}")
            )

        try:
            return await pending.future
        finally:
            self._remove(pending)
            pending.discard()

    def cast(self, message: OscMessage) -> None:
        """Send a message without waiting for any reply.

        Raises:
            ConnectionError: If the socket is closed.
            OSError: If the network stack rejects the datagram.
            OscEncodeError: If the message cannot be encoded.
        """
        self._transport.send(message, self._host, self._port)

    def cancel_all(self) -> int:
        """Fail every pending request with RequestCancelledError.

        Callers queued behind a pending request are cancelled too, without
        sending.

        Returns:
            The number of in-flight requests cancelled.
        """
        self._epoch += 1
        pending = list(self._pending.values())
        self._pending.clear()
        for request in pending:
            request.fail(RequestCancelledError(request.address))
        if pending:
            logger.debug("Cancelled %d pending request(s)", len(pending))
        return len(pending)

    def close(self) -> None:
        """Cancel pending requests and detach from the transport."""
        self._closed = True
        self.cancel_all()
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe.clear()

    def _remove(self, pending: PendingRequest) -> None:
        if self._pending.get(pending.address) is pending:
            del self._pending[pending.address]

    def _expire(self, pending: PendingRequest, timeout: float) -> None:
        pending.timer = None
        self._remove(pending)
        pending.fail(RequestTimeoutError(pending.address, timeout))

    def _on_message(self, item: tuple[OscMessage, Address]) -> None:
        message, _ = item
        pending = self._pending.pop(message.address, None)
        if pending is not None:
            pending.complete(message)

    def _on_transport_error(self, error: Exception) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for request in pending:
            request.fail(ConnectionError(f"Socket error while waiting for {request.address}: {error}"))
