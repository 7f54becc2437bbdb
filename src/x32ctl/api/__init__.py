"""OSC wire protocol and UDP transport for Behringer X32 consoles.

Session and simulator modules are imported directly
(x32ctl.api.session, x32ctl.api.simulator) since they depend on the models.
"""

from x32ctl.api.correlator import RequestCancelledError, RequestCorrelator, RequestTimeoutError
from x32ctl.api.events import EventChannel
from x32ctl.api.osc import (
    OscArg,
    OscDecodeError,
    OscEncodeError,
    OscMessage,
    OscType,
    decode_message,
    encode_message,
)
from x32ctl.api.transport import UdpTransport

__all__ = [
    "EventChannel",
    "OscArg",
    "OscDecodeError",
    "OscEncodeError",
    "OscMessage",
    "OscType",
    "RequestCancelledError",
    "RequestCorrelator",
    "RequestTimeoutError",
    "UdpTransport",
    "decode_message",
    "encode_message",
]
