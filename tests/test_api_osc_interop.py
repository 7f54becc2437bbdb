"""Byte-level interoperability of the codec with python-osc."""

import math

import pytest
from pythonosc.osc_message import OscMessage as PyOscMessage
from pythonosc.osc_message_builder import OscMessageBuilder

from x32ctl.api.osc import OscMessage, decode_message, encode_message


def _build(address: str, *args: tuple[object, str]) -> bytes:
    builder = OscMessageBuilder(address=address)
    for value, arg_type in args:
        builder.add_arg(value, arg_type=arg_type)
    return builder.build().dgram


class TestPythonOscInterop:
    """Compare encodings against an independent OSC implementation."""

    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            (OscMessage.create("/xinfo"), _build("/xinfo")),
            (OscMessage.create("/-action/goscene", 4), _build("/-action/goscene", (4, "i"))),
            (OscMessage.create("/ch/01/mix/fader", 0.5), _build("/ch/01/mix/fader", (0.5, "f"))),
            (OscMessage.create("/node", "ch/01/mix"), _build("/node", ("ch/01/mix", "s"))),
            (
                OscMessage.create("/ch/01/config", "Vox 1", 1, "RD", 1),
                _build("/ch/01/config", ("Vox 1", "s"), (1, "i"), ("RD", "s"), (1, "i")),
            ),
            (OscMessage.create("/x", b"\x01\x02\x03"), _build("/x", (b"\x01\x02\x03", "b"))),
        ],
    )
    def test_encoding_matches(self, message: OscMessage, expected: bytes) -> None:
        """Test our encoding is byte-identical to python-osc's."""
        assert encode_message(message) == expected

    def test_python_osc_reads_our_infinity(self) -> None:
        """Test python-osc decodes our -oo as negative infinity."""
        parsed = PyOscMessage(encode_message(OscMessage.create("/ch/01/mix/fader", float("-inf"))))
        assert parsed.address == "/ch/01/mix/fader"
        assert math.isinf(parsed.params[0]) and parsed.params[0] < 0

    def test_we_read_python_osc_message(self) -> None:
        """Test we decode a python-osc datagram."""
        data = _build("/xinfo", ("192.168.0.64", "s"), ("X32-01", "s"), ("X32", "s"), ("4.06", "s"))
        message = decode_message(data)
        assert message.address == "/xinfo"
        assert [message.string_arg(i) for i in range(4)] == ["192.168.0.64", "X32-01", "X32", "4.06"]

    def test_we_read_python_osc_mixed_arguments(self) -> None:
        """Test int, float and string arguments decode with their types."""
        data = _build("/ch/01/mix", (1, "i"), (0.25, "f"), ("ON", "s"))
        message = decode_message(data)
        assert message.int_arg(0) == 1
        assert message.float_arg(1) == 0.25
        assert message.string_arg(2) == "ON"
