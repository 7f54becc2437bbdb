"""OSC 1.0 message codec for X32 communication.

OSC messages are framed as:
- Address string (ASCII, NUL-terminated, padded to a 4-byte boundary)
- Type tag string ("," plus one char per argument, padded the same way)
- Arguments, each aligned to 4 bytes

The X32 encodes "-oo dB" as an IEEE-754 negative infinity, so float
arguments must survive infinities unchanged.
"""

import math
import struct
from dataclasses import dataclass
from enum import StrEnum


class OscDecodeError(ValueError):
    """Datagram is not a well-formed OSC message."""


class OscEncodeError(ValueError):
    """Message cannot be represented on the wire."""


class OscType(StrEnum):
    """OSC argument type tags supported by the X32."""

    INT = "i"
    FLOAT = "f"
    STRING = "s"
    BLOB = "b"


# Bit patterns the console uses for +oo / -oo
FLOAT_POS_INF = 0x7F800000
FLOAT_NEG_INF = 0xFF800000

_INT32 = struct.Struct(">i")
_UINT32 = struct.Struct(">I")
_FLOAT32 = struct.Struct(">f")


@dataclass(frozen=True, slots=True)
class OscArg:
    """A single typed OSC argument.

    Attributes:
        type: Wire type tag.
        value: Python value (int, float, str or bytes, matching type).
    """

    type: OscType
    value: int | float | str | bytes

    @classmethod
    def int32(cls, value: int) -> "OscArg":
        """Create an int32 argument."""
        return cls(OscType.INT, int(value))

    @classmethod
    def float32(cls, value: float) -> "OscArg":
        """Create a float32 argument."""
        return cls(OscType.FLOAT, float(value))

    @classmethod
    def string(cls, value: str) -> "OscArg":
        """Create a string argument."""
        return cls(OscType.STRING, value)

    @classmethod
    def blob(cls, value: bytes) -> "OscArg":
        """Create a blob argument."""
        return cls(OscType.BLOB, bytes(value))

    @classmethod
    def from_value(cls, value: object) -> "OscArg":
        """Infer the OSC type from a Python value.

        Booleans become int 1/0, matching how the console represents switches.

        Raises:
            TypeError: If the value has no OSC representation.
        """
        if isinstance(value, OscArg):
            return value
        if isinstance(value, bool):
            return cls.int32(1 if value else 0)
        if isinstance(value, int):
            return cls.int32(value)
        if isinstance(value, float):
            return cls.float32(value)
        if isinstance(value, str):
            return cls.string(value)
        if isinstance(value, (bytes, bytearray)):
            return cls.blob(bytes(value))
        raise TypeError(f"Unsupported OSC argument type: {type(value).__name__}")

    def format(self) -> str:
        """Return a short human-readable form for logs."""
        match self.type:
            case OscType.STRING:
                return f'"{self.value}"'
            case OscType.FLOAT:
                value = float(self.value)  # type: ignore[arg-type]
                if math.isinf(value):
                    return "+oo" if value > 0 else "-oo"
                return f"{value:.3f}"
            case OscType.BLOB:
                return f"<blob:{len(self.value)}bytes>"  # type: ignore[arg-type]
            case _:
                return str(self.value)


@dataclass(frozen=True, slots=True)
class OscMessage:
    """An OSC message: address plus ordered, typed arguments.

    Attributes:
        address: OSC address pattern (e.g. "/xinfo").
        args: Arguments in type-tag order.
    """

    address: str
    args: tuple[OscArg, ...] = ()

    @classmethod
    def create(cls, address: str, *values: object) -> "OscMessage":
        """Create a message, inferring argument types from Python values.

        Example:
            OscMessage.create("/-action/goscene", 4)
        """
        return cls(address, tuple(OscArg.from_value(v) for v in values))

    @property
    def type_tag(self) -> str:
        """Return the OSC type tag string (e.g. ",sif")."""
        return "," + "".join(arg.type.value for arg in self.args)

    def _arg(self, index: int, osc_type: OscType) -> OscArg | None:
        if 0 <= index < len(self.args) and self.args[index].type is osc_type:
            return self.args[index]
        return None

    def string_arg(self, index: int) -> str | None:
        """Return argument `index` if it is a string, else None."""
        arg = self._arg(index, OscType.STRING)
        return arg.value if arg else None  # type: ignore[return-value]

    def int_arg(self, index: int) -> int | None:
        """Return argument `index` if it is an int32, else None."""
        arg = self._arg(index, OscType.INT)
        return arg.value if arg else None  # type: ignore[return-value]

    def float_arg(self, index: int) -> float | None:
        """Return argument `index` if it is a float32, else None."""
        arg = self._arg(index, OscType.FLOAT)
        return arg.value if arg else None  # type: ignore[return-value]

    def format(self) -> str:
        """Return a log-friendly rendering like `/ch/01/mix/fader 0.750`."""
        if not self.args:
            return self.address
        return f"{self.address} {' '.join(arg.format() for arg in self.args)}"


def padded_size(length: int) -> int:
    """Return the padded size of a NUL-terminated string of `length` bytes."""
    size = length + 1
    return size + (-size % 4)


def _encode_string(value: str, what: str) -> bytes:
    try:
        raw = value.encode("ascii")
    except UnicodeEncodeError as e:
        raise OscEncodeError(f"{what} is not ASCII: {value!r}") from e
    if b"\x00" in raw:
        raise OscEncodeError(f"{what} contains a NUL byte: {value!r}")
    return raw.ljust(padded_size(len(raw)), b"\x00")


def _encode_float(value: float) -> bytes:
    if math.isinf(value):
        return _UINT32.pack(FLOAT_POS_INF if value > 0 else FLOAT_NEG_INF)
    try:
        return _FLOAT32.pack(value)
    except (OverflowError, struct.error) as e:
        raise OscEncodeError(f"Float out of float32 range: {value}") from e


def _encode_arg(arg: OscArg) -> bytes:
    match arg.type:
        case OscType.INT:
            try:
                return _INT32.pack(arg.value)
            except struct.error as e:
                raise OscEncodeError(f"Int out of int32 range: {arg.value}") from e
        case OscType.FLOAT:
            return _encode_float(float(arg.value))  # type: ignore[arg-type]
        case OscType.STRING:
            return _encode_string(str(arg.value), "String argument")
        case OscType.BLOB:
            data = bytes(arg.value)  # type: ignore[arg-type]
            return _INT32.pack(len(data)) + data + b"\x00" * (-len(data) % 4)
    raise OscEncodeError(f"Unsupported type tag: {arg.type!r}")


def encode_message(message: OscMessage, strict: bool = True) -> bytes:
    """Encode an OscMessage into an OSC datagram.

    Args:
        message: The message to encode.
        strict: Require the address to start with "/". Only the simulator
            turns this off, to mimic the console's bare "node" replies.

    Returns:
        The binary datagram.

    Raises:
        OscEncodeError: If the address or an argument cannot be encoded.
    """
    if strict and not message.address.startswith("/"):
        raise OscEncodeError(f"OSC address must start with '/': {message.address!r}")

    parts = [
        _encode_string(message.address, "Address"),
        _encode_string(message.type_tag, "Type tag"),
    ]
    parts.extend(_encode_arg(arg) for arg in message.args)
    return b"".join(parts)


def _read_string(data: bytes, offset: int, what: str) -> tuple[str, int]:
    """Read a padded NUL-terminated string, returning (value, next_offset)."""
    end = data.find(b"\x00", offset)
    if end == -1:
        raise OscDecodeError(f"{what} at offset {offset} is not NUL-terminated")
    next_offset = offset + padded_size(end - offset)
    if next_offset > len(data):
        raise OscDecodeError(f"{what} padding at offset {offset} runs past end of datagram")
    return data[offset:end].decode("ascii", errors="replace"), next_offset


def _read_word(data: bytes, offset: int, what: str) -> bytes:
    if offset + 4 > len(data):
        raise OscDecodeError(f"Truncated {what} argument at offset {offset}")
    return data[offset : offset + 4]


def decode_message(data: bytes) -> OscMessage:
    """Decode an OSC datagram into an OscMessage.

    A missing type tag, or one not starting with ",", yields a message with
    no arguments; the console sends such replies and they are not errors.

    Args:
        data: Raw datagram bytes.

    Returns:
        The decoded message.

    Raises:
        OscDecodeError: If the datagram is malformed.
    """
    if not data:
        raise OscDecodeError("Empty datagram")

    address, offset = _read_string(data, 0, "Address")

    if offset >= len(data) or data[offset : offset + 1] != b",":
        return OscMessage(address)

    type_tag, offset = _read_string(data, offset, "Type tag")

    args: list[OscArg] = []
    for tag in type_tag[1:]:
        if tag == OscType.INT:
            (value,) = _INT32.unpack(_read_word(data, offset, "int"))
            args.append(OscArg(OscType.INT, value))
            offset += 4
        elif tag == OscType.FLOAT:
            (fvalue,) = _FLOAT32.unpack(_read_word(data, offset, "float"))
            args.append(OscArg(OscType.FLOAT, fvalue))
            offset += 4
        elif tag == OscType.STRING:
            svalue, offset = _read_string(data, offset, "String argument")
            args.append(OscArg(OscType.STRING, svalue))
        elif tag == OscType.BLOB:
            (size,) = _INT32.unpack(_read_word(data, offset, "blob size"))
            start = offset + 4
            end = start + size
            if size < 0 or end + (-size % 4) > len(data):
                raise OscDecodeError(f"Blob of {size} bytes at offset {offset} runs past end")
            args.append(OscArg(OscType.BLOB, data[start:end]))
            offset = end + (-size % 4)
        else:
            raise OscDecodeError(f"Unsupported type tag {tag!r} in {type_tag!r}")

    return OscMessage(address, tuple(args))
