"""Scene file import: replay a console scene file as OSC set commands.

Scene files (.scn) are the console's own plain-text export: one OSC
address plus arguments per line, e.g.

    #4.06# "Sunday Worship" "" %000000000 1
    /ch/01/config "Vox 1" 1 RD 1
    /ch/01/mix ON -oo OFF +0.0 OFF -oo

Every parameter line becomes one fire-and-forget command on the importer's
own socket, sent with a small delay so the console's input queue keeps up.
"""

import asyncio
import logging
import re
import time
from collections.abc import Callable
from decimal import Decimal
from typing import Self

from x32ctl.api import addresses
from x32ctl.api.osc import OscArg, OscEncodeError, OscMessage, encode_message
from x32ctl.api.transport import UdpTransport
from x32ctl.models.transfer import ImportResult

logger = logging.getLogger(__name__)

COMMAND_DELAY = 0.005
PROGRESS_INTERVAL = 100

_K_NUMBER = re.compile(r"^(\d+)k(\d+)$")
_NUMBER = re.compile(r"^[+-]?\d+\.?\d*$")

# Checked in order; more specific prefixes first
_SECTIONS: tuple[tuple[str, str], ...] = (
    ("/ch/", "Channels"),
    ("/auxin/", "Aux Inputs"),
    ("/fxrtn/", "FX Returns"),
    ("/bus/", "Buses"),
    ("/mtx/", "Matrix"),
    ("/dca/", "DCAs"),
    ("/fx", "Effects"),
    ("/main/", "Main"),
    ("/config/", "Config"),
    ("/headamp/", "Headamps"),
    ("/outputs/", "Outputs"),
)

# Progress callback: (processed, total, section)
ImportProgressCallback = Callable[[int, int, str], None]


def parse_value(token: str) -> OscArg:
    """Convert one scene-file token to a typed OSC argument.

    Rules, in order:
        -oo, -inf / +oo, +inf  -> float -inf / +inf
        ON / OFF               -> int 1 / 0
        %0101                  -> int from binary (0 if malformed)
        "text"                 -> string without quotes
        1k39                   -> float 1390.0
        -12 / +0.5             -> int, or float if it has a decimal point
        anything else          -> string (enum tokens like color names)
    """
    if token in ("-oo", "-inf"):
        return OscArg.float32(float("-inf"))
    if token in ("+oo", "+inf"):
        return OscArg.float32(float("inf"))
    if token == "ON":
        return OscArg.int32(1)
    if token == "OFF":
        return OscArg.int32(0)

    if token.startswith("%"):
        try:
            return OscArg.int32(int(token[1:], 2))
        except ValueError:
            return OscArg.int32(0)

    if len(token) >= 2 and token.startswith('"') and token.endswith('"'):
        return OscArg.string(token[1:-1])

    k_match = _K_NUMBER.match(token)
    if k_match:
        whole, fraction = k_match.groups()
        return OscArg.float32(float(Decimal(f"{whole}.{fraction}") * 1000))

    if _NUMBER.match(token):
        if "." in token:
            return OscArg.float32(float(token))
        return OscArg.int32(int(token))

    return OscArg.string(token)


def tokenize_arguments(text: str) -> list[OscArg]:
    """Split the argument part of a scene line into typed arguments.

    Double-quoted runs are single string arguments (spaces kept, possibly
    empty). An unterminated quote runs to the end of the line.
    """
    args: list[OscArg] = []
    current: list[str] = []
    in_quotes = False

    for char in text:
        if char == '"':
            if in_quotes:
                args.append(OscArg.string("".join(current)))
                current = []
            in_quotes = not in_quotes
        elif char == " " and not in_quotes:
            if current:
                args.append(parse_value("".join(current)))
                current = []
        else:
            current.append(char)

    if current:
        token = "".join(current)
        args.append(OscArg.string(token) if in_quotes else parse_value(token))

    return args


def parse_scene_line(line: str) -> OscMessage | None:
    """Parse one scene-file line.

    Returns:
        The command, or None for blank lines, comments and header lines.
    """
    stripped = line.strip()
    if not stripped.startswith("/"):
        return None

    address, _, rest = stripped.partition(" ")
    return OscMessage(address, tuple(tokenize_arguments(rest)))


def parse_scene_text(text: str) -> list[OscMessage]:
    """Parse a whole scene file into commands, in file order."""
    messages = []
    for line in text.splitlines():
        message = parse_scene_line(line)
        if message is not None:
            messages.append(message)
    return messages


def section_for_address(address: str) -> str:
    """Return a human-readable section name for progress reports."""
    for prefix, section in _SECTIONS:
        if address.startswith(prefix):
            return section
    return "Other"


class SceneImporter:
    """Replays scene files to one console over the importer socket.

    Example:
        async with SceneImporter("192.168.0.64") as importer:
            result = await importer.load(text)
    """

    def __init__(
        self,
        host: str,
        port: int = addresses.DEFAULT_PORT,
        command_delay: float = COMMAND_DELAY,
    ) -> None:
        """Initialize the importer.

        Args:
            host: Console IP address.
            port: Console OSC port.
            command_delay: Seconds to wait between commands.
        """
        self._host = host
        self._port = port
        self._command_delay = command_delay
        self._transport = UdpTransport("importer")

    async def open(self) -> None:
        """Bind the importer socket."""
        await self._transport.open()

    def close(self) -> None:
        """Close the importer socket."""
        self._transport.close()

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.open()
        return self

    async def __aexit__(self, *_: object) -> None:
        """Async context manager exit."""
        self.close()

    async def load(
        self,
        text: str,
        on_progress: ImportProgressCallback | None = None,
    ) -> ImportResult:
        """Send every parameter line of a scene file.

        A line that cannot be encoded or sent is counted as an error and
        the import carries on.

        Args:
            text: Scene file content.
            on_progress: Called every PROGRESS_INTERVAL lines and at the end
                with (processed, total, section).

        Returns:
            Counts of sent and failed lines plus the elapsed time.
        """
        start = time.monotonic()
        messages = parse_scene_text(text)
        total = len(messages)
        sent = 0
        errors = 0

        await self.open()
        logger.info("Importing %d parameters to %s:%d", total, self._host, self._port)

        for message in messages:
            try:
                self._transport.send_raw(encode_message(message), self._host, self._port)
                sent += 1
            except (OscEncodeError, OSError) as e:
                errors += 1
                logger.warning("Error sending %s: %s", message.address, e)

            processed = sent + errors
            if on_progress and (processed % PROGRESS_INTERVAL == 0 or processed == total):
                on_progress(processed, total, section_for_address(message.address))

            await asyncio.sleep(self._command_delay)

        duration = time.monotonic() - start
        logger.info(
            "Import finished: %d sent, %d errors in %.1fs", sent, errors, duration
        )
        return ImportResult(parameter_count=sent, duration=duration, errors=errors)


async def load_scene_from_text(
    text: str,
    host: str,
    port: int = addresses.DEFAULT_PORT,
    on_progress: ImportProgressCallback | None = None,
    command_delay: float = COMMAND_DELAY,
) -> ImportResult:
    """Import a scene file to a console, managing the socket lifecycle.

    Raises:
        ConnectionError: If the importer socket cannot be bound.
    """
    async with SceneImporter(host, port, command_delay) as importer:
        return await importer.load(text, on_progress)
