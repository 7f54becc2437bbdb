"""Simulated X32 console for hardware-less operation and tests.

SimulatedDevice answers the same OSC messages as a real console from an
in-memory table. SimulatorServer serves a SimulatedDevice on a real UDP
socket, so the network code paths can run against it unchanged.
"""

import logging
import math
from collections import deque
from collections.abc import Iterable
from typing import Self

from x32ctl.api import addresses
from x32ctl.api.events import Unsubscribe
from x32ctl.api.osc import OscArg, OscMessage, OscType, encode_message
from x32ctl.api.transport import Address, UdpTransport
from x32ctl.models.console import ConsoleInfo
from x32ctl.models.scene import Scene

logger = logging.getLogger(__name__)

MOCK_INFO = ConsoleInfo(ip="192.168.0.64", name="X32-MOCK", model="X32", firmware="4.06")

SEED_SCENES: tuple[Scene, ...] = (
    Scene(0, "Sunday Worship", "Standard Sunday morning configuration"),
    Scene(1, "Youth Night", "Louder mix, more bass for youth events"),
    Scene(2, "Wednesday Bible Study", "Simple setup - pastor mic + ambient"),
    Scene(3, "Band Practice", ""),
    Scene(4, "Christmas Eve Service", "Special holiday configuration with orchestra"),
    Scene(5, "Guest Speaker", "Minimal setup for visiting speakers"),
)

_SCENE_NODE_PREFIX = "-show/showfile/scene/"


def _format_value(arg: OscArg) -> str:
    """Render an argument the way the console writes it in node lines."""
    if arg.type is OscType.STRING:
        return f'"{arg.value}"'
    if arg.type is OscType.FLOAT:
        value = float(arg.value)  # type: ignore[arg-type]
        if math.isinf(value):
            return "+oo" if value > 0 else "-oo"
        text = f"{value:.4f}".rstrip("0")
        return text + "0" if text.endswith(".") else text
    if arg.type is OscType.BLOB:
        return "%" + "".join(f"{b:08b}" for b in arg.value)  # type: ignore[union-attr]
    return str(arg.value)


class SimulatedDevice:
    """In-memory stand-in for an X32 console.

    Example:
        device = SimulatedDevice()
        reply = device.handle(OscMessage.create("/xinfo"))
        assert reply.string_arg(1) == "X32-MOCK"
    """

    def __init__(
        self,
        info: ConsoleInfo = MOCK_INFO,
        scenes: Iterable[Scene] = SEED_SCENES,
    ) -> None:
        """Initialize the device.

        Args:
            info: Identification returned for /xinfo.
            scenes: Initial scene slots.
        """
        self._info = info
        self._scenes: dict[int, Scene] = {scene.index: scene for scene in scenes}
        self._current_scene = 0
        self._parameters: dict[str, tuple[OscArg, ...]] = {}

    @property
    def info(self) -> ConsoleInfo:
        """Return the console identification."""
        return self._info

    @property
    def current_scene_index(self) -> int:
        """Return the currently loaded scene slot."""
        return self._current_scene

    @property
    def parameters(self) -> dict[str, tuple[OscArg, ...]]:
        """Return a copy of the parameter table (address -> arguments)."""
        return dict(self._parameters)

    def get_scenes(self) -> list[Scene]:
        """Return all stored scenes in index order."""
        return [self._scenes[i] for i in sorted(self._scenes)]

    def get_scene(self, index: int) -> Scene | None:
        """Return the scene in a slot, or None if the slot is empty."""
        return self._scenes.get(index)

    def add_scene(self, name: str, notes: str = "") -> Scene:
        """Store a scene in the first free slot.

        Raises:
            ValueError: If all slots are taken.
        """
        for index in range(addresses.MAX_SCENES):
            if index not in self._scenes:
                scene = Scene(index, name, notes)
                self._scenes[index] = scene
                return scene
        raise ValueError("No free scene slot")

    def delete_scene(self, index: int) -> bool:
        """Clear a scene slot. Returns False if it was already empty."""
        return self._scenes.pop(index, None) is not None

    def set_current_scene(self, index: int) -> bool:
        """Make a slot current. Returns False for an out-of-range index."""
        if 0 <= index < addresses.MAX_SCENES:
            self._current_scene = index
            return True
        return False

    def handle(self, message: OscMessage) -> OscMessage | None:
        """Process a request and return the console's reply, if any."""
        address = message.address

        if address == addresses.INFO:
            return OscMessage.create(
                address, self._info.ip, self._info.name, self._info.model, self._info.firmware
            )

        if address == addresses.STATUS:
            return OscMessage.create(address, "active", self._info.ip, self._info.name)

        if address == addresses.SCENE_CURRENT:
            index = message.int_arg(0)
            if index is not None:
                self.set_current_scene(index)
                logger.debug("Simulated console loaded scene %d", self._current_scene)
            return OscMessage.create(address, self._current_scene)

        if address == addresses.SCENE_GO:
            index = message.int_arg(0)
            if index is not None and self.set_current_scene(index):
                logger.debug("Simulated console went to scene %d", index)
            return None

        if address == addresses.XREMOTE:
            return None

        match = addresses.SCENE_ADDRESS_PATTERN.match(address)
        if match:
            return self._handle_scene_field(message, int(match.group(1)), match.group(2))

        if address == addresses.NODE:
            path = message.string_arg(0)
            line = self.node_line(path) if path else None
            if line is None:
                return None
            return OscMessage(addresses.NODE_REPLY, (OscArg.string(line + "\n"),))

        if message.args:
            self._parameters[address] = message.args
            return None

        stored = self._parameters.get(address)
        if stored is not None:
            return OscMessage(address, stored)

        logger.debug("Simulated console ignoring unknown address: %s", address)
        return None

    def node_line(self, path: str) -> str | None:
        """Return the raw text line for a /node query, or None if unknown."""
        path = path.strip("/")

        if path.startswith(_SCENE_NODE_PREFIX):
            try:
                index = int(path[len(_SCENE_NODE_PREFIX) :])
            except ValueError:
                return None
            scene = self._scenes.get(index)
            if scene is None:
                return None
            return f'/{path} "{scene.name}" "{scene.notes}" %000000000 1'

        stored = self._parameters.get(f"/{path}")
        if stored is None:
            return None
        return " ".join([f"/{path}", *(_format_value(arg) for arg in stored)])

    def _handle_scene_field(self, message: OscMessage, index: int, field: str) -> OscMessage:
        scene = self._scenes.get(index)
        new_value = message.string_arg(0)

        if new_value is not None and 0 <= index < addresses.MAX_SCENES:
            if field == "name" and new_value:
                self._scenes[index] = Scene(
                    index, new_value[: addresses.SCENE_NAME_MAX_LENGTH], scene.notes if scene else ""
                )
            elif field == "notes" and scene is not None:
                self._scenes[index] = Scene(index, scene.name, new_value)
            scene = self._scenes.get(index)

        value = ""
        if scene is not None:
            value = scene.name if field == "name" else scene.notes
        return OscMessage.create(message.address, value)


class SimulatorServer:
    """Serves a SimulatedDevice over UDP, replying to each request's source.

    Example:
        async with SimulatorServer() as server:
            host, port = server.address
            info = await ping_console(host, port)
    """

    def __init__(
        self,
        device: SimulatedDevice | None = None,
        host: str = "127.0.0.1",
        port: int = 0,
    ) -> None:
        """Initialize the server.

        Args:
            device: Device to serve (a fresh one if None).
            host: Local bind address.
            port: Local bind port (0 for an ephemeral port).
        """
        self.device = device or SimulatedDevice()
        self._transport = UdpTransport("simulator", host, port)
        self._unsubscribe: Unsubscribe | None = None
        self.received: deque[OscMessage] = deque(maxlen=10000)

    @property
    def address(self) -> Address:
        """Return the bound (host, port).

        Raises:
            ConnectionError: If the server is not running.
        """
        local = self._transport.local_address
        if local is None:
            raise ConnectionError("Simulator is not running")
        return local

    @property
    def is_running(self) -> bool:
        """Return True if the socket is open."""
        return self._transport.is_open

    async def start(self) -> None:
        """Bind the socket and start answering."""
        await self._transport.open()
        if self._unsubscribe is None:
            self._unsubscribe = self._transport.subscribe(self._on_message)
        logger.info("Simulated console listening on %s:%d", *self.address)

    def stop(self) -> None:
        """Stop answering and close the socket."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._transport.close()

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, *_: object) -> None:
        """Async context manager exit."""
        self.stop()

    def _on_message(self, item: tuple[OscMessage, Address]) -> None:
        message, source = item
        self.received.append(message)
        reply = self.device.handle(message)
        if reply is None:
            return
        try:
            self._transport.send_raw(encode_message(reply, strict=False), *source)
        except (OSError, ValueError) as e:
            logger.warning("Simulator failed to reply to %s:%d: %s", source[0], source[1], e)
