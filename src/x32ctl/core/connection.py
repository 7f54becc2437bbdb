"""Connection manager: session lifecycle, keep-alive and scene operations.

State machine:
    DISCONNECTED -> CONNECTING -> CONNECTED   (network, after a liveness probe)
    DISCONNECTED -> MOCK                      (mock mode, never touches the network)
    any state    -> DISCONNECTED              (disconnect or failed connect)
"""

import asyncio
import dataclasses
import logging
import time
from collections.abc import Callable
from contextlib import suppress
from typing import Any, Self

from x32ctl.api import addresses
from x32ctl.api.correlator import RequestTimeoutError
from x32ctl.api.events import EventChannel, Unsubscribe
from x32ctl.api.osc import OscMessage
from x32ctl.api.session import DeviceSession, NetworkSession, NotConnectedError, SimulatedSession
from x32ctl.api.simulator import SimulatedDevice
from x32ctl.core.discovery import PING_TIMEOUT, ping_console
from x32ctl.models.connection import ConnectionConfig, ConnectionState
from x32ctl.models.console import ConsoleInfo
from x32ctl.models.scene import Scene

logger = logging.getLogger(__name__)

# Console drops a remote session after 10s without /xremote
KEEPALIVE_INTERVAL = 9.0

SCENE_QUERY_TIMEOUT = 1.0
SCENE_BATCH_SIZE = 10
SCENE_BATCH_PAUSE = 0.05

SessionFactory = Callable[[ConnectionConfig], DeviceSession]


class SceneIndexError(ValueError):
    """Scene index outside 0-99."""

    def __init__(self, index: int) -> None:
        self.index = index
        super().__init__(f"Invalid scene index: {index}. Must be 0-{addresses.MAX_SCENES - 1}")


class ConsoleUnreachableError(ConnectionError):
    """The console did not answer the liveness probe at connect time."""


def _check_scene_index(index: int) -> None:
    if not 0 <= index < addresses.MAX_SCENES:
        raise SceneIndexError(index)


class ConnectionManager:
    """Owns the session to one console.

    The session implementation is chosen from `config.mock_mode` when the
    manager is built (and rebuilt by update_config): a SimulatedSession in
    mock mode, a NetworkSession otherwise.

    Example:
        async with ConnectionManager(ConnectionConfig(mock_mode=True)) as x32:
            scenes = await x32.get_scenes()
            await x32.load_scene(4)
    """

    def __init__(
        self,
        config: ConnectionConfig | None = None,
        device: SimulatedDevice | None = None,
        session_factory: SessionFactory | None = None,
        keepalive_interval: float = KEEPALIVE_INTERVAL,
        probe_timeout: float = PING_TIMEOUT,
    ) -> None:
        """Initialize the manager (nothing is opened yet).

        Args:
            config: Connection settings (defaults if None).
            device: Simulated device used in mock mode (a fresh one if None).
                It survives update_config so mock state is not lost.
            session_factory: Override for building the session.
            keepalive_interval: Seconds between /xremote messages.
            probe_timeout: Seconds to wait for the connect-time /xinfo probe.
        """
        self._config = config or ConnectionConfig()
        self._device = device or SimulatedDevice()
        self._session_factory = session_factory or self._default_session
        self._keepalive_interval = keepalive_interval
        self._probe_timeout = probe_timeout

        self._state = ConnectionState.DISCONNECTED
        self._keepalive_task: asyncio.Task[None] | None = None
        # Bumped by disconnect so an in-flight connect knows it was abandoned
        self._generation = 0
        self._connect_done: asyncio.Event | None = None

        self.state_changed: EventChannel[ConnectionState] = EventChannel("state_changed")
        self.message_received: EventChannel[OscMessage] = EventChannel("message_received")
        self.scene_loaded: EventChannel[int] = EventChannel("scene_loaded")

        self._session = self._session_factory(self._config)
        self._unsubscribe_session: Unsubscribe = self._session.subscribe(self.message_received.emit)

    def _default_session(self, config: ConnectionConfig) -> DeviceSession:
        if config.mock_mode:
            return SimulatedSession(self._device)
        return NetworkSession(config)

    async def __aenter__(self) -> Self:
        """Enter async context (connect)."""
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Exit async context (disconnect)."""
        await self.disconnect()

    @property
    def config(self) -> ConnectionConfig:
        """Return the current configuration."""
        return self._config

    @property
    def state(self) -> ConnectionState:
        """Return the current connection state."""
        return self._state

    @property
    def session(self) -> DeviceSession:
        """Return the underlying device session."""
        return self._session

    @property
    def device(self) -> SimulatedDevice:
        """Return the simulated device used in mock mode."""
        return self._device

    @property
    def is_mock_mode(self) -> bool:
        """Return True if calls go to the simulated device."""
        return self._config.mock_mode

    @property
    def is_connected(self) -> bool:
        """Return True if calls can be made."""
        return self._state.is_active

    async def connect(self) -> None:
        """Connect to the console, or enter mock mode.

        A call made while another connect is in flight waits for that
        attempt instead of starting a second one. If disconnect() runs while
        the console is being probed, the attempt is abandoned: nothing is
        left open and the state stays DISCONNECTED.

        Raises:
            ConsoleUnreachableError: If the console does not answer /xinfo.
            ConnectionError: If the session socket cannot be opened, or the
                in-flight attempt this call waited for did not connect.
        """
        if self._state is ConnectionState.CONNECTING and self._connect_done is not None:
            await self._connect_done.wait()
            if not self.is_connected:
                raise ConnectionError(f"Failed to connect to {self._config.address}")
            return

        if self._state is not ConnectionState.DISCONNECTED:
            return

        if self._config.mock_mode:
            await self._session.open()
            logger.info("Starting in mock mode")
            self._set_state(ConnectionState.MOCK)
            return

        generation = self._generation
        done = self._connect_done = asyncio.Event()
        self._set_state(ConnectionState.CONNECTING)
        try:
            await self._open_network(generation)
        finally:
            done.set()

    async def _open_network(self, generation: int) -> None:
        host, port = self._config.host, self._config.port
        try:
            logger.info("Verifying X32 at %s:%d", host, port)
            probe = await ping_console(host, port, timeout=self._probe_timeout)
            if generation != self._generation:
                logger.debug("Connect to %s:%d abandoned", host, port)
                return
            if probe is None:
                raise ConsoleUnreachableError(f"X32 not reachable at {host}:{port}")
            logger.info("Found X32: %s (%s)", probe.name, probe.model)

            await self._session.open()
            if generation != self._generation:
                logger.debug("Connect to %s:%d abandoned", host, port)
                await self._session.close()
                return
        except (OSError, ValueError) as e:
            if generation != self._generation:
                logger.debug("Abandoned connect to %s:%d failed: %s", host, port, e)
                return
            await self._session.close()
            self._set_state(ConnectionState.DISCONNECTED)
            if isinstance(e, ConnectionError):
                raise
            raise ConnectionError(f"Failed to connect to {host}:{port}: {e}") from e

        self._keepalive_task = asyncio.create_task(self._keepalive_loop())
        self._set_state(ConnectionState.CONNECTED)
        logger.info("Connected to X32 at %s:%d", host, port)

    async def disconnect(self) -> None:
        """Disconnect from any state.

        Every pending call is resolved as cancelled before the socket closes,
        and a connect still probing the console is abandoned.
        """
        self._generation += 1
        if self._keepalive_task:
            self._keepalive_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._keepalive_task
            self._keepalive_task = None

        await self._session.close()

        if self._state is not ConnectionState.DISCONNECTED:
            self._set_state(ConnectionState.DISCONNECTED)
            logger.info("Disconnected")

    async def update_config(self, **changes: Any) -> None:
        """Replace configuration fields.

        An open session is disconnected first; reconnecting is left to the
        caller. The session is rebuilt so a mock_mode change takes effect.

        Raises:
            TypeError: If a field name is unknown.
        """
        new_config = dataclasses.replace(self._config, **changes)
        if new_config == self._config:
            return

        await self.disconnect()
        self._unsubscribe_session()
        self._config = new_config
        self._session = self._session_factory(new_config)
        self._unsubscribe_session = self._session.subscribe(self.message_received.emit)
        logger.debug("Configuration updated: %s", new_config)

    async def get_info(self) -> ConsoleInfo | None:
        """Query the console identification.

        Returns:
            The console info, or None if the console did not answer.

        Raises:
            NotConnectedError: If not connected.
        """
        self._require_connected()
        try:
            reply = await self._session.call(OscMessage.create(addresses.INFO))
        except RequestTimeoutError as e:
            logger.warning("Failed to get console info: %s", e)
            return None
        return ConsoleInfo.from_message(reply)

    async def get_current_scene_index(self) -> int:
        """Query the currently loaded scene slot.

        Returns:
            The scene index, or -1 if the console did not answer.

        Raises:
            NotConnectedError: If not connected.
        """
        self._require_connected()
        try:
            reply = await self._session.call(OscMessage.create(addresses.SCENE_CURRENT))
        except RequestTimeoutError as e:
            logger.warning("Failed to get current scene: %s", e)
            return -1
        index = reply.int_arg(0)
        return -1 if index is None else index

    async def load_scene(self, index: int) -> bool:
        """Tell the console to recall a scene slot.

        /-action/goscene is never acknowledged, so True means the command
        was sent, not that the console applied it.

        Raises:
            SceneIndexError: If index is outside 0-99 (nothing is sent).
            NotConnectedError: If not connected.
        """
        _check_scene_index(index)
        self._require_connected()

        logger.info("Loading scene %d", index)
        await self._session.cast(OscMessage.create(addresses.SCENE_GO, index))
        self.scene_loaded.emit(index)
        return True

    async def get_scene_at(self, index: int) -> Scene | None:
        """Read one scene slot.

        Returns:
            The scene, or None if the slot is empty or did not answer.

        Raises:
            SceneIndexError: If index is outside 0-99.
            NotConnectedError: If not connected.
        """
        _check_scene_index(index)
        self._require_connected()

        name = await self._query_scene_field(addresses.scene_name(index))
        if not name:
            return None
        notes = await self._query_scene_field(addresses.scene_notes(index)) or ""
        return Scene(index, name[: addresses.SCENE_NAME_MAX_LENGTH], notes)

    async def get_scenes(self) -> list[Scene]:
        """Read every scene slot in batches.

        Returns:
            The non-empty slots in index order.
        """
        self._require_connected()
        start = time.monotonic()
        scenes: list[Scene] = []

        for batch_start in range(0, addresses.MAX_SCENES, SCENE_BATCH_SIZE):
            batch_end = min(batch_start + SCENE_BATCH_SIZE, addresses.MAX_SCENES)
            results = await asyncio.gather(*(self.get_scene_at(i) for i in range(batch_start, batch_end)))
            scenes.extend(scene for scene in results if scene is not None)

            if batch_end < addresses.MAX_SCENES:
                await asyncio.sleep(SCENE_BATCH_PAUSE)

        logger.info("Fetched %d scenes in %.0fms", len(scenes), (time.monotonic() - start) * 1000)
        return scenes

    async def _query_scene_field(self, address: str) -> str | None:
        # Silence means an empty slot
        try:
            reply = await self._session.call(OscMessage.create(address), timeout=SCENE_QUERY_TIMEOUT)
        except RequestTimeoutError:
            return None
        return reply.string_arg(0)

    async def _keepalive_loop(self) -> None:
        keepalive = OscMessage.create(addresses.XREMOTE)
        while True:
            await asyncio.sleep(self._keepalive_interval)
            if self._state is not ConnectionState.CONNECTED:
                continue
            try:
                await self._session.cast(keepalive)
            except ConnectionError as e:
                logger.warning("Keep-alive failed: %s", e)

    def _require_connected(self) -> None:
        if not self._state.is_active:
            raise NotConnectedError(f"Not connected to X32 at {self._config.address}")

    def _set_state(self, state: ConnectionState) -> None:
        if self._state is not state:
            self._state = state
            logger.debug("Connection state: %s", state)
            self.state_changed.emit(state)
