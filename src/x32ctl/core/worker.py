"""QThread worker for running the async ConnectionManager in a Qt application.

Qt widgets must run in the main thread, but the console session uses
asyncio. This worker runs the asyncio event loop in a background thread and
bridges session events to the main thread via Qt signals.
"""

import asyncio
import logging

from PySide6.QtCore import QThread, Signal

from x32ctl.api.events import Unsubscribe
from x32ctl.core.connection import ConnectionManager
from x32ctl.models.connection import ConnectionConfig, ConnectionState

logger = logging.getLogger(__name__)

RECONNECT_DELAY = 2.0
MAX_RECONNECT_DELAY = 30.0
# UDP has no disconnect, so liveness is checked by polling /xinfo
HEALTH_CHECK_INTERVAL = 10.0


class ConsoleWorker(QThread):
    """Background thread worker for an X32 console session.

    Runs a ConnectionManager in a QThread so the main Qt thread stays
    responsive, and reconnects with exponential backoff when the console
    stops answering.

    Example:
        worker = ConsoleWorker(ConnectionConfig(host="192.168.0.64", mock_mode=False))
        worker.state_changed.connect(state_store.set_connection_state)
        worker.scenes_received.connect(state_store.set_scenes)
        worker.start()
    """

    # Session event signals
    state_changed = Signal(object)  # ConnectionState
    message_received = Signal(object)  # OscMessage
    scene_loaded = Signal(int)
    connection_lost = Signal()  # Console stopped answering

    # Data signals
    info_received = Signal(object)  # ConsoleInfo | None
    scenes_received = Signal(object)  # list[Scene]
    current_scene_received = Signal(int)

    # Error signal
    error_occurred = Signal(object)  # Exception

    def __init__(
        self,
        config: ConnectionConfig,
        reconnect_delay: float = RECONNECT_DELAY,
        health_check_interval: float = HEALTH_CHECK_INTERVAL,
    ) -> None:
        """Initialize the worker.

        Args:
            config: Console connection settings.
            reconnect_delay: Initial delay before reconnecting, in seconds.
            health_check_interval: Seconds between liveness checks.
        """
        super().__init__()
        self._config = config
        self._reconnect_delay = reconnect_delay
        self._health_check_interval = health_check_interval
        self._manager: ConnectionManager | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._should_run = True

    @property
    def config(self) -> ConnectionConfig:
        """Return the connection settings."""
        return self._config

    @property
    def is_connected(self) -> bool:
        """Return True if the session is connected or in mock mode."""
        return self._manager is not None and self._manager.is_connected

    def stop(self) -> None:
        """Signal the worker to stop (called from main thread)."""
        self._should_run = False
        if self._manager and self._loop and self._loop.is_running():
            asyncio.run_coroutine_threadsafe(self._manager.disconnect(), self._loop)

    def request_info(self) -> None:
        """Request console info and the current scene.

        Thread-safe call from main thread.
        """
        if self._loop and self._loop.is_running() and self._manager:
            asyncio.run_coroutine_threadsafe(self._fetch_info(), self._loop)

    def request_scenes(self) -> None:
        """Request the scene catalog.

        Thread-safe call from main thread.
        """
        if self._loop and self._loop.is_running() and self._manager:
            asyncio.run_coroutine_threadsafe(self._fetch_scenes(), self._loop)

    def load_scene(self, index: int) -> None:
        """Recall a scene slot.

        Thread-safe call from main thread. Errors are emitted via error_occurred signal.

        Args:
            index: Scene slot (0-99).
        """
        if self._loop and self._loop.is_running() and self._manager:
            asyncio.run_coroutine_threadsafe(self._safe_load_scene(index), self._loop)

    async def _safe_load_scene(self, index: int) -> None:
        """Load scene with error handling."""
        if not self._manager or not self._manager.is_connected:
            return
        try:
            await self._manager.load_scene(index)
        except (ValueError, ConnectionError) as e:
            self.error_occurred.emit(e)

    def run(self) -> None:
        """Run the worker thread (entry point)."""
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)

        try:
            self._loop.run_until_complete(self._connection_loop())
        except Exception as e:
            self.error_occurred.emit(e)
        finally:
            if self._manager:
                self._loop.run_until_complete(self._manager.disconnect())
            self._loop.close()
            self._loop = None
            self._manager = None

    async def _connection_loop(self) -> None:
        """Main connection loop with auto-reconnect."""
        reconnect_delay = self._reconnect_delay

        while self._should_run:
            manager = ConnectionManager(self._config)
            unsubscribes = self._attach(manager)
            self._manager = manager
            try:
                await manager.connect()
                reconnect_delay = self._reconnect_delay  # Reset delay

                await self._fetch_info()
                await self._fetch_scenes()

                await self._watch(manager)
                if not self._should_run:
                    break
            except (OSError, ConnectionError) as e:
                self.error_occurred.emit(e)
            finally:
                await manager.disconnect()
                for unsubscribe in unsubscribes:
                    unsubscribe()

            if not self._should_run:
                break
            logger.info("Reconnecting in %.0fs", reconnect_delay)
            await asyncio.sleep(reconnect_delay)
            reconnect_delay = min(reconnect_delay * 2, MAX_RECONNECT_DELAY)

    async def _watch(self, manager: ConnectionManager) -> None:
        """Return when stopped, disconnected, or the console goes silent."""
        loop = asyncio.get_running_loop()
        last_check = loop.time()

        while self._should_run and manager.is_connected:
            await asyncio.sleep(0.5)
            if manager.state is not ConnectionState.CONNECTED:
                continue
            if loop.time() - last_check < self._health_check_interval:
                continue
            last_check = loop.time()
            try:
                info = await manager.get_info()
            except ConnectionError as e:
                logger.debug("Health check failed: %s", e)
                info = None
            if info is None and self._should_run:
                logger.warning("Console at %s stopped answering", self._config.address)
                self.connection_lost.emit()
                return

    def _attach(self, manager: ConnectionManager) -> list[Unsubscribe]:
        return [
            manager.state_changed.subscribe(self.state_changed.emit),
            manager.message_received.subscribe(self.message_received.emit),
            manager.scene_loaded.subscribe(self.scene_loaded.emit),
        ]

    async def _fetch_info(self) -> None:
        """Fetch console info and current scene, emitting signals."""
        if not self._manager or not self._manager.is_connected:
            return
        try:
            self.info_received.emit(await self._manager.get_info())
            self.current_scene_received.emit(await self._manager.get_current_scene_index())
        except ConnectionError as e:
            self.error_occurred.emit(e)

    async def _fetch_scenes(self) -> None:
        """Fetch the scene catalog and emit signal."""
        if not self._manager or not self._manager.is_connected:
            return
        try:
            self.scenes_received.emit(await self._manager.get_scenes())
        except ConnectionError as e:
            self.error_occurred.emit(e)
