"""Central state store with Qt signals for reactive UI updates.

The StateStore holds what is known about the console (connection state,
identification, scene catalog, current scene) and emits a Qt signal when
one of them actually changes. UI widgets connect to these signals.
"""

import logging

from PySide6.QtCore import QObject, Signal

from x32ctl.models.connection import ConnectionState
from x32ctl.models.console import ConsoleInfo
from x32ctl.models.scene import Scene

logger = logging.getLogger(__name__)


class StateStore(QObject):
    """Console state store emitting Qt signals on changes.

    Signals are emitted from whichever thread calls the update methods;
    Qt queues delivery to receivers living in other threads.

    Example:
        state = StateStore()
        state.scenes_changed.connect(lambda scenes: print(len(scenes)))
        worker.scenes_received.connect(state.set_scenes)
    """

    # Note: Using object for complex types (PySide6 limitation)
    connection_changed = Signal(object)  # ConnectionState
    console_changed = Signal(object)  # ConsoleInfo | None
    scenes_changed = Signal(object)  # list[Scene]
    current_scene_changed = Signal(int)  # -1 if unknown

    def __init__(self) -> None:
        """Initialize the state store with empty state."""
        super().__init__()
        self._connection_state = ConnectionState.DISCONNECTED
        self._console: ConsoleInfo | None = None
        self._scenes: dict[int, Scene] = {}
        self._current_scene = -1

    @property
    def connection_state(self) -> ConnectionState:
        """Return the session state."""
        return self._connection_state

    @property
    def is_connected(self) -> bool:
        """Return True if connected or in mock mode."""
        return self._connection_state.is_active

    @property
    def console(self) -> ConsoleInfo | None:
        """Return the console identification, or None if unknown."""
        return self._console

    @property
    def scenes(self) -> list[Scene]:
        """Return the scene catalog in index order."""
        return [self._scenes[i] for i in sorted(self._scenes)]

    @property
    def current_scene_index(self) -> int:
        """Return the current scene slot, or -1 if unknown."""
        return self._current_scene

    @property
    def current_scene(self) -> Scene | None:
        """Return the current scene if it is in the catalog."""
        return self._scenes.get(self._current_scene)

    def get_scene(self, index: int) -> Scene | None:
        """Get a scene by slot index.

        Args:
            index: Slot index (0-99).

        Returns:
            The Scene if known, else None.
        """
        return self._scenes.get(index)

    def set_connection_state(self, state: ConnectionState) -> None:
        """Update the session state.

        Disconnecting forgets the console identification and current scene,
        since either may change before the next connect.
        """
        if state == self._connection_state:
            return
        self._connection_state = state
        self.connection_changed.emit(state)

        if state is ConnectionState.DISCONNECTED:
            self.set_console_info(None)
            self.set_current_scene(-1)

    def set_console_info(self, info: ConsoleInfo | None) -> None:
        """Update the console identification."""
        if info == self._console:
            return
        self._console = info
        self.console_changed.emit(info)

    def set_scenes(self, scenes: list[Scene]) -> None:
        """Replace the scene catalog."""
        new_scenes = {scene.index: scene for scene in scenes}
        if new_scenes == self._scenes:
            return
        self._scenes = new_scenes
        logger.debug("Scene catalog updated: %d scenes", len(new_scenes))
        self.scenes_changed.emit(self.scenes)

    def set_current_scene(self, index: int) -> None:
        """Update the current scene slot (-1 if unknown)."""
        if index == self._current_scene:
            return
        self._current_scene = index
        self.current_scene_changed.emit(index)
