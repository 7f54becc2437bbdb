"""Tests for StateStore with Qt signals."""

import pytest
from pytestqt.qtbot import QtBot

from x32ctl.api.simulator import MOCK_INFO, SEED_SCENES
from x32ctl.core.state import StateStore
from x32ctl.models.connection import ConnectionState
from x32ctl.models.scene import Scene


@pytest.fixture
def state() -> StateStore:
    """Return a fresh StateStore for each test."""
    return StateStore()


class TestStateStoreBasics:
    """Test basic StateStore functionality."""

    def test_initial_state(self, state: StateStore) -> None:
        """Test that StateStore starts with empty state."""
        assert state.connection_state is ConnectionState.DISCONNECTED
        assert not state.is_connected
        assert state.console is None
        assert state.scenes == []
        assert state.current_scene_index == -1
        assert state.current_scene is None

    def test_mock_counts_as_connected(self, state: StateStore) -> None:
        """Test MOCK is an active state."""
        state.set_connection_state(ConnectionState.MOCK)
        assert state.is_connected

    def test_scenes_sorted_by_index(self, state: StateStore) -> None:
        """Test the catalog is returned in slot order."""
        state.set_scenes([SEED_SCENES[3], SEED_SCENES[0], Scene(42, "Late")])
        assert [s.index for s in state.scenes] == [0, 3, 42]

    def test_lookups(self, state: StateStore) -> None:
        """Test scene lookup and the current scene."""
        state.set_scenes(list(SEED_SCENES))
        state.set_current_scene(4)

        assert state.get_scene(1) == SEED_SCENES[1]
        assert state.get_scene(99) is None
        assert state.current_scene == SEED_SCENES[4]

    def test_disconnect_clears_console(self, state: StateStore) -> None:
        """Test disconnecting forgets identification and current scene."""
        state.set_connection_state(ConnectionState.CONNECTED)
        state.set_console_info(MOCK_INFO)
        state.set_current_scene(2)

        state.set_connection_state(ConnectionState.DISCONNECTED)

        assert state.console is None
        assert state.current_scene_index == -1


class TestStateStoreSignals:
    """Test signal emission."""

    def test_connection_changed_signal(self, state: StateStore, qtbot: QtBot) -> None:
        """Test connection_changed signal emission."""
        with qtbot.wait_signal(state.connection_changed, timeout=100) as blocker:
            state.set_connection_state(ConnectionState.CONNECTING)

        assert blocker.args == [ConnectionState.CONNECTING]

    def test_console_changed_signal(self, state: StateStore, qtbot: QtBot) -> None:
        """Test console_changed signal emission."""
        with qtbot.wait_signal(state.console_changed, timeout=100) as blocker:
            state.set_console_info(MOCK_INFO)

        assert blocker.args == [MOCK_INFO]

    def test_scenes_changed_signal(self, state: StateStore, qtbot: QtBot) -> None:
        """Test scenes_changed carries the sorted catalog."""
        with qtbot.wait_signal(state.scenes_changed, timeout=100) as blocker:
            state.set_scenes(list(reversed(SEED_SCENES)))

        scenes = blocker.args[0]
        assert [s.index for s in scenes] == [0, 1, 2, 3, 4, 5]

    def test_current_scene_changed_signal(self, state: StateStore, qtbot: QtBot) -> None:
        """Test current_scene_changed signal emission."""
        with qtbot.wait_signal(state.current_scene_changed, timeout=100) as blocker:
            state.set_current_scene(5)

        assert blocker.args == [5]

    def test_no_signal_without_change(self, state: StateStore, qtbot: QtBot) -> None:
        """Test setting the same value again emits nothing."""
        state.set_scenes(list(SEED_SCENES))
        state.set_current_scene(1)
        state.set_console_info(MOCK_INFO)

        with qtbot.assert_not_emitted(state.scenes_changed):
            state.set_scenes(list(SEED_SCENES))
        with qtbot.assert_not_emitted(state.current_scene_changed):
            state.set_current_scene(1)
        with qtbot.assert_not_emitted(state.console_changed):
            state.set_console_info(MOCK_INFO)
        with qtbot.assert_not_emitted(state.connection_changed):
            state.set_connection_state(ConnectionState.DISCONNECTED)

    def test_disconnect_emits_cleared_values(self, state: StateStore, qtbot: QtBot) -> None:
        """Test disconnecting signals the cleared console and scene."""
        state.set_connection_state(ConnectionState.MOCK)
        state.set_console_info(MOCK_INFO)
        state.set_current_scene(3)

        with (
            qtbot.wait_signal(state.console_changed, timeout=100) as console,
            qtbot.wait_signal(state.current_scene_changed, timeout=100) as scene,
        ):
            state.set_connection_state(ConnectionState.DISCONNECTED)

        assert console.args == [None]
        assert scene.args == [-1]
