"""Tests for ConsoleWorker (QThread worker for the async connection manager)."""

from collections.abc import Iterator
from unittest.mock import AsyncMock, MagicMock

import pytest
from pytestqt.qtbot import QtBot

from x32ctl.core.connection import ConnectionManager
from x32ctl.core.worker import MAX_RECONNECT_DELAY, RECONNECT_DELAY, ConsoleWorker
from x32ctl.models.connection import ConnectionConfig, ConnectionState
from x32ctl.models.console import ConsoleInfo


@pytest.fixture
def mock_worker(qtbot: QtBot) -> Iterator[ConsoleWorker]:
    """Return a mock mode worker that is stopped after the test."""
    worker = ConsoleWorker(ConnectionConfig(mock_mode=True), reconnect_delay=0.1)
    yield worker
    worker.stop()
    worker.wait(5000)


class TestConsoleWorkerBasics:
    """Test basic ConsoleWorker functionality."""

    def test_initialization(self) -> None:
        """Test worker initialization."""
        config = ConnectionConfig(host="192.168.0.64", mock_mode=False)
        worker = ConsoleWorker(config)

        assert worker.config is config
        assert not worker.is_connected
        assert worker._should_run is True
        assert worker._reconnect_delay == RECONNECT_DELAY

    def test_backoff_cap(self) -> None:
        """Test the reconnect delay is capped at thirty seconds."""
        assert MAX_RECONNECT_DELAY == 30.0

    def test_stop_sets_flag(self) -> None:
        """Test that stop sets the should_run flag."""
        worker = ConsoleWorker(ConnectionConfig())
        worker.stop()
        assert worker._should_run is False

    def test_requests_without_loop(self) -> None:
        """Test thread-safe requests are no-ops before the thread runs."""
        worker = ConsoleWorker(ConnectionConfig())
        # Should not crash
        worker.request_info()
        worker.request_scenes()
        worker.load_scene(4)


class TestConsoleWorkerMockMode:
    """Test the worker thread against the in-process console."""

    def test_initial_fetch(self, mock_worker: ConsoleWorker, qtbot: QtBot) -> None:
        """Test connecting emits state, info, current scene and scenes."""
        states: list[ConnectionState] = []
        infos: list[ConsoleInfo | None] = []
        mock_worker.state_changed.connect(states.append)
        mock_worker.info_received.connect(infos.append)

        with qtbot.wait_signal(mock_worker.scenes_received, timeout=5000) as blocker:
            mock_worker.start()

        scenes = blocker.args[0]
        assert [s.index for s in scenes] == [0, 1, 2, 3, 4, 5]
        qtbot.wait_until(lambda: bool(states) and bool(infos), timeout=1000)
        assert states[0] is ConnectionState.MOCK
        assert infos[0] is not None and infos[0].name == "X32-MOCK"
        assert mock_worker.is_connected

    def test_load_scene(self, mock_worker: ConsoleWorker, qtbot: QtBot) -> None:
        """Test load_scene is forwarded to the session."""
        with qtbot.wait_signal(mock_worker.scenes_received, timeout=5000):
            mock_worker.start()

        with qtbot.wait_signal(mock_worker.scene_loaded, timeout=1000) as blocker:
            mock_worker.load_scene(4)
        assert blocker.args == [4]

        with qtbot.wait_signal(mock_worker.current_scene_received, timeout=1000) as blocker:
            mock_worker.request_info()
        assert blocker.args == [4]

    def test_invalid_scene_reports_error(self, mock_worker: ConsoleWorker, qtbot: QtBot) -> None:
        """Test an invalid scene index surfaces through error_occurred."""
        with qtbot.wait_signal(mock_worker.scenes_received, timeout=5000):
            mock_worker.start()

        with qtbot.wait_signal(mock_worker.error_occurred, timeout=1000) as blocker:
            mock_worker.load_scene(100)
        assert isinstance(blocker.args[0], ValueError)

    def test_stop_disconnects(self, mock_worker: ConsoleWorker, qtbot: QtBot) -> None:
        """Test stopping ends the thread with a DISCONNECTED state."""
        with qtbot.wait_signal(mock_worker.scenes_received, timeout=5000):
            mock_worker.start()

        with qtbot.wait_signal(mock_worker.state_changed, timeout=2000) as blocker:
            mock_worker.stop()

        assert blocker.args == [ConnectionState.DISCONNECTED]
        assert mock_worker.wait(5000)


class TestConsoleWorkerFailures:
    """Test error reporting and liveness checks."""

    def test_unreachable_console_reports_error(self, qtbot: QtBot) -> None:
        """Test a silent console emits error_occurred and the worker keeps retrying."""
        config = ConnectionConfig(host="127.0.0.1", port=9, local_port=0, mock_mode=False)
        worker = ConsoleWorker(config, reconnect_delay=0.1)
        try:
            with qtbot.wait_signal(worker.error_occurred, timeout=5000) as blocker:
                worker.start()
            assert isinstance(blocker.args[0], ConnectionError)
            assert worker.isRunning()
        finally:
            worker.stop()
            assert worker.wait(5000)

    @pytest.mark.asyncio
    async def test_health_check_detects_silence(self) -> None:
        """Test connection_lost fires when /xinfo stops being answered."""
        worker = ConsoleWorker(ConnectionConfig(mock_mode=False), health_check_interval=0.0)
        manager = MagicMock(spec=ConnectionManager)
        manager.is_connected = True
        manager.state = ConnectionState.CONNECTED
        manager.get_info = AsyncMock(return_value=None)
        lost: list[bool] = []
        worker.connection_lost.connect(lambda: lost.append(True))

        await worker._watch(manager)

        assert lost == [True]
        manager.get_info.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_watch_returns_on_stop(self) -> None:
        """Test the watch loop ends when the worker is stopped."""
        worker = ConsoleWorker(ConnectionConfig(mock_mode=False), health_check_interval=0.0)
        manager = MagicMock(spec=ConnectionManager)
        manager.is_connected = True
        manager.state = ConnectionState.CONNECTED
        manager.get_info = AsyncMock(return_value=ConsoleInfo("10.0.0.1", "X32", "X32", "4.06"))
        lost: list[bool] = []
        worker.connection_lost.connect(lambda: lost.append(True))
        worker._should_run = False

        await worker._watch(manager)

        assert lost == []
        manager.get_info.assert_not_awaited()
