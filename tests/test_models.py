"""Tests for data models and event channels."""

import pytest

from x32ctl.api.events import EventChannel
from x32ctl.api.osc import OscMessage
from x32ctl.models.connection import ConnectionConfig, ConnectionState
from x32ctl.models.console import ConsoleInfo, DiscoveryResult
from x32ctl.models.scene import Scene
from x32ctl.models.transfer import BackupDocument


class TestScene:
    """Tests for the Scene model."""

    def test_valid_scene(self) -> None:
        """Test a scene with name and notes."""
        scene = Scene(99, "x" * 64, "notes")
        assert scene.index == 99

    @pytest.mark.parametrize("index", [-1, 100])
    def test_index_range(self, index: int) -> None:
        """Test slots outside 0-99 are rejected."""
        with pytest.raises(ValueError, match="out of range"):
            Scene(index, "Name")

    def test_empty_name_rejected(self) -> None:
        """Test an empty slot is never a Scene."""
        with pytest.raises(ValueError):
            Scene(0, "")

    def test_long_name_rejected(self) -> None:
        """Test names over 64 characters are rejected."""
        with pytest.raises(ValueError):
            Scene(0, "x" * 65)


class TestConnectionModels:
    """Tests for connection config and state."""

    def test_defaults(self) -> None:
        """Test the default connection targets the factory console address."""
        config = ConnectionConfig()
        assert config.address == "192.168.0.64:10023"
        assert config.local_port == 10024
        assert config.mock_mode is True

    def test_immutable(self) -> None:
        """Test configs cannot be changed in place."""
        config = ConnectionConfig()
        with pytest.raises(AttributeError):
            config.host = "10.0.0.1"  # type: ignore[misc]

    @pytest.mark.parametrize(
        ("state", "active"),
        [
            (ConnectionState.DISCONNECTED, False),
            (ConnectionState.CONNECTING, False),
            (ConnectionState.CONNECTED, True),
            (ConnectionState.MOCK, True),
        ],
    )
    def test_active_states(self, state: ConnectionState, active: bool) -> None:
        """Test which states allow calls."""
        assert state.is_active is active


class TestConsoleModels:
    """Tests for console identification."""

    def test_from_xinfo_reply(self) -> None:
        """Test parsing a four-string /xinfo reply."""
        reply = OscMessage.create("/xinfo", "192.168.0.64", "FOH", "X32RACK", "4.06")
        assert ConsoleInfo.from_message(reply) == ConsoleInfo("192.168.0.64", "FOH", "X32RACK", "4.06")

    def test_short_reply(self) -> None:
        """Test a reply with fewer than four arguments is rejected."""
        assert ConsoleInfo.from_message(OscMessage.create("/xinfo", "192.168.0.64")) is None

    def test_discovery_display_name(self) -> None:
        """Test the display name falls back to the source address."""
        result = DiscoveryResult(ip="", name="", model="", firmware="", source_ip="10.0.0.9")
        assert result.display_name == "10.0.0.9"
        assert result.info == ConsoleInfo("", "", "", "")


class TestBackupDocument:
    """Tests for the backup document."""

    def test_header_and_render(self) -> None:
        """Test the console.bak header and line layout."""
        info = ConsoleInfo("192.168.0.64", "FOH", "X32", "4.06")
        document = BackupDocument.for_console(info, "2024-05-01T09:30:00.000Z")
        document.lines.extend(["/ch/01/mix ON", "/ch/02/mix OFF"])

        assert document.render() == (
            '#4.06# "FOH" "2024-05-01T09:30:00.000Z"\n/ch/01/mix ON\n/ch/02/mix OFF'
        )
        assert document.parameter_count == 2


class TestEventChannel:
    """Tests for subscription channels."""

    def test_emit_and_unsubscribe(self) -> None:
        """Test handlers receive payloads until unsubscribed."""
        channel: EventChannel[int] = EventChannel("scene_loaded")
        seen: list[int] = []
        unsubscribe = channel.subscribe(seen.append)

        channel.emit(1)
        unsubscribe()
        unsubscribe()
        channel.emit(2)

        assert seen == [1]
        assert channel.handler_count == 0

    def test_failing_handler_does_not_block_others(self) -> None:
        """Test one broken handler does not stop delivery."""
        channel: EventChannel[int] = EventChannel("state_changed")
        seen: list[int] = []

        def broken(_: int) -> None:
            raise RuntimeError("boom")

        channel.subscribe(broken)
        channel.subscribe(seen.append)
        channel.emit(7)

        assert seen == [7]

    def test_clear(self) -> None:
        """Test clear removes every handler."""
        channel: EventChannel[str] = EventChannel("message")
        channel.subscribe(print)
        channel.clear()
        assert channel.handler_count == 0
