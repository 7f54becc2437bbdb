"""Tests for console backup export."""

from datetime import UTC, datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from x32ctl.api.osc import OscMessage
from x32ctl.api.simulator import SimulatorServer
from x32ctl.core.backup import (
    BackupError,
    BackupExporter,
    backup_timestamp,
    export_console_backup,
    section_for_node,
)
from x32ctl.core.topology import console_backup_paths

SHORT_TREE = [
    "-prefs/ip",
    "ch/01/mix",
    "ch/02/mix",
    "-show/showfile/scene/000",
    "-show/showfile/scene/001",
    "-show/showfile/scene/050",
    "-show/showfile/snippet/000",
]


class TestHelpers:
    """Tests for timestamp and section helpers."""

    def test_timestamp_format(self) -> None:
        """Test the header timestamp is UTC with milliseconds."""
        now = datetime(2024, 5, 1, 9, 30, 0, 123456, tzinfo=UTC)
        assert backup_timestamp(now) == "2024-05-01T09:30:00.123Z"

    def test_timestamp_converts_to_utc(self) -> None:
        """Test aware local times are converted."""
        local = datetime(2024, 5, 1, 11, 30, tzinfo=timezone(timedelta(hours=2)))
        assert backup_timestamp(local) == "2024-05-01T09:30:00.000Z"

    @pytest.mark.parametrize(
        ("path", "section"),
        [
            ("-prefs/ip", "Preferences"),
            ("-stat/solo", "Preferences"),
            ("config/mute", "Config"),
            ("ch/01/mix", "Channels"),
            ("fx/3", "Effects"),
            ("fxrtn/01/mix", "FX Returns"),
            ("-show/showfile/scene/001", "Scenes"),
            ("-show/showfile/snippet/001", "Snippets"),
            ("-show/showfile/cue/001", "Cues"),
            ("-show/showfile/show", "Show"),
            ("-libs/ch/001", "Libraries"),
            ("unknown/node", "Other"),
        ],
    )
    def test_sections(self, path: str, section: str) -> None:
        """Test node paths map to progress sections."""
        assert section_for_node(path) == section


class TestBackupExporter:
    """Tests for exports against the simulator."""

    @pytest.mark.asyncio
    async def test_query_node_strips_newline(self, simulator: SimulatorServer) -> None:
        """Test node lines come back without the console's trailing newline."""
        host, port = simulator.address
        async with BackupExporter(host, port, timeout=0.5) as exporter:
            line = await exporter.query_node("-show/showfile/scene/002")

        assert line == (
            '/-show/showfile/scene/002 "Wednesday Bible Study" "Simple setup - pastor mic + ambient" %000000000 1'
        )

    @pytest.mark.asyncio
    async def test_query_unknown_node(self, simulator: SimulatorServer) -> None:
        """Test silence on a node yields None."""
        host, port = simulator.address
        async with BackupExporter(host, port, timeout=0.05) as exporter:
            assert await exporter.query_node("ch/31/mix") is None

    @pytest.mark.asyncio
    async def test_export_short_tree(self, simulator: SimulatorServer) -> None:
        """Test answered nodes become lines and silent ones are skipped."""
        simulator.device.handle(OscMessage.create("/ch/01/mix", "ON", 0.5))
        host, port = simulator.address
        progress: list[tuple[int, int, str]] = []

        with patch("x32ctl.core.backup.console_backup_paths", return_value=SHORT_TREE):
            result = await export_console_backup(
                host,
                port,
                timeout=0.05,
                on_progress=lambda *args: progress.append(args),
                query_delay=0.0,
            )

        lines = result.content.splitlines()
        assert lines[0].startswith('#4.06# "X32-MOCK" "')
        assert lines[0].endswith('Z"')
        assert lines[1] == '/ch/01/mix "ON" 0.5'
        assert lines[2].startswith('/-show/showfile/scene/000 "Sunday Worship"')
        assert result.parameter_count == 3
        assert result.scene_count == 2
        assert result.snippet_count == 0
        assert result.console_info.name == "X32-MOCK"
        assert progress == [(7, 7, "Snippets")]

    @pytest.mark.asyncio
    async def test_silent_console_raises(self, simulator: SimulatorServer) -> None:
        """Test an export against a silent console fails fast."""
        host, port = simulator.address
        simulator.stop()

        with pytest.raises(BackupError, match="Could not connect"):
            await export_console_backup(host, port, timeout=0.05)

    @pytest.mark.asyncio
    async def test_full_tree_walk(self, simulator: SimulatorServer) -> None:
        """Test every node of the full tree is queried once, in order."""
        host, port = simulator.address
        exporter = BackupExporter(host, port, timeout=0.5, query_delay=0.0)
        progress: list[tuple[int, int, str]] = []

        async with exporter:
            with patch.object(exporter, "query_node", AsyncMock(side_effect=lambda path: f"/{path} 0")) as query:
                result = await exporter.export(lambda *args: progress.append(args))

        queried = [call.args[0] for call in query.await_args_list]
        assert queried == console_backup_paths()
        assert result.parameter_count == 3067
        assert result.scene_count == 100
        assert result.snippet_count == 100
        assert len(progress) == 3067 // 50 + 1
        assert progress[-1] == (3067, 3067, "Libraries")

    @pytest.mark.asyncio
    async def test_current_state_only(self, simulator: SimulatorServer) -> None:
        """Test full=False skips show data and libraries."""
        host, port = simulator.address
        exporter = BackupExporter(host, port, timeout=0.5, query_delay=0.0)

        async with exporter:
            with patch.object(exporter, "query_node", AsyncMock(return_value=None)):
                result = await exporter.export(full=False, fx_slots=4)

        assert result.parameter_count == 0
        assert result.content.count("\n") == 0

    @pytest.mark.asyncio
    async def test_query_before_open(self) -> None:
        """Test queries on a closed exporter raise ConnectionError."""
        exporter = BackupExporter("127.0.0.1", 10023)
        with pytest.raises(ConnectionError, match="not open"):
            await exporter.query_node("ch/01/mix")
