"""Console backup export.

Builds a console.bak compatible document (the file Setup > Backup > Export
writes to USB) by reading every node of the parameter tree with /node
queries. Queries are strictly serial since node replies can be large.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Self

from x32ctl.api import addresses
from x32ctl.api.correlator import RequestCorrelator, RequestTimeoutError
from x32ctl.api.osc import OscMessage
from x32ctl.api.transport import UdpTransport
from x32ctl.core.topology import FX_SLOTS, console_backup_paths
from x32ctl.models.console import ConsoleInfo
from x32ctl.models.transfer import BackupDocument, BackupResult

logger = logging.getLogger(__name__)

NODE_TIMEOUT = 1.0
QUERY_DELAY = 0.003
PROGRESS_INTERVAL = 50

_SECTIONS: tuple[tuple[str, str], ...] = (
    ("-prefs/", "Preferences"),
    ("-stat/", "Preferences"),
    ("config/", "Config"),
    ("ch/", "Channels"),
    ("auxin/", "Aux Inputs"),
    ("fxrtn/", "FX Returns"),
    ("bus/", "Buses"),
    ("mtx/", "Matrix"),
    ("main/", "Main"),
    ("dca/", "DCAs"),
    ("fx/", "Effects"),
    ("headamp/", "Headamps"),
    ("outputs/", "Outputs"),
    ("-show/showfile/scene/", "Scenes"),
    ("-show/showfile/snippet/", "Snippets"),
    ("-show/showfile/cue/", "Cues"),
    ("-show/", "Show"),
    ("-libs/", "Libraries"),
)

# Progress callback: (completed, total, section)
BackupProgressCallback = Callable[[int, int, str], None]


class BackupError(RuntimeError):
    """A backup could not be started."""


def section_for_node(path: str) -> str:
    """Return a human-readable section name for a node path."""
    for prefix, section in _SECTIONS:
        if path.startswith(prefix):
            return section
    return "Other"


def backup_timestamp(now: datetime | None = None) -> str:
    """Return an ISO-8601 UTC timestamp like 2024-05-01T09:30:00.000Z."""
    now = now or datetime.now(UTC)
    return now.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class BackupExporter:
    """Reads the full parameter tree of one console over the exporter socket.

    Example:
        async with BackupExporter("192.168.0.64") as exporter:
            result = await exporter.export()
            Path("console.bak").write_text(result.content)
    """

    def __init__(
        self,
        host: str,
        port: int = addresses.DEFAULT_PORT,
        timeout: float = NODE_TIMEOUT,
        query_delay: float = QUERY_DELAY,
    ) -> None:
        """Initialize the exporter.

        Args:
            host: Console IP address.
            port: Console OSC port.
            timeout: Seconds to wait for each reply.
            query_delay: Seconds to wait between node queries.
        """
        self._host = host
        self._port = port
        self._timeout = timeout
        self._query_delay = query_delay
        self._transport = UdpTransport("exporter")
        self._correlator: RequestCorrelator | None = None

    async def open(self) -> None:
        """Bind the exporter socket."""
        if self._correlator is not None:
            return
        await self._transport.open()
        self._correlator = RequestCorrelator(self._transport, self._host, self._port, self._timeout)

    def close(self) -> None:
        """Cancel any outstanding query and close the socket."""
        if self._correlator is not None:
            self._correlator.close()
            self._correlator = None
        self._transport.close()

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.open()
        return self

    async def __aexit__(self, *_: object) -> None:
        """Async context manager exit."""
        self.close()

    def _require_correlator(self) -> RequestCorrelator:
        if self._correlator is None:
            raise ConnectionError("Exporter socket is not open")
        return self._correlator

    async def get_console_info(self) -> ConsoleInfo | None:
        """Query /xinfo, returning None if the console stays silent."""
        try:
            reply = await self._require_correlator().call(OscMessage.create(addresses.INFO))
        except RequestTimeoutError:
            return None
        return ConsoleInfo.from_message(reply)

    async def query_node(self, path: str) -> str | None:
        """Read one node.

        Returns:
            The raw parameter line (without its trailing newline), or None
            if the console did not answer.
        """
        try:
            reply = await self._require_correlator().call(
                OscMessage.create(addresses.NODE, path),
                reply_address=addresses.NODE_REPLY,
            )
        except RequestTimeoutError:
            return None
        line = reply.string_arg(0)
        return line.rstrip("\r\n") if line else None

    async def export(
        self,
        on_progress: BackupProgressCallback | None = None,
        full: bool = True,
        fx_slots: int = FX_SLOTS,
    ) -> BackupResult:
        """Read every node and assemble the backup.

        Args:
            on_progress: Called every PROGRESS_INTERVAL nodes and at the end
                with (completed, total, section).
            full: Include scenes, snippets, cues and libraries.
            fx_slots: Number of effect slots on the desk.

        Returns:
            The backup document and its statistics.

        Raises:
            BackupError: If the console does not answer /xinfo.
            ConnectionError: If the socket fails mid-export.
        """
        start = time.monotonic()
        await self.open()

        info = await self.get_console_info()
        if info is None:
            raise BackupError(f"Could not connect to X32 at {self._host}:{self._port} or get console info")

        paths = console_backup_paths(full=full, fx_slots=fx_slots)
        total = len(paths)
        document = BackupDocument.for_console(info, backup_timestamp())
        scene_count = 0
        snippet_count = 0

        logger.info("Exporting %d nodes from %s (%s)", total, info.name, info.model)

        for completed, path in enumerate(paths, start=1):
            line = await self.query_node(path)
            if line and line.strip():
                document.lines.append(line)
                if "/scene/" in path:
                    scene_count += 1
                elif "/snippet/" in path:
                    snippet_count += 1

            if on_progress and (completed % PROGRESS_INTERVAL == 0 or completed == total):
                on_progress(completed, total, section_for_node(path))

            await asyncio.sleep(self._query_delay)

        duration = time.monotonic() - start
        logger.info(
            "Backup finished: %d/%d nodes, %d scenes, %d snippets in %.1fs",
            document.parameter_count,
            total,
            scene_count,
            snippet_count,
            duration,
        )
        return BackupResult(
            content=document.render(),
            parameter_count=document.parameter_count,
            scene_count=scene_count,
            snippet_count=snippet_count,
            duration=duration,
            console_info=info,
        )


async def export_console_backup(
    host: str,
    port: int = addresses.DEFAULT_PORT,
    timeout: float = NODE_TIMEOUT,
    on_progress: BackupProgressCallback | None = None,
    full: bool = True,
    fx_slots: int = FX_SLOTS,
    query_delay: float = QUERY_DELAY,
) -> BackupResult:
    """Export a console backup, managing the socket lifecycle.

    Raises:
        BackupError: If the console does not answer /xinfo.
        ConnectionError: If the exporter socket fails.
    """
    async with BackupExporter(host, port, timeout, query_delay) as exporter:
        return await exporter.export(on_progress, full=full, fx_slots=fx_slots)
