"""Command line entry point for x32ctl."""

import argparse
import asyncio
import dataclasses
import logging
import sys
from collections.abc import Callable
from pathlib import Path

from x32ctl.api.simulator import SimulatorServer
from x32ctl.core.backup import BackupError, export_console_backup
from x32ctl.core.config import ConfigManager
from x32ctl.core.connection import ConnectionManager, SceneIndexError
from x32ctl.core.discovery import discover
from x32ctl.core.scene_import import load_scene_from_text
from x32ctl.models.connection import ConnectionConfig

logger = logging.getLogger(__name__)


def _progress(label: str) -> Callable[[int, int, object], None]:
    """Return a progress callback printing one updating line to stderr."""

    def report(current: int, total: int, detail: object) -> None:
        print(f"\r{label}: {current}/{total} ({detail})", end="", file=sys.stderr, flush=True)
        if current == total:
            print(file=sys.stderr)

    return report


def _connection_config(args: argparse.Namespace, config: ConfigManager) -> ConnectionConfig:
    """Merge command line overrides into the stored connection settings."""
    stored = config.get_connection_config()
    changes = {
        name: value
        for name, value in (
            ("host", args.host),
            ("port", args.port),
            ("local_port", args.local_port),
            ("mock_mode", args.mock),
        )
        if value is not None
    }
    # An explicit host means a real console unless --mock says otherwise
    if args.host is not None and args.mock is None:
        changes["mock_mode"] = False
    result = dataclasses.replace(stored, **changes)
    if args.save:
        config.save_connection_config(result)
    return result


async def _cmd_discover(args: argparse.Namespace, config: ConfigManager) -> int:
    results = await discover(
        ip=args.ip,
        subnet=args.subnet,
        local_port=args.bind_port,
        timeout=args.timeout if args.timeout is not None else config.get_discovery_timeout(),
        on_progress=None if args.ip else _progress("Probing"),
    )
    if not results:
        print("No X32 consoles found")
        return 1

    for result in results:
        print(f"{result.source_ip}\t{result.display_name}\tfirmware {result.firmware}")
        config.add_recent_console(result)
    if args.save:
        first = results[0]
        config.save_connection_config(
            dataclasses.replace(config.get_connection_config(), host=first.source_ip, mock_mode=False)
        )
    return 0


async def _cmd_info(args: argparse.Namespace, config: ConfigManager) -> int:
    async with ConnectionManager(_connection_config(args, config)) as manager:
        info = await manager.get_info()
        if info is None:
            print("Console did not answer /xinfo", file=sys.stderr)
            return 1
        current = await manager.get_current_scene_index()
        print(f"Name:     {info.name}")
        print(f"Model:    {info.model}")
        print(f"Firmware: {info.firmware}")
        print(f"IP:       {info.ip}")
        print(f"Scene:    {current if current >= 0 else 'unknown'}")
    return 0


async def _cmd_scenes(args: argparse.Namespace, config: ConfigManager) -> int:
    async with ConnectionManager(_connection_config(args, config)) as manager:
        scenes = await manager.get_scenes()
        current = await manager.get_current_scene_index()
    for scene in scenes:
        marker = "*" if scene.index == current else " "
        notes = f"  ({scene.notes})" if scene.notes else ""
        print(f"{marker}{scene.index:3d}  {scene.name}{notes}")
    return 0


async def _cmd_load(args: argparse.Namespace, config: ConfigManager) -> int:
    async with ConnectionManager(_connection_config(args, config)) as manager:
        await manager.load_scene(args.index)
    print(f"Scene {args.index} load command sent")
    return 0


async def _cmd_import(args: argparse.Namespace, config: ConfigManager) -> int:
    connection = _connection_config(args, config)
    text = Path(args.file).read_text(encoding="utf-8", errors="replace")
    result = await load_scene_from_text(
        text,
        connection.host,
        connection.port,
        on_progress=_progress("Importing"),
        command_delay=args.delay if args.delay is not None else config.get_command_delay(),
    )
    print(f"Sent {result.parameter_count} parameters in {result.duration:.1f}s ({result.errors} errors)")
    return 0 if result.errors == 0 else 1


async def _cmd_export(args: argparse.Namespace, config: ConfigManager) -> int:
    connection = _connection_config(args, config)
    result = await export_console_backup(
        connection.host,
        connection.port,
        timeout=args.timeout if args.timeout is not None else config.get_backup_timeout(),
        on_progress=_progress("Exporting"),
        full=not args.current_only,
        fx_slots=args.fx_slots,
    )
    Path(args.output).write_text(result.content + "\n", encoding="ascii", errors="replace")
    print(
        f"Wrote {args.output}: {result.parameter_count} parameters, "
        f"{result.scene_count} scenes, {result.snippet_count} snippets "
        f"from {result.console_info.name} in {result.duration:.1f}s"
    )
    return 0


async def _cmd_simulate(args: argparse.Namespace, config: ConfigManager) -> int:
    async with SimulatorServer(host=args.bind, port=args.bind_port) as server:
        host, port = server.address
        print(f"Simulated X32 listening on {host}:{port} (Ctrl+C to stop)")
        await asyncio.Event().wait()
    return 0


_COMMANDS = {
    "discover": _cmd_discover,
    "info": _cmd_info,
    "scenes": _cmd_scenes,
    "load": _cmd_load,
    "import": _cmd_import,
    "export": _cmd_export,
    "simulate": _cmd_simulate,
}


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="x32ctl",
        description="x32ctl - Behringer X32 OSC client and simulator",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")

    connection = argparse.ArgumentParser(add_help=False)
    connection.add_argument("--host", default=None, help="console IP address")
    connection.add_argument("--port", type=int, default=None, help="console OSC port (default: 10023)")
    connection.add_argument("--local-port", type=int, default=None, help="local UDP port for the session")
    connection.add_argument(
        "--mock",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="use the built-in simulated console",
    )
    connection.add_argument("--save", action="store_true", help="remember these connection settings")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("discover", help="find consoles on the network")
    target = p.add_mutually_exclusive_group()
    target.add_argument("--ip", help="probe a single address")
    target.add_argument("--subnet", help="sweep a /24 subnet, e.g. 192.168.1")
    p.add_argument("--timeout", type=float, default=None, help="per-probe timeout in seconds")
    p.add_argument("--bind-port", type=int, default=0, help="local UDP port (default: ephemeral)")
    p.add_argument("--save", action="store_true", help="use the first console found from now on")

    sub.add_parser("info", parents=[connection], help="show console identification")
    sub.add_parser("scenes", parents=[connection], help="list stored scenes")

    p = sub.add_parser("load", parents=[connection], help="recall a scene slot")
    p.add_argument("index", type=int, help="scene slot (0-99)")

    p = sub.add_parser("import", parents=[connection], help="replay a .scn scene file")
    p.add_argument("file", help="scene file to send")
    p.add_argument("--delay", type=float, default=None, help="delay between commands in seconds")

    p = sub.add_parser("export", parents=[connection], help="write a console.bak backup")
    p.add_argument("-o", "--output", default="console.bak", help="output file (default: console.bak)")
    p.add_argument("--timeout", type=float, default=None, help="per-node timeout in seconds")
    p.add_argument("--current-only", action="store_true", help="skip scenes, snippets, cues and libraries")
    p.add_argument("--fx-slots", type=int, default=8, help="effect slots on the desk (default: 8)")

    p = sub.add_parser("simulate", help="serve a simulated console over UDP")
    p.add_argument("--bind", default="0.0.0.0", help="local address (default: 0.0.0.0)")
    p.add_argument("--bind-port", type=int, default=10023, help="local UDP port (default: 10023)")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the x32ctl command line.

    Returns:
        Exit code (0 for success).
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = ConfigManager()
    command = _COMMANDS[args.command]
    try:
        return asyncio.run(command(args, config))
    except KeyboardInterrupt:
        return 0
    except (BackupError, SceneIndexError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (OSError, ConnectionError, TimeoutError) as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
