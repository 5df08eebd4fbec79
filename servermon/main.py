"""Entry point for the servermon dashboard."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from rich.console import Console

from servermon.config import settings
from servermon.dashboard import render
from servermon.health.scheduler import CheckOrchestrator, MonitorLoop
from servermon.targets.registry import TargetRegistry

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _build_loop(targets: str | None) -> MonitorLoop:
    registry = TargetRegistry(path=Path(targets) if targets else None)
    monitor = MonitorLoop(registry, CheckOrchestrator())
    monitor.on_results = lambda results: render(results, monitor.interval, console)
    return monitor


async def _watch(monitor: MonitorLoop) -> None:
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows: SIGINT still arrives as KeyboardInterrupt
            pass

    await monitor.start()
    await stop.wait()
    await monitor.stop()


def run_watch(targets: str | None) -> None:
    """Refresh the dashboard until interrupted."""
    console.print("[yellow]Starting server monitor...[/yellow]")
    monitor = _build_loop(targets)
    try:
        asyncio.run(_watch(monitor))
    except KeyboardInterrupt:
        pass
    console.print("\n\n[yellow]Shutting down monitor...[/yellow]\n")


def run_once(targets: str | None) -> int:
    """Single cycle. Exit code 1 when any target is not healthy."""
    monitor = _build_loop(targets)
    results = asyncio.run(monitor.run_once())
    return 0 if all(r.status.is_healthy for r in results) else 1


def main() -> None:
    parser = argparse.ArgumentParser(description="Ping / API / SSH server monitoring dashboard")
    parser.add_argument("--targets", help=f"Targets YAML file (default: {settings.targets_file})")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("watch", help="Refresh the dashboard on an interval (default)")
    sub.add_parser("once", help="Run a single check cycle and exit")

    args = parser.parse_args()

    if args.command in (None, "watch"):
        run_watch(args.targets)
    elif args.command == "once":
        sys.exit(run_once(args.targets))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
