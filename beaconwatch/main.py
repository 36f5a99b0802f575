"""Entry point for the beaconwatch monitor."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from beaconwatch.config import Settings, settings
from beaconwatch.health import ProbeScheduler, StatusReporter, StatusStore, build_probes

console = Console()
logger = logging.getLogger(__name__)


def build_scheduler(cfg: Settings) -> ProbeScheduler:
    store = StatusStore(cfg.status_db_path)
    reporter = StatusReporter(store, executable_name=cfg.executable_name)
    return ProbeScheduler(build_probes(cfg, store), reporter)


async def _monitor(scheduler: ProbeScheduler) -> None:
    await scheduler.start()
    try:
        await scheduler.wait()
    finally:
        await scheduler.stop()


def run_monitor() -> None:
    """Run every probe until the process is terminated."""
    scheduler = build_scheduler(settings)
    names = ", ".join(p.name for p in scheduler.probes)
    console.print(Panel(f"Monitoring: {names}", title="beaconwatch", style="bold green"))
    try:
        asyncio.run(_monitor(scheduler))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


def run_once() -> int:
    """Run each probe a single time and print the verdicts."""
    scheduler = build_scheduler(settings)

    async def _once() -> dict:
        try:
            return await scheduler.run_all_now()
        finally:
            await scheduler.stop()

    with console.status("[bold green]Probing..."):
        verdicts = asyncio.run(_once())

    table = Table(title="Probe verdicts")
    table.add_column("Probe")
    table.add_column("Status")
    for name, verdict in verdicts.items():
        style = "green" if verdict.ok else "red"
        table.add_row(name, f"[{style}]{verdict.status}[/{style}]")
    console.print(table)

    return 0 if all(v.ok for v in verdicts.values()) else 1


def main() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    parser = argparse.ArgumentParser(description="beaconwatch liveness monitor")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="Run all probes forever")
    sub.add_parser("once", help="Run each probe once and print the verdicts")

    args = parser.parse_args()

    if args.command == "run":
        run_monitor()
    elif args.command == "once":
        sys.exit(run_once())
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
