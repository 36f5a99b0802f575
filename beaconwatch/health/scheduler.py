"""Probe scheduler — runs every probe as its own perpetual loop.

Each loop: check immediately, report the verdict, sleep the interval, repeat.
Checks are blocking callables and run in a thread pool so a slow
collaborator only ever stalls its own probe.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from .engine import StatusReporter, Verdict

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 60.0

STILL_RUNNING = "previous check still running"


@dataclass
class Probe:
    """A named, independently scheduled check."""

    name: str
    check: Callable[[], Verdict]
    interval: float = DEFAULT_INTERVAL
    timeout: float | None = None  # None = unbounded


def _consume_result(future: asyncio.Future) -> None:
    # Outcome of a check nobody is awaiting any more (it outlived its timeout)
    if not future.cancelled() and future.exception() is not None:
        logger.debug("Late check failure: %r", future.exception())


class ProbeScheduler:
    """Starts one asyncio task per probe and never joins them.

    At most one check per probe is ever in flight: a check that outlives its
    timeout keeps its thread, and later iterations report STILL_RUNNING until
    it returns. Status writes use a separate pool so hung checks cannot
    block them.

    `stop()` exists for hosting code and tests; in production the loops run
    until the process exits.
    """

    def __init__(self, probes: Iterable[Probe], reporter: StatusReporter) -> None:
        self.probes = list(probes)
        names = [p.name for p in self.probes]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"Duplicate probe names: {', '.join(dupes)}")

        self.reporter = reporter
        workers = max(1, len(self.probes))
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="probe")
        self._report_executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="report")
        self._inflight: dict[str, asyncio.Future] = {}
        self._tasks: list[asyncio.Task[None]] = []
        self._running = False

    async def start(self) -> None:
        """Spawn every probe loop and return immediately."""
        if self._running:
            return
        self._running = True

        for probe in self.probes:
            task = asyncio.create_task(self._probe_loop(probe), name=f"probe-{probe.name}")
            self._tasks.append(task)

        logger.info("Probe scheduler started: %d probes", len(self.probes))

    async def stop(self) -> None:
        """Cancel all probe loops and release the checks' resources."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._report_executor.shutdown(wait=False)

        for probe in self.probes:
            close = getattr(probe.check, "close", None)
            if callable(close):
                try:
                    close()
                except Exception:
                    logger.exception("Error closing probe %s", probe.name)

        logger.info("Probe scheduler stopped")

    async def wait(self) -> None:
        """Block until every loop has ended (normally: never)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def run_all_now(self) -> dict[str, Verdict]:
        """Run one iteration of every probe concurrently (manual trigger)."""
        verdicts = await asyncio.gather(*(self.run_once(p) for p in self.probes))
        return {p.name: v for p, v in zip(self.probes, verdicts)}

    async def run_once(self, probe: Probe) -> Verdict:
        """One iteration: observe, report exactly once, return the verdict."""
        verdict = await self._observe(probe)

        if verdict.ok:
            logger.debug("Probe %s: OK", probe.name)
        else:
            logger.error("Probe %s: %s", probe.name, verdict.message)

        loop = asyncio.get_event_loop()
        try:
            await loop.run_in_executor(
                self._report_executor, self.reporter.report, probe.name, verdict.status,
            )
        except Exception:
            logger.exception("Failed to report status for %s", probe.name)

        return verdict

    async def _observe(self, probe: Probe) -> Verdict:
        pending = self._inflight.get(probe.name)
        if pending is not None and not pending.done():
            return Verdict.error(STILL_RUNNING)

        loop = asyncio.get_event_loop()
        future = loop.run_in_executor(self._executor, probe.check)
        future.add_done_callback(_consume_result)
        self._inflight[probe.name] = future
        try:
            # shield: a timeout stops the wait, not the tracking of the running check
            return await asyncio.wait_for(asyncio.shield(future), probe.timeout)
        except asyncio.TimeoutError:
            return Verdict.error(f"check timed out after {probe.timeout:g}s")
        except Exception as e:
            return Verdict.error(f"{type(e).__name__}: {e}")

    async def _probe_loop(self, probe: Probe) -> None:
        """Persistent loop for a single probe. First run is immediate."""
        while self._running:
            try:
                await self.run_once(probe)
                await asyncio.sleep(probe.interval)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Probe loop error: %s", probe.name)
                await asyncio.sleep(probe.interval)
