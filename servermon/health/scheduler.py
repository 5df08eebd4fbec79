"""Check orchestration — one concurrent cycle over all targets, on a timer.

Each cycle flattens the configured entries, runs every leaf in its own
worker thread at the same time and returns results in configuration order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from typing import Any

from servermon.health.engine import execute_check
from servermon.health.models import CheckResult
from servermon.health.ssh_cache import SshCache
from servermon.targets.registry import TargetEntry, TargetGroup, TargetRegistry, TargetSpec

logger = logging.getLogger(__name__)


def flatten_targets(entries: Iterable[TargetEntry]) -> list[TargetSpec]:
    """Expand groups in place, tagging children with their group label."""
    leaves: list[TargetSpec] = []
    for entry in entries:
        if isinstance(entry, TargetGroup):
            leaves.extend(replace(child, group=entry.label) for child in entry.targets)
        else:
            leaves.append(entry)
    return leaves


class CheckOrchestrator:
    """Runs all target evaluations of a cycle concurrently.

    Owns the SSH cache for the lifetime of the process. There is no cap on
    concurrency: every leaf gets its own worker for the cycle.
    """

    def __init__(self, cache: SshCache | None = None) -> None:
        self.cache = cache if cache is not None else SshCache()

    async def run_cycle(self, entries: Iterable[TargetEntry]) -> list[CheckResult]:
        targets = flatten_targets(entries)
        if not targets:
            return []

        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(
            max_workers=len(targets), thread_name_prefix="servermon-check",
        )
        try:
            futures = [
                loop.run_in_executor(executor, execute_check, target, self.cache)
                for target in targets
            ]
            # gather keeps positional order regardless of completion order
            results = await asyncio.gather(*futures)
        finally:
            # Don't block the loop on a cancelled cycle. The workers are not
            # daemon threads, so interpreter exit still waits for in-flight
            # probes to hit their own timeouts (ssh_session_timeout at most).
            executor.shutdown(wait=False)

        logger.debug(
            "Cycle done: %d targets, %d healthy",
            len(results), sum(1 for r in results if r.status.is_healthy),
        )
        return list(results)


class MonitorLoop:
    """Starts a ``run_cycle`` every ``interval`` seconds until stopped.

    Cycles never overlap: one that runs past the interval delays the next.
    """

    def __init__(
        self,
        registry: TargetRegistry,
        orchestrator: CheckOrchestrator,
        on_results: Callable[[list[CheckResult]], Any] | None = None,
        interval: float | None = None,
    ) -> None:
        self.registry = registry
        self.orchestrator = orchestrator
        self.on_results = on_results  # dashboard render callback
        self.interval = interval if interval is not None else registry.refresh_interval
        self._task: asyncio.Task[None] | None = None
        self._running = False

    async def start(self) -> None:
        """Start the background refresh loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name="servermon-refresh")
        logger.info("Monitor started (interval=%ss)", self.interval)

    async def stop(self) -> None:
        """Stop the loop; an in-flight cycle is abandoned."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Monitor stopped")

    async def run_once(self) -> list[CheckResult]:
        """Run a single cycle and hand the results to the callback."""
        results = await self.orchestrator.run_cycle(self.registry.entries)
        if self.on_results:
            try:
                self.on_results(results)
            except Exception:
                logger.exception("Render callback error")
        return results

    async def _loop(self) -> None:
        clock = asyncio.get_running_loop()
        while self._running:
            started = clock.time()
            try:
                await self.run_once()
            except Exception:
                logger.exception("Check cycle failed")
            # fixed cadence: cycles start every interval; an overrun starts the next at once
            await asyncio.sleep(max(0.0, self.interval - (clock.time() - started)))
