"""
Fixed-interval batch runner for postmaster sweeps.

Each tick lists every stored user once and sweeps them concurrently, bounded
by a semaphore. A tick never overlaps another, and no single user's failure
escapes the tick.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Protocol

from app.core.errors import CredentialStoreError
from app.models.reports import BatchReport, SweepStatus, UserSweepReport

logger = logging.getLogger(__name__)


class UserLister(Protocol):
    def list(self) -> list[str]: ...


class UserSweeper(Protocol):
    async def sweep(
        self, user_id: str, *, should_stop: Optional[Callable[[], bool]] = None
    ) -> UserSweepReport: ...


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BatchScheduler:
    """Sweep every known user on a timer with bounded concurrency."""

    def __init__(
        self,
        store: UserLister,
        sweeper: UserSweeper,
        *,
        max_concurrency: int = 4,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._store = store
        self._sweeper = sweeper
        self._max_concurrency = max_concurrency
        self._clock = clock
        self._state = SchedulerState.IDLE
        self._stopping = False
        self._loop_task: Optional[asyncio.Task] = None
        self._current_tick: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()
        self.last_report: Optional[BatchReport] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    def _should_stop(self) -> bool:
        return self._stopping

    async def run_once(self) -> Optional[BatchReport]:
        """Run one tick, or return ``None`` if a tick is already in progress."""
        if self._state is SchedulerState.RUNNING:
            logger.info("Previous batch still running; skipping tick")
            return None
        self._state = SchedulerState.RUNNING
        return await self._run_tick()

    async def _run_tick(self) -> BatchReport:
        """Body of a tick; the caller has already moved the state to RUNNING."""
        self._current_tick = asyncio.current_task()
        report = BatchReport(started_at=self._clock())
        try:
            try:
                user_ids = self._store.list()
            except CredentialStoreError:
                logger.exception("Could not enumerate users; skipping tick")
                return report

            logger.info("Starting postmaster sweep", extra={"users": len(user_ids)})
            semaphore = asyncio.Semaphore(self._max_concurrency)
            report.users = list(
                await asyncio.gather(
                    *(self._sweep_isolated(user_id, semaphore) for user_id in user_ids)
                )
            )
            return report
        finally:
            report.finished_at = self._clock()
            self.last_report = report
            self._current_tick = None
            self._state = SchedulerState.IDLE
            logger.info(
                "Completed postmaster sweep",
                extra={
                    "users": len(report.users),
                    "errors": report.count(SweepStatus.ERROR),
                },
            )

    async def _sweep_isolated(
        self, user_id: str, semaphore: asyncio.Semaphore
    ) -> UserSweepReport:
        async with semaphore:
            if self._stopping:
                return UserSweepReport(user_id, SweepStatus.STOPPED, detail="shutdown requested")
            try:
                return await self._sweeper.sweep(user_id, should_stop=self._should_stop)
            except Exception as exc:  # pylint: disable=broad-except
                logger.exception("Sweep failed for user", extra={"user_id": user_id})
                return UserSweepReport(user_id, SweepStatus.ERROR, detail=exc.__class__.__name__)

    def trigger(self) -> bool:
        """Start a tick in the background; ``False`` when one is already running.

        The state is RUNNING before the task is scheduled, so back-to-back
        calls in the same event-loop turn see it.
        """
        if self.is_running or self._stopping:
            return False
        self._state = SchedulerState.RUNNING
        task = asyncio.create_task(self._run_tick())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return True

    async def run_forever(self, interval_seconds: float) -> None:
        while not self._stopping:
            started = asyncio.get_running_loop().time()
            await self.run_once()
            elapsed = asyncio.get_running_loop().time() - started
            if self._stopping:
                break
            await asyncio.sleep(max(interval_seconds - elapsed, 0.0))

    def start(self, interval_seconds: float) -> asyncio.Task:
        if self._loop_task is None or self._loop_task.done():
            self._stopping = False
            self._loop_task = asyncio.create_task(self.run_forever(interval_seconds))
        return self._loop_task

    async def stop(self) -> None:
        """Stop scheduling and wait for an in-flight tick to wind down.

        In-flight transfers are allowed to finish. Running sweeps stop at their
        next checkpoint and users still waiting for a slot are not started.
        """
        self._stopping = True
        in_flight = [task for task in (self._current_tick, *self._background) if task is not None]
        if in_flight:
            await asyncio.gather(*in_flight, return_exceptions=True)
        if self._loop_task is not None and not self._loop_task.done():
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
        self._loop_task = None


__all__ = ["BatchScheduler", "SchedulerState", "UserLister", "UserSweeper"]
