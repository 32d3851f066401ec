"""Standalone worker that sweeps every authorized user on a fixed interval."""

from __future__ import annotations

import asyncio
import logging
import signal

from app.core.config import get_settings
from app.core.logging import configure_logging
from app.dependencies import get_batch_scheduler
from app.services import BatchScheduler

logger = logging.getLogger(__name__)


class VaultWorker:
    """Drive the batch scheduler until asked to stop."""

    def __init__(self, scheduler: BatchScheduler, interval_seconds: float) -> None:
        self._scheduler = scheduler
        self._interval = interval_seconds
        self._stop_requested = asyncio.Event()

    def request_stop(self) -> None:
        self._stop_requested.set()

    async def run_forever(self) -> None:
        self._scheduler.start(self._interval)
        logger.info("Vault worker started", extra={"interval_seconds": self._interval})
        await self._stop_requested.wait()
        logger.info("Vault worker stopping; waiting for in-flight transfers")
        await self._scheduler.stop()


async def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    worker = VaultWorker(
        scheduler=get_batch_scheduler(),
        interval_seconds=settings.scheduler.interval_seconds,
    )
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, worker.request_stop)
        except NotImplementedError:  # pragma: no cover - Windows event loops
            pass
    await worker.run_forever()


if __name__ == "__main__":  # pragma: no cover - manual execution path
    asyncio.run(main())
