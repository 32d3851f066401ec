"""
Scheduled-event entrypoint that runs one postmaster batch per invocation.

Suited to runtimes such as an EventBridge rule invoking AWS Lambda, where no
long-lived process owns the interval loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from agents.autovault.models import BatchSummary, summarize
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.dependencies import get_batch_scheduler
from app.services import BatchScheduler

logger = logging.getLogger(__name__)


def _bootstrap() -> BatchScheduler:
    """Validate configuration and build the scheduler for this runtime."""
    settings = get_settings()
    configure_logging(settings.log_level)
    return get_batch_scheduler()


def lambda_handler(event: Dict[str, Any], context: Any) -> BatchSummary:
    """Run a single batch and report aggregate counts."""
    scheduler = _bootstrap()
    logger.info("Scheduled batch invoked", extra={"source": event.get("source")})
    report = asyncio.run(scheduler.run_once())
    summary = summarize(report)
    logger.info(
        "Scheduled batch finished",
        extra={"users": summary["users"], "transferred": summary["transferred"]},
    )
    return summary


__all__ = ["lambda_handler"]
