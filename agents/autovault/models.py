"""
Payload shapes returned by the scheduled-event handler.
"""

from __future__ import annotations

from typing import Dict, TypedDict

from app.models.reports import BatchReport, SweepStatus


class BatchSummary(TypedDict):
    """Aggregate counts for one batch, safe to return to the scheduler runtime."""

    statusCode: int
    skipped: bool
    users: int
    transferred: int
    failed: int
    statuses: Dict[str, int]


def summarize(report: BatchReport | None) -> BatchSummary:
    if report is None:
        return {
            "statusCode": 200,
            "skipped": True,
            "users": 0,
            "transferred": 0,
            "failed": 0,
            "statuses": {},
        }
    statuses = {
        status.value: report.count(status)
        for status in SweepStatus
        if report.count(status)
    }
    return {
        "statusCode": 200,
        "skipped": False,
        "users": len(report.users),
        "transferred": sum(user.transferred for user in report.users),
        "failed": sum(user.failed for user in report.users),
        "statuses": statuses,
    }


__all__ = ["BatchSummary", "summarize"]
