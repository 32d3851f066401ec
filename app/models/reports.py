"""
Structured results of a sweep, used for logging and the trigger endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from app.models.inventory import TransferOutcome


class SweepStatus(str, Enum):
    COMPLETED = "completed"
    VAULT_FULL = "vault_full"
    NOTHING_TO_MOVE = "nothing_to_move"
    REAUTHORIZATION_REQUIRED = "reauthorization_required"
    REFRESH_FAILED = "refresh_failed"
    FETCH_FAILED = "fetch_failed"
    NOT_FOUND = "not_found"
    STOPPED = "stopped"
    ERROR = "error"


@dataclass(slots=True)
class UserSweepReport:
    user_id: str
    status: SweepStatus
    outcomes: List[TransferOutcome] = field(default_factory=list)
    detail: Optional[str] = None

    @property
    def transferred(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success)


@dataclass(slots=True)
class BatchReport:
    started_at: datetime
    finished_at: Optional[datetime] = None
    users: List[UserSweepReport] = field(default_factory=list)

    def count(self, status: SweepStatus) -> int:
        return sum(1 for report in self.users if report.status is status)

    def for_user(self, user_id: str) -> Optional[UserSweepReport]:
        for report in self.users:
            if report.user_id == user_id:
                return report
        return None


__all__ = ["BatchReport", "SweepStatus", "UserSweepReport"]
