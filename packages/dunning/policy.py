"""
Retry schedule for dunning cases.

Offsets are counted in days from the first failure, so a late retry never
pushes the rest of the schedule back.
"""

from datetime import datetime, timedelta
from typing import Optional, Sequence

from common.core.config import settings


def retry_offset_days(attempt: int, schedule: Optional[Sequence[int]] = None) -> int:
    """
    Days after the first failure at which `attempt` (1-based) is retried.

    Attempts beyond the schedule reuse its last offset plus a week per extra attempt.
    """
    schedule = list(schedule if schedule is not None else settings.dunning_schedule_days)
    if not schedule:
        raise ValueError("Dunning schedule must not be empty")
    if attempt < 1:
        raise ValueError("Attempts are 1-based")
    if attempt <= len(schedule):
        return schedule[attempt - 1]
    return schedule[-1] + 7 * (attempt - len(schedule))


def next_attempt_date(
    first_failure_at: datetime,
    attempt: int,
    schedule: Optional[Sequence[int]] = None,
) -> datetime:
    return first_failure_at + timedelta(days=retry_offset_days(attempt, schedule))
