"""
Deadline urgency classification.

The classifier is a pure function of (deadline, completion flag, now). It never
reads the system clock; callers inject `now`.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Literal, Optional, Union

UrgencyCategory = Literal["none", "overdue", "today", "urgent", "soon", "safe"]

_ONE_DAY = timedelta(days=1)

URGENT_WITHIN_DAYS = 2
SOON_WITHIN_DAYS = 7


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class DeadlineStatus:
    """Urgency category and human-readable label for a task deadline."""

    category: UrgencyCategory
    label: str


NO_DEADLINE = DeadlineStatus(category="none", label="")


def _as_instant(value: Union[date, datetime]) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def days_until(deadline: date, now: Union[date, datetime]) -> int:
    """
    Whole days from `now` until the start of `deadline`, rounded up.

    The deadline is taken as midnight in the timezone of `now`, so an aware
    `now` gives an aware comparison and a naive one a naive comparison.
    """
    current = _as_instant(now)
    due = datetime(deadline.year, deadline.month, deadline.day, tzinfo=current.tzinfo)
    return math.ceil((due - current) / _ONE_DAY)


# PUBLIC_INTERFACE
def classify(
    deadline: Optional[date],
    is_completed: bool,
    now: Union[date, datetime],
) -> DeadlineStatus:
    """
    Map a deadline to its urgency category.

    Rules, evaluated in order (d = days_until(deadline, now)):
    - no deadline or task completed -> none, empty label
    - d < 0  -> overdue, "Overdue by N day(s)"
    - d == 0 -> today, "Due today!"
    - d <= 2 -> urgent, "Due in N day(s)"
    - d <= 7 -> soon, "Due in N days"
    - else   -> safe, "Due in N days"
    """
    if deadline is None or is_completed:
        return NO_DEADLINE

    diff_days = days_until(deadline, now)

    if diff_days < 0:
        return DeadlineStatus("overdue", f"Overdue by {abs(diff_days)} day(s)")
    if diff_days == 0:
        return DeadlineStatus("today", "Due today!")
    if diff_days <= URGENT_WITHIN_DAYS:
        return DeadlineStatus("urgent", f"Due in {diff_days} day(s)")
    if diff_days <= SOON_WITHIN_DAYS:
        return DeadlineStatus("soon", f"Due in {diff_days} days")
    return DeadlineStatus("safe", f"Due in {diff_days} days")
