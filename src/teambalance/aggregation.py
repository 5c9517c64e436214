"""
Per-member contribution statistics derived from a full task snapshot.

All functions are pure and recompute from scratch; they are cheap (one pass
over the task list) and safe to call from any number of read paths.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

from .models import STATUS_COMPLETED, TaskEntity
from .utils import member_key


# PUBLIC_INTERFACE
@dataclass
class MemberStats:
    """Aggregated counters for one member bucket."""

    display_name: str
    completed_count: int = 0
    pending_count: int = 0
    total_points: int = 0
    completed_points: int = 0

    @property
    def completion_rate(self) -> int:
        return completion_rate(self)


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class ContributionShare:
    """A member's completed points and their fraction of the group total."""

    display_name: str
    completed_points: int
    share: float


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class BoardSummary:
    """Every derived view of one snapshot, computed together."""

    members: List[MemberStats] = field(default_factory=list)
    contribution: List[ContributionShare] = field(default_factory=list)
    total_group_points: int = 0
    task_count: int = 0
    completed_count: int = 0


def _is_completed(task: TaskEntity) -> bool:
    return task["status"] == STATUS_COMPLETED


# PUBLIC_INTERFACE
def member_stats(tasks: Iterable[TaskEntity]) -> List[MemberStats]:
    """
    Group tasks by member key (trimmed, case-insensitive) in first-seen order.

    The display name of a bucket is the trimmed member string of the first
    task seen for it.
    """
    buckets: Dict[str, MemberStats] = {}
    for task in tasks:
        key = member_key(task["member"])
        stats = buckets.get(key)
        if stats is None:
            stats = buckets[key] = MemberStats(display_name=task["member"].strip())

        if _is_completed(task):
            stats.completed_count += 1
            stats.completed_points += task["weight"]
        else:
            stats.pending_count += 1
        stats.total_points += task["weight"]
    return list(buckets.values())


# PUBLIC_INTERFACE
def completion_rate(stats: MemberStats) -> int:
    """Completed share of a member's points as a whole percentage (half rounds up)."""
    if stats.total_points <= 0:
        return 0
    return int(math.floor(100 * stats.completed_points / stats.total_points + 0.5))


# PUBLIC_INTERFACE
def total_group_points(tasks: Iterable[TaskEntity]) -> int:
    """Sum of weights over completed tasks."""
    return sum(t["weight"] for t in tasks if _is_completed(t))


# PUBLIC_INTERFACE
def contribution_split(tasks: Iterable[TaskEntity]) -> List[ContributionShare]:
    """
    Completed points per member, restricted to members with a completed task.

    Members appear in first-seen order among completed tasks. Returns an empty
    list when nothing has been completed yet, so callers render an empty state
    instead of dividing by zero.
    """
    points: Dict[str, int] = {}
    names: Dict[str, str] = {}
    for task in tasks:
        if not _is_completed(task):
            continue
        key = member_key(task["member"])
        points[key] = points.get(key, 0) + task["weight"]
        names.setdefault(key, task["member"].strip())

    total = sum(points.values())
    if total == 0:
        return []
    return [
        ContributionShare(display_name=names[key], completed_points=value, share=value / total)
        for key, value in points.items()
    ]


# PUBLIC_INTERFACE
def summarize(tasks: Sequence[TaskEntity]) -> BoardSummary:
    """Compute all derived views for a snapshot."""
    completed = sum(1 for t in tasks if _is_completed(t))
    return BoardSummary(
        members=member_stats(tasks),
        contribution=contribution_split(tasks),
        total_group_points=total_group_points(tasks),
        task_count=len(tasks),
        completed_count=completed,
    )
