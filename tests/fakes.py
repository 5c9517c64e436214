from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from teambalance.errors import StoreUnavailableError
from teambalance.evidence import InMemoryEvidenceStore
from teambalance.models import TaskEntity, TaskPatch
from teambalance.repositories import InMemoryTaskRepository


class FlakyTaskRepository(InMemoryTaskRepository):
    """In-memory repository whose updates fail while `available` is False."""

    def __init__(self) -> None:
        super().__init__()
        self.available = True
        self.update_calls = 0

    def update(self, task_id: str, patch: TaskPatch) -> Optional[TaskEntity]:
        self.update_calls += 1
        if not self.available:
            raise StoreUnavailableError("task store offline")
        return super().update(task_id, patch)


class FlakyEvidenceStore(InMemoryEvidenceStore):
    """In-memory evidence store whose writes fail while `available` is False."""

    def __init__(self) -> None:
        super().__init__()
        self.available = True
        self.stored: List[str] = []

    def store(self, content: bytes, name: str, mime_type: str) -> str:
        if not self.available:
            raise StoreUnavailableError("evidence store offline")
        reference = super().store(content, name, mime_type)
        self.stored.append(reference)
        return reference


class SnapshotRecorder:
    """Subscriber that keeps every snapshot it receives."""

    def __init__(self) -> None:
        self.snapshots: List[List[TaskEntity]] = []

    def __call__(self, tasks: List[TaskEntity]) -> None:
        self.snapshots.append(tasks)

    @property
    def last(self) -> List[TaskEntity]:
        return self.snapshots[-1]


def make_task(
    member: str,
    weight: int,
    status: str = "pending",
    task_id: Optional[str] = None,
) -> TaskEntity:
    """Build a task entity directly, for the pure aggregation functions."""
    return {
        "id": task_id or f"{member.strip().lower()}-{weight}-{status}",
        "title": f"Task for {member.strip()}",
        "member": member,
        "weight": weight,
        "deadline": None,
        "status": status,  # type: ignore[typeddict-item]
        "evidence": None,
        "created_at": datetime(2024, 1, 1),
    }
