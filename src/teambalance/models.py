from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional, TypedDict, Union

TaskStatus = Literal["pending", "completed"]

STATUS_PENDING: TaskStatus = "pending"
STATUS_COMPLETED: TaskStatus = "completed"


class LinkEvidence(TypedDict):
    """Proof of completion given as a URL."""

    type: Literal["link"]
    url: str


class FileEvidence(TypedDict):
    """
    Proof of completion given as an uploaded file.

    Only the Evidence Store reference is kept on the task; the bytes live in
    the store.
    """

    type: Literal["file"]
    name: str
    reference: str
    mime_type: str
    size: int


Evidence = Union[LinkEvidence, FileEvidence]


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    A lightweight domain model representing a board task for non-ORM storage
    backends.

    Fields:
    - id: Opaque identifier assigned by the repository
    - title: Short title (trimmed, 1..200 chars)
    - member: Assignee display name (trimmed, 1..100 chars)
    - weight: Effort points, integer in [1, 10]
    - deadline: Optional calendar date
    - status: 'pending' or 'completed'
    - evidence: Optional link/file evidence; always None while pending
    - created_at: Creation timestamp assigned by the repository
    """

    id: str
    title: str
    member: str
    weight: int
    deadline: Optional[date]
    status: TaskStatus
    evidence: Optional[Evidence]
    created_at: datetime


class TaskRecord(TypedDict):
    """Fields supplied by the caller when creating a task (no id/created_at)."""

    title: str
    member: str
    weight: int
    deadline: Optional[date]
    status: TaskStatus
    evidence: Optional[Evidence]


class TaskPatch(TypedDict, total=False):
    """Partial update applied by the lifecycle manager."""

    status: TaskStatus
    evidence: Optional[Evidence]
